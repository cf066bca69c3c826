"""
Dispatcher and supervisor tests - the single consumer loop and reconnects.
"""

import asyncio
import json

import pytest
from conftest import FakeServer, drain

from zonectl.dispatcher import EventDispatcher
from zonectl.events import CoreFound, UiEvent
from zonectl.intents import BrowseHome, BrowseRefresh
from zonectl.lib.server import DiscoveryFailed
from zonectl.lib.store import save_section
from zonectl.supervisor import ConnectionSupervisor


class Stop(BaseException):
    """Ends the otherwise endless supervisor loop in tests."""


class RecordingHandler:
    def __init__(self, expected, fail_on=None):
        self.seen = []
        self.expected = expected
        self.fail_on = fail_on
        self.done = asyncio.Event()

    async def handle_event(self, event):
        await self._record("event", event)

    async def handle_intent(self, intent):
        await self._record("intent", intent)

    async def _record(self, kind, item):
        self.seen.append((kind, item))
        if len(self.seen) >= self.expected:
            self.done.set()
        if item == self.fail_on:
            raise RuntimeError("boom")


class TestEventDispatcher:
    """Tests for the consumer loop."""

    def run_dispatcher(self, handler, events, intents):
        async def main():
            events_queue = asyncio.Queue()
            intents_queue = asyncio.Queue()
            for event in events:
                events_queue.put_nowait(event)
            for intent in intents:
                intents_queue.put_nowait(intent)
            until = asyncio.ensure_future(handler.done.wait())
            dispatcher = EventDispatcher(handler, events_queue, intents_queue, asyncio.Lock())
            await asyncio.wait_for(dispatcher.run(until), timeout=5)
            return dispatcher

        return asyncio.run(main())

    def test_fifo_within_each_queue(self):
        handler = RecordingHandler(expected=5)

        self.run_dispatcher(handler, ["e1", "e2", "e3"], ["i1", "i2"])

        assert [item for kind, item in handler.seen if kind == "event"] == ["e1", "e2", "e3"]
        assert [item for kind, item in handler.seen if kind == "intent"] == ["i1", "i2"]

    def test_handler_error_does_not_stop_loop(self):
        handler = RecordingHandler(expected=3, fail_on="e1")

        self.run_dispatcher(handler, ["e1", "e2"], ["i1"])

        assert len(handler.seen) == 3

    def test_intent_lock_released(self):
        handler = RecordingHandler(expected=1)

        async def main():
            lock = asyncio.Lock()
            intents = asyncio.Queue()
            intents.put_nowait(BrowseHome())
            until = asyncio.ensure_future(handler.done.wait())
            await EventDispatcher(handler, asyncio.Queue(), intents, lock).run(until)
            return lock.locked()

        assert asyncio.run(main()) is False

    def test_intent_taken_as_connection_ends_is_kept(self):
        seen = []

        async def main():
            events = asyncio.Queue()
            intents = asyncio.Queue()
            until = asyncio.get_running_loop().create_future()

            class ClosingHandler:
                async def handle_event(self, event):
                    intents.put_nowait(BrowseHome())
                    until.set_result(None)
                    # Let the pending intent get pick the intent up
                    for _ in range(3):
                        await asyncio.sleep(0)

                async def handle_intent(self, intent):
                    seen.append(intent)

            events.put_nowait(CoreFound("Core", "1.0"))
            await asyncio.wait_for(
                EventDispatcher(ClosingHandler(), events, intents, asyncio.Lock()).run(until),
                timeout=5,
            )
            return [intents.get_nowait() for _ in range(intents.qsize())]

        left = asyncio.run(main())

        assert seen + left == [BrowseHome()]


class TestConnectionSupervisor:
    """Tests for one connection lifetime and the retry loop."""

    def test_run_once_serves_until_lost(self, store):
        server = FakeServer()
        ui = asyncio.Queue()
        intents = asyncio.Queue()

        async def connect(session, ip, port):
            assert ip == "10.0.0.5"
            server.events.put_nowait(CoreFound("Core", "1.0"))
            intents.put_nowait(BrowseRefresh())
            return server

        async def main():
            supervisor = ConnectionSupervisor(store, ui, intents, ip="10.0.0.5",
                                              retry_interval=0, connect=connect)

            async def lose_connection():
                while "refresh_list" not in str(server.requests):
                    await asyncio.sleep(0.01)
                server.finished.set()

            watcher = asyncio.ensure_future(lose_connection())
            await asyncio.wait_for(supervisor.run_once(None), timeout=5)
            await watcher

        asyncio.run(main())

        assert {"browse", "subscribe_zones", "settings_layout"} <= set(server.names())
        assert server.closed is True
        assert UiEvent("core_found", "Core") in drain(ui)

    def test_stored_server_state_registered(self, store):
        save_section(store.path, "server_state", {"paired_core_id": "c1"})
        server = FakeServer()
        server.finished.set()

        async def connect(session, ip, port):
            return server

        supervisor = ConnectionSupervisor(store, asyncio.Queue(), asyncio.Queue(),
                                          retry_interval=0, connect=connect)
        asyncio.run(asyncio.wait_for(supervisor.run_once(None), timeout=5))

        assert server.requests[0] == ("register", {"state": {"paired_core_id": "c1"}})
        assert server.closed is True

    def test_discovery_failure_retries(self, store):
        ui = asyncio.Queue()
        attempts = []

        async def connect(session, ip, port):
            attempts.append(ip)
            if len(attempts) == 1:
                raise DiscoveryFailed("no server found on localhost")
            raise Stop()

        supervisor = ConnectionSupervisor(store, ui, asyncio.Queue(), retry_interval=0, connect=connect)

        with pytest.raises(Stop):
            asyncio.run(supervisor.run())

        assert attempts == [None, None]
        assert drain(ui) == [UiEvent("core_found", None)]

    def test_unexpected_error_retries(self, store):
        ui = asyncio.Queue()
        attempts = []

        async def connect(session, ip, port):
            attempts.append(ip)
            if len(attempts) == 1:
                raise AttributeError("'list' object has no attribute 'items'")
            raise Stop()

        supervisor = ConnectionSupervisor(store, ui, asyncio.Queue(), retry_interval=0, connect=connect)

        with pytest.raises(Stop):
            asyncio.run(supervisor.run())

        assert len(attempts) == 2
        assert drain(ui) == [UiEvent("core_lost", None)]

    def test_malformed_stored_settings_retry(self, store):
        with open(store.path, "w") as f:
            json.dump({"settings": {"queue_modes": ["bogus"]}}, f)
        server = FakeServer()
        server.finished.set()
        attempts = []

        async def connect(session, ip, port):
            attempts.append(ip)
            if len(attempts) > 1:
                raise Stop()
            return server

        supervisor = ConnectionSupervisor(store, asyncio.Queue(), asyncio.Queue(),
                                          retry_interval=0, connect=connect)

        with pytest.raises(Stop):
            asyncio.run(supervisor.run())

        assert len(attempts) == 2
        assert server.closed is True

    def test_retry_interval_from_config(self, store):
        supervisor = ConnectionSupervisor(store, asyncio.Queue(), asyncio.Queue())

        assert supervisor.retry_interval == 10.0
