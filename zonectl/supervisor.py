# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Connection supervisor.

Connects (directly or by probing the configured hosts), runs a dispatcher
until the connection drops, waits a fixed interval and starts over.  Nothing
here ever gives up: a server that is down just means the UI shows it as
lost until it comes back.

Config keys (``server`` section):
  retry_interval – seconds between connection attempts (default 10)
"""

import asyncio
import logging

import aiohttp

from .dispatcher import EventDispatcher
from .events import UiEvent
from .handler import SERVER_STATE_KEY, SessionHandler
from .lib.config import cfg
from .lib.server import DiscoveryFailed, ServerError, connect_server
from .lib.store import SettingsStore, load_section

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL = 10


class ConnectionSupervisor:
    def __init__(self, store: SettingsStore, ui: asyncio.Queue, intents: asyncio.Queue,
                 ip: str | None = None, port: int | None = None,
                 retry_interval: float | None = None, connect=connect_server):
        self.store = store
        self.ui = ui
        self.intents = intents
        self.ip = ip
        self.port = port
        if retry_interval is None:
            retry_interval = cfg("server", "retry_interval", default=DEFAULT_RETRY_INTERVAL)
        self.retry_interval = float(retry_interval)
        self._connect = connect
        self.intent_lock = asyncio.Lock()

    async def run(self) -> None:
        async with aiohttp.ClientSession() as session:
            while True:
                try:
                    await self.run_once(session)
                    logger.warning("Server connection lost, reconnecting in %.0fs...",
                                   self.retry_interval)
                    await self.ui.put(UiEvent("core_lost", None))
                except DiscoveryFailed as e:
                    logger.warning("%s, retrying in %.0fs...", e, self.retry_interval)
                    await self.ui.put(UiEvent("core_found", None))
                except ServerError as e:
                    logger.warning("Server error: %s, retrying in %.0fs...", e, self.retry_interval)
                    await self.ui.put(UiEvent("core_lost", None))
                except Exception:
                    logger.exception("Server connection failed, retrying in %.0fs...",
                                     self.retry_interval)
                    await self.ui.put(UiEvent("core_lost", None))
                await asyncio.sleep(self.retry_interval)

    async def run_once(self, session: aiohttp.ClientSession) -> None:
        """Serve one connection until it is lost."""
        server = await self._connect(session, self.ip, self.port)
        logger.info("Connected to server")

        run_task = None
        try:
            await server.register(load_section(self.store.path, SERVER_STATE_KEY))
            handler = SessionHandler(server, self.store, self.ui)
            dispatcher = EventDispatcher(handler, server.events, self.intents, self.intent_lock)

            run_task = asyncio.ensure_future(server.run())
            await dispatcher.run(until=run_task)
        finally:
            if run_task is not None:
                await self._reap(run_task)
            await server.close()

    @staticmethod
    async def _reap(run_task: asyncio.Future) -> None:
        if not run_task.done():
            run_task.cancel()
            try:
                await run_task
            except asyncio.CancelledError:
                pass
        elif not run_task.cancelled() and run_task.exception() is not None:
            logger.warning("Connection ended: %s", run_task.exception())
