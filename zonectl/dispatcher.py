# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Event dispatcher: one loop over the server push queue and the intent queue.

Exactly one handler call per received item, so the handler's state is only
ever touched from this loop.  Items keep their order within a queue; there is
no ordering between the two queues.  The loop ends when the connection's run
task completes.
"""

import asyncio
import logging

from .handler import SessionHandler

logger = logging.getLogger(__name__)


class EventDispatcher:
    def __init__(self, handler: SessionHandler, events: asyncio.Queue,
                 intents: asyncio.Queue, intent_lock: asyncio.Lock):
        self.handler = handler
        self.events = events
        self.intents = intents
        # Only one dispatcher may drain the intent queue at a time
        self.intent_lock = intent_lock

    async def run(self, until: asyncio.Future) -> None:
        async with self.intent_lock:
            event_get = None
            intent_get = None
            try:
                while not until.done():
                    if event_get is None:
                        event_get = asyncio.ensure_future(self.events.get())
                    if intent_get is None:
                        intent_get = asyncio.ensure_future(self.intents.get())

                    done, _ = await asyncio.wait(
                        {event_get, intent_get, until},
                        return_when=asyncio.FIRST_COMPLETED,
                    )

                    if event_get in done:
                        event, event_get = event_get.result(), None
                        await self._dispatch(self.handler.handle_event, event)
                    if intent_get in done:
                        intent, intent_get = intent_get.result(), None
                        await self._dispatch(self.handler.handle_intent, intent)
            finally:
                if event_get is not None:
                    event_get.cancel()
                if intent_get is not None:
                    if intent_get.done() and not intent_get.cancelled():
                        # Taken off the queue but never handled; the next connection gets it
                        self.intents.put_nowait(intent_get.result())
                    else:
                        intent_get.cancel()

    async def _dispatch(self, handle, item) -> None:
        try:
            await handle(item)
        except Exception:
            logger.exception("Error handling %s", type(item).__name__)
