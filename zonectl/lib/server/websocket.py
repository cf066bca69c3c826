# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Websocket server connection: JSON envelopes over aiohttp's websocket client.

Outbound:  {"request": "<name>", "id": <n>, "body": {...}}
Inbound:   {"event": "<name>", "data": ..., "session_key": "..."}
"""

import asyncio
import itertools
import json
import logging

import aiohttp

from .base import ConnectionLost, ServerConnection
from .messages import parse_message

logger = logging.getLogger(__name__)

WS_PATH = "/api"
HEARTBEAT_SECONDS = 30


class WebSocketConnection(ServerConnection):
    """Connection to one server over a websocket."""

    def __init__(self, host: str, port: int, session: aiohttp.ClientSession):
        super().__init__()
        self.host = host
        self.port = port
        self._session = session
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._request_ids = itertools.count(1)

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}{WS_PATH}"

    async def connect(self, timeout: float = 5.0) -> None:
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self.url, heartbeat=HEARTBEAT_SECONDS),
                timeout=timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise ConnectionLost(f"{self.url}: {e}") from e
        logger.info("Connected to server at %s", self.url)

    async def request(self, name: str, body: dict | None = None) -> None:
        if self._ws is None or self._ws.closed:
            logger.warning("Not connected, dropping request: %s", name)
            return
        payload = {"request": name, "id": next(self._request_ids), "body": body or {}}
        try:
            await self._ws.send_json(payload)
            logger.debug("-> %s %s", name, body or "")
        except (aiohttp.ClientError, ConnectionResetError) as e:
            logger.warning("Request %s failed: %s", name, e)

    async def run(self) -> None:
        if self._ws is None:
            raise ConnectionLost("run() before connect()")

        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except json.JSONDecodeError:
                    logger.warning("Invalid JSON from server: %.200s", msg.data)
                    continue
                if not isinstance(data, dict):
                    logger.warning("Unexpected message from server: %.200s", msg.data)
                    continue
                event = parse_message(data)
                if event is not None:
                    await self.events.put(event)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.warning("Websocket error: %s", self._ws.exception())
                break

        logger.warning("Server connection closed (%s)", self.url)

    async def close(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None
