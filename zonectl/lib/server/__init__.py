# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Server client seam for zonectl.

The orchestrator only talks to ``ServerConnection``.  ``connect_server``
reads config.json (or the explicit ``--ip``) and returns a connected
instance, trying each candidate host in turn.

Config keys (``server`` section):
  hosts           – candidate hosts probed in order (default ["localhost"])
  port            – server port (default 9330)
  connect_timeout – seconds per connection attempt (default 5)
"""

import logging

import aiohttp

from ..config import cfg
from .base import (
    BrowseOpts,
    ConnectionLost,
    DiscoveryFailed,
    LoadOpts,
    ServerConnection,
    ServerError,
)
from .websocket import WebSocketConnection

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9330

__all__ = [
    "BrowseOpts",
    "ConnectionLost",
    "DiscoveryFailed",
    "LoadOpts",
    "ServerConnection",
    "ServerError",
    "WebSocketConnection",
    "connect_server",
]


async def connect_server(session: aiohttp.ClientSession, ip: str | None = None,
                         port: int | None = None) -> ServerConnection:
    """Connect directly to *ip*, or discover the first reachable configured host.

    Raises ``DiscoveryFailed`` when no candidate accepts a connection.
    """
    port = int(port or cfg("server", "port", default=DEFAULT_PORT))
    timeout = float(cfg("server", "connect_timeout", default=5))
    if ip:
        candidates = [ip]
    else:
        candidates = list(cfg("server", "hosts", default=["localhost"]) or [])

    for host in candidates:
        conn = WebSocketConnection(host, port, session)
        try:
            await conn.connect(timeout=timeout)
            return conn
        except ConnectionLost as e:
            logger.debug("Server not reachable at %s:%d (%s)", host, port, e)

    raise DiscoveryFailed(f"no server found on {', '.join(candidates) or 'no hosts'}")
