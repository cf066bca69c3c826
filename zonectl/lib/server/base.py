# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Abstract base class for the server connection.

A connection exposes one push channel (``events``, an asyncio.Queue of typed
server events) and a set of fire-and-forget requests.  Every request funnels
through ``request(name, body)``; concrete connections only implement the
transport.  Nothing here waits for a reply: the answer, if any, arrives later
as a push event.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ...models import Control, Mute, ZoneSettings


class ServerError(Exception):
    """Base class for server connection failures."""


class ConnectionLost(ServerError):
    """The connection to the server dropped or could not be established."""


class DiscoveryFailed(ServerError):
    """No candidate host accepted a connection."""


@dataclass
class BrowseOpts:
    """Options for a browse request.

    Only one of ``item_key``, ``pop_all``, ``pop_levels`` and ``refresh_list``
    may be set on a request.
    """

    multi_session_key: str | None = None
    item_key: str | None = None
    input: str | None = None
    zone_or_output_id: str | None = None
    pop_all: bool = False
    pop_levels: int | None = None
    refresh_list: bool = False

    def clear_navigation(self) -> None:
        self.item_key = None
        self.pop_all = False
        self.pop_levels = None
        self.refresh_list = False

    def to_dict(self) -> dict:
        body = {"hierarchy": "browse"}
        for key, value in vars(self).items():
            if value is None or value is False:
                continue
            body[key] = value
        return body


@dataclass
class LoadOpts:
    multi_session_key: str | None = None
    offset: int = 0
    set_display_offset: int = 0
    count: int | None = None

    def to_dict(self) -> dict:
        body = {
            "hierarchy": "browse",
            "offset": self.offset,
            "set_display_offset": self.set_display_offset,
        }
        if self.multi_session_key is not None:
            body["multi_session_key"] = self.multi_session_key
        if self.count is not None:
            body["count"] = self.count
        return body


class ServerConnection(ABC):
    """Interface every server connection must implement."""

    def __init__(self):
        self.events: asyncio.Queue = asyncio.Queue()

    @abstractmethod
    async def request(self, name: str, body: dict | None = None) -> None: ...

    @abstractmethod
    async def run(self) -> None:
        """Pump push events into ``events`` until the connection is lost."""

    async def close(self) -> None:
        pass  # no-op by default

    async def register(self, state: dict | None) -> None:
        """Identify this client, handing back the pairing state the server last sent."""
        await self.request("register", {"state": state or {}})

    # -- Browse service --

    async def browse(self, opts: BrowseOpts) -> None:
        await self.request("browse", opts.to_dict())

    async def load(self, opts: LoadOpts) -> None:
        await self.request("load", opts.to_dict())

    # -- Transport service --

    async def subscribe_zones(self) -> None:
        await self.request("subscribe_zones")

    async def get_zones(self) -> None:
        await self.request("get_zones")

    async def get_outputs(self) -> None:
        await self.request("get_outputs")

    async def subscribe_queue(self, zone_id: str, max_item_count: int) -> None:
        await self.request("subscribe_queue", {
            "zone_or_output_id": zone_id, "max_item_count": max_item_count,
        })

    async def unsubscribe_queue(self) -> None:
        await self.request("unsubscribe_queue")

    async def control(self, zone_id: str, how: Control) -> None:
        await self.request("control", {"zone_or_output_id": zone_id, "control": how.value})

    async def seek(self, zone_id: str, seconds: int) -> None:
        await self.request("seek", {
            "zone_or_output_id": zone_id, "how": "absolute", "seconds": seconds,
        })

    async def change_volume(self, output_id: str, steps: int) -> None:
        await self.request("change_volume", {
            "output_id": output_id, "how": "relative_step", "value": steps,
        })

    async def mute(self, output_id: str, how: Mute) -> None:
        await self.request("mute", {"output_id": output_id, "how": how.value})

    async def change_settings(self, zone_id: str, settings: ZoneSettings) -> None:
        await self.request("change_settings", {
            "zone_or_output_id": zone_id, **settings.to_dict(),
        })

    async def group_outputs(self, output_ids: list[str]) -> None:
        await self.request("group_outputs", {"output_ids": list(output_ids)})

    async def ungroup_outputs(self, output_ids: list[str]) -> None:
        await self.request("ungroup_outputs", {"output_ids": list(output_ids)})

    async def play_from_here(self, zone_id: str, queue_item_id: int) -> None:
        await self.request("play_from_here", {
            "zone_or_output_id": zone_id, "queue_item_id": queue_item_id,
        })

    # -- Settings service --

    async def publish_settings(self, layout: dict) -> None:
        await self.request("settings_layout", layout)
