# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Browse navigator.

Owns the user's interactive browse session plus short-lived scripted
sessions, one per zone, that walk a fixed path through the server's content
hierarchy on their own (switching profile, picking a random album, ...).

Browse and load are fire-and-forget: every session is a key on the server,
and whatever result comes back is interpreted against the session state held
here.

A script is a stack of step matchers consumed from the end, one per load
result of its session:

    [MatchTitle("Play Now"), MatchTitle("Play Album"), MatchFirst(),
     MatchTitle("Albums"), MatchTitle("Library")]

reads bottom-up as Library → Albums → (the randomly loaded album) → Play Album
→ Play Now.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .events import BrowseResult, LoadResult
from .intents import BrowseBack, BrowseHome, BrowseInput, BrowseRefresh, BrowseSelected
from .lib.server import BrowseOpts, LoadOpts, ServerConnection
from .models import BrowseItem, BrowseList, QueueAction, QueueMode

logger = logging.getLogger(__name__)

PRIMARY_SESSION = "zonectl_browse"
ZONE_NOT_CONFIGURED = "Zone is not configured"
PROFILE_LIST = "Profile"
RANDOM_PICK_LISTS = ("Albums", "Tracks")


# ---------------------------------------------------------------------------
# Step matchers
# ---------------------------------------------------------------------------
class StepMatcher:
    text = ""

    def pick(self, browse_list: BrowseList, items: list[BrowseItem],
             profile: str | None) -> BrowseItem | None:
        raise NotImplementedError

    def __eq__(self, other):
        return type(self) is type(other) and self.text == other.text

    def __hash__(self):
        return hash((type(self).__name__, self.text))

    def __repr__(self):
        return f"{type(self).__name__}({self.text!r})"


class MatchProfile(StepMatcher):
    """The item named after the persisted profile."""

    def pick(self, browse_list, items, profile):
        if profile is None:
            return None
        return next((item for item in items if item.title == profile), None)


class MatchFirst(StepMatcher):
    """The first item, or the profile item when the list is the profile list."""

    def pick(self, browse_list, items, profile):
        if browse_list.title == PROFILE_LIST:
            return MatchProfile().pick(browse_list, items, profile)
        return items[0] if items else None


class MatchTitle(StepMatcher):
    def __init__(self, text: str):
        self.text = text

    def pick(self, browse_list, items, profile):
        return next((item for item in items if item.title == self.text), None)


def script_from_titles(titles: list[str]) -> list[StepMatcher]:
    """Build a script from plain titles; an empty title matches the first item."""
    return [MatchTitle(title) if title else MatchFirst() for title in titles]


def profile_script() -> list[StepMatcher]:
    return script_from_titles(["", "Profile", "Settings"])


def queue_mode_script(queue_mode: QueueMode, action: QueueAction) -> list[StepMatcher] | None:
    if queue_mode == QueueMode.RANDOM_ALBUM:
        return script_from_titles([action.value, "Play Album", "", "Albums", "Library"])
    if queue_mode == QueueMode.RANDOM_TRACK:
        return script_from_titles([action.value, "", "Tracks", "Library"])
    return None


@dataclass
class BrowseSession:
    key: str
    script: list[StepMatcher] = field(default_factory=list)


Broadcast = Callable[[str, object], Awaitable[None]]


# ---------------------------------------------------------------------------
# Navigator
# ---------------------------------------------------------------------------
class BrowseNavigator:
    def __init__(self, server: ServerConnection, broadcast: Broadcast, rng: random.Random | None = None):
        self.server = server
        self._broadcast = broadcast
        self._rng = rng or random.Random()
        self.opts = BrowseOpts(multi_session_key=PRIMARY_SESSION)
        self.sessions: dict[str, BrowseSession] = {}
        self.reached_home = False
        self.title: str | None = None
        self.items: list[BrowseItem] | None = None
        self._items_base = 0
        self.profiles: list[tuple[str, str]] | None = None
        self.pending_item_key: str | None = None
        self._last_item_key: str | None = None

    async def start(self) -> None:
        """Open the primary session at the top of the hierarchy."""
        self.opts.clear_navigation()
        self.opts.pop_all = True
        await self.server.browse(self.opts)

    # ── Server results ──

    async def handle_browse_result(self, result: BrowseResult, no_live_zones: bool) -> None:
        if result.action == "list":
            if result.list is None or result.session_key is None:
                return
            if result.session_key == PRIMARY_SESSION:
                await self._primary_list(result.list)
            else:
                await self._scripted_list(result.session_key, result.list)
        elif result.action == "message":
            if result.is_error and result.message == ZONE_NOT_CONFIGURED:
                self.opts.item_key = None
                if no_live_zones:
                    # Nothing to pick from, so there is nothing to retry either
                    self.pending_item_key = None
                else:
                    self.pending_item_key = self._last_item_key
                await self._broadcast("zone_select", None)
            elif result.is_error:
                logger.warning("Browse error: %s", result.message)

    async def handle_load_result(self, result: LoadResult, profile: str | None) -> None:
        if result.session_key is None:
            return
        if result.session_key == PRIMARY_SESSION:
            await self._primary_load(result)
        else:
            await self._scripted_load(result, profile)

    async def _primary_list(self, browse_list: BrowseList) -> None:
        offset = browse_list.display_offset or 0
        self.title = browse_list.title
        self.items = None
        self._items_base = offset
        await self._broadcast("browse_title", browse_list.title)
        await self.server.load(LoadOpts(
            multi_session_key=PRIMARY_SESSION, offset=offset, set_display_offset=offset,
        ))

    async def _primary_load(self, result: LoadResult) -> None:
        held = self.items
        if result.offset == 0 or (held is None and result.offset == self._items_base):
            self.items = list(result.items)
            self._items_base = result.offset
        elif held is not None and result.offset == self._items_base + len(held):
            held.extend(result.items)
        else:
            logger.debug("Load at offset %d doesn't extend the held list (%s), refreshing",
                         result.offset, len(held) if held is not None else None)
            await self.refresh()
            return

        new_offset = result.offset + len(result.items)
        if new_offset < result.list.count:
            # There are more items to load
            await self.server.load(LoadOpts(
                multi_session_key=PRIMARY_SESSION, offset=new_offset, set_display_offset=new_offset,
            ))

        if result.list.title == PROFILE_LIST:
            self.profiles = [(item.item_key, item.title) for item in result.items if item.item_key]
        else:
            self.profiles = None

        self.reached_home = result.list.level == 0
        await self._broadcast("browse_list", (result.offset, list(result.items)))

    async def _scripted_list(self, key: str, browse_list: BrowseList) -> None:
        if key not in self.sessions:
            return
        opts = LoadOpts(multi_session_key=key)
        if browse_list.title in RANDOM_PICK_LISTS:
            if browse_list.count <= 0:
                logger.info("Nothing to pick from in %s, dropping script for %s", browse_list.title, key)
                del self.sessions[key]
                return
            offset = self._rng.randrange(browse_list.count)
            opts.count = 1
            opts.offset = offset
            opts.set_display_offset = offset
        await self.server.load(opts)

    async def _scripted_load(self, result: LoadResult, profile: str | None) -> None:
        key = result.session_key
        session = self.sessions.get(key)
        if session is None or not session.script:
            return

        step = session.script.pop()
        if not session.script:
            del self.sessions[key]

        item = step.pick(result.list, result.items, profile)
        if item is None or item.item_key is None:
            logger.debug("Script step %r found nothing in %s, dropping script for %s",
                         step, result.list.title, key)
            self.sessions.pop(key, None)
            return

        await self.server.browse(BrowseOpts(
            multi_session_key=key, zone_or_output_id=key, item_key=item.item_key,
        ))

    # ── Scripts ──

    async def start_script(self, key: str, script: list[StepMatcher], pop_all: bool = False) -> None:
        """Replay *script* in session *key*, replacing any script pending there."""
        self.sessions[key] = BrowseSession(key, list(script))
        await self.server.browse(BrowseOpts(multi_session_key=key, pop_all=pop_all))

    def has_script(self, key: str) -> bool:
        return key in self.sessions

    # ── User intents ──

    async def handle_intent(self, intent, zone_id: str | None) -> None:
        """Forward a browse intent; *zone_id* is the live selected zone, or None."""
        # Only one of item_key, pop_all, pop_levels and refresh_list may be populated
        self.opts.clear_navigation()

        if isinstance(intent, BrowseSelected):
            self.opts.item_key = intent.item_key
            self.opts.zone_or_output_id = zone_id
            self._last_item_key = intent.item_key
            await self.server.browse(self.opts)
            self.opts.input = None
        elif isinstance(intent, BrowseBack):
            if not self.reached_home:
                self.opts.pop_levels = 1
                await self.server.browse(self.opts)
        elif isinstance(intent, BrowseRefresh):
            await self.refresh()
        elif isinstance(intent, BrowseHome):
            self.opts.pop_all = True
            await self.server.browse(self.opts)
        elif isinstance(intent, BrowseInput):
            self.opts.input = intent.text
            await self.server.browse(self.opts)

    async def refresh(self) -> None:
        self.opts.clear_navigation()
        self.opts.refresh_list = True
        await self.server.browse(self.opts)

    def take_pending_item_key(self) -> str | None:
        item_key, self.pending_item_key = self.pending_item_key, None
        return item_key

    def profile_name(self, item_key: str | None) -> str | None:
        if self.profiles is None or item_key is None:
            return None
        for key, title in self.profiles:
            if key == item_key:
                return title
        return None
