# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Events flowing through the orchestrator.

Server push events arrive on one queue, user intents (``intents.py``) on
another; the dispatcher drains both through a single loop.  Everything the
orchestrator wants the UI to show leaves as a ``UiEvent`` on a third queue.

Ordering contract: FIFO within each queue, no ordering across queues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models import (
    BrowseItem,
    BrowseList,
    OutputDescriptor,
    QueueChange,
    QueueItem,
    ZoneDescriptor,
    ZoneSeek,
)


# ---------------------------------------------------------------------------
# Server push events
# ---------------------------------------------------------------------------
@dataclass
class CoreFound:
    display_name: str
    display_version: str = ""


@dataclass
class CoreLost:
    display_name: str
    display_version: str = ""


@dataclass
class ServerStateChanged:
    """Pairing state the client library wants kept across restarts."""

    state: dict


@dataclass
class ZonesChanged:
    zones: list[ZoneDescriptor]


@dataclass
class ZonesRemoved:
    zone_ids: list[str]


@dataclass
class ZonesSeek:
    seeks: list[ZoneSeek]


@dataclass
class QueueSnapshot:
    items: list[QueueItem]


@dataclass
class QueueChanges:
    changes: list[QueueChange]


@dataclass
class OutputsChanged:
    outputs: list[OutputDescriptor]


@dataclass
class BrowseResult:
    action: str                     # list | message | replace_item | remove_item | none
    session_key: str | None = None
    list: BrowseList | None = None
    message: str | None = None
    is_error: bool = False


@dataclass
class LoadResult:
    list: BrowseList
    offset: int = 0
    items: list[BrowseItem] = field(default_factory=list)
    session_key: str | None = None


@dataclass
class SettingsRequested:
    """The server wants the settings form, optionally for draft values."""

    values: dict | None = None


@dataclass
class SettingsSaved:
    values: dict


ServerEvent = (
    CoreFound | CoreLost | ServerStateChanged | ZonesChanged | ZonesRemoved
    | ZonesSeek | QueueSnapshot | QueueChanges | OutputsChanged | BrowseResult
    | LoadResult | SettingsRequested | SettingsSaved
)


# ---------------------------------------------------------------------------
# UI-facing events
# ---------------------------------------------------------------------------
@dataclass
class UiEvent:
    type: str
    data: Any = None
