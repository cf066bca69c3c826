# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""User intents, produced by the UI and consumed by the session handler."""

from __future__ import annotations

from dataclasses import dataclass

from .models import Control, EndPoint, Mute


# Browse
@dataclass
class BrowseSelected:
    item_key: str | None


@dataclass
class BrowseBack:
    pass


@dataclass
class BrowseRefresh:
    pass


@dataclass
class BrowseHome:
    pass


@dataclass
class BrowseInput:
    text: str


# Queue
@dataclass
class QueueHighlighted:
    """The cursor in the queue view moved onto an item."""

    queue_item_id: int | None


@dataclass
class QueueSelected:
    queue_item_id: int


@dataclass
class QueueClear:
    pass


@dataclass
class QueueModeNext:
    pass


@dataclass
class QueueModeAppend:
    pass


# Zones and grouping
@dataclass
class ZoneSelected:
    end_point: EndPoint


@dataclass
class ZoneGroupReq:
    pass


@dataclass
class ZoneGrouped:
    output_ids: list[str]


@dataclass
class ZoneSavePreset:
    name: str
    output_ids: list[str]


@dataclass
class ZoneDeletePreset:
    name: str


@dataclass
class ZoneMatchPreset:
    output_ids: list[str]


# Transport
@dataclass
class MuteReq:
    how: Mute


@dataclass
class ChangeVolume:
    steps: int


@dataclass
class ControlReq:
    how: Control


@dataclass
class RepeatReq:
    pass


@dataclass
class ShuffleReq:
    pass


@dataclass
class PauseOnTrackEndReq:
    pass


BROWSE_INTENTS = (BrowseSelected, BrowseBack, BrowseRefresh, BrowseHome, BrowseInput)
