# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Data model shared by the orchestrator components.

Everything here is plain data.  The ``from_dict`` constructors accept the JSON
shapes pushed by the server and tolerate missing optional fields; required
fields raise ``KeyError`` which the message parser turns into a skipped
message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PlaybackState(Enum):
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


class Repeat(Enum):
    OFF = "off"
    ALL = "all"
    ONE = "one"

    def next(self) -> "Repeat":
        order = list(Repeat)
        return order[(order.index(self) + 1) % len(order)]


class Control(Enum):
    PLAY = "play"
    PAUSE = "pause"
    PLAY_PAUSE = "playpause"
    STOP = "stop"
    PREVIOUS = "previous"
    NEXT = "next"


class Mute(Enum):
    MUTE = "mute"
    UNMUTE = "unmute"


class QueueMode(Enum):
    """Automatic queue replenishment policy, in cycle order."""

    MANUAL = "manual"
    ROON_RADIO = "roon_radio"
    RANDOM_ALBUM = "random_album"
    RANDOM_TRACK = "random_track"

    @property
    def ordinal(self) -> int:
        return list(QueueMode).index(self)

    @property
    def title(self) -> str:
        return _QUEUE_MODE_TITLES[self]


_QUEUE_MODE_TITLES = {
    QueueMode.MANUAL: "Manual",
    QueueMode.ROON_RADIO: "Roon Radio",
    QueueMode.RANDOM_ALBUM: "Random Album",
    QueueMode.RANDOM_TRACK: "Random Track",
}


class QueueAction(Enum):
    """Browse action title used to hand a scripted pick to the queue."""

    PLAY_NOW = "Play Now"
    QUEUE = "Queue"


@dataclass
class TwoLine:
    line1: str = ""
    line2: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> "TwoLine":
        data = data or {}
        return cls(line1=data.get("line1", ""), line2=data.get("line2", ""))


@dataclass
class NowPlaying:
    two_line: TwoLine
    length: int | None = None
    seek_position: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "NowPlaying":
        return cls(
            two_line=TwoLine.from_dict(data.get("two_line")),
            length=data.get("length"),
            seek_position=data.get("seek_position"),
        )


@dataclass
class ZoneSettings:
    shuffle: bool = False
    repeat: Repeat = Repeat.OFF
    auto_radio: bool = False

    @classmethod
    def from_dict(cls, data: dict | None) -> "ZoneSettings":
        data = data or {}
        return cls(
            shuffle=bool(data.get("shuffle", False)),
            repeat=Repeat(data.get("repeat", "off")),
            auto_radio=bool(data.get("auto_radio", False)),
        )

    def to_dict(self) -> dict:
        return {
            "shuffle": self.shuffle,
            "repeat": self.repeat.value,
            "auto_radio": self.auto_radio,
        }


@dataclass
class OutputDescriptor:
    output_id: str
    display_name: str
    can_group_with_output_ids: list[str] = field(default_factory=list)
    volume: dict | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "OutputDescriptor":
        return cls(
            output_id=data["output_id"],
            display_name=data.get("display_name", data["output_id"]),
            can_group_with_output_ids=list(data.get("can_group_with_output_ids") or []),
            volume=data.get("volume"),
        )


@dataclass
class ZoneDescriptor:
    zone_id: str
    display_name: str
    outputs: list[OutputDescriptor] = field(default_factory=list)
    state: PlaybackState = PlaybackState.STOPPED
    now_playing: NowPlaying | None = None
    settings: ZoneSettings = field(default_factory=ZoneSettings)
    is_next_allowed: bool = False
    is_previous_allowed: bool = False

    @property
    def output_ids(self) -> list[str]:
        return [output.output_id for output in self.outputs]

    @property
    def primary_output_id(self) -> str | None:
        if not self.outputs:
            return None
        return self.outputs[0].output_id

    @classmethod
    def from_dict(cls, data: dict) -> "ZoneDescriptor":
        now_playing = data.get("now_playing")
        return cls(
            zone_id=data["zone_id"],
            display_name=data.get("display_name", data["zone_id"]),
            outputs=[OutputDescriptor.from_dict(o) for o in data.get("outputs") or []],
            state=PlaybackState(data.get("state", "stopped")),
            now_playing=NowPlaying.from_dict(now_playing) if now_playing else None,
            settings=ZoneSettings.from_dict(data.get("settings")),
            is_next_allowed=bool(data.get("is_next_allowed", False)),
            is_previous_allowed=bool(data.get("is_previous_allowed", False)),
        )


@dataclass
class ZoneSeek:
    zone_id: str
    queue_time_remaining: int
    seek_position: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ZoneSeek":
        return cls(
            zone_id=data["zone_id"],
            queue_time_remaining=int(data.get("queue_time_remaining", -1)),
            seek_position=data.get("seek_position"),
        )


@dataclass
class QueueItem:
    queue_item_id: int
    length: int
    two_line: TwoLine

    @classmethod
    def from_dict(cls, data: dict) -> "QueueItem":
        return cls(
            queue_item_id=int(data["queue_item_id"]),
            length=int(data.get("length", 0)),
            two_line=TwoLine.from_dict(data.get("two_line")),
        )


@dataclass
class QueueInsert:
    index: int
    items: list[QueueItem]


@dataclass
class QueueRemove:
    index: int
    count: int


QueueChange = QueueInsert | QueueRemove


def queue_change_from_dict(data: dict) -> QueueChange:
    operation = data["operation"]
    if operation == "insert":
        return QueueInsert(
            index=int(data["index"]),
            items=[QueueItem.from_dict(i) for i in data.get("items") or []],
        )
    if operation == "remove":
        return QueueRemove(index=int(data["index"]), count=int(data["count"]))
    raise ValueError(f"unknown queue operation {operation!r}")


@dataclass
class BrowseItem:
    title: str
    item_key: str | None = None
    subtitle: str | None = None
    input_prompt: dict | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BrowseItem":
        return cls(
            title=data.get("title", ""),
            item_key=data.get("item_key"),
            subtitle=data.get("subtitle"),
            input_prompt=data.get("input_prompt"),
        )


@dataclass
class BrowseList:
    title: str
    count: int
    level: int = 0
    display_offset: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "BrowseList":
        return cls(
            title=data.get("title", ""),
            count=int(data.get("count", 0)),
            level=int(data.get("level", 0)),
            display_offset=data.get("display_offset"),
        )


# ---------------------------------------------------------------------------
# End points, the selectable units of the zone picker
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ZoneEndPoint:
    zone_id: str

    @property
    def id(self) -> str:
        return self.zone_id


@dataclass(frozen=True)
class OutputEndPoint:
    output_id: str

    @property
    def id(self) -> str:
        return self.output_id


@dataclass(frozen=True)
class PresetEndPoint:
    name: str

    @property
    def id(self) -> str:
        return self.name


@dataclass(frozen=True)
class MatchedPresetEndPoint:
    """A live zone whose outputs match a saved preset."""

    zone_id: str
    preset: str

    @property
    def id(self) -> str:
        return self.zone_id


EndPoint = ZoneEndPoint | OutputEndPoint | PresetEndPoint | MatchedPresetEndPoint
