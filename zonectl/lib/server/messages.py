# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Wire message → typed event parsing.

Push messages are JSON objects of the form ``{"event": <name>, "data": ...}``
with an optional ``"session_key"`` for browse/load results.  Unknown events
and malformed payloads yield None; the caller logs and skips them.
"""

import logging

from ...events import (
    BrowseResult,
    CoreFound,
    CoreLost,
    LoadResult,
    OutputsChanged,
    QueueChanges,
    QueueSnapshot,
    ServerStateChanged,
    SettingsRequested,
    SettingsSaved,
    ZonesChanged,
    ZonesRemoved,
    ZonesSeek,
)
from ...models import (
    BrowseItem,
    BrowseList,
    OutputDescriptor,
    QueueItem,
    ZoneDescriptor,
    ZoneSeek,
    queue_change_from_dict,
)

logger = logging.getLogger(__name__)


def _core_found(data, msg):
    return CoreFound(data.get("display_name", ""), data.get("display_version", ""))


def _core_lost(data, msg):
    return CoreLost(data.get("display_name", ""), data.get("display_version", ""))


def _zones(data, msg):
    return ZonesChanged([ZoneDescriptor.from_dict(z) for z in data])


def _zones_removed(data, msg):
    return ZonesRemoved(list(data))


def _zones_seek(data, msg):
    return ZonesSeek([ZoneSeek.from_dict(s) for s in data])


def _queue(data, msg):
    return QueueSnapshot([QueueItem.from_dict(i) for i in data])


def _queue_changes(data, msg):
    return QueueChanges([queue_change_from_dict(c) for c in data])


def _outputs(data, msg):
    return OutputsChanged([OutputDescriptor.from_dict(o) for o in data])


def _browse(data, msg):
    browse_list = data.get("list")
    return BrowseResult(
        action=data.get("action", "none"),
        session_key=msg.get("session_key"),
        list=BrowseList.from_dict(browse_list) if browse_list else None,
        message=data.get("message"),
        is_error=bool(data.get("is_error", False)),
    )


def _load(data, msg):
    return LoadResult(
        list=BrowseList.from_dict(data["list"]),
        offset=int(data.get("offset", 0)),
        items=[BrowseItem.from_dict(i) for i in data.get("items") or []],
        session_key=msg.get("session_key"),
    )


_PARSERS = {
    "core_found": _core_found,
    "core_lost": _core_lost,
    "state": lambda data, msg: ServerStateChanged(dict(data)),
    "zones_added": _zones,
    "zones_changed": _zones,
    "zones_removed": _zones_removed,
    "zones_seek_changed": _zones_seek,
    "queue": _queue,
    "queue_changes": _queue_changes,
    "outputs": _outputs,
    "browse": _browse,
    "load": _load,
    "settings_requested": lambda data, msg: SettingsRequested(data or None),
    "settings_saved": lambda data, msg: SettingsSaved(dict(data)),
}


def parse_message(msg: dict):
    """Turn one decoded push message into a server event, or None."""
    name = msg.get("event")
    parser = _PARSERS.get(name)
    if parser is None:
        logger.debug("Ignoring unknown event %r", name)
        return None
    data = msg.get("data")
    if data is None:
        data = {}
    try:
        return parser(data, msg)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning("Malformed %s message: %s", name, e)
        return None
