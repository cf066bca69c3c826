# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Zone registry: the authoritative zone-id → zone map.

Pure data, no I/O.  The handler feeds it from zone pushes and asks it for the
zone picker's display list.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import (
    EndPoint,
    MatchedPresetEndPoint,
    OutputEndPoint,
    PresetEndPoint,
    ZoneDescriptor,
    ZoneEndPoint,
)


class ZoneRegistry:
    """Live zones, keyed by zone id."""

    def __init__(self):
        self._zones: dict[str, ZoneDescriptor] = {}

    def get(self, zone_id: str | None) -> ZoneDescriptor | None:
        if zone_id is None:
            return None
        return self._zones.get(zone_id)

    def __contains__(self, zone_id: str) -> bool:
        return zone_id in self._zones

    def __len__(self) -> int:
        return len(self._zones)

    def __iter__(self) -> Iterator[ZoneDescriptor]:
        return iter(list(self._zones.values()))

    def is_empty(self) -> bool:
        return not self._zones

    def ingest(self, zones: Iterable[ZoneDescriptor]) -> None:
        """Merge pushed zones, replacing existing entries by id."""
        for zone in zones:
            self._zones[zone.zone_id] = zone

    def remove(self, zone_ids: Iterable[str], selected_id: str | None = None) -> bool:
        """Evict *zone_ids*. Returns True when the selected zone was among them."""
        removed_selected = False
        for zone_id in zone_ids:
            if self._zones.pop(zone_id, None) is not None and zone_id == selected_id:
                removed_selected = True
        return removed_selected

    def zone_with_output(self, output_id: str) -> ZoneDescriptor | None:
        for zone in self._zones.values():
            if output_id in zone.output_ids:
                return zone
        return None

    def zone_with_primary_output(self, output_id: str) -> ZoneDescriptor | None:
        for zone in self._zones.values():
            if zone.primary_output_id == output_id:
                return zone
        return None

    def zone_with_outputs(self, output_ids: list[str]) -> ZoneDescriptor | None:
        """Return the zone whose output set equals *output_ids*."""
        wanted = set(output_ids)
        for zone in self._zones.values():
            if len(zone.outputs) == len(output_ids) and set(zone.output_ids) == wanted:
                return zone
        return None

    def list(self, matched: dict[str, str] | None = None,
             presets: Iterable[str] = ()) -> list[tuple[EndPoint, str]]:
        """Build the zone picker list.

        Sections, each sorted by display name: zones (a matched preset stands
        in for its zone), the individual outputs of grouped zones so they can
        be detached, then saved presets not realized by any live zone.
        """
        matched = matched or {}

        def by_name(entry):
            return entry[1]

        zones = []
        outputs = []
        for zone in self._zones.values():
            preset = matched.get(zone.zone_id)
            if preset is not None:
                zones.append((MatchedPresetEndPoint(zone.zone_id, preset), preset))
            else:
                zones.append((ZoneEndPoint(zone.zone_id), zone.display_name))

            if len(zone.outputs) > 1:
                for output in zone.outputs:
                    outputs.append((OutputEndPoint(output.output_id), output.display_name))

        matched_names = set(matched.values())
        unmatched = [
            (PresetEndPoint(name), name) for name in presets if name not in matched_names
        ]

        entries = []
        seen = set()
        for section in (zones, outputs, unmatched):
            for end_point, name in sorted(section, key=by_name):
                if end_point in seen:
                    continue
                seen.add(end_point)
                entries.append((end_point, name))
        return entries
