# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Grouping & preset engine.

Re-creating a grouping takes two round trips when the wanted outputs are
currently part of other groups: they have to be ungrouped first, and only a
later zone push tells us that happened.  The engine models this as a small
state machine:

    Idle ──ungroup──▶ PendingUngroup ──zone push──▶ PendingGroup ──zone push──▶ Idle
      └─────────────────────group──────────────────────▲

Transitions happen only in ``update_grouping`` and in the two push hooks
``on_zones_changed`` / ``on_zones_removed``.  Nothing waits; a newer request
simply replaces the pending one.

Preset comparison keeps the first output id (the anchor) in place and ignores
the order of the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .lib.server import ServerConnection
from .lib.store import PersistentSettings
from .models import OutputDescriptor, ZoneDescriptor
from .zones import ZoneRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class PendingUngroup:
    target: tuple[str, ...]
    zone_id: str                    # the group we asked the server to split


@dataclass(frozen=True)
class PendingGroup:
    target: tuple[str, ...]


GroupingState = Idle | PendingUngroup | PendingGroup

IDLE = Idle()


@dataclass
class GroupingResult:
    """Outcome of ``update_grouping`` when the target is already a live zone."""

    zone: ZoneDescriptor
    preset: str | None = None


def normalize(output_ids: list[str]) -> list[str]:
    """Anchor first, the rest sorted."""
    if not output_ids:
        return []
    return [output_ids[0]] + sorted(output_ids[1:])


class GroupingEngine:
    def __init__(self, zones: ZoneRegistry, settings: PersistentSettings,
                 server: ServerConnection):
        self.zones = zones
        self.settings = settings
        self.server = server
        self.state: GroupingState = IDLE
        self.matched_zones: dict[str, str] = {}     # zone id → preset name

    @property
    def pending(self) -> bool:
        return not isinstance(self.state, Idle)

    # ── Presets ──

    def match_preset(self, output_ids: list[str]) -> str | None:
        """Return the first preset whose outputs are exactly *output_ids*."""
        if not output_ids:
            return None
        ids = normalize(output_ids)
        for name, grouping in self.settings.presets.items():
            if len(grouping) != len(ids):
                continue
            if all(output_id in ids for output_id, _ in grouping):
                return name
        return None

    def refresh_matches(self) -> None:
        """Recompute which live zones realize a saved preset."""
        matched = {}
        for zone in self.zones:
            preset = self.match_preset(zone.output_ids)
            if preset is not None:
                matched[zone.zone_id] = preset
        self.matched_zones = matched

    def save_preset(self, name: str, output_ids: list[str]) -> list[str]:
        """Store *output_ids* as preset *name*, replacing any preset with the same outputs."""
        ids = normalize(output_ids)
        key = (ids[0], tuple(ids[1:])) if ids else None
        for other, grouping in list(self.settings.presets.items()):
            other_ids = normalize([output_id for output_id, _ in grouping])
            if other != name and other_ids and (other_ids[0], tuple(other_ids[1:])) == key:
                logger.info("Preset %s replaces %s (same outputs)", name, other)
                del self.settings.presets[other]
                for zone_id, preset in list(self.matched_zones.items()):
                    if preset == other:
                        del self.matched_zones[zone_id]
        self.settings.presets[name] = [(output_id, None) for output_id in ids]
        return ids

    def delete_preset(self, name: str) -> bool:
        if self.settings.presets.pop(name, None) is None:
            return False
        for zone_id, preset in list(self.matched_zones.items()):
            if preset == name:
                del self.matched_zones[zone_id]
        return True

    def preset_output_ids(self, name: str) -> list[str] | None:
        grouping = self.settings.presets.get(name)
        if not grouping:
            return None
        return [output_id for output_id, _ in grouping]

    def forget(self, zone_ids: list[str]) -> None:
        for zone_id in zone_ids:
            self.matched_zones.pop(zone_id, None)

    # ── Grouping ──

    async def update_grouping(self, target: list[str]) -> GroupingResult | None:
        """Drive the server towards a zone made of exactly *target*."""
        target = list(target)
        previous = self.state

        for zone in self.zones:
            current = zone.output_ids
            matches_all = (
                len(target) == len(current)
                and target[:1] == current[:1]
                and set(target) == set(current)
            )
            if matches_all:
                self.state = IDLE
                preset = self.match_preset(target)
                if preset is not None:
                    self.matched_zones[zone.zone_id] = preset
                return GroupingResult(zone, preset)

            overlaps = any(output_id in target for output_id in current)
            if len(current) > 1 and overlaps:
                logger.info("Ungrouping %s before grouping %s", zone.display_name, target)
                await self.server.ungroup_outputs(current)
                self.state = PendingUngroup(tuple(target), zone.zone_id)
                return None

        if len(target) > 1:
            logger.info("Grouping outputs %s", target)
            await self.server.group_outputs(target)
            self.state = PendingGroup(tuple(target))
        elif target and isinstance(previous, PendingUngroup):
            # A lone output freed from a group shows up as its own zone later
            self.state = PendingGroup(tuple(target))
        else:
            self.state = IDLE
        return None

    async def detach_output(self, output_id: str) -> GroupingResult | None:
        """Split *output_id* off the group it belongs to."""
        zone = self.zones.zone_with_output(output_id)
        if zone is None:
            return None
        self.matched_zones.pop(zone.zone_id, None)
        return await self.update_grouping([output_id])

    async def on_zones_changed(self) -> ZoneDescriptor | None:
        """Advance a pending grouping after a zone push.

        Returns the zone that realizes the pending target, which becomes the
        selected end point.
        """
        state = self.state
        if isinstance(state, Idle):
            return None

        zone = self.zones.zone_with_outputs(list(state.target))
        if zone is not None:
            logger.info("Grouping %s realized as zone %s", list(state.target), zone.display_name)
            self.state = IDLE
            return zone

        if isinstance(state, PendingUngroup):
            group = self.zones.get(state.zone_id)
            if group is None or not (set(group.output_ids) & set(state.target)) \
                    or len(group.outputs) <= 1:
                await self.update_grouping(list(state.target))
        return None

    async def on_zones_removed(self, zone_ids: list[str]) -> None:
        state = self.state
        if isinstance(state, PendingUngroup) and state.zone_id in zone_ids:
            await self.update_grouping(list(state.target))

    @staticmethod
    def grouping_candidates(zone: ZoneDescriptor | None,
                            outputs: list[OutputDescriptor]) -> list[tuple[str, str, bool]] | None:
        """Outputs the zone could be grouped with: (id, name, currently in group)."""
        if zone is None or not zone.outputs:
            return None
        grouping = [(o.output_id, o.display_name, True) for o in zone.outputs]
        can_group_with = zone.outputs[0].can_group_with_output_ids
        present = set(zone.output_ids)
        for output in outputs:
            if output.output_id in can_group_with and output.output_id not in present:
                grouping.append((output.output_id, output.display_name, False))
                present.add(output.output_id)
        return grouping
