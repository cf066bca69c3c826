# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Queue-mode controller: per-output automatic queueing.

Modes are stored per primary output id, so a zone keeps its mode when it is
regrouped under a new zone id.  ``RoonRadio`` is owned by the server (the
zone's auto-radio flag); the random modes are driven from here by starting a
scripted browse session whenever the queue runs dry.
"""

import logging
from dataclasses import replace

from .browse import BrowseNavigator, Broadcast, queue_mode_script
from .lib.server import ServerConnection
from .lib.store import PersistentSettings, SettingsStore
from .models import QueueAction, QueueMode, ZoneDescriptor
from .zones import ZoneRegistry

logger = logging.getLogger(__name__)

# Remaining queue time (seconds) at which the next random pick is added
REPLENISH_WINDOW = (0, 3)


def mode_cycle(profile: str | None) -> list[QueueMode]:
    """Modes reachable with ``advance``; the random modes need a profile."""
    modes = sorted(QueueMode, key=lambda mode: mode.ordinal)
    return modes if profile else modes[:2]


class QueueModeController:
    def __init__(self, zones: ZoneRegistry, settings: PersistentSettings,
                 store: SettingsStore, server: ServerConnection,
                 navigator: BrowseNavigator, broadcast: Broadcast):
        self.zones = zones
        self.settings = settings
        self.store = store
        self.server = server
        self.navigator = navigator
        self._broadcast = broadcast

    def mode_for(self, zone: ZoneDescriptor | None) -> QueueMode | None:
        if zone is None or zone.primary_output_id is None:
            return None
        return self.settings.queue_modes.get(zone.primary_output_id)

    async def sync(self, zone_id: str | None) -> QueueMode | None:
        """Reconcile the stored mode of *zone_id* with the server's auto-radio flag."""
        zone = self.zones.get(zone_id)
        if zone is None or zone.primary_output_id is None:
            return None
        output_id = zone.primary_output_id
        queue_modes = self.settings.queue_modes

        # Modes used to be keyed by zone id
        if zone.zone_id in queue_modes:
            queue_modes[output_id] = queue_modes.pop(zone.zone_id)

        stored = queue_modes.get(output_id)
        if zone.settings.auto_radio:
            mode = QueueMode.ROON_RADIO
        elif stored is None or stored == QueueMode.ROON_RADIO:
            mode = QueueMode.MANUAL
        else:
            mode = stored

        queue_modes[output_id] = mode
        self.settings.prim_output_id = output_id
        self.store.save(self.settings)
        await self._broadcast("queue_mode_current", mode)
        return mode

    async def advance(self, zone_id: str | None) -> QueueMode | None:
        """Step the selected zone to its next queue mode."""
        zone = self.zones.get(zone_id)
        if zone is None or zone.primary_output_id is None:
            return None
        output_id = zone.primary_output_id
        current = self.settings.queue_modes.get(output_id)

        if current is None:
            mode = QueueMode.MANUAL
        else:
            cycle = mode_cycle(self.settings.profile)
            index = current.ordinal + 1
            mode = cycle[index] if index < len(cycle) else QueueMode.MANUAL

        self.settings.queue_modes[output_id] = mode
        await self._broadcast("queue_mode_current", mode)

        zone_settings = replace(zone.settings, auto_radio=mode == QueueMode.ROON_RADIO)
        await self.server.change_settings(zone.zone_id, zone_settings)

        self.store.save(self.settings)
        return mode

    async def replenish(self, zone: ZoneDescriptor | None, action: QueueAction) -> bool:
        """Start a random pick for *zone* when its mode asks for one.

        Returns True when a scripted session was started.
        """
        mode = self.mode_for(zone)
        if mode is None:
            return False
        script = queue_mode_script(mode, action)
        if script is None:
            return False

        if self.navigator.has_script(zone.zone_id):
            logger.debug("Random pick for %s already in progress", zone.display_name)
            return False

        if action != QueueAction.QUEUE and zone.now_playing is not None \
                and zone.now_playing.length is None:
            # Live streams never end, nothing to follow up with
            return False

        logger.info("%s: %s (%s)", zone.display_name, mode.title, action.value)
        await self.navigator.start_script(zone.zone_id, script, pop_all=True)
        return True

    @staticmethod
    def near_end(queue_time_remaining: int) -> bool:
        low, high = REPLENISH_WINDOW
        return low <= queue_time_remaining <= high
