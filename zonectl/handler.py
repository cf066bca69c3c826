# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Session handler: the owned state of one server connection.

One instance per connection, rebuilt on reconnect; only what the settings
store persisted survives.  The dispatcher calls ``handle_event`` for every
server push and ``handle_intent`` for every user intent, strictly one at a
time, so nothing in here needs locking.

Anything the UI should show leaves through ``_broadcast`` as a ``UiEvent``.
Lookups that can fail (no zone selected, zone not live yet, ...) end the
operation quietly; the next push brings the state needed to try again.
"""

import asyncio
import logging
import random
from dataclasses import replace

from .browse import BrowseNavigator, profile_script
from .events import (
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
    UiEvent,
    ZonesChanged,
    ZonesRemoved,
    ZonesSeek,
)
from .grouping import GroupingEngine
from .intents import (
    BROWSE_INTENTS,
    BrowseSelected,
    ChangeVolume,
    ControlReq,
    MuteReq,
    PauseOnTrackEndReq,
    QueueClear,
    QueueHighlighted,
    QueueModeAppend,
    QueueModeNext,
    QueueSelected,
    RepeatReq,
    ShuffleReq,
    ZoneDeletePreset,
    ZoneGrouped,
    ZoneGroupReq,
    ZoneMatchPreset,
    ZoneSavePreset,
    ZoneSelected,
)
from .lib.config import cfg
from .lib.server import ServerConnection
from .lib.store import SettingsStore, save_section
from .models import (
    Control,
    EndPoint,
    MatchedPresetEndPoint,
    OutputEndPoint,
    PlaybackState,
    PresetEndPoint,
    QueueAction,
    QueueMode,
    ZoneDescriptor,
    ZoneEndPoint,
)
from .play_queue import QueueMaterializer
from .queue_mode import QueueModeController
from .settings_form import SettingsForm
from .zones import ZoneRegistry

logger = logging.getLogger(__name__)

SERVER_STATE_KEY = "server_state"
DEFAULT_QUEUE_ITEM_COUNT = 100


class SessionHandler:
    def __init__(self, server: ServerConnection, store: SettingsStore,
                 ui: asyncio.Queue, rng: random.Random | None = None):
        self.server = server
        self.store = store
        self.ui = ui
        self.settings = store.load()

        self.zones = ZoneRegistry()
        self.queue = QueueMaterializer()
        self.grouping = GroupingEngine(self.zones, self.settings, server)
        self.navigator = BrowseNavigator(server, self._broadcast, rng)
        self.queue_modes = QueueModeController(
            self.zones, self.settings, store, server, self.navigator, self._broadcast,
        )
        self.form = SettingsForm(self.zones, self.settings)

        self.outputs = []
        self.pause_on_track_end = False
        self.seek_seconds: int | None = None
        self.queue_item_count = int(cfg("queue", "item_count", default=DEFAULT_QUEUE_ITEM_COUNT))

    async def _broadcast(self, event_type: str, data=None):
        await self.ui.put(UiEvent(event_type, data))

    @property
    def selected_zone(self) -> ZoneDescriptor | None:
        return self.zones.get(self.settings.zone_id)

    def _live_zone_id(self) -> str | None:
        zone = self.selected_zone
        return zone.zone_id if zone else None

    def _save(self):
        self.store.save(self.settings)

    # ------------------------------------------------------------------
    # Server events
    # ------------------------------------------------------------------
    async def handle_event(self, event) -> None:
        if isinstance(event, CoreFound):
            logger.info("Server found: %s, version %s", event.display_name, event.display_version)
            await self.navigator.start()
            await self.server.subscribe_zones()
            await self.server.publish_settings(self.form.layout())
            await self._broadcast("core_found", event.display_name)

        elif isinstance(event, CoreLost):
            logger.warning("Server lost: %s, version %s", event.display_name, event.display_version)
            await self._broadcast("core_lost", event.display_name)

        elif isinstance(event, ServerStateChanged):
            try:
                save_section(self.store.path, SERVER_STATE_KEY, event.state)
            except OSError as e:
                logger.error("Could not save server state to %s: %s", self.store.path, e)

        elif isinstance(event, ZonesChanged):
            await self._on_zones_changed(event.zones)

        elif isinstance(event, ZonesRemoved):
            await self._on_zones_removed(event.zone_ids)

        elif isinstance(event, ZonesSeek):
            await self._on_zones_seek(event)

        elif isinstance(event, QueueSnapshot):
            self.queue.replace(event.items)
            await self._broadcast("queue_list", list(event.items))

        elif isinstance(event, QueueChanges):
            label = self.queue.selected_label()
            if self.queue.apply(event.changes, label):
                await self._broadcast("queue_list_changes", list(event.changes))
            else:
                logger.debug("Queue changes before any snapshot, ignored")

        elif isinstance(event, OutputsChanged):
            self.outputs = list(event.outputs)
            if self.settings.zone_id is None:
                return
            grouping = self.grouping.grouping_candidates(self.selected_zone, self.outputs)
            await self._broadcast("zone_grouping", grouping)

        elif isinstance(event, BrowseResult):
            await self.navigator.handle_browse_result(event, self.zones.is_empty())

        elif isinstance(event, LoadResult):
            await self.navigator.handle_load_result(event, self.settings.profile)

        elif isinstance(event, SettingsRequested):
            await self.server.publish_settings(self.form.layout(event.values))

        elif isinstance(event, SettingsSaved):
            await self._on_settings_saved(event.values)

        else:
            logger.debug("Unhandled server event %s", type(event).__name__)

    async def _on_zones_changed(self, zones: list[ZoneDescriptor]) -> None:
        known = {zone.zone_id for zone in self.zones}
        previous = self.settings.zone_id
        self.zones.ingest(zones)

        if self.grouping.pending:
            zone = await self.grouping.on_zones_changed()
            if zone is not None:
                self.settings.zone_id = zone.zone_id
                self._save()

        zone_id = self.settings.zone_id
        new_zone = zone_id is not None and (zone_id not in known or zone_id != previous)

        # Hold back until the pending grouping shows up as a zone
        if self.grouping.pending:
            return

        self.grouping.refresh_matches()
        await self.queue_modes.sync(zone_id)
        await self._send_zone_changed(new_zone)
        await self._send_zone_list()

    async def _on_zones_removed(self, zone_ids: list[str]) -> None:
        zone_id = self.settings.zone_id
        if self.zones.remove(zone_ids, zone_id):
            await self._broadcast("zone_removed", zone_id)
            await self._broadcast("zone_preset_matched", None)

        self.grouping.forget(zone_ids)
        await self.grouping.on_zones_removed(zone_ids)

        if not self.grouping.pending:
            await self._send_zone_list()

    async def _on_zones_seek(self, event: ZonesSeek) -> None:
        zone_id = self.settings.zone_id
        for seek in event.seeks:
            if seek.zone_id != zone_id:
                continue
            if seek.seek_position == 0 and self.pause_on_track_end:
                await self._control(zone_id, Control.PAUSE)
                self.pause_on_track_end = False
                await self._broadcast("pause_on_track_end_active", False)
            await self._broadcast("zone_seek", seek)

        for seek in event.seeks:
            if QueueModeController.near_end(seek.queue_time_remaining):
                await self.queue_modes.replenish(self.zones.get(seek.zone_id), QueueAction.PLAY_NOW)

    async def _on_settings_saved(self, values: dict) -> None:
        end_point, queue_mode = self.form.ingest(values)
        self._save()

        if end_point is not None and end_point.id != self.settings.zone_id:
            await self._select(end_point)

        zone = self.selected_zone
        if zone is not None and zone.primary_output_id is not None:
            self.settings.queue_modes[zone.primary_output_id] = queue_mode
            self._save()
            await self._broadcast("queue_mode_current", queue_mode)
            auto_radio = queue_mode == QueueMode.ROON_RADIO
            if zone.settings.auto_radio != auto_radio:
                await self.server.change_settings(
                    zone.zone_id, replace(zone.settings, auto_radio=auto_radio),
                )

        await self.server.publish_settings(self.form.layout())

    async def _send_zone_list(self) -> None:
        entries = self.zones.list(self.grouping.matched_zones, self.settings.presets.keys())
        self.form.set_zone_list(entries)
        await self._broadcast("zones", entries)

    async def _send_zone_changed(self, new_zone: bool) -> None:
        zone_id = self.settings.zone_id
        zone = self.zones.get(zone_id)
        if zone is None:
            return

        if new_zone:
            await self.server.subscribe_queue(zone_id, self.queue_item_count)
            await self.navigator.start_script(zone_id, profile_script(), pop_all=True)
            # Force a full refresh of the zone data
            await self.server.get_zones()

        if zone.state != PlaybackState.PLAYING:
            if self.pause_on_track_end:
                self.pause_on_track_end = False
                await self._broadcast("pause_on_track_end_active", False)
        elif self.seek_seconds is not None:
            seconds, self.seek_seconds = self.seek_seconds, None
            await self.server.seek(zone_id, seconds)

        await self._zone_changed(zone)

    async def _zone_changed(self, zone: ZoneDescriptor) -> None:
        await self._broadcast("zone_preset_matched", self.grouping.matched_zones.get(zone.zone_id))
        await self._broadcast("zone_changed", zone)

        item_key = self.navigator.take_pending_item_key()
        if item_key is not None:
            logger.debug("Forwarding pending browse selection to %s", zone.display_name)
            await self.navigator.handle_intent(BrowseSelected(item_key), zone.zone_id)

    # ------------------------------------------------------------------
    # User intents
    # ------------------------------------------------------------------
    async def handle_intent(self, intent) -> None:
        if isinstance(intent, BROWSE_INTENTS):
            if isinstance(intent, BrowseSelected):
                await self._check_profile(intent.item_key)
            await self.navigator.handle_intent(intent, self._live_zone_id())
            return

        zone_id = self.settings.zone_id

        if isinstance(intent, QueueHighlighted):
            self.queue.select_id(intent.queue_item_id)

        elif isinstance(intent, QueueSelected):
            if zone_id is not None:
                await self.server.play_from_here(zone_id, intent.queue_item_id)

        elif isinstance(intent, QueueClear):
            last = self.queue.last
            if zone_id is None or last is None:
                return
            # Jump to the last item and, once the zone reports playing, to its end
            await self.server.play_from_here(zone_id, last.queue_item_id)
            self.seek_seconds = last.length

        elif isinstance(intent, QueueModeNext):
            await self.queue_modes.advance(zone_id)

        elif isinstance(intent, QueueModeAppend):
            await self.queue_modes.replenish(self.selected_zone, QueueAction.QUEUE)

        elif isinstance(intent, ZoneSelected):
            await self._select(intent.end_point)

        elif isinstance(intent, ZoneGroupReq):
            await self.server.get_outputs()

        elif isinstance(intent, ZoneGrouped):
            await self._update_grouping(intent.output_ids)

        elif isinstance(intent, ZoneSavePreset):
            if not intent.output_ids:
                return
            output_ids = self.grouping.save_preset(intent.name, intent.output_ids)
            self._save()
            await self._update_grouping(output_ids)

        elif isinstance(intent, ZoneDeletePreset):
            self.grouping.delete_preset(intent.name)
            self._save()
            await self._send_zone_list()

        elif isinstance(intent, ZoneMatchPreset):
            await self._broadcast("zone_preset_matched", self.grouping.match_preset(intent.output_ids))

        elif isinstance(intent, MuteReq):
            zone = self.selected_zone
            if zone is None:
                return
            for output in zone.outputs:
                await self.server.mute(output.output_id, intent.how)

        elif isinstance(intent, ChangeVolume):
            zone = self.selected_zone
            if zone is None:
                return
            for output in zone.outputs:
                await self.server.change_volume(output.output_id, intent.steps)

        elif isinstance(intent, ControlReq):
            zone = self.selected_zone
            if zone is None:
                return
            if zone.now_playing is not None:
                await self._control(zone.zone_id, intent.how)
            elif intent.how == Control.PLAY_PAUSE:
                await self.queue_modes.replenish(zone, QueueAction.PLAY_NOW)

        elif isinstance(intent, RepeatReq):
            zone = self.selected_zone
            if zone is None:
                return
            await self.server.change_settings(
                zone.zone_id, replace(zone.settings, repeat=zone.settings.repeat.next()),
            )

        elif isinstance(intent, ShuffleReq):
            zone = self.selected_zone
            if zone is None:
                return
            await self.server.change_settings(
                zone.zone_id, replace(zone.settings, shuffle=not zone.settings.shuffle),
            )

        elif isinstance(intent, PauseOnTrackEndReq):
            self.pause_on_track_end = self._can_pause_on_track_end()
            await self._broadcast("pause_on_track_end_active", self.pause_on_track_end)

        else:
            logger.debug("Unhandled intent %s", type(intent).__name__)

    async def _check_profile(self, item_key: str | None) -> None:
        """Switch profile when *item_key* is an entry of the profile list."""
        profile = self.navigator.profile_name(item_key)
        zone_id = self.settings.zone_id
        if profile is None or zone_id is None:
            return
        logger.info("Profile set to %s", profile)
        self.settings.profile = profile
        self._save()
        await self.navigator.start_script(zone_id, profile_script(), pop_all=True)

    def _can_pause_on_track_end(self) -> bool:
        zone = self.selected_zone
        if zone is None or zone.now_playing is None or zone.now_playing.length is None:
            return False
        return zone.state == PlaybackState.PLAYING and zone.now_playing.length > 0

    async def _control(self, zone_id: str, how: Control) -> None:
        zone = self.zones.get(zone_id)
        if zone is None:
            return
        if how == Control.NEXT and not zone.is_next_allowed:
            return
        if how == Control.PREVIOUS and not zone.is_previous_allowed:
            return
        await self.server.control(zone.zone_id, how)

    async def _update_grouping(self, output_ids: list[str]) -> None:
        result = await self.grouping.update_grouping(output_ids)
        if result is not None and result.preset is not None:
            await self._send_zone_list()
            await self._broadcast("zone_preset_matched", result.preset)

    async def _select(self, end_point: EndPoint) -> None:
        await self.server.unsubscribe_queue()

        if isinstance(end_point, OutputEndPoint):
            await self._broadcast("zone_preset_matched", None)
            result = await self.grouping.detach_output(end_point.output_id)
            if result is not None:
                # Already on its own
                await self._select(ZoneEndPoint(result.zone.zone_id))

        elif isinstance(end_point, (ZoneEndPoint, MatchedPresetEndPoint)):
            zone_id = end_point.zone_id
            await self.server.subscribe_queue(zone_id, self.queue_item_count)
            await self.navigator.start_script(zone_id, profile_script(), pop_all=True)

            self.settings.zone_id = zone_id
            zone = self.zones.get(zone_id)
            if zone is not None:
                await self._zone_changed(zone)

            if await self.queue_modes.sync(zone_id) is None:
                self._save()

        elif isinstance(end_point, PresetEndPoint):
            output_ids = self.grouping.preset_output_ids(end_point.name)
            if output_ids is None:
                logger.debug("No preset named %s", end_point.name)
                return
            await self._update_grouping(output_ids)
