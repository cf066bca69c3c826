# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Settings form published to the server's settings page.

The form mirrors the on-screen zone picker: the same display list, titled
``name`` for zones, ``<name>`` for outputs and ``[name]`` for presets, plus a
queue-mode dropdown for the controlled zone.  Saving the form on the server
side comes back as a ``SettingsSaved`` event, which ``ingest`` turns into an
end point to select and a queue mode to store.

Layout shape sent with the ``settings_layout`` request:

    {
      "values":  {"zone_id": ..., "profile": ..., "queue_mode": "manual"},
      "layout":  [{"type": "label", "title": ...},
                  {"type": "dropdown", "title": "Zones", "setting": "zone_id",
                   "values": [{"title": ..., "value": ...}, ...]}, ...],
      "has_error": false
    }
"""

import logging

from .lib.store import PersistentSettings
from .models import (
    EndPoint,
    MatchedPresetEndPoint,
    OutputEndPoint,
    PresetEndPoint,
    QueueMode,
    ZoneEndPoint,
)
from .queue_mode import mode_cycle
from .zones import ZoneRegistry

logger = logging.getLogger(__name__)


def end_point_title(end_point: EndPoint, name: str) -> str:
    if isinstance(end_point, OutputEndPoint):
        return f"<{name}>"
    if isinstance(end_point, (PresetEndPoint, MatchedPresetEndPoint)):
        return f"[{name}]"
    return name


class SettingsForm:
    def __init__(self, zones: ZoneRegistry, settings: PersistentSettings):
        self.zones = zones
        self.settings = settings
        self.zone_list: list[tuple[EndPoint, str]] = []

    def set_zone_list(self, zone_list: list[tuple[EndPoint, str]]) -> None:
        self.zone_list = list(zone_list)

    def values(self) -> dict:
        """Form values as last persisted."""
        queue_mode = QueueMode.MANUAL
        if self.settings.prim_output_id is not None:
            queue_mode = self.settings.queue_modes.get(self.settings.prim_output_id, QueueMode.MANUAL)
        return {
            "zone_id": self.settings.zone_id,
            "profile": self.settings.profile,
            "queue_mode": queue_mode.value,
        }

    def layout(self, values: dict | None = None) -> dict:
        """Build the form for *values*, or for the persisted settings."""
        values = dict(values) if values else self.values()
        zone_id = values.get("zone_id")

        zones_widget = {
            "type": "dropdown",
            "title": "Zones",
            "subtitle": "The available zones, <outputs> and [presets]",
            "values": [
                {"title": end_point_title(end_point, name), "value": end_point.id}
                for end_point, name in self.zone_list
            ],
            "setting": "zone_id",
        }

        if zone_id is None:
            widgets = [zones_widget]
        else:
            queue_mode_widget = {
                "type": "dropdown",
                "title": "Queue Mode",
                "values": [
                    {"title": mode.title, "value": mode.value}
                    for mode in mode_cycle(values.get("profile"))
                ],
                "setting": "queue_mode",
            }
            zone_name = self._live_zone_name(zone_id)
            if zone_name is not None:
                label = {"type": "label", "title": f"The currently controlled zone is {zone_name}"}
                widgets = [label, zones_widget, queue_mode_widget]
            else:
                widgets = [zones_widget, queue_mode_widget]

        return {"values": values, "layout": widgets, "has_error": False}

    def _live_zone_name(self, zone_id: str) -> str | None:
        for end_point, name in self.zone_list:
            if isinstance(end_point, (ZoneEndPoint, MatchedPresetEndPoint)) and end_point.id == zone_id:
                return name
        return None

    def classify(self, end_point_id: str | None) -> EndPoint | None:
        """Resolve a raw end point id from the form."""
        if end_point_id is None:
            return None
        for end_point, _ in self.zone_list:
            if end_point.id == end_point_id:
                return end_point
        if end_point_id in self.zones:
            return ZoneEndPoint(end_point_id)
        if self.zones.zone_with_output(end_point_id) is not None:
            return OutputEndPoint(end_point_id)
        if end_point_id in self.settings.presets:
            return PresetEndPoint(end_point_id)
        logger.debug("Unknown end point %s in saved settings", end_point_id)
        return None

    def ingest(self, values: dict) -> tuple[EndPoint | None, QueueMode]:
        """Apply a saved form: store its queue mode, return the chosen end point."""
        try:
            queue_mode = QueueMode(values.get("queue_mode") or QueueMode.MANUAL.value)
        except ValueError:
            logger.warning("Ignoring unknown queue mode %r", values.get("queue_mode"))
            queue_mode = QueueMode.MANUAL

        if self.settings.prim_output_id is not None:
            self.settings.queue_modes[self.settings.prim_output_id] = queue_mode

        return self.classify(values.get("zone_id")), queue_mode
