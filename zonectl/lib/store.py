# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Persisted client settings.

The settings live under one top-level key of the JSON state file (by default
the config file itself, so a single ``config.json`` carries everything).
Writes are atomic (temp file + rename) so a crash mid-write never corrupts
the file, and they preserve every other top-level key.

Shape of the ``settings`` section:

    {
      "zone_id": "16017f...",            # selected end point id
      "prim_output_id": "17017f...",     # primary output of that zone
      "profile": "Alice",
      "queue_modes": {"17017f...": "random_album"},
      "presets": {"Downstairs": [["17017f...", null], ["1701aa...", 32.0]]}
    }
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field

from ..models import QueueMode

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"

Grouping = list[tuple[str, float | None]]


def _mapping(data: dict, key: str) -> dict:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring stored %s of type %s", key, type(value).__name__)
        return {}
    return value


@dataclass
class PersistentSettings:
    zone_id: str | None = None
    prim_output_id: str | None = None
    profile: str | None = None
    queue_modes: dict[str, QueueMode] = field(default_factory=dict)
    presets: dict[str, Grouping] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict | None) -> "PersistentSettings":
        """Build settings from stored JSON, dropping entries that don't parse."""
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Ignoring stored settings of type %s", type(data).__name__)
            data = {}
        queue_modes = {}
        for output_id, value in _mapping(data, "queue_modes").items():
            try:
                queue_modes[output_id] = QueueMode(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring unknown queue mode %r for %s", value, output_id)
        presets = {}
        for name, entries in _mapping(data, "presets").items():
            grouping = []
            if not isinstance(entries, list):
                logger.warning("Ignoring malformed preset %r", name)
                continue
            for entry in entries:
                if isinstance(entry, str):
                    grouping.append((entry, None))
                elif isinstance(entry, (list, tuple)) and entry:
                    volume = entry[1] if len(entry) > 1 else None
                    grouping.append((entry[0], volume))
            if grouping:
                presets[name] = grouping
        return cls(
            zone_id=data.get("zone_id"),
            prim_output_id=data.get("prim_output_id"),
            profile=data.get("profile"),
            queue_modes=queue_modes,
            presets=presets,
        )

    def to_dict(self) -> dict:
        return {
            "zone_id": self.zone_id,
            "prim_output_id": self.prim_output_id,
            "profile": self.profile,
            "queue_modes": {k: v.value for k, v in self.queue_modes.items()},
            "presets": {
                name: [[output_id, volume] for output_id, volume in grouping]
                for name, grouping in self.presets.items()
            },
        }


def _read(path: str) -> dict:
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def load_section(path: str, key: str) -> dict | None:
    """Return one top-level section of the state file, or None."""
    value = _read(path).get(key)
    return value if isinstance(value, dict) else None


def save_section(path: str, key: str, value: dict) -> str:
    """Atomically replace one top-level section of the state file."""
    data = _read(path)
    data[key] = value

    d = os.path.dirname(os.path.abspath(path))
    os.makedirs(d, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=d, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp, path)
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise

    return path


class SettingsStore:
    """Loads ``PersistentSettings`` once and writes them back on request."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> PersistentSettings:
        settings = PersistentSettings.from_dict(load_section(self.path, SETTINGS_KEY))
        logger.info("Settings loaded from %s (zone=%s, %d presets)",
                    self.path, settings.zone_id, len(settings.presets))
        return settings

    def save(self, settings: PersistentSettings) -> bool:
        try:
            save_section(self.path, SETTINGS_KEY, settings.to_dict())
        except OSError as e:
            logger.error("Could not save settings to %s: %s", self.path, e)
            return False
        logger.debug("Settings saved to %s", self.path)
        return True
