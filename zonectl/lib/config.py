# zonectl
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later
#
# Attribution required — see LICENSE, Section 7(b).

"""
Shared configuration loader for zonectl.

Loads a single JSON config file.  Search order:
  1. the path given with ``--config`` (see ``set_config_path``)
  2. /etc/zonectl/config.json
  3. config.json                    (CWD — handy for local dev)
  4. ../../config/default.json      (repo fallback)

The same file doubles as the state file: the ``settings`` section holds the
persisted client settings (see ``lib.store``).

Usage:
    from zonectl.lib.config import cfg

    hosts          = cfg("server", "hosts", default=["localhost"])
    port           = cfg("server", "port", default=9330)
    retry_interval = cfg("server", "retry_interval", default=10)
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None
_config_path: str | None = None

_SEARCH_PATHS = [
    "/etc/zonectl/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    server = config.get("server") or {}
    hosts = server.get("hosts")
    if hosts is not None and not isinstance(hosts, list):
        logger.warning("Config %s: server.hosts should be a list, got %s", path, type(hosts).__name__)
    interval = server.get("retry_interval")
    if interval is not None and (not isinstance(interval, (int, float)) or interval <= 0):
        logger.warning("Config %s: server.retry_interval '%s' is not a positive number", path, interval)
    queue = config.get("queue") or {}
    count = queue.get("item_count")
    if count is not None and (not isinstance(count, int) or count <= 0):
        logger.warning("Config %s: queue.item_count '%s' is not a positive integer", path, count)


def set_config_path(path: str | None) -> None:
    """Put *path* in front of the search order and drop the cached config."""
    global _config_path, _config
    _config_path = path
    _config = None


def config_path() -> str:
    """Return the file the config was (or will be) loaded from.

    When nothing exists yet this is the explicit path, or ``config.json`` in
    the CWD, so the state store has somewhere to write.
    """
    for path in _search_paths():
        if os.path.exists(path):
            return path
    return _config_path or "config.json"


def _search_paths() -> list[str]:
    if _config_path:
        return [_config_path] + _SEARCH_PATHS
    return list(_SEARCH_PATHS)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("server")                       → config["server"]
    cfg("server", "port")               → config["server"]["port"]
    cfg("queue", "item_count", default=100) → config["queue"]["item_count"] or 100
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
