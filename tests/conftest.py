"""
Shared fixtures: an in-memory server connection and zone builders.
"""

import asyncio
import json

import pytest

from zonectl.lib import config
from zonectl.lib.server import ServerConnection
from zonectl.lib.store import SettingsStore
from zonectl.models import (
    NowPlaying,
    OutputDescriptor,
    PlaybackState,
    TwoLine,
    ZoneDescriptor,
    ZoneSettings,
)


class FakeServer(ServerConnection):
    """Records every request instead of sending it."""

    def __init__(self):
        super().__init__()
        self.requests = []
        self.closed = False
        self.finished = asyncio.Event()

    async def request(self, name, body=None):
        self.requests.append((name, body))

    async def run(self):
        await self.finished.wait()

    async def close(self):
        self.closed = True

    def names(self):
        return [name for name, _ in self.requests]

    def bodies(self, name):
        return [body for n, body in self.requests if n == name]


def make_zone(zone_id, name=None, output_ids=None, *, state=PlaybackState.STOPPED,
              length=None, playing=False, auto_radio=False, can_group_with=(),
              next_allowed=True, previous_allowed=True):
    output_ids = output_ids if output_ids is not None else [f"o-{zone_id}"]
    now_playing = None
    if playing:
        now_playing = NowPlaying(TwoLine("Song", "Artist"), length=length, seek_position=0)
    return ZoneDescriptor(
        zone_id=zone_id,
        display_name=name or zone_id,
        outputs=[
            OutputDescriptor(output_id, output_id, list(can_group_with))
            for output_id in output_ids
        ],
        state=state,
        now_playing=now_playing,
        settings=ZoneSettings(auto_radio=auto_radio),
        is_next_allowed=next_allowed,
        is_previous_allowed=previous_allowed,
    )


def drain(queue: asyncio.Queue):
    """Everything currently on *queue*, as a list."""
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "server": {"hosts": ["localhost"], "retry_interval": 10},
        "queue": {"item_count": 100},
    }))
    config.set_config_path(str(path))
    yield path
    config.set_config_path(None)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def store(tmp_path):
    return SettingsStore(str(tmp_path / "state.json"))
