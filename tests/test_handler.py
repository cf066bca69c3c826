"""
Session handler tests - server pushes and user intents end to end.
"""

import asyncio
import json

import pytest
from conftest import drain, make_zone

from zonectl.browse import PRIMARY_SESSION
from zonectl.events import (
    BrowseResult,
    CoreFound,
    OutputsChanged,
    QueueChanges,
    QueueSnapshot,
    ServerStateChanged,
    SettingsSaved,
    ZonesChanged,
    ZonesRemoved,
    ZonesSeek,
)
from zonectl.handler import SessionHandler
from zonectl.intents import (
    BrowseSelected,
    ChangeVolume,
    ControlReq,
    MuteReq,
    PauseOnTrackEndReq,
    QueueClear,
    QueueModeAppend,
    RepeatReq,
    ShuffleReq,
    ZoneDeletePreset,
    ZoneGrouped,
    ZoneMatchPreset,
    ZoneSavePreset,
    ZoneSelected,
)
from zonectl.models import (
    Control,
    Mute,
    OutputDescriptor,
    PlaybackState,
    QueueItem,
    QueueMode,
    QueueRemove,
    TwoLine,
    ZoneEndPoint,
    ZoneSeek,
)


@pytest.fixture
def ui():
    return asyncio.Queue()


@pytest.fixture
def handler(server, store, ui):
    return SessionHandler(server, store, ui)


def run(handler, *items):
    """Feed server events and intents to the handler in order."""
    async def feed():
        for item in items:
            if isinstance(item, (ZonesChanged, ZonesRemoved, ZonesSeek, BrowseResult, CoreFound,
                                 QueueSnapshot, QueueChanges, OutputsChanged,
                                 ServerStateChanged, SettingsSaved)):
                await handler.handle_event(item)
            else:
                await handler.handle_intent(item)
    asyncio.run(feed())


def event_types(ui):
    return [event.type for event in drain(ui)]


def select(handler, zone):
    """Make *zone* live and selected."""
    run(handler, ZonesChanged([zone]), ZoneSelected(ZoneEndPoint(zone.zone_id)))
    handler.server.requests.clear()
    drain(handler.ui)


class TestCore:
    """Tests for server discovery events."""

    def test_core_found(self, handler, server, ui):
        run(handler, CoreFound("Living Room Core", "2.0"))

        assert server.names() == ["browse", "subscribe_zones", "settings_layout"]
        assert server.bodies("browse")[0]["pop_all"] is True
        assert [(e.type, e.data) for e in drain(ui)] == [("core_found", "Living Room Core")]

    def test_server_state_persisted(self, handler, store):
        store.save(handler.settings)

        run(handler, ServerStateChanged({"paired_core_id": "c1"}))

        data = json.loads(open(store.path).read())
        assert data["server_state"] == {"paired_core_id": "c1"}
        assert "settings" in data


class TestZoneSelection:
    """Tests for selecting zones and the pending browse selection."""

    def test_pending_browse_forwarded_to_new_zone(self, handler, server, store, ui):
        handler.settings.profile = "Alice"
        run(
            handler,
            ZonesChanged([make_zone("z2", "Kitchen")]),
            BrowseSelected("item-42"),
            BrowseResult(action="message", session_key=PRIMARY_SESSION,
                         message="Zone is not configured", is_error=True),
        )
        assert "zone_select" in event_types(ui)
        server.requests.clear()

        run(handler, ZoneSelected(ZoneEndPoint("z1")))

        assert server.requests == [
            ("unsubscribe_queue", None),
            ("subscribe_queue", {"zone_or_output_id": "z1", "max_item_count": 100}),
            ("browse", {"hierarchy": "browse", "multi_session_key": "z1", "pop_all": True}),
        ]
        assert [step.text for step in handler.navigator.sessions["z1"].script] == ["", "Profile", "Settings"]
        assert handler.settings.zone_id == "z1"
        assert store.load().zone_id == "z1"
        assert "zone_changed" not in event_types(ui)

        server.requests.clear()
        run(handler, ZonesChanged([make_zone("z1", "Den")]))

        types = event_types(ui)
        assert "zone_changed" in types
        assert server.bodies("browse")[-1] == {
            "hierarchy": "browse", "multi_session_key": PRIMARY_SESSION,
            "item_key": "item-42", "zone_or_output_id": "z1",
        }
        assert handler.navigator.pending_item_key is None

    def test_select_live_zone(self, handler, server, ui):
        run(handler, ZonesChanged([make_zone("z1", "Den", ["o1"])]))
        drain(ui)

        run(handler, ZoneSelected(ZoneEndPoint("z1")))

        types = event_types(ui)
        assert types == ["zone_preset_matched", "zone_changed", "queue_mode_current"]
        assert handler.settings.prim_output_id == "o1"

    def test_selected_zone_removed(self, handler, ui):
        select(handler, make_zone("z1"))

        run(handler, ZonesRemoved(["z1"]))

        events = drain(ui)
        assert [(e.type, e.data) for e in events[:2]] == [
            ("zone_removed", "z1"), ("zone_preset_matched", None),
        ]
        assert events[-1].type == "zones"
        assert handler.selected_zone is None


class TestTransport:
    """Tests for transport intents on the selected zone."""

    def test_mute_and_volume_every_output(self, handler, server):
        select(handler, make_zone("z1", output_ids=["a", "b"]))

        run(handler, MuteReq(Mute.MUTE), ChangeVolume(-2))

        assert server.requests == [
            ("mute", {"output_id": "a", "how": "mute"}),
            ("mute", {"output_id": "b", "how": "mute"}),
            ("change_volume", {"output_id": "a", "how": "relative_step", "value": -2}),
            ("change_volume", {"output_id": "b", "how": "relative_step", "value": -2}),
        ]

    def test_next_only_when_allowed(self, handler, server):
        select(handler, make_zone("z1", state=PlaybackState.PLAYING, playing=True, length=100,
                                  next_allowed=False))

        run(handler, ControlReq(Control.NEXT), ControlReq(Control.PREVIOUS))

        assert server.requests == [("control", {"zone_or_output_id": "z1", "control": "previous"})]

    def test_play_on_empty_queue_replenishes(self, handler, server):
        handler.settings.profile = "Alice"
        select(handler, make_zone("z1", output_ids=["o1"]))
        handler.settings.queue_modes["o1"] = QueueMode.RANDOM_TRACK
        handler.navigator.sessions.clear()

        run(handler, ControlReq(Control.PLAY_PAUSE))

        assert server.names() == ["browse"]
        script = handler.navigator.sessions["z1"].script
        assert script[0].text == "Play Now"

    def test_repeat_and_shuffle(self, handler, server):
        select(handler, make_zone("z1"))

        run(handler, RepeatReq(), ShuffleReq())

        repeat, shuffle = server.bodies("change_settings")
        assert repeat["repeat"] == "all"
        assert shuffle["shuffle"] is True
        assert handler.selected_zone.settings.shuffle is False


class TestSeek:
    """Tests for seek pushes."""

    def test_pause_on_track_end(self, handler, server, ui):
        select(handler, make_zone("z1", state=PlaybackState.PLAYING, playing=True, length=200))

        run(handler, PauseOnTrackEndReq())
        assert handler.pause_on_track_end is True
        drain(ui)

        run(handler, ZonesSeek([ZoneSeek("z1", 400, 0)]))

        assert server.requests == [("control", {"zone_or_output_id": "z1", "control": "pause"})]
        assert handler.pause_on_track_end is False
        assert [(e.type, e.data) for e in drain(ui)][0] == ("pause_on_track_end_active", False)

    def test_pause_on_track_end_needs_length(self, handler):
        select(handler, make_zone("z1", state=PlaybackState.PLAYING, playing=True, length=None))

        run(handler, PauseOnTrackEndReq())

        assert handler.pause_on_track_end is False

    def test_near_end_plays_random_pick(self, handler, server):
        handler.settings.profile = "Alice"
        handler.settings.queue_modes["o1"] = QueueMode.RANDOM_ALBUM
        select(handler, make_zone("z1", output_ids=["o1"], state=PlaybackState.PLAYING,
                                  playing=True, length=200))
        handler.navigator.sessions.clear()

        run(handler, ZonesSeek([ZoneSeek("z1", 2, 198)]))
        run(handler, ZonesSeek([ZoneSeek("z1", 1, 199)]))

        assert server.bodies("browse") == [
            {"hierarchy": "browse", "multi_session_key": "z1", "pop_all": True},
        ]
        assert handler.navigator.sessions["z1"].script[0].text == "Play Now"

    def test_other_zone_seek_not_forwarded(self, handler, ui):
        select(handler, make_zone("z1"))

        run(handler, ZonesSeek([ZoneSeek("z2", 60, 10)]))

        assert event_types(ui) == []


class TestQueue:
    """Tests for the play queue."""

    def items(self):
        return [QueueItem(i, 100 + i, TwoLine(f"T{i}")) for i in range(1, 4)]

    def test_snapshot_and_changes(self, handler, ui):
        run(handler, QueueChanges([QueueRemove(0, 1)]))
        assert event_types(ui) == []

        run(handler, QueueSnapshot(self.items()), QueueChanges([QueueRemove(0, 1)]))

        assert event_types(ui) == ["queue_list", "queue_list_changes"]
        assert len(handler.queue) == 2

    def test_clear_jumps_to_end_of_last(self, handler, server):
        select(handler, make_zone("z1"))
        run(handler, QueueSnapshot(self.items()), QueueClear())

        assert server.requests == [("play_from_here", {"zone_or_output_id": "z1", "queue_item_id": 3})]

        server.requests.clear()
        run(handler, ZonesChanged([make_zone("z1", state=PlaybackState.PLAYING, playing=True, length=103)]))

        assert server.bodies("seek") == [{"zone_or_output_id": "z1", "how": "absolute", "seconds": 103}]
        assert handler.seek_seconds is None

    def test_append_queues_random_pick(self, handler, server):
        handler.settings.profile = "Alice"
        handler.settings.queue_modes["o1"] = QueueMode.RANDOM_ALBUM
        select(handler, make_zone("z1", output_ids=["o1"]))
        handler.navigator.sessions.clear()

        run(handler, QueueModeAppend())

        assert handler.navigator.sessions["z1"].script[0].text == "Queue"


class TestPresets:
    """Tests for grouping and presets through the handler."""

    def test_group_then_select_new_zone(self, handler, server, store, ui):
        run(handler, ZonesChanged([make_zone("za", output_ids=["a"]), make_zone("zb", output_ids=["b"])]))
        server.requests.clear()
        drain(ui)

        run(handler, ZoneGrouped(["a", "b"]))
        assert server.requests == [("group_outputs", {"output_ids": ["a", "b"]})]

        # Nothing is published while the grouping is pending
        run(handler, ZonesChanged([make_zone("zc", output_ids=["c"])]))
        assert event_types(ui) == []

        run(handler, ZonesChanged([make_zone("zab", output_ids=["a", "b"])]))

        assert handler.settings.zone_id == "zab"
        assert store.load().zone_id == "zab"
        assert ("subscribe_queue", {"zone_or_output_id": "zab", "max_item_count": 100}) in server.requests
        assert "zone_changed" in event_types(ui)

    def test_save_preset_of_live_zone(self, handler, server, store, ui):
        run(handler, ZonesChanged([make_zone("z1", output_ids=["a", "c", "b"])]))
        drain(ui)

        run(handler, ZoneSavePreset("Trio", ["a", "c", "b"]))

        assert store.load().presets == {"Trio": [("a", None), ("b", None), ("c", None)]}
        assert handler.grouping.matched_zones == {"z1": "Trio"}
        events = drain(ui)
        assert [e.type for e in events] == ["zones", "zone_preset_matched"]
        assert events[-1].data == "Trio"
        assert "group_outputs" not in server.names()

    def test_match_and_delete(self, handler, store, ui):
        handler.settings.presets["Pair"] = [("a", None), ("b", None)]

        run(handler, ZoneMatchPreset(["a", "b"]))
        assert [(e.type, e.data) for e in drain(ui)] == [("zone_preset_matched", "Pair")]

        run(handler, ZoneDeletePreset("Pair"))
        assert store.load().presets == {}
        assert event_types(ui) == ["zones"]

    def test_grouping_dialog(self, handler, ui):
        select(handler, make_zone("z1", output_ids=["a"], can_group_with=["a", "b"]))

        run(handler, OutputsChanged([OutputDescriptor("a", "a"), OutputDescriptor("b", "b")]))

        events = drain(ui)
        assert events[0].type == "zone_grouping"
        assert events[0].data == [("a", "a", True), ("b", "b", False)]


class TestSettingsSaved:
    """Tests for the server settings page."""

    def test_selects_zone_and_mode(self, handler, server, store):
        run(handler, ZonesChanged([make_zone("z1", output_ids=["o1"]), make_zone("z2", output_ids=["o2"])]))
        server.requests.clear()

        run(handler, SettingsSaved({"zone_id": "z2", "queue_mode": "roon_radio"}))

        assert handler.settings.zone_id == "z2"
        assert ("subscribe_queue", {"zone_or_output_id": "z2", "max_item_count": 100}) in server.requests
        assert server.bodies("change_settings")[-1]["auto_radio"] is True
        assert server.names()[-1] == "settings_layout"
