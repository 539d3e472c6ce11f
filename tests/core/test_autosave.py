"""Tests for the debounced auto-save controller."""

import asyncio
import json

import pytest

from charsheet.autosave import AutoSaveController, SaveState, int_or, stripped
from charsheet.datastore import EntityDataStore, record_key
from charsheet.errors import RemoteError
from charsheet.kvstore import MemoryKeyValueStore
from charsheet.session import Session
from charsheet.status import SaveStatus, StatusChannel

DELAY = 0.05


def _stored(kv, entity_id):
    return json.loads(kv.get_item(record_key(entity_id)))


class GatedRemote:
    """Remote saver that blocks until released, recording every call."""

    def __init__(self):
        self.calls = []
        self.gate = asyncio.Event()
        self.fail = False

    async def save(self, entity_id, record):
        self.calls.append((entity_id, record["name"]))
        await self.gate.wait()
        if self.fail:
            raise RemoteError("remote said no")


@pytest.fixture
def sheet():
    return {"name": "Rex", "level": "3", "agility": "2"}


@pytest.fixture
def bound(autosave, sheet):
    autosave.bind_field("name", lambda: sheet.get("name"), stripped)
    autosave.bind_field("level", lambda: sheet.get("level"), int_or(1))
    autosave.bind_field("attributes.agility", lambda: sheet.get("agility"), int_or(0))
    autosave.store.switch_to("char_1")
    return autosave


# ── collect_patch ───────────────────────────────────────


def test_collect_patch_coerces_and_nests(bound, sheet):
    sheet["name"] = "  Rex the Bold  "
    sheet["level"] = "not a number"
    assert bound.collect_patch() == {
        "name": "Rex the Bold",
        "level": 1,
        "attributes": {"agility": 2},
    }


def test_collect_patch_skips_absent_and_failing_fields(autosave, caplog):
    autosave.bind_field("name", lambda: None)
    autosave.bind_field("subtitle", lambda: 1 / 0)
    autosave.bind_field("level", lambda: "4", int_or(1))
    assert autosave.collect_patch() == {"level": 4}
    assert "Skipping field subtitle" in caplog.text


def test_collect_patch_normalizes_trackers(autosave):
    autosave.bind_tracker("hp", lambda: {"circles": [{"active": True}, {"active": False}]})
    autosave.bind_tracker("hope", lambda: {"current": 9, "max": 5})
    autosave.bind_tracker("stress", lambda: None)
    patch = autosave.collect_patch()
    assert patch["hp"] == {"circles": [{"active": True}, {"active": False}], "max": 2, "current": 1}
    assert patch["hope"] == {"current": 5, "max": 5}
    assert "stress" not in patch


def test_bind_unknown_tracker_rejected(autosave):
    with pytest.raises(ValueError):
        autosave.bind_tracker("mana", lambda: {})


# ── Debounce ────────────────────────────────────────────


async def test_burst_of_changes_produces_one_save(bound, sheet, kv):
    for i in range(5):
        sheet["name"] = f"Rex {i}"
        bound.on_change("name")
        await asyncio.sleep(DELAY / 5)
    assert bound.state is SaveState.PENDING
    assert bound.save_count == 0

    await asyncio.sleep(DELAY * 4)
    assert bound.save_count == 1
    assert bound.state is SaveState.IDLE
    assert _stored(kv, "char_1")["name"] == "Rex 4"


async def test_status_sequence(bound):
    events = []
    bound.status.subscribe(events.append)
    bound.on_change("name")
    await asyncio.sleep(DELAY * 4)
    assert [e.status for e in events] == [SaveStatus.SAVING, SaveStatus.SUCCESS]
    assert bound.status.last_success_at is not None


async def test_flush_cancels_timer_and_saves(bound, sheet, kv):
    sheet["agility"] = "3"
    bound.on_change("attributes.agility")
    assert bound.has_pending_timer
    assert await bound.flush() is True
    assert not bound.has_pending_timer
    assert _stored(kv, "char_1")["attributes"]["agility"] == 3
    await asyncio.sleep(DELAY * 3)
    assert bound.save_count == 1


async def test_save_targets_entity_current_at_fire_time(bound, sheet, kv):
    bound.store.create("char_2", {"name": "Bea"})
    sheet["name"] = "Written late"
    bound.on_change("name")
    # Pointer moved without a switch: the save follows the pointer
    bound.store.session.set_current_id("char_2")
    await asyncio.sleep(DELAY * 4)
    assert _stored(kv, "char_2")["name"] == "Written late"


async def test_no_active_entity_warns(autosave):
    events = []
    autosave.status.subscribe(events.append)
    assert autosave.store.current_id() is None
    autosave.on_change("name")
    await asyncio.sleep(DELAY * 4)
    assert events[-1].status is SaveStatus.WARNING
    assert autosave.save_count == 0
    assert autosave.state is SaveState.IDLE


# ── Saving while saving ─────────────────────────────────


async def test_change_during_save_is_queued(store, kv):
    remote = GatedRemote()
    sheet = {"name": "First"}
    controller = AutoSaveController(store, StatusChannel(), delay=DELAY, snapshot_interval=0, remote=remote)
    controller.bind_field("name", lambda: sheet["name"])
    store.switch_to("char_1")

    controller.on_change("name")
    await asyncio.sleep(DELAY * 2)
    assert controller.state is SaveState.SAVING

    sheet["name"] = "Second"
    controller.on_change("name")
    assert controller.state is SaveState.SAVING

    remote.gate.set()
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert controller.state in (SaveState.PENDING, SaveState.SAVING)

    await asyncio.sleep(DELAY * 4)
    assert controller.save_count == 2
    assert remote.calls == [("char_1", "First"), ("char_1", "Second")]
    assert _stored(kv, "char_1")["name"] == "Second"


async def test_failed_save_stays_pending_and_retries(store):
    remote = GatedRemote()
    remote.gate.set()
    remote.fail = True
    status = StatusChannel()
    controller = AutoSaveController(store, status, delay=DELAY, snapshot_interval=0, remote=remote)
    store.switch_to("char_1")

    controller.on_change()
    await asyncio.sleep(DELAY * 4)
    assert controller.state is SaveState.FAILED
    assert controller.retry_pending is True
    assert status.last_event.status is SaveStatus.ERROR
    assert "remote said no" in status.last_event.message

    remote.fail = False
    controller.on_change()
    await asyncio.sleep(DELAY * 4)
    assert controller.state is SaveState.IDLE
    assert controller.retry_pending is False
    assert controller.save_count == 1


async def test_storage_failure_reported_as_error():
    store = EntityDataStore(Session(MemoryKeyValueStore(quota_bytes=3000)))
    status = StatusChannel()
    sheet = {"notes": "short"}
    controller = AutoSaveController(store, status, delay=DELAY, snapshot_interval=0)
    controller.bind_field("details.notes", lambda: sheet["notes"])
    store.switch_to("char_1")

    sheet["notes"] = "x" * 5000
    assert await controller.flush() is False
    assert status.last_event.status is SaveStatus.ERROR
    assert controller.retry_pending is True


# ── Background tick ─────────────────────────────────────


async def test_background_tick_saves_snapshots(store, kv):
    sheet = {"name": "Ticked"}
    controller = AutoSaveController(store, StatusChannel(), delay=DELAY, snapshot_interval=DELAY)
    controller.bind_field("name", lambda: sheet["name"])
    store.switch_to("char_1")
    controller.start()
    await asyncio.sleep(DELAY * 5)
    await controller.stop()
    assert controller.save_count >= 2
    assert _stored(kv, "char_1")["name"] == "Ticked"


async def test_background_tick_skips_without_entity(store):
    controller = AutoSaveController(store, StatusChannel(), delay=DELAY, snapshot_interval=DELAY)
    controller.start()
    await asyncio.sleep(DELAY * 3)
    await controller.stop()
    assert controller.save_count == 0


# ── Switching inside the debounce window ────────────────


async def test_switch_inside_debounce_window_keeps_edit_with_outgoing(bound, sheet, kv):
    bound.store.create("char_2", {"name": "Bea"})
    sheet["name"] = "Rex edited"
    bound.on_change("name")
    assert bound.has_pending_timer

    bound.store.switch_to("char_2")
    assert _stored(kv, "char_1")["name"] == "Rex edited"
    assert not bound.has_pending_timer
    assert bound.state is SaveState.IDLE

    await asyncio.sleep(DELAY * 4)
    assert _stored(kv, "char_2")["name"] == "Bea"
    assert bound.save_count == 0


class SlowRemote:
    """Remote saver that takes a while and tracks overlapping calls."""

    def __init__(self, seconds):
        self.seconds = seconds
        self.running = 0
        self.peak = 0
        self.finished = 0

    async def save(self, entity_id, record):
        self.running += 1
        self.peak = max(self.peak, self.running)
        await asyncio.sleep(self.seconds)
        self.running -= 1
        self.finished += 1


async def test_stop_waits_for_tick_save(store):
    remote = SlowRemote(DELAY * 3)
    controller = AutoSaveController(
        store, StatusChannel(), delay=DELAY, snapshot_interval=DELAY, remote=remote
    )
    store.switch_to("char_1")
    controller.start()
    await asyncio.sleep(DELAY * 1.5)
    assert remote.running == 1

    await controller.stop()
    assert remote.finished == 1
    assert controller.state is SaveState.IDLE
    assert controller.save_count == 1


async def test_flush_waits_for_tick_save(store):
    remote = SlowRemote(DELAY * 2)
    controller = AutoSaveController(
        store, StatusChannel(), delay=DELAY, snapshot_interval=DELAY, remote=remote
    )
    store.switch_to("char_1")
    controller.start()
    await asyncio.sleep(DELAY * 1.5)
    assert remote.running == 1

    assert await controller.flush() is True
    await controller.stop()
    assert remote.peak == 1
    assert remote.finished >= 2
