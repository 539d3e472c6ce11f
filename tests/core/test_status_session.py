"""Tests for the status channel and the session pointer."""

from charsheet.kvstore import MemoryKeyValueStore
from charsheet.session import Session
from charsheet.status import SaveStatus, StatusChannel


# ── StatusChannel ───────────────────────────────────────


def test_emit_reaches_subscribers_in_order():
    channel = StatusChannel()
    seen = []
    channel.subscribe(lambda e: seen.append(("a", e.status)))
    channel.subscribe(lambda e: seen.append(("b", e.status)))
    channel.saving()
    assert seen == [("a", SaveStatus.SAVING), ("b", SaveStatus.SAVING)]


def test_failing_subscriber_does_not_stop_others(caplog):
    channel = StatusChannel()
    seen = []

    def broken(event):
        raise RuntimeError("widget gone")

    channel.subscribe(broken)
    channel.subscribe(seen.append)
    channel.error("disk full")
    assert seen[0].message == "Save failed: disk full"
    assert "widget gone" in caplog.text


def test_last_event_and_success_time():
    channel = StatusChannel()
    assert channel.last_event is None
    channel.success()
    success_at = channel.last_success_at
    channel.warning("No active character")
    assert channel.last_event.status is SaveStatus.WARNING
    assert channel.last_success_at == success_at


def test_unsubscribe():
    channel = StatusChannel()
    seen = []
    channel.subscribe(seen.append)
    channel.unsubscribe(seen.append)
    channel.success()
    assert seen == []


# ── Session ─────────────────────────────────────────────


def test_session_reads_persisted_pointer():
    kv = MemoryKeyValueStore()
    kv.set_item("sheet-current-character-id", "char_9")
    assert Session(kv).current_id == "char_9"


def test_session_empty_pointer_means_none():
    kv = MemoryKeyValueStore()
    kv.set_item("sheet-current-character-id", "")
    assert Session(kv).current_id is None


def test_session_custom_prefix():
    kv = MemoryKeyValueStore()
    session = Session(kv, prefix="zz-")
    session.set_current_id("char_1")
    assert kv.get_item("zz-current-character-id") == "char_1"


def test_session_clear():
    kv = MemoryKeyValueStore()
    session = Session(kv)
    session.set_current_id("char_1")
    session.clear()
    assert session.current_id is None
    assert kv.keys() == []


def test_session_pointer_survives_storage_failure(caplog):
    kv = MemoryKeyValueStore(quota_bytes=5)
    session = Session(kv)
    session.set_current_id("char_1")
    assert session.current_id == "char_1"
    assert "memory only" in caplog.text
