"""Tests for the flat key-value stores."""

import json

import pytest

from charsheet.errors import StorageUnavailable
from charsheet.kvstore import JsonFileKeyValueStore, MemoryKeyValueStore


# ── MemoryKeyValueStore ─────────────────────────────────


def test_memory_get_missing_returns_none():
    assert MemoryKeyValueStore().get_item("nope") is None


def test_memory_set_get_remove():
    kv = MemoryKeyValueStore()
    kv.set_item("a", "1")
    assert kv.get_item("a") == "1"
    assert kv.keys() == ["a"]
    kv.remove_item("a")
    assert kv.get_item("a") is None
    kv.remove_item("a")  # removing twice is a no-op


def test_memory_quota_rejects_and_keeps_state():
    kv = MemoryKeyValueStore(quota_bytes=10)
    kv.set_item("k", "12345")
    with pytest.raises(StorageUnavailable):
        kv.set_item("big", "x" * 20)
    assert kv.get_item("big") is None
    assert kv.get_item("k") == "12345"


def test_memory_clear():
    kv = MemoryKeyValueStore()
    kv.set_item("a", "1")
    kv.set_item("b", "2")
    kv.clear()
    assert kv.keys() == []


# ── JsonFileKeyValueStore ───────────────────────────────


def test_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "storage.json"
    kv = JsonFileKeyValueStore(path)
    kv.set_item("sheet-theme", "dark")
    assert json.loads(path.read_text()) == {"sheet-theme": "dark"}

    reopened = JsonFileKeyValueStore(path)
    assert reopened.get_item("sheet-theme") == "dark"


def test_file_store_creates_parent_dir(tmp_path):
    path = tmp_path / "nested" / "data" / "storage.json"
    kv = JsonFileKeyValueStore(path)
    kv.set_item("a", "1")
    assert path.is_file()


def test_file_store_corrupt_file_is_moved_aside(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{not json")
    kv = JsonFileKeyValueStore(path)
    assert kv.keys() == []
    assert (tmp_path / "storage.json.corrupt").read_text() == "{not json"


def test_file_store_non_object_starts_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("[1, 2]")
    assert JsonFileKeyValueStore(path).keys() == []


def test_file_store_quota(tmp_path):
    kv = JsonFileKeyValueStore(tmp_path / "storage.json", quota_bytes=8)
    with pytest.raises(StorageUnavailable):
        kv.set_item("key", "value-too-long")
    assert not (tmp_path / "storage.json").exists()


def test_file_store_write_failure_raises_storage_unavailable(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    # Parent "directory" is a file, so the write cannot happen
    kv = JsonFileKeyValueStore(blocker / "storage.json")
    with pytest.raises(StorageUnavailable):
        kv.set_item("a", "1")
    assert kv.get_item("a") is None
