import pytest

from charsheet.autosave import AutoSaveController
from charsheet.core import SheetCore, build_core
from charsheet.datastore import EntityDataStore
from charsheet.kvstore import MemoryKeyValueStore
from charsheet.scoped import ScopedKeyProxy
from charsheet.session import Session

# Short enough that debounce tests stay fast, long enough to coalesce bursts
TEST_DELAY = 0.05


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def session(kv) -> Session:
    return Session(kv)


@pytest.fixture
def proxy(session) -> ScopedKeyProxy:
    return ScopedKeyProxy(session)


@pytest.fixture
def store(session) -> EntityDataStore:
    return EntityDataStore(session)


@pytest.fixture
def core(kv) -> SheetCore:
    """A fresh in-memory core with a short debounce and no background tick."""
    return build_core(kv, delay=TEST_DELAY, snapshot_interval=0)


@pytest.fixture
def autosave(core) -> AutoSaveController:
    return core.autosave
