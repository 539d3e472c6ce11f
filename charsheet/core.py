"""Wiring for one persistence core: store, session, proxy, data store, auto-save.

Every component receives the same Session, so they all agree on which
character is current without any module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass

from charsheet.autosave import DEFAULT_DELAY, DEFAULT_SNAPSHOT_INTERVAL, AutoSaveController
from charsheet.config import Settings
from charsheet.datastore import RECORD_KEY_PREFIX, EntityDataStore
from charsheet.errors import StorageUnavailable
from charsheet.kvstore import JsonFileKeyValueStore, KeyValueStore
from charsheet.remote import RemoteCharacterClient, RemoteSaver
from charsheet.scoped import ScopedKeyProxy
from charsheet.session import DEFAULT_KEY_PREFIX, Session
from charsheet.status import StatusChannel


@dataclass
class SheetCore:
    kv: KeyValueStore
    session: Session
    proxy: ScopedKeyProxy
    store: EntityDataStore
    status: StatusChannel
    autosave: AutoSaveController


def build_core(
    kv: KeyValueStore,
    prefix: str = DEFAULT_KEY_PREFIX,
    delay: float = DEFAULT_DELAY,
    snapshot_interval: float = DEFAULT_SNAPSHOT_INTERVAL,
    remote: RemoteSaver | None = None,
) -> SheetCore:
    session = Session(kv, prefix=prefix)
    proxy = ScopedKeyProxy(session)
    store = EntityDataStore(session)
    status = StatusChannel()
    autosave = AutoSaveController(
        store, status, delay=delay, snapshot_interval=snapshot_interval, remote=remote
    )
    store.initialize()
    return SheetCore(kv, session, proxy, store, status, autosave)


def core_from_settings(settings: Settings) -> SheetCore:
    kv = JsonFileKeyValueStore(settings.storage_path, quota_bytes=settings.storage_quota_bytes)
    remote = None
    if settings.remote_api_url:
        remote = RemoteCharacterClient(settings.remote_api_url, token=settings.remote_api_token)
    return build_core(
        kv,
        prefix=settings.key_prefix,
        delay=settings.autosave_delay,
        snapshot_interval=settings.snapshot_interval,
        remote=remote,
    )


def clear_all_data(kv: KeyValueStore, prefix: str = DEFAULT_KEY_PREFIX) -> int:
    """Remove every key owned by the character sheet. Returns the count removed."""
    removed = 0
    for key in kv.keys():
        if key.startswith(prefix) or key.startswith(RECORD_KEY_PREFIX):
            try:
                kv.remove_item(key)
            except StorageUnavailable:
                continue
            removed += 1
    return removed
