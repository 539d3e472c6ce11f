"""Entity data store — canonical CRUD over character records.

Each character is one JSON object stored as text under
``entity-data-{characterId}`` in the shared key-value store. Once a record has
been read it lives in an in-memory cache keyed by character id, and the cache
is the authoritative read path from then on.

    create(id, seed)    default record + seed, stamped, persisted, cached
    load(id)            cache → storage (completed + reconciled) → create
    save(id, record)    stamp lastModified, persist, cache; no merging
    update(id, patch)   load + deep merge + save
    switch_to(id)       persist the outgoing character's live state, move the
                        pointer, load the incoming record
    remove(id)          delete the record and evict it from the cache

Storage failures never propagate. A record that cannot be parsed is replaced
by the default (MalformedRecord, logged); a write the store rejects leaves the
record cached in memory only (StorageUnavailable, logged) and the call
reports False.

The "live state" of the current character (the values sitting in the sheet
that have not been saved yet) is supplied by a registered callable, normally
the auto-save controller's ``collect_patch``. ``switch_to`` persists it before
moving the pointer so edits are never attributed to the incoming character.
"""

from __future__ import annotations

import copy
import json
import logging
import random
import string
import time
from typing import Any, Callable

from charsheet.errors import MalformedRecord, NoActiveEntity, StorageUnavailable
from charsheet.records import (
    complete_record,
    deep_merge,
    default_record,
    expand_tracker_patch,
    now_iso,
    reconcile,
    summarize,
)
from charsheet.session import Session

logger = logging.getLogger(__name__)

RECORD_KEY_PREFIX = "entity-data-"

LiveSource = Callable[[], dict[str, Any]]
SwitchListener = Callable[[str, dict[str, Any]], None]


def record_key(entity_id: str) -> str:
    return f"{RECORD_KEY_PREFIX}{entity_id}"


def _decode(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise MalformedRecord(f"Record is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedRecord(f"Record is a {type(data).__name__}, expected an object")
    return data


class EntityDataStore:
    """Character records over a flat key-value store.

    Args:
        session: Shared Session; supplies the store and the current pointer.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.kv = session.kv
        self._cache: dict[str, dict[str, Any]] = {}
        self._live_source: LiveSource | None = None
        self._switch_listeners: list[SwitchListener] = []
        self._initialized = False

    # ------------------------------------------------------------------
    # Pointer
    # ------------------------------------------------------------------

    def current_id(self) -> str | None:
        return self.session.current_id

    def set_current_id(self, entity_id: str | None) -> None:
        self.session.set_current_id(entity_id)

    def initialize(self) -> None:
        """Warm the cache for the character the stored pointer names."""
        if self._initialized:
            return
        current = self.current_id()
        if current:
            self.load(current)
        self._initialized = True
        logger.info("Entity data store initialized (current character: %s)", current)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def set_live_source(self, source: LiveSource | None) -> None:
        self._live_source = source

    def add_switch_listener(self, listener: SwitchListener) -> None:
        self._switch_listeners.append(listener)

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._cache or self.kv.get_item(record_key(entity_id)) is not None

    def list_ids(self) -> list[str]:
        ids = {k[len(RECORD_KEY_PREFIX):] for k in self.kv.keys() if k.startswith(RECORD_KEY_PREFIX)}
        ids.update(self._cache)
        return sorted(ids)

    def list_summaries(self) -> list[dict[str, Any]]:
        """Summaries of every known character, newest first."""
        summaries = []
        for entity_id in self.list_ids():
            record = self._cache.get(entity_id)
            if record is None:
                raw = self.kv.get_item(record_key(entity_id))
                try:
                    record = _decode(raw) if raw is not None else None
                except MalformedRecord as e:
                    logger.error("Skipping unreadable character %s: %s", entity_id, e)
                    continue
            if record is None:
                continue
            summary = summarize(record)
            summary["id"] = entity_id
            summaries.append(summary)
        summaries.sort(key=lambda s: s.get("createdAt") or "", reverse=True)
        return summaries

    def new_entity_id(self) -> str:
        alphabet = string.ascii_lowercase + string.digits
        while True:
            suffix = "".join(random.choices(alphabet, k=9))
            entity_id = f"char_{int(time.time() * 1000)}_{suffix}"
            if not self.exists(entity_id):
                return entity_id

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def _persist(self, entity_id: str, record: dict[str, Any]) -> bool:
        self._cache[entity_id] = record
        try:
            self.kv.set_item(record_key(entity_id), json.dumps(record))
        except StorageUnavailable as e:
            logger.warning("Character %s kept in memory only: %s", entity_id, e)
            return False
        return True

    def _build(self, entity_id: str, seed: dict[str, Any]) -> dict[str, Any]:
        seed = {k: v for k, v in seed.items() if k != "id"}
        base = default_record()
        record = reconcile(deep_merge(base, expand_tracker_patch(base, seed)))
        record["id"] = entity_id
        stamp = now_iso()
        record["createdAt"] = stamp
        record["lastModified"] = stamp
        self._persist(entity_id, record)
        logger.info("Created character %s (%s)", entity_id, record.get("name"))
        return record

    def create(self, entity_id: str, seed: dict[str, Any] | None = None) -> dict[str, Any]:
        """Create and persist a new record. An existing record is returned, not replaced."""
        if self.exists(entity_id):
            logger.warning("Character %s already exists; loading instead of creating", entity_id)
            return self.load(entity_id)
        return self._build(entity_id, seed or {})

    def create_character(self, seed: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._build(self.new_entity_id(), seed or {})

    def load(self, entity_id: str) -> dict[str, Any]:
        cached = self._cache.get(entity_id)
        if cached is not None:
            logger.debug("Character %s loaded from cache", entity_id)
            return cached

        raw = self.kv.get_item(record_key(entity_id))
        if raw is None:
            logger.info("No stored data for character %s; creating default", entity_id)
            return self._build(entity_id, {})

        try:
            stored = _decode(raw)
        except MalformedRecord as e:
            logger.warning("Discarding malformed record for %s: %s", entity_id, e)
            return self._build(entity_id, {})

        record = reconcile(complete_record(stored))
        if record.get("id") != entity_id:
            if stored.get("id") is not None:
                logger.warning(
                    "Stored record under %s claims id %r; keeping %s", entity_id, stored.get("id"), entity_id
                )
            record["id"] = entity_id
        self._cache[entity_id] = record
        logger.debug("Character %s loaded from storage", entity_id)
        return record

    def save(self, entity_id: str, record: dict[str, Any]) -> bool:
        """Persist ``record`` as the complete state of ``entity_id``.

        A copy is stored, so ``record`` itself is left untouched. Returns False
        when storage rejected the write; the copy is still cached.
        """
        record = copy.deepcopy(record)
        record["id"] = entity_id
        record["lastModified"] = now_iso()
        ok = self._persist(entity_id, record)
        if ok:
            logger.debug("Saved character %s", entity_id)
        return ok

    def update(self, entity_id: str | None, patch: dict[str, Any]) -> bool:
        if not entity_id:
            logger.warning("%s", NoActiveEntity("No character to update"))
            return False
        current = self.load(entity_id)
        patch = expand_tracker_patch(current, {k: v for k, v in patch.items() if k != "id"})
        updated = reconcile(deep_merge(current, patch))
        return self.save(entity_id, updated)

    def remove(self, entity_id: str) -> None:
        try:
            self.kv.remove_item(record_key(entity_id))
        except StorageUnavailable as e:
            logger.warning("Could not delete stored record for %s: %s", entity_id, e)
        self._cache.pop(entity_id, None)
        if self.current_id() == entity_id:
            self.set_current_id(None)
        logger.info("Removed character %s", entity_id)

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Current character
    # ------------------------------------------------------------------

    def current_record(self) -> dict[str, Any] | None:
        current = self.current_id()
        if not current:
            logger.warning("%s", NoActiveEntity("No current character set"))
            return None
        return self.load(current)

    def update_current(self, patch: dict[str, Any]) -> bool:
        return self.update(self.current_id(), patch)

    def save_current(self) -> bool:
        """Persist the live (unsaved) state of the current character."""
        current = self.current_id()
        if not current:
            logger.warning("%s", NoActiveEntity("No current character to save"))
            return False
        patch = self._collect_live_state()
        return self.update(current, patch)

    def _collect_live_state(self) -> dict[str, Any]:
        if self._live_source is None:
            return {}
        try:
            return self._live_source()
        except Exception as e:
            logger.warning("Collecting live sheet state failed: %s", e)
            return {}

    def switch_to(self, entity_id: str) -> dict[str, Any]:
        """Make ``entity_id`` current and return its record for display."""
        current = self.current_id()
        if current and current != entity_id:
            logger.info("Saving character %s before switching to %s", current, entity_id)
            self.save_current()
        self.set_current_id(entity_id)
        record = self.load(entity_id)
        for listener in list(self._switch_listeners):
            try:
                listener(entity_id, record)
            except Exception as e:
                logger.warning("Switch listener %r failed: %s", listener, e)
        logger.info("Switched to character %s", entity_id)
        return record

    def debug_info(self) -> dict[str, Any]:
        return {
            "current_character_id": self.current_id(),
            "cached_characters": sorted(self._cache),
            "is_initialized": self._initialized,
        }
