"""Session — the explicit current-character context.

A single Session is shared by the scoped key proxy and the entity data store.
It is the only place the "which character is active" pointer lives; moving
it is the sole mechanism that retargets scoped keys.

The pointer is mirrored to one well-known global key in the key-value store so
that a restart resumes on the same character. If that write fails the
in-memory value still moves and a warning is logged.
"""

from __future__ import annotations

import logging

from charsheet.errors import StorageUnavailable
from charsheet.kvstore import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "sheet-"
POINTER_KEY_NAME = "current-character-id"


def pointer_key(prefix: str = DEFAULT_KEY_PREFIX) -> str:
    return f"{prefix}{POINTER_KEY_NAME}"


class Session:
    """Holds the current-entity pointer.

    Args:
        kv:     The shared key-value store.
        prefix: Key prefix; the pointer lives under ``{prefix}current-character-id``.
    """

    def __init__(self, kv: KeyValueStore, prefix: str = DEFAULT_KEY_PREFIX) -> None:
        self.kv = kv
        self.prefix = prefix
        self.pointer_key = pointer_key(prefix)
        self._current: str | None = kv.get_item(self.pointer_key) or None

    @property
    def current_id(self) -> str | None:
        return self._current

    def set_current_id(self, entity_id: str | None) -> None:
        """Move the pointer. ``None`` (or "") clears it and its stored marker."""
        entity_id = entity_id or None
        self._current = entity_id
        try:
            if entity_id is None:
                self.kv.remove_item(self.pointer_key)
            else:
                self.kv.set_item(self.pointer_key, entity_id)
        except StorageUnavailable as e:
            logger.warning("Current character pointer kept in memory only: %s", e)
        logger.debug("current character -> %s", entity_id)

    def clear(self) -> None:
        """Logout: forget the current character."""
        self.set_current_id(None)
