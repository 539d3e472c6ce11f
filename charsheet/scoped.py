"""Scoped key proxy — per-character namespaces inside a flat store.

A designated subset of keys is "character scoped": while the proxy is active,
a read, write or erase of such a key is redirected to ``{key}-{characterId}``
using the current character of the shared Session. Every other key stays
global.

A key is scoped when it is in the static set below, or matches one of the
naming patterns (per-section colour overrides, damage threshold values).
Patterns let new colour keys be introduced without editing the static set.

The pointer key and the theme keys are hard-excluded: they are global even
if a pattern would match, so redirection can never retarget the pointer that
drives it.

While deactivated, every operation passes straight through to the store.
"""

from __future__ import annotations

import logging
import re

from charsheet.datastore import RECORD_KEY_PREFIX
from charsheet.errors import StorageUnavailable
from charsheet.session import Session

logger = logging.getLogger(__name__)

SCOPED_KEY_NAMES = (
    # Core character data
    "equipment",
    "journal",
    "journal-entries",
    "experiences",
    "hope",
    "max-hope",
    "downtime",
    "projects",
    "character-details",
    "character-code",
    "character-data-snapshot",
    # Combat trackers
    "hp-circles",
    "stress-circles",
    "armor-circles",
    "minor-damage-value",
    "major-damage-value",
    "active-armor-count",
    "total-armor-circles",
    "evasion",
    # Per-character layout
    "section-order",
)

GLOBAL_KEY_NAMES = (
    "characters",
    "redirect-guard",
    "theme",
    "text-color",
    "accent-color",
    "custom-accent-light",
    "custom-accent-dark",
    "custom-accent-base",
    "glass-color",
    "glass-opacity",
    "backpack-enabled",
)


class ScopedKeyProxy:
    """Redirects character-scoped keys to their per-character variant.

    Args:
        session: Shared Session; its ``kv`` is the underlying store and its
                 ``current_id`` selects the namespace.
        active:  Whether redirection starts switched on.
    """

    def __init__(self, session: Session, active: bool = True) -> None:
        self.session = session
        self.kv = session.kv
        prefix = session.prefix
        self.scoped_keys = frozenset(f"{prefix}{name}" for name in SCOPED_KEY_NAMES)
        self.global_keys = frozenset(
            [session.pointer_key, *(f"{prefix}{name}" for name in GLOBAL_KEY_NAMES)]
        )
        self._color_prefix = f"{prefix}color-"
        self._damage_pattern = re.compile(rf"^{re.escape(prefix)}(minor|major)-damage-value$")
        self._active = active

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    def is_scoped(self, key: str) -> bool:
        if key in self.global_keys:
            return False
        if key in self.scoped_keys:
            return True
        if key.startswith(self._color_prefix):
            return True
        return bool(self._damage_pattern.match(key))

    def is_reserved(self, key: str) -> bool:
        """Keys owned by the session and the data store, never written through the proxy.

        That is the pointer key, stored records, and composite
        ``{scopedKey}-{id}`` keys addressed directly.
        """
        if key == self.session.pointer_key or key.startswith(RECORD_KEY_PREFIX):
            return True
        if self.is_scoped(key):
            return False
        return any(key.startswith(f"{base}-") for base in self.scoped_keys)

    def scoped_key(self, key: str) -> str:
        """The key actually used in storage for ``key`` right now."""
        if not self._active or not self.is_scoped(key):
            return key
        entity_id = self.session.current_id
        if not entity_id:
            logger.warning("No current character for scoped key %s; using global key", key)
            return key
        return f"{key}-{entity_id}"

    # ------------------------------------------------------------------
    # Proxied access
    # ------------------------------------------------------------------

    def read(self, key: str) -> str | None:
        target = self.scoped_key(key)
        value = self.kv.get_item(target)
        if target != key:
            logger.debug("read %s from %s: %s", key, target, "found" if value is not None else "missing")
        return value

    def write(self, key: str, value: str) -> bool:
        """Store ``value``. Returns False (and logs) for a reserved key or a rejected write."""
        if self.is_reserved(key):
            logger.warning("Refusing to write reserved key %s", key)
            return False
        target = self.scoped_key(key)
        try:
            self.kv.set_item(target, value)
        except StorageUnavailable as e:
            logger.warning("Could not write %s: %s", target, e)
            return False
        if target != key:
            logger.debug("redirected write %s -> %s", key, target)
        return True

    def erase(self, key: str) -> bool:
        if self.is_reserved(key):
            logger.warning("Refusing to remove reserved key %s", key)
            return False
        target = self.scoped_key(key)
        try:
            self.kv.remove_item(target)
        except StorageUnavailable as e:
            logger.warning("Could not remove %s: %s", target, e)
            return False
        return True

    def activate(self) -> None:
        if self._active:
            return
        self._active = True
        logger.info("Scoped key proxy activated")

    def deactivate(self) -> None:
        if not self._active:
            return
        self._active = False
        logger.info("Scoped key proxy deactivated")

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def purge_entity(self, entity_id: str) -> int:
        """Remove every key suffixed ``-{entity_id}``, known to the scoped set or not."""
        if not entity_id:
            logger.warning("purge_entity called without a character id; nothing removed")
            return 0
        suffix = f"-{entity_id}"
        removed = 0
        for key in self.kv.keys():
            if not key.endswith(suffix):
                continue
            try:
                self.kv.remove_item(key)
            except StorageUnavailable as e:
                logger.warning("Could not remove %s: %s", key, e)
                continue
            removed += 1
        logger.info("Purged %d keys for character %s", removed, entity_id)
        return removed

    def migrate(self, entity_id: str) -> list[str]:
        """Copy global values of the static scoped keys to ``entity_id``'s variants.

        Originals are kept, so running it again copies the same values again.
        Returns the base keys that were copied.
        """
        copied: list[str] = []
        for key in sorted(self.scoped_keys):
            value = self.kv.get_item(key)
            if not value:
                continue
            target = f"{key}-{entity_id}"
            try:
                self.kv.set_item(target, value)
            except StorageUnavailable as e:
                logger.warning("Could not migrate %s -> %s: %s", key, target, e)
                continue
            copied.append(key)
        logger.info("Migrated %d global keys to character %s", len(copied), entity_id)
        return copied

    def debug_info(self) -> dict:
        entity_id = self.session.current_id
        in_storage = (
            sorted(k for k in self.kv.keys() if k.endswith(f"-{entity_id}"))
            if entity_id
            else []
        )
        return {
            "is_active": self._active,
            "current_character_id": entity_id,
            "global_keys": sorted(self.global_keys),
            "character_keys": sorted(self.scoped_keys),
            "character_keys_in_storage": in_storage,
        }
