"""Flat key-value storage.

The persistence core sits on top of an undifferentiated string-to-string
store with the same shape as browser local storage:

    get_item(key)         -> str | None
    set_item(key, value)  -> None
    remove_item(key)      -> None
    keys()                -> list[str]
    clear()               -> None

Two implementations are provided:

    MemoryKeyValueStore     a dict; used by tests and as the degraded mode
    JsonFileKeyValueStore   the whole store as one JSON object in one file,
                            rewritten atomically on every mutation

Both accept an optional byte quota. A write that would push the encoded size
of all keys and values past the quota raises StorageUnavailable and leaves
the store unchanged, the same way a browser rejects a write when its storage
quota is exhausted.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from charsheet.errors import StorageUnavailable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every store implementation must match these signatures
# ---------------------------------------------------------------------------

class KeyValueStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...

    def clear(self) -> None: ...


def _encoded_size(data: dict[str, str]) -> int:
    return sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in data.items())


# ---------------------------------------------------------------------------
# MemoryKeyValueStore
# ---------------------------------------------------------------------------

class MemoryKeyValueStore:
    """Dict-backed store.

    Args:
        quota_bytes: Maximum encoded size of all keys and values, or None
                     for no limit.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota_bytes

    def _check_quota(self, candidate: dict[str, str]) -> None:
        if self._quota is None:
            return
        size = _encoded_size(candidate)
        if size > self._quota:
            raise StorageUnavailable(
                f"Storage quota exceeded ({size} > {self._quota} bytes)"
            )

    def _commit(self, candidate: dict[str, str]) -> None:
        self._data = candidate

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            value = str(value)
        candidate = dict(self._data)
        candidate[key] = value
        self._check_quota(candidate)
        self._commit(candidate)

    def remove_item(self, key: str) -> None:
        if key not in self._data:
            return
        candidate = dict(self._data)
        del candidate[key]
        self._commit(candidate)

    def keys(self) -> list[str]:
        return list(self._data)

    def clear(self) -> None:
        self._commit({})

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


# ---------------------------------------------------------------------------
# JsonFileKeyValueStore
# ---------------------------------------------------------------------------

class JsonFileKeyValueStore(MemoryKeyValueStore):
    """Store persisted as a single JSON object in ``path``.

    The file is read once at construction. A file that cannot be parsed is
    moved aside to ``<name>.corrupt`` and the store starts empty, so a single
    bad write never prevents the application from starting.

    Writes go to a temporary file in the same directory followed by
    ``os.replace``; the in-memory view only changes once the file is on disk.
    """

    def __init__(self, path: Path, quota_bytes: int | None = None) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self._path = Path(path)
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            corrupt = self._path.with_name(self._path.name + ".corrupt")
            logger.error("Storage file %s is unreadable (%s); moved to %s", self._path, e, corrupt)
            try:
                os.replace(self._path, corrupt)
            except OSError:
                logger.error("Could not move corrupt storage file %s aside", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.error("Storage file %s does not hold an object; starting empty", self._path)
            return {}
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in raw.items()}

    def _commit(self, candidate: dict[str, str]) -> None:
        temp_path: Path | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self._path.parent, delete=False
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(json.dumps(candidate, indent=2))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._path)
            temp_path = None
        except OSError as e:
            raise StorageUnavailable(f"Cannot write storage file {self._path}: {e}") from e
        finally:
            if temp_path is not None:
                try:
                    temp_path.unlink()
                except FileNotFoundError:
                    pass
        self._data = candidate
