"""Character record schema — the canonical default, merging and reconciliation.

One character is one nested JSON object. There is exactly one canonical
default shape (``default_record()``); every persisted record must be
coercible to it.

Deep merge (``deep_merge``) is the single merge rule used everywhere:

    for every key of target and source:
      both values are objects (dicts)  → recurse
      otherwise                        → source value replaces target value

Lists are never merged element-wise. Patching ``hp.circles`` replaces the
whole list, so a shorter list does not keep trailing circles.

Completion (``complete_record``) is ``deep_merge(default_record(), stored)``:
missing keys are filled from the default at any depth, keys the stored record
defines are kept as they are, and unknown extra keys survive.

Reconciliation (``reconcile``) enforces the tracker and hope invariants:

  hp / stress / armor   ``circles`` is the source of truth when it is a list;
                        ``max`` = len(circles), ``current`` = active count.
                        Without circles they are rebuilt from current/max.
                        Armor also mirrors activeCount / totalCircles.
  hope                  max clamped to [HOPE_MIN, HOPE_MAX], current to
                        [0, max]. A bare number is read as ``current``.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

RECORD_VERSION = "1.0"

TRACKER_NAMES = ("hp", "stress", "armor")

ATTRIBUTE_NAMES = ("agility", "strength", "finesse", "instinct", "presence", "knowledge")

HOPE_MIN = 0
HOPE_MAX = 10


def _circles(count: int, active: bool) -> list[dict[str, bool]]:
    return [{"active": active} for _ in range(count)]


_DEFAULT_RECORD: dict[str, Any] = {
    "id": None,
    # Display
    "name": "New Character",
    "subtitle": "",
    "level": 1,
    "platform": "Daggerheart",
    "imageUrl": "",
    "domain1": "Domain 1",
    "domain2": "Domain 2",
    # Attributes
    "attributes": {name: 0 for name in ATTRIBUTE_NAMES},
    # Combat
    "evasion": 10,
    "hp": {"current": 4, "max": 4, "circles": _circles(4, True)},
    "stress": {"current": 0, "max": 4, "circles": _circles(4, False)},
    "armor": {
        "current": 0,
        "max": 4,
        "circles": _circles(4, False),
        "activeCount": 0,
        "totalCircles": 4,
    },
    "damage": {"minor": 1, "major": 2},
    "hope": {"current": 0, "max": 6},
    # Collections
    "equipment": {
        "backpackType": "None",
        "backpackEnabled": True,
        "items": [],
        "activeWeapons": [],
        "activeArmor": [],
    },
    "journal": {"entries": []},
    "details": {"background": "", "personality": "", "connections": "", "notes": ""},
    "experiences": [],
    "downtime": {"projects": [], "activities": []},
    # Per-character UI preferences
    "ui": {"sectionOrder": None, "colors": {}, "theme": None},
    # Metadata
    "createdAt": None,
    "lastModified": None,
    "version": RECORD_VERSION,
}


def default_record() -> dict[str, Any]:
    """A fresh deep copy of the canonical default record."""
    return copy.deepcopy(_DEFAULT_RECORD)


def now_iso() -> str:
    """UTC timestamp in the ``2024-01-31T12:00:00.000Z`` form."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict: ``source`` merged over ``target``. Neither is mutated."""
    result = copy.deepcopy(target)
    for key, value in source.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def complete_record(stored: dict[str, Any]) -> dict[str, Any]:
    """Fill keys missing from ``stored`` with canonical defaults, recursively."""
    return deep_merge(default_record(), stored)


def assign_path(patch: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Set ``value`` at a dotted ``path`` inside ``patch``, creating objects on the way.

    assign_path({}, "attributes.agility", 2) → {"attributes": {"agility": 2}}
    """
    parts = path.split(".")
    node = patch
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value
    return patch


def read_path(record: dict[str, Any], path: str, default: Any = None) -> Any:
    node: Any = record
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def _as_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _is_active(circle: Any) -> bool:
    if isinstance(circle, dict):
        return bool(circle.get("active"))
    return bool(circle)


def normalize_tracker(tracker: Any, name: str) -> dict[str, Any]:
    """Bring one tracker to ``{current, max, circles}`` with circles authoritative."""
    fallback = _DEFAULT_RECORD[name]
    result = dict(tracker) if isinstance(tracker, dict) else {}
    circles = result.get("circles")
    if isinstance(circles, list):
        result["circles"] = [{"active": _is_active(c)} for c in circles]
        result["max"] = len(result["circles"])
        result["current"] = sum(1 for c in result["circles"] if c["active"])
    else:
        maximum = max(0, _as_int(result.get("max"), fallback["max"]))
        current = min(max(0, _as_int(result.get("current"), 0)), maximum)
        result["max"] = maximum
        result["current"] = current
        result["circles"] = [{"active": i < current} for i in range(maximum)]
    if name == "armor":
        result["activeCount"] = result["current"]
        result["totalCircles"] = result["max"]
    return result


def normalize_hope(hope: Any) -> dict[str, int]:
    fallback = _DEFAULT_RECORD["hope"]
    if isinstance(hope, dict):
        current = _as_int(hope.get("current"), 0)
        maximum = _as_int(hope.get("max"), fallback["max"])
    else:
        current = _as_int(hope, 0)
        maximum = fallback["max"]
    maximum = min(max(maximum, HOPE_MIN), HOPE_MAX)
    current = min(max(current, 0), maximum)
    return {"current": current, "max": maximum}


def reconcile(record: dict[str, Any]) -> dict[str, Any]:
    """Enforce tracker and hope invariants in place; returns ``record``."""
    for name in TRACKER_NAMES:
        if name in record:
            record[name] = normalize_tracker(record[name], name)
    if "hope" in record:
        record["hope"] = normalize_hope(record["hope"])
    return record


def expand_tracker_patch(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Rebuild circles for tracker patches that give only ``current``/``max``.

    Without this the circles inherited from ``base`` would win during
    reconciliation and the new count would be lost. Returns a new patch.
    """
    result = dict(patch)
    for name in TRACKER_NAMES:
        tracker = patch.get(name)
        if not isinstance(tracker, dict) or "circles" in tracker:
            continue
        if "current" not in tracker and "max" not in tracker:
            continue
        previous = base.get(name) if isinstance(base.get(name), dict) else {}
        merged = {k: v for k, v in previous.items() if k != "circles"}
        merged.update(tracker)
        result[name] = normalize_tracker(merged, name)
    return result


def summarize(record: dict[str, Any]) -> dict[str, Any]:
    """The character-list view of a record."""
    return {
        "id": record.get("id"),
        "name": record.get("name") or "Unnamed Character",
        "level": record.get("level"),
        "subtitle": record.get("subtitle", ""),
        "imageUrl": record.get("imageUrl", ""),
        "platform": record.get("platform", "Daggerheart"),
        "createdAt": record.get("createdAt"),
        "lastModified": record.get("lastModified"),
    }
