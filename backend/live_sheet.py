"""Live sheet — the browser's unsaved form values, held server-side.

The browser PUTs raw field values (strings, as typed) and tracker states as
the player edits them. The auto-save controller reads them back through its
field bindings, coerces them and saves the current character.

When the current character changes, the buffer is cleared and projected from
the incoming record so the next save never carries the previous character's
values.
"""

from typing import Any

from charsheet.autosave import AutoSaveController, int_or, stripped
from charsheet.records import ATTRIBUTE_NAMES, read_path

# (path, coercion) for every form field the sheet binds
FIELD_BINDINGS = [
    ("name", stripped),
    ("level", int_or(1)),
    ("subtitle", stripped),
    ("domain1", stripped),
    ("domain2", stripped),
    ("evasion", int_or(10)),
    ("imageUrl", stripped),
    ("damage.minor", int_or(1)),
    ("damage.major", int_or(2)),
    *[(f"attributes.{name}", int_or(0)) for name in ATTRIBUTE_NAMES],
]

TRACKERS = ("hp", "stress", "armor", "hope")


class LiveSheet:
    def __init__(self) -> None:
        self.fields: dict[str, Any] = {}
        self.trackers: dict[str, Any] = {}

    def known_field(self, path: str) -> bool:
        return any(path == p for p, _ in FIELD_BINDINGS)

    def set_field(self, path: str, value: Any) -> None:
        self.fields[path] = value

    def set_tracker(self, name: str, state: Any) -> None:
        self.trackers[name] = state

    def project(self, record: dict) -> None:
        """Replace the buffer with the values of ``record``."""
        self.fields = {}
        for path, _ in FIELD_BINDINGS:
            value = read_path(record, path)
            if value is not None:
                self.fields[path] = str(value)
        self.trackers = {name: record[name] for name in TRACKERS if name in record}

    def snapshot(self) -> dict:
        return {"fields": dict(self.fields), "trackers": dict(self.trackers)}

    def bind(self, autosave: AutoSaveController) -> None:
        """Register every sheet field and tracker with the auto-save controller."""
        for path, coerce in FIELD_BINDINGS:
            autosave.bind_field(path, lambda p=path: self.fields.get(p), coerce)
        for name in TRACKERS:
            autosave.bind_tracker(name, lambda n=name: self.trackers.get(n))
        autosave.store.add_switch_listener(lambda _id, record: self.project(record))
