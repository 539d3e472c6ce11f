"""Save status channel.

Every save attempt emits ``saving`` followed by ``success`` or
``error(message)``; degraded but non-failing situations emit
``warning(message)``. Presentation code subscribes to render a transient
indicator; the channel also remembers the last event and the last success
time for status displays.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class SaveStatus(str, Enum):
    SAVING = "saving"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


class StatusEvent(BaseModel):
    """One notification on the status channel."""

    status: SaveStatus
    message: str = ""
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[StatusEvent], None]


class StatusChannel:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self.last_event: StatusEvent | None = None
        self.last_success_at: datetime | None = None

    def subscribe(self, fn: Subscriber) -> None:
        self._subscribers.append(fn)

    def unsubscribe(self, fn: Subscriber) -> None:
        if fn in self._subscribers:
            self._subscribers.remove(fn)

    def emit(self, status: SaveStatus, message: str = "") -> StatusEvent:
        event = StatusEvent(status=status, message=message)
        self.last_event = event
        if status is SaveStatus.SUCCESS:
            self.last_success_at = event.at
        for fn in list(self._subscribers):
            try:
                fn(event)
            except Exception as e:
                logger.warning("Status subscriber %r failed: %s", fn, e)
        return event

    def saving(self) -> StatusEvent:
        return self.emit(SaveStatus.SAVING, "Saving...")

    def success(self) -> StatusEvent:
        return self.emit(SaveStatus.SUCCESS, "Saved successfully!")

    def error(self, message: str) -> StatusEvent:
        return self.emit(SaveStatus.ERROR, f"Save failed: {message}")

    def warning(self, message: str) -> StatusEvent:
        return self.emit(SaveStatus.WARNING, message)
