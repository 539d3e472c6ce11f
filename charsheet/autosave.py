"""Debounced auto-save controller.

Turns a stream of fine-grained field-change notifications into infrequent,
complete saves of the current character.

State machine:

    IDLE ──change──▶ PENDING ──timer──▶ SAVING ──▶ IDLE
                       ▲   │                  └──▶ FAILED (retry pending)
                       └───┘ change resets the timer

- All bindings share one debounce timer; a change while PENDING restarts it.
- A change while SAVING is queued; once the save completes the controller
  re-enters PENDING, so the latest state is always persisted eventually.
- The save always targets whichever character is current when it runs.
- ``flush()`` cancels the timer and saves immediately.
- A background tick saves a full snapshot every ``snapshot_interval``
  seconds, independent of the debounce path.
- A failed save is reported on the status channel and stays pending; the
  next change or tick retries it. There is no backoff and no give-up.

Everything runs on the asyncio event loop. The only suspension point is the
optional remote save.

Field bindings map a dotted record path to a reader for the raw value and a
coercion function:

    controller.bind_field("attributes.agility", lambda: sheet["agility"], int_or(0))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from charsheet.datastore import EntityDataStore
from charsheet.errors import SaveFailed
from charsheet.records import assign_path, normalize_hope, normalize_tracker
from charsheet.remote import RemoteSaver
from charsheet.status import StatusChannel

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 1.0
DEFAULT_SNAPSHOT_INTERVAL = 10.0

TRACKER_SOURCES = ("hp", "stress", "armor", "hope")


# ---------------------------------------------------------------------------
# Coercions
# ---------------------------------------------------------------------------

def identity(value: Any) -> Any:
    return value


def stripped(value: Any) -> str:
    return str(value).strip()


def int_or(default: int) -> Callable[[Any], int]:
    """Coercion that parses an int, falling back to ``default``."""

    def coerce(value: Any) -> int:
        try:
            return int(str(value).strip())
        except ValueError:
            return default

    return coerce


# ---------------------------------------------------------------------------
# Bindings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldBinding:
    path: str
    read: Callable[[], Any]
    coerce: Callable[[Any], Any] = identity


class SaveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVING = "saving"
    FAILED = "failed"


class AutoSaveController:
    """Debounces change notifications into saves of the current character.

    Registers itself with the store as the live-state source, so a character
    switch persists in-flight edits of the outgoing character first.

    Args:
        store:             Entity data store performing the saves.
        status:            Status channel receiving save outcomes.
        delay:             Debounce window in seconds.
        snapshot_interval: Seconds between background snapshot saves; 0
                           disables the background tick.
        remote:            Optional remote collaborator, called with the
                           complete record after each local save.
    """

    def __init__(
        self,
        store: EntityDataStore,
        status: StatusChannel | None = None,
        delay: float = DEFAULT_DELAY,
        snapshot_interval: float = DEFAULT_SNAPSHOT_INTERVAL,
        remote: RemoteSaver | None = None,
    ) -> None:
        self.store = store
        self.status = status or StatusChannel()
        self.delay = delay
        self.snapshot_interval = snapshot_interval
        self.remote = remote

        self._bindings: dict[str, FieldBinding] = {}
        self._trackers: dict[str, Callable[[], Any]] = {}

        self.state = SaveState.IDLE
        self.retry_pending = False
        self.save_count = 0
        self.last_saved_at: datetime | None = None

        self._timer: asyncio.TimerHandle | None = None
        self._save_task: asyncio.Task | None = None
        self._tick_task: asyncio.Task | None = None
        self._queued = False

        store.set_live_source(self.collect_patch)
        store.add_switch_listener(self._on_switch)

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    @property
    def bindings(self) -> dict[str, FieldBinding]:
        return dict(self._bindings)

    def bind_field(
        self,
        path: str,
        read: Callable[[], Any],
        coerce: Callable[[Any], Any] = identity,
    ) -> FieldBinding:
        binding = FieldBinding(path=path, read=read, coerce=coerce)
        self._bindings[path] = binding
        return binding

    def unbind_field(self, path: str) -> None:
        self._bindings.pop(path, None)

    def bind_tracker(self, name: str, read: Callable[[], Any]) -> None:
        """Register out-of-band tracker state (hp, stress, armor or hope)."""
        if name not in TRACKER_SOURCES:
            raise ValueError(f"Unknown tracker {name!r}; expected one of {TRACKER_SOURCES}")
        self._trackers[name] = read

    def collect_patch(self) -> dict[str, Any]:
        """Read every binding and tracker into a nested partial record.

        A reader returning None means the field is absent and is skipped; a
        reader or coercion that raises is logged and skipped.
        """
        patch: dict[str, Any] = {}
        for binding in list(self._bindings.values()):
            try:
                raw = binding.read()
                if raw is None:
                    continue
                value = binding.coerce(raw)
            except Exception as e:
                logger.warning("Skipping field %s: %s", binding.path, e)
                continue
            assign_path(patch, binding.path, value)

        for name, read in list(self._trackers.items()):
            try:
                state = read()
            except Exception as e:
                logger.warning("Skipping tracker %s: %s", name, e)
                continue
            if state is None:
                continue
            patch[name] = normalize_hope(state) if name == "hope" else normalize_tracker(state, name)
        return patch

    # ------------------------------------------------------------------
    # Debounce
    # ------------------------------------------------------------------

    def on_change(self, path: str | None = None) -> None:
        """Note a change; must be called from within the running event loop."""
        logger.debug("change %s (state=%s)", path or "*", self.state.value)
        if self.state is SaveState.SAVING:
            self._queued = True
            return
        self._schedule()

    def _schedule(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)
        self.state = SaveState.PENDING

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if self.state is SaveState.SAVING:
            self._queued = True
            return
        self._start_cycle()

    def _start_cycle(self) -> asyncio.Task:
        self.state = SaveState.SAVING
        task = asyncio.get_running_loop().create_task(self._run_cycle())
        self._save_task = task
        task.add_done_callback(self._clear_task)
        return task

    def _clear_task(self, task: asyncio.Task) -> None:
        if self._save_task is task:
            self._save_task = None

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def _run_cycle(self) -> bool:
        try:
            return await self._perform_save()
        finally:
            if self._queued:
                self._queued = False
                self._schedule()

    async def _perform_save(self) -> bool:
        entity_id = self.store.current_id()
        if not entity_id:
            logger.warning("Auto-save skipped: no active character")
            self.status.warning("No active character")
            self.state = SaveState.PENDING if self._timer is not None else SaveState.IDLE
            return False

        self.status.saving()
        try:
            patch = self.collect_patch()
            if not self.store.update(entity_id, patch):
                raise SaveFailed(f"Could not persist character {entity_id}")
            if self.remote is not None:
                await self.remote.save(entity_id, self.store.load(entity_id))
        except SaveFailed as e:
            logger.warning("Auto-save failed for %s: %s", entity_id, e)
            self.state = SaveState.FAILED
            self.retry_pending = True
            self.status.error(str(e))
            return False

        self.save_count += 1
        self.last_saved_at = datetime.now(timezone.utc)
        self.retry_pending = False
        self.state = SaveState.PENDING if self._timer is not None else SaveState.IDLE
        logger.info("Auto-saved character %s", entity_id)
        self.status.success()
        return True

    async def flush(self) -> bool:
        """Cancel the debounce timer and save now."""
        self._cancel_timer()
        if self._save_task is not None:
            await self._save_task
            self._cancel_timer()
        self._queued = False
        self.state = SaveState.SAVING
        return await self._run_cycle()

    # ------------------------------------------------------------------
    # Background tick
    # ------------------------------------------------------------------

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.snapshot_interval)
            if self.state is SaveState.SAVING or not self.store.current_id():
                continue
            logger.debug("background snapshot save")
            # Stopping the tick must not cancel a save already under way
            await asyncio.shield(self._start_cycle())

    def start(self) -> None:
        if self._tick_task is not None or self.snapshot_interval <= 0:
            return
        self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())

    async def stop(self) -> None:
        """Stop the background tick and the timer; wait for an in-flight save."""
        self._cancel_timer()
        if self._tick_task is not None:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None
        if self._save_task is not None:
            await self._save_task
        self._cancel_timer()
        self._queued = False
        if self.state is SaveState.PENDING:
            self.state = SaveState.IDLE

    # ------------------------------------------------------------------
    # Switching
    # ------------------------------------------------------------------

    def _on_switch(self, entity_id: str, record: dict[str, Any]) -> None:
        # The outgoing character's edits were persisted by the switch itself.
        self._cancel_timer()
        self.retry_pending = False
        if self.state in (SaveState.PENDING, SaveState.FAILED):
            self.state = SaveState.IDLE
