"""Live sheet endpoints — field edits feed the debounced auto-save."""

from fastapi import APIRouter, Depends, HTTPException

from backend.live_sheet import TRACKERS, LiveSheet
from charsheet.core import SheetCore

from .deps import get_core, get_sheet
from .models import FieldValue, TrackerState

router = APIRouter()


@router.get("/sheet")
async def get_sheet_state(sheet: LiveSheet = Depends(get_sheet)):
    """The unsaved field values and tracker states."""
    return sheet.snapshot()


@router.put("/sheet/fields/{path}")
async def set_field(
    path: str,
    body: FieldValue,
    sheet: LiveSheet = Depends(get_sheet),
    core: SheetCore = Depends(get_core),
):
    """Set a raw field value (e.g. "attributes.agility") and schedule a save."""
    if not sheet.known_field(path):
        raise HTTPException(404, f"Unknown field '{path}'")
    sheet.set_field(path, body.value)
    core.autosave.on_change(path)
    return {"path": path, "state": core.autosave.state.value}


@router.put("/sheet/trackers/{name}")
async def set_tracker(
    name: str,
    body: TrackerState,
    sheet: LiveSheet = Depends(get_sheet),
    core: SheetCore = Depends(get_core),
):
    """Set a tracker (hp, stress, armor, hope) and schedule a save."""
    if name not in TRACKERS:
        raise HTTPException(404, f"Unknown tracker '{name}'")
    sheet.set_tracker(name, body.model_dump(exclude_none=True))
    core.autosave.on_change(name)
    return {"name": name, "state": core.autosave.state.value}


@router.post("/sheet/save")
async def save_now(core: SheetCore = Depends(get_core)):
    """Manual save: cancel the debounce timer and save immediately."""
    if not core.store.current_id():
        raise HTTPException(409, "No active character")
    ok = await core.autosave.flush()
    return {"ok": ok, "status": core.status.last_event}
