"""Character CRUD, switching and logout endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from backend.live_sheet import LiveSheet
from charsheet.core import SheetCore

from .deps import get_core, get_sheet
from .models import CreateCharacter

router = APIRouter()


@router.get("/characters")
async def list_characters(core: SheetCore = Depends(get_core)):
    """List character summaries, newest first."""
    return core.store.list_summaries()


@router.post("/characters", status_code=201)
async def create_character(body: CreateCharacter, core: SheetCore = Depends(get_core)):
    """Create a character from a seed; the id is generated."""
    seed = dict(body.characterData or {})
    seed.update(body.model_dump(exclude_none=True, exclude={"characterData"}))
    return core.store.create_character(seed)


@router.get("/characters/active")
async def get_active_character(core: SheetCore = Depends(get_core)):
    """Get the current character's record."""
    record = core.store.current_record()
    if record is None:
        raise HTTPException(404, "No active character")
    return record


@router.get("/characters/{character_id}")
async def get_character(character_id: str, core: SheetCore = Depends(get_core)):
    """Load a single character record."""
    if not core.store.exists(character_id):
        raise HTTPException(404, "Character not found")
    return core.store.load(character_id)


@router.patch("/characters/{character_id}")
async def update_character(
    character_id: str,
    body: dict,
    core: SheetCore = Depends(get_core),
    sheet: LiveSheet = Depends(get_sheet),
):
    """Deep-merge a partial record into a character.

    Patching the current character also refreshes the live sheet, otherwise
    the next auto-save would write the old field values back.
    """
    if not core.store.exists(character_id):
        raise HTTPException(404, "Character not found")
    saved = core.store.update(character_id, body)
    record = core.store.load(character_id)
    if character_id == core.store.current_id():
        sheet.project(record)
    if not saved:
        raise HTTPException(507, "Storage unavailable; change kept in memory only")
    return record


@router.delete("/characters/{character_id}")
async def delete_character(character_id: str, core: SheetCore = Depends(get_core)):
    """Delete a character record and every key scoped to it."""
    if not core.store.exists(character_id):
        raise HTTPException(404, "Character not found")
    core.store.remove(character_id)
    purged = core.proxy.purge_entity(character_id)
    return {"ok": True, "purged": purged}


@router.post("/characters/{character_id}/switch")
async def switch_character(character_id: str, core: SheetCore = Depends(get_core)):
    """Make a character current; the outgoing one is saved first."""
    if not core.store.exists(character_id):
        raise HTTPException(404, "Character not found")
    return core.store.switch_to(character_id)


@router.post("/session/logout")
async def logout(core: SheetCore = Depends(get_core)):
    """Save the current character and clear the current-character pointer."""
    saved = False
    if core.store.current_id():
        saved = await core.autosave.flush()
    core.session.clear()
    return {"ok": True, "saved": saved}
