"""Health check and save status endpoints."""

from fastapi import APIRouter, Depends

from charsheet.core import SheetCore

from .deps import get_core

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/save-status")
async def save_status(core: SheetCore = Depends(get_core)):
    """Last status event, controller state and save counters."""
    autosave = core.autosave
    return {
        "state": autosave.state.value,
        "retry_pending": autosave.retry_pending,
        "save_count": autosave.save_count,
        "last_saved_at": autosave.last_saved_at,
        "last_event": core.status.last_event,
        "current_character_id": core.store.current_id(),
    }
