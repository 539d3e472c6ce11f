"""FastAPI API endpoints under /api.

Endpoint groups: health + save status, characters (CRUD, switch, logout),
storage (proxied scoped keys, migration, debug), sheet (live field values,
trackers, manual save). Everything operates on the single SheetCore stored on
``app.state.core``.
"""

from fastapi import APIRouter

from .characters import router as characters_router
from .settings import router as settings_router
from .sheet import router as sheet_router
from .storage import router as storage_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(characters_router)
router.include_router(storage_router)
router.include_router(sheet_router)
