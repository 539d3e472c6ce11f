"""Proxied key-value access for the sheet's list modules (journal, equipment, ...)."""

from fastapi import APIRouter, Depends, HTTPException

from charsheet.core import SheetCore

from .deps import get_core
from .models import StorageValue

router = APIRouter()


def _refuse_reserved(core: SheetCore, key: str) -> None:
    if core.proxy.is_reserved(key):
        raise HTTPException(403, f"Key '{key}' is managed by the character store")


@router.get("/storage-debug")
async def storage_debug(core: SheetCore = Depends(get_core)):
    """Proxy and data-store debug information."""
    return {"proxy": core.proxy.debug_info(), "store": core.store.debug_info()}


@router.post("/storage/migrate/{character_id}")
async def migrate_storage(character_id: str, core: SheetCore = Depends(get_core)):
    """Copy legacy global values of scoped keys to a character's namespace."""
    return {"migrated": core.proxy.migrate(character_id)}


@router.get("/storage/{key}")
async def read_key(key: str, core: SheetCore = Depends(get_core)):
    """Read a key through the scoped proxy."""
    _refuse_reserved(core, key)
    value = core.proxy.read(key)
    if value is None:
        raise HTTPException(404, "Key not found")
    return {"key": key, "value": value}


@router.put("/storage/{key}")
async def write_key(key: str, body: StorageValue, core: SheetCore = Depends(get_core)):
    """Write a key through the scoped proxy."""
    _refuse_reserved(core, key)
    if not core.proxy.write(key, body.value):
        raise HTTPException(507, "Storage unavailable")
    return {"key": key, "value": body.value}


@router.delete("/storage/{key}")
async def erase_key(key: str, core: SheetCore = Depends(get_core)):
    """Remove a key through the scoped proxy."""
    _refuse_reserved(core, key)
    return {"ok": core.proxy.erase(key)}
