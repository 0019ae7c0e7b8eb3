"""
Trash API Router

Endpoints for trashed notes: listing, restore, permanent deletion and the
per-owner auto-delete threshold. Mounted under /api/v1/notes/trash.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.api.deps import get_owner_id, get_trash_service
from notetree.core.database import get_db
from notetree.schemas.trash import (
    AutoDeleteSettings,
    NoteIdsRequest,
    PurgeResult,
    RestoreResult,
    TrashItem,
)
from notetree.services.trash import TrashService

router = APIRouter()


@router.get("", response_model=list[TrashItem])
async def read_trash(
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    trash: TrashService = Depends(get_trash_service),
):
    """Trashed notes (newest deletion first) with their auto-delete deadline."""
    return await trash.list_trash(db, owner_id)


@router.post("/restore", response_model=RestoreResult)
async def restore_notes(
    request: NoteIdsRequest,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    trash: TrashService = Depends(get_trash_service),
):
    """Restore notes and their subtrees. All ids must be in trash."""
    return RestoreResult(restored=await trash.restore(db, owner_id, request.ids))


@router.post("/permanent-delete", response_model=PurgeResult)
async def permanently_delete_notes(
    request: NoteIdsRequest,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    trash: TrashService = Depends(get_trash_service),
):
    """Irreversibly delete trashed notes, their subtrees and version history."""
    return PurgeResult(deleted=await trash.purge(db, owner_id, request.ids))


@router.delete("/empty", response_model=PurgeResult)
async def empty_trash(
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    trash: TrashService = Depends(get_trash_service),
):
    return PurgeResult(deleted=await trash.empty_trash(db, owner_id))


@router.get("/settings", response_model=AutoDeleteSettings)
async def read_trash_settings(
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    trash: TrashService = Depends(get_trash_service),
):
    days = await trash.get_auto_delete_days(db, owner_id)
    return AutoDeleteSettings(auto_delete_days=days)


@router.put("/settings", response_model=AutoDeleteSettings)
async def update_trash_settings(
    settings_in: AutoDeleteSettings,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    trash: TrashService = Depends(get_trash_service),
):
    """
    Change the auto-delete threshold. Trashed notes already older than the
    new threshold are purged immediately.
    """
    await trash.set_auto_delete_days(db, owner_id, settings_in.auto_delete_days)
    return settings_in
