"""
Notes API Router

REST endpoints for the note tree, version history and hybrid search.

Static paths (/search, /favorites, ...) are declared before /{note_id} so
they are not captured by the id route. Domain errors raised by the services
are mapped to HTTP statuses by the handlers registered in ``notetree.main``.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from notetree.api.deps import (
    get_owner_id,
    get_search_service,
    get_trash_service,
    get_tree_service,
    get_version_service,
)
from notetree.core.database import get_db
from notetree.schemas.notes import (
    ExpandState,
    FavoriteState,
    MoveRequest,
    NoteCreate,
    NoteRead,
    NoteSummary,
    NoteTreeNode,
    NoteUpdate,
    ReorderRequest,
)
from notetree.schemas.search import IndexStatus, ReindexResponse, SearchResult
from notetree.schemas.trash import TrashResult
from notetree.schemas.versions import VersionRead, VersionSummary
from notetree.services.search import SearchService
from notetree.services.trash import TrashService
from notetree.services.tree import TreeService
from notetree.services.versions import VersionService

router = APIRouter()


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[NoteTreeNode])
async def read_tree(
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    """Full tree of the caller's active notes, siblings ordered by sort_order."""
    return await tree.get_tree(db, owner_id)


@router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    note: NoteCreate,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    """
    Create a note at the end of its sibling group.

    The embedding is generated in the background: the note is immediately
    usable but won't appear in semantic search until indexing completes.
    """
    return await tree.create_note(db, owner_id, **note.model_dump())


# ---------------------------------------------------------------------------
# Search & indexing
# ---------------------------------------------------------------------------


@router.get("/search", response_model=list[SearchResult])
async def search_notes(
    q: str = Query("", max_length=500, description="Search text (min 2 chars)"),
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    search: SearchService = Depends(get_search_service),
):
    """
    Hybrid search: exact matches first, then semantically similar notes.

    Degrades to keyword-only results when the embedding provider is down.
    """
    return await search.search(db, owner_id, q)


@router.get("/index-status", response_model=IndexStatus)
async def read_index_status(
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    search: SearchService = Depends(get_search_service),
):
    return await search.index_status(db, owner_id)


@router.post("/reindex", response_model=ReindexResponse, status_code=status.HTTP_202_ACCEPTED)
async def reindex_notes(
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    search: SearchService = Depends(get_search_service),
):
    """Queue every active note for re-embedding."""
    return ReindexResponse(queued=await search.reindex(db, owner_id))


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


@router.get("/favorites", response_model=list[NoteSummary])
async def read_favorites(
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    return await tree.list_favorites(db, owner_id)


@router.get("/recent", response_model=list[NoteSummary])
async def read_recent(
    limit: int = Query(10, ge=1, le=50),
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    """Recently edited notes, newest first."""
    return await tree.list_recent(db, owner_id, limit)


# ---------------------------------------------------------------------------
# Single note
# ---------------------------------------------------------------------------


@router.get("/{note_id}", response_model=NoteRead)
async def read_note(
    note_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    return await tree.get_note(db, owner_id, note_id)


@router.put("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: int,
    data: NoteUpdate,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    """
    Partial update. Changing content may record a version of the previous
    content (see the version history endpoints).
    """
    return await tree.update_note(db, owner_id, note_id, data)


@router.delete("/{note_id}", response_model=TrashResult)
async def delete_note(
    note_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    trash: TrashService = Depends(get_trash_service),
):
    """Move a note and all its descendants to trash."""
    return TrashResult(trashed=await trash.soft_delete(db, owner_id, note_id))


@router.put("/{note_id}/move", response_model=NoteRead)
async def move_note(
    note_id: int,
    move: MoveRequest,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    """
    Re-parent a note. Returns 400 when the target is the note itself or one
    of its descendants.
    """
    return await tree.move_note(db, owner_id, note_id, move.new_parent_id)


@router.put("/{note_id}/reorder", response_model=NoteRead)
async def reorder_note(
    note_id: int,
    reorder: ReorderRequest,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    return await tree.reorder_note(db, owner_id, note_id, reorder.sort_order)


@router.put("/{note_id}/toggle-expand", response_model=ExpandState)
async def toggle_expand(
    note_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    is_expanded = await tree.toggle_expand(db, owner_id, note_id)
    return ExpandState(id=note_id, is_expanded=is_expanded)


@router.put("/{note_id}/favorite", response_model=FavoriteState)
async def toggle_favorite(
    note_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    is_favorite = await tree.toggle_favorite(db, owner_id, note_id)
    return FavoriteState(id=note_id, is_favorite=is_favorite)


@router.post(
    "/{note_id}/duplicate",
    response_model=NoteRead,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_note(
    note_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    tree: TreeService = Depends(get_tree_service),
):
    """Copy a single note (not its children) next to the original."""
    return await tree.duplicate_note(db, owner_id, note_id)


# ---------------------------------------------------------------------------
# Version history
# ---------------------------------------------------------------------------


@router.get("/{note_id}/versions", response_model=list[VersionSummary])
async def read_versions(
    note_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    versions: VersionService = Depends(get_version_service),
):
    """Stored versions, newest first. The live note is not included."""
    return await versions.list_versions(db, owner_id, note_id)


@router.get("/{note_id}/versions/{version_id}", response_model=VersionRead)
async def read_version(
    note_id: int,
    version_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    versions: VersionService = Depends(get_version_service),
):
    return await versions.get_version(db, owner_id, note_id, version_id)


@router.post("/{note_id}/versions/{version_id}/restore", response_model=NoteRead)
async def restore_version(
    note_id: int,
    version_id: int,
    owner_id: int = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    versions: VersionService = Depends(get_version_service),
):
    return await versions.restore_version(db, owner_id, note_id, version_id)
