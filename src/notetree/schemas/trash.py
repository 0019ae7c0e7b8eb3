"""Trash Schemas"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from notetree.models import AUTO_DELETE_DAYS_MAX, AUTO_DELETE_DAYS_MIN


class TrashItem(BaseModel):
    """A trashed note and the moment auto-delete will purge it."""

    id: int
    parent_id: int | None
    title: str
    title_emoji: str | None
    deleted_at: datetime
    purge_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NoteIdsRequest(BaseModel):
    """Request body for bulk restore / permanent delete."""

    ids: list[int] = Field(..., min_length=1)


class TrashResult(BaseModel):
    trashed: int = Field(..., description="Notes moved to trash, descendants included")


class RestoreResult(BaseModel):
    restored: int


class PurgeResult(BaseModel):
    deleted: int = Field(..., description="Rows removed, descendants included")


class AutoDeleteSettings(BaseModel):
    auto_delete_days: int = Field(
        ...,
        ge=AUTO_DELETE_DAYS_MIN,
        le=AUTO_DELETE_DAYS_MAX,
        description="Days a note stays in trash before permanent deletion",
    )
