"""
Note Schemas

Pydantic models for Note API request/response validation.
Separates concerns: NoteCreate (input), NoteRead (output), NoteUpdate (partial),
NoteTreeNode (nested tree payload).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from notetree.models import EditorWidth


class NoteCreate(BaseModel):
    """Request schema for POST /notes."""

    parent_id: int | None = Field(
        default=None,
        description="Parent note; omit to create a root note",
    )
    title: str = Field(default="Untitled", max_length=500)
    title_emoji: str | None = Field(default=None, max_length=32)
    content: str = Field(default="", description="Rich-text markup")


class NoteUpdate(BaseModel):
    """
    Request schema for PUT /notes/{id}.

    All fields optional to support partial updates. Sending
    ``"title_emoji": null`` explicitly clears the emoji.
    """

    title: str | None = Field(default=None, max_length=500)
    title_emoji: str | None = Field(default=None, max_length=32)
    content: str | None = None
    editor_width: EditorWidth | None = None


class NoteRead(BaseModel):
    """Full Note representation (embedding excluded)."""

    id: int
    parent_id: int | None
    title: str
    title_emoji: str | None
    content: str
    sort_order: int
    is_expanded: bool
    is_favorite: bool
    editor_width: EditorWidth
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)  # Enables ORM model conversion


class NoteSummary(BaseModel):
    """Lightweight entry for favorites and recently-edited lists."""

    id: int
    parent_id: int | None
    title: str
    title_emoji: str | None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NoteTreeNode(BaseModel):
    """One node of the sidebar tree; children are already ordered."""

    id: int
    parent_id: int | None
    title: str
    title_emoji: str | None
    sort_order: int
    is_expanded: bool
    is_favorite: bool
    children: list["NoteTreeNode"] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class MoveRequest(BaseModel):
    new_parent_id: int | None = Field(
        default=None,
        description="Target parent; null moves the note to the root level",
    )


class ReorderRequest(BaseModel):
    sort_order: int


class ExpandState(BaseModel):
    id: int
    is_expanded: bool


class FavoriteState(BaseModel):
    id: int
    is_favorite: bool
