"""
Note Model

Core entity for the notes hierarchy: an adjacency-list tree per owner with
soft-delete support and vector embeddings for semantic search.
Uses pgvector extension for the embedding column.
"""

import enum
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from notetree.models.base import Base, TimestampMixin

# Output size of BAAI/bge-small-en-v1.5; OpenAI embeddings are requested at this size
EMBEDDING_DIMENSION = 384


class EditorWidth(str, enum.Enum):
    """Persisted editor layout preference."""

    CENTERED = "centered"
    FULL = "full"


class Note(Base, TimestampMixin):
    """
    Note entity with hierarchy, lifecycle and embedding support.

    Attributes:
        id: Primary key.
        owner_id: Owning user; every query is scoped by it.
        parent_id: Parent note (NULL for roots). Never a descendant of id.
        title: Note title.
        title_emoji: Optional emoji shown before the title.
        content: Rich-text markup blob.
        sort_order: Position among siblings; gaps allowed, ties by id.
        is_expanded: Tree UI hint.
        is_favorite: Pinned in the favorites list.
        editor_width: Editor layout preference.
        embedding: 384-dim vector (nullable until processed).
        deleted_at: Soft-delete marker; non-NULL means the note is in trash.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_owner_parent", "owner_id", "parent_id"),
        Index("ix_notes_owner_deleted_at", "owner_id", "deleted_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), default="Untitled")
    title_emoji: Mapped[str | None] = mapped_column(String(32), nullable=True)
    content: Mapped[str] = mapped_column(Text, default="")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_expanded: Mapped[bool] = mapped_column(Boolean, default=True)
    is_favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    editor_width: Mapped[EditorWidth] = mapped_column(
        Enum(
            EditorWidth,
            name="editor_width",
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
        ),
        default=EditorWidth.CENTERED,
    )
    # Nullable: embedding is generated async after create/update
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIMENSION), nullable=True
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, owner={self.owner_id}, title='{self.title[:20]}...')>"
