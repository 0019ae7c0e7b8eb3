"""create notes, note_versions and owner_settings

Revision ID: 3c7e1f0a9b2d
Revises:
Create Date: 2026-10-17 09:12:44.208311

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision: str = "3c7e1f0a9b2d"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

editor_width = sa.Enum("centered", "full", name="editor_width")


def upgrade() -> None:
    """Create the note tree, version history and per-owner settings tables."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # -- notes table --
    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("title_emoji", sa.String(32), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_expanded", sa.Boolean(), nullable=False),
        sa.Column("is_favorite", sa.Boolean(), nullable=False),
        sa.Column("editor_width", editor_width, nullable=False),
        sa.Column("embedding", Vector(384), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["parent_id"], ["notes.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notes_id", "notes", ["id"])
    op.create_index("ix_notes_owner_id", "notes", ["owner_id"])
    op.create_index("ix_notes_parent_id", "notes", ["parent_id"])
    op.create_index("ix_notes_owner_parent", "notes", ["owner_id", "parent_id"])
    op.create_index("ix_notes_owner_deleted_at", "notes", ["owner_id", "deleted_at"])

    # -- note_versions table --
    op.create_table(
        "note_versions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("note_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_note_versions_note_id", "note_versions", ["note_id"])
    op.create_index("ix_note_versions_owner_id", "note_versions", ["owner_id"])
    op.create_index(
        "ix_note_versions_note_id_version",
        "note_versions",
        ["note_id", "version_number"],
        unique=True,
    )

    # -- owner_settings table --
    op.create_table(
        "owner_settings",
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("auto_delete_days", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("owner_id"),
    )

    # HNSW index for cosine similarity over note embeddings
    op.execute(
        """
        CREATE INDEX ix_notes_embedding_hnsw
        ON notes
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
        """
    )


def downgrade() -> None:
    """Drop all NoteTree tables."""
    op.execute("DROP INDEX IF EXISTS ix_notes_embedding_hnsw")
    op.drop_table("owner_settings")
    op.drop_index("ix_note_versions_note_id_version", table_name="note_versions")
    op.drop_index("ix_note_versions_owner_id", table_name="note_versions")
    op.drop_index("ix_note_versions_note_id", table_name="note_versions")
    op.drop_table("note_versions")
    op.drop_index("ix_notes_owner_deleted_at", table_name="notes")
    op.drop_index("ix_notes_owner_parent", table_name="notes")
    op.drop_index("ix_notes_parent_id", table_name="notes")
    op.drop_index("ix_notes_owner_id", table_name="notes")
    op.drop_index("ix_notes_id", table_name="notes")
    op.drop_table("notes")
    editor_width.drop(op.get_bind(), checkfirst=True)
