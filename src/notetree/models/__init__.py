"""Models package - re-exports all models for convenient imports."""

from notetree.models.base import Base, TimestampMixin
from notetree.models.note import EMBEDDING_DIMENSION, EditorWidth, Note
from notetree.models.note_version import NoteVersion
from notetree.models.owner_settings import (
    AUTO_DELETE_DAYS_MAX,
    AUTO_DELETE_DAYS_MIN,
    OwnerSettings,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "EMBEDDING_DIMENSION",
    "EditorWidth",
    "Note",
    "NoteVersion",
    "OwnerSettings",
    "AUTO_DELETE_DAYS_MIN",
    "AUTO_DELETE_DAYS_MAX",
]
