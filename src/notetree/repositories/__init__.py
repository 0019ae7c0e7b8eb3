"""Repositories package."""

from notetree.repositories.base import BaseRepository
from notetree.repositories.notes import NoteRepository, note_repository
from notetree.repositories.settings import OwnerSettingsRepository, settings_repository
from notetree.repositories.versions import NoteVersionRepository, version_repository

__all__ = [
    "BaseRepository",
    "NoteRepository",
    "note_repository",
    "NoteVersionRepository",
    "version_repository",
    "OwnerSettingsRepository",
    "settings_repository",
]
