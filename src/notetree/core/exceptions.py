"""
Domain Exceptions

Error taxonomy for the notes engine. Services raise these; the HTTP layer
maps them to status codes in ``notetree.main``.

    NotFoundError            -> 404 (note, version or parent missing / foreign)
    InvalidOperationError    -> 400 (cycle, wrong lifecycle state, bad setting)
    ExternalUnavailableError -> never surfaced; search and indexing degrade
"""

from typing import Any


class NoteTreeError(Exception):
    """
    Base exception for all engine errors.

    Attributes:
        message: Human-readable error message.
        details: Machine-readable context (ids involved, offending values).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation used by the API error handlers."""
        payload: dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(NoteTreeError):
    """Note, version or parent doesn't exist or isn't owned by the caller."""

    @classmethod
    def note(cls, note_id: int) -> "NotFoundError":
        return cls("Note not found", {"note_id": note_id})

    @classmethod
    def version(cls, note_id: int, version_id: int) -> "NotFoundError":
        return cls("Version not found", {"note_id": note_id, "version_id": version_id})


class InvalidOperationError(NoteTreeError):
    """The request is well-formed but violates a tree or lifecycle invariant."""


class ExternalUnavailableError(NoteTreeError):
    """The embedding provider is down or disabled."""
