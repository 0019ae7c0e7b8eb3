"""
Text Helpers

Pure functions over note content: markup stripping for embeddings and
previews, content hashing for version dedup, and search preview windows.
"""

import hashlib
import html
import re
from typing import Final

_TAG_RE: Final = re.compile(r"<[^>]*>")
_WHITESPACE_RE: Final = re.compile(r"\s+")

# Model context is ~512 tokens; anything past this never reaches the encoder
MAX_EMBEDDING_CHARS: Final[int] = 8000

ELLIPSIS: Final[str] = "..."


def strip_markup(content: str) -> str:
    """
    Reduce rich-text markup to plain, single-spaced text.

    Tags become spaces (so adjacent block elements don't glue words together),
    entities are decoded, whitespace is collapsed.
    """
    text = _TAG_RE.sub(" ", content or "")
    text = html.unescape(text).replace("\xa0", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def prepare_note_text(title: str, content: str) -> str:
    """Text handed to the embedding provider for a note."""
    text = f"{title}\n\n{strip_markup(content)}"
    return text[:MAX_EMBEDDING_CHARS]


def content_hash(content: str) -> str:
    """SHA-256 hex digest of note content (version dedup key)."""
    return hashlib.sha256((content or "").encode("utf-8")).hexdigest()


def build_preview(content: str, query: str, radius: int = 40) -> str:
    """
    Plain-text snippet for a search hit.

    If the query occurs in the stripped content, return a window of
    ``radius`` characters on each side of the first occurrence, with
    ellipses on the truncated sides. Otherwise return the first
    ``2 * radius`` characters.
    """
    text = strip_markup(content)
    match = re.search(re.escape(query), text, flags=re.IGNORECASE) if query else None

    if match is None:
        head_length = radius * 2
        return text[:head_length] + (ELLIPSIS if len(text) > head_length else "")

    start = max(0, match.start() - radius)
    end = min(len(text), match.end() + radius)
    return (
        (ELLIPSIS if start > 0 else "")
        + text[start:end]
        + (ELLIPSIS if end < len(text) else "")
    )
