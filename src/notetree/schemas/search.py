"""
Search Schemas

Hybrid search results and embedding index status.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """
    One search hit.

    ``score`` is the cosine similarity for semantic hits and ``None`` for
    keyword hits (exact matches are not scored).
    """

    id: int
    title: str
    title_emoji: str | None
    preview: str
    updated_at: datetime
    match_type: Literal["keyword", "semantic"]
    score: float | None = None


class IndexStatus(BaseModel):
    total: int = Field(..., description="Active notes")
    indexed: int = Field(..., description="Active notes with an embedding")
    pending: int
    available: bool = Field(..., description="Embedding provider usable")
    model_loaded: bool
    provider: str


class ReindexResponse(BaseModel):
    queued: int
