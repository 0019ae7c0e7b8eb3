"""
Vector Embedding Service

Embedding providers consumed by search and background indexing, plus the
cosine similarity used to rank semantic matches.

Providers:
    - SentenceTransformerProvider: local BAAI/bge-small-en-v1.5 (384 dims).
      Lazy-loaded on first use; inference runs in a worker thread so it
      never blocks the event loop. Disables itself for the process lifetime
      when the runtime cannot load the model at all.
    - OpenAIEmbeddingProvider: text-embedding-3-small, truncated to 384 dims.
    - MockEmbeddingProvider: deterministic pseudo-random vectors for local
      development without model downloads or API costs.
    - DisabledEmbeddingProvider: keyword-only deployments.

Pre-download the local model for production:
    python -c "from sentence_transformers import SentenceTransformer; \\
               SentenceTransformer('BAAI/bge-small-en-v1.5')"
"""

import asyncio
import hashlib
import logging
import random
import threading
from collections.abc import Sequence
from typing import Any, Protocol

import numpy as np
from openai import AsyncOpenAI

from notetree.core.config import Settings
from notetree.core.exceptions import ExternalUnavailableError
from notetree.models.note import EMBEDDING_DIMENSION

logger = logging.getLogger(__name__)

OPENAI_MODEL_NAME = "text-embedding-3-small"


class EmbeddingProvider(Protocol):
    """Contract the engine consumes; the model itself is external."""

    name: str

    def available(self) -> bool: ...

    @property
    def model_loaded(self) -> bool: ...

    async def embed(self, text: str) -> list[float]: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors, in [-1, 1].

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vectors must have same length ({va.shape} != {vb.shape})")
    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(va, vb) / magnitude)


class SentenceTransformerProvider:
    """
    Async embedding provider backed by a local sentence-transformers model.

    Usage::

        provider = SentenceTransformerProvider()
        vector = await provider.embed("hello world")
        assert len(vector) == 384
    """

    name = "local"

    def __init__(
        self,
        model_name: str = "BAAI/bge-small-en-v1.5",
        dimension: int = EMBEDDING_DIMENSION,
    ) -> None:
        self._model_name = model_name
        self._dimension = dimension
        self._model: Any = None
        self._disabled = False
        self._load_lock = threading.Lock()

    def available(self) -> bool:
        return not self._disabled

    @property
    def model_loaded(self) -> bool:
        return self._model is not None

    def _get_model(self) -> Any:
        """
        Get or lazily initialize the sentence-transformers model.

        The import is deferred so that ``sentence_transformers`` is not
        required at module-import time (keeps test collection fast).
        Missing libraries or native runtimes disable the provider; other
        failures (e.g. a flaky model download) are retried on the next call.
        """
        if self._disabled:
            raise ExternalUnavailableError("Embeddings are disabled")
        with self._load_lock:
            if self._model is None:
                logger.info("Loading embedding model: %s ...", self._model_name)
                try:
                    from sentence_transformers import SentenceTransformer

                    self._model = SentenceTransformer(self._model_name)
                except (ImportError, OSError) as e:
                    self._disabled = True
                    logger.warning(
                        "Embeddings disabled: model runtime unavailable (%s). "
                        "Keyword search still available.",
                        e,
                    )
                    raise ExternalUnavailableError("Embedding model unavailable") from e
                logger.info("Model loaded (dim=%d)", self._dimension)
        return self._model

    def _encode_sync(self, texts: list[str]) -> list[list[float]]:
        """
        Synchronous batch encoding.

        Always call via ``asyncio.to_thread``: this is CPU-bound.
        Returns L2-normalized vectors as native Python lists.
        """
        model = self._get_model()
        embeddings = model.encode(texts, normalize_embeddings=True)
        result: list[list[float]] = embeddings.tolist()
        return result

    async def embed(self, text: str) -> list[float]:
        results = await asyncio.to_thread(self._encode_sync, [text])
        return results[0]

    async def preload(self) -> None:
        """Load the model ahead of the first search (startup warm-up)."""
        try:
            await asyncio.to_thread(self._get_model)
        except ExternalUnavailableError:
            logger.warning("Embedding model preload failed; semantic search degraded")

    def reset(self) -> None:
        """Release the model from memory."""
        self._model = None
        logger.info("Embedding model released")


class OpenAIEmbeddingProvider:
    """
    OpenAI integration for generating text embeddings.

    Requests ``dimensions=384`` so vectors fit the same column as the
    local model and both providers are interchangeable.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = OPENAI_MODEL_NAME,
        dimension: int = EMBEDDING_DIMENSION,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._dimension = dimension
        self._client = AsyncOpenAI(api_key=api_key) if api_key else None

    def available(self) -> bool:
        return self._client is not None

    @property
    def model_loaded(self) -> bool:
        return self._client is not None

    async def embed(self, text: str) -> list[float]:
        if self._client is None:
            raise ExternalUnavailableError("OpenAI API key not configured")

        text = text.replace("\n", " ")  # OpenAI recommends single-line input
        try:
            response = await self._client.embeddings.create(
                input=[text],
                model=self._model,
                dimensions=self._dimension,
            )
        except Exception as e:
            logger.error("OpenAI embedding request failed: %s", e)
            raise ExternalUnavailableError("OpenAI embedding request failed") from e
        return response.data[0].embedding


class MockEmbeddingProvider:
    """
    Deterministic pseudo-random vectors (dev/test, no network).

    Same text always yields the same unit vector, so re-indexing is stable,
    but similarity between different texts carries no meaning.
    """

    name = "mock"

    def __init__(self, dimension: int = EMBEDDING_DIMENSION) -> None:
        self._dimension = dimension

    def available(self) -> bool:
        return True

    @property
    def model_loaded(self) -> bool:
        return True

    async def embed(self, text: str) -> list[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        rng = random.Random(seed)
        vector = np.array([rng.uniform(-1.0, 1.0) for _ in range(self._dimension)])
        return (vector / np.linalg.norm(vector)).tolist()


class DisabledEmbeddingProvider:
    """Provider for keyword-only deployments."""

    name = "disabled"

    def available(self) -> bool:
        return False

    @property
    def model_loaded(self) -> bool:
        return False

    async def embed(self, text: str) -> list[float]:
        raise ExternalUnavailableError("Embeddings are disabled")


def get_embedding_provider(config: Settings) -> EmbeddingProvider:
    """Build the provider selected by EMBEDDING_PROVIDER."""
    kind = config.EMBEDDING_PROVIDER.lower()
    if kind == "local":
        return SentenceTransformerProvider(config.EMBEDDING_MODEL)
    if kind == "openai":
        if not config.OPENAI_API_KEY:
            logger.warning("EMBEDDING_PROVIDER=openai but OPENAI_API_KEY is empty")
        return OpenAIEmbeddingProvider(config.OPENAI_API_KEY)
    if kind == "mock":
        return MockEmbeddingProvider()
    if kind == "disabled":
        return DisabledEmbeddingProvider()
    raise ValueError(f"Unknown EMBEDDING_PROVIDER: '{config.EMBEDDING_PROVIDER}'")
