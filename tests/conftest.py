"""
Pytest Configuration and Fixtures

Unit tests run against a throwaway SQLite database (aiosqlite) with a fake
clock and a deterministic embedding provider. Live tests under
tests/integration/ need the Docker stack and are marked ``live``.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be set before any notetree imports.
#
# 1. Load .env first so that Docker-matching credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "notetree",
    "POSTGRES_PASSWORD": "notetree_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "notetree_db",
    "EMBEDDING_PROVIDER": "mock",
    "EMBEDDING_PRELOAD": "false",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import math  # noqa: E402
import re  # noqa: E402
import time  # noqa: E402
from collections.abc import AsyncGenerator, Generator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from notetree.core.exceptions import ExternalUnavailableError  # noqa: E402
from notetree.models import EMBEDDING_DIMENSION, Base, Note  # noqa: E402
from notetree.repositories import note_repository  # noqa: E402
from notetree.services.text import prepare_note_text  # noqa: E402

BASE_URL = "http://localhost:8000"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeEmbeddingProvider:
    """
    Bag-of-words embeddings: every distinct word gets its own dimension.

    Texts sharing no words have similarity 0, texts sharing most words score
    high, which makes semantic ranking predictable in tests.
    """

    name = "fake"

    def __init__(self) -> None:
        self.vocabulary: dict[str, int] = {}
        self.is_available = True
        self.fail = False
        self.calls: list[str] = []

    def available(self) -> bool:
        return self.is_available

    @property
    def model_loaded(self) -> bool:
        return self.is_available

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise ExternalUnavailableError("Embedding backend down")

        vector = [0.0] * EMBEDDING_DIMENSION
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            index = self.vocabulary.setdefault(word, len(self.vocabulary) % EMBEDDING_DIMENSION)
            vector[index] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Fresh SQLite database per test.

    File-backed rather than :memory: so background indexing sessions get
    their own connection, as they do against PostgreSQL.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notetree.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def embed_note(session: AsyncSession, provider: FakeEmbeddingProvider):
    """Store a note's embedding through the test session (no background task)."""

    async def _embed(note: Note) -> None:
        vector = await provider.embed(prepare_note_text(note.title, note.content))
        await note_repository.update_embedding(session, note.id, vector)

    return _embed


# ---------------------------------------------------------------------------
# Live stack (tests/integration, marked "live")
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def wait_for_api():
    """
    Block until the API is ready or timeout expires.

    Polls /health endpoint with 1s intervals for up to 30s.
    Fails the test session if API is unreachable (Docker likely not running).
    """
    url = f"{BASE_URL}/health"
    timeout = 30
    start = time.time()

    print("\n[Test] Waiting for API...")
    while time.time() - start < timeout:
        try:
            res = httpx.get(url, timeout=1.0)
            if res.status_code == 200:
                print("API Ready")
                return
        except httpx.RequestError:
            time.sleep(1)

    pytest.fail("API unreachable. Docker is likely down.")


@pytest.fixture(scope="session")
def api_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """
    Pre-configured HTTP client for live tests.

    Base URL points to /api/v1 for cleaner test assertions.
    """
    with httpx.Client(base_url=f"{BASE_URL}/api/v1", timeout=10.0) as client:
        yield client
