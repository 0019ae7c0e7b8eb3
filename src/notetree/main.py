"""
NoteTree Backend Application

FastAPI application entrypoint with async lifespan management.
Handles startup checks (database, Redis), wires the embedding provider and
background indexer into the services, and shuts them down gracefully.

Start locally:
    uvicorn notetree.main:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from notetree.api.v1.notes import router as notes_router
from notetree.api.v1.trash import router as trash_router
from notetree.core.clock import Clock, utcnow
from notetree.core.config import Settings, settings
from notetree.core.database import dispose_engine, get_session_factory
from notetree.core.exceptions import InvalidOperationError, NotFoundError
from notetree.core.logging import setup_logging
from notetree.services.embeddings import EmbeddingIndexer
from notetree.services.index_triggers import (
    IndexTriggerRegistry,
    LocalIndexTriggerRegistry,
    RedisIndexTriggerRegistry,
)
from notetree.services.search import SearchService
from notetree.services.trash import TrashService
from notetree.services.tree import TreeService
from notetree.services.vector import EmbeddingProvider, get_embedding_provider
from notetree.services.versions import VersionService

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


async def wait_for_db(retries: int = 10, delay: int = 1) -> bool:
    """
    Wait for PostgreSQL to become available.

    Useful in containerized environments where the database may start
    after the application. Implements retry logic with linear delay.

    Returns:
        True if connection established, False if all retries exhausted.
    """
    engine = create_async_engine(settings.DATABASE_URL)
    for i in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Postgres connection established")
                await engine.dispose()
                return True
        except Exception as e:
            logger.warning("Waiting for Postgres (%d/%d)... Error: %s", i + 1, retries, e)
            await asyncio.sleep(delay)

    await engine.dispose()
    return False


async def check_redis() -> bool:
    """
    Verify Redis connectivity.

    Non-blocking check - application continues if Redis is unavailable.
    """
    try:
        r = redis.from_url(settings.REDIS_URL, decode_responses=True)
        await r.ping()
        logger.info("Redis connection established (%s)", settings.REDIS_HOST)
        await r.aclose()
        return True
    except Exception as e:
        logger.error("Redis connection error: %s", e)
        return False


def init_services(
    app: FastAPI,
    provider: EmbeddingProvider,
    indexer: EmbeddingIndexer,
    triggers: IndexTriggerRegistry,
    config: Settings = settings,
    clock: Clock = utcnow,
) -> None:
    """Build the service graph and expose it on app.state for the routers."""
    version_service = VersionService(
        indexer,
        clock=clock,
        min_interval_seconds=config.VERSION_MIN_INTERVAL_SECONDS,
        retention=config.VERSION_RETENTION,
    )
    app.state.provider = provider
    app.state.indexer = indexer
    app.state.version_service = version_service
    app.state.tree_service = TreeService(version_service, indexer, clock=clock)
    app.state.trash_service = TrashService(
        clock=clock,
        default_auto_delete_days=config.TRASH_AUTO_DELETE_DAYS_DEFAULT,
    )
    app.state.search_service = SearchService(
        provider,
        indexer,
        triggers,
        min_query_length=config.SEARCH_MIN_QUERY_LENGTH,
        keyword_limit=config.SEARCH_KEYWORD_LIMIT,
        semantic_limit=config.SEARCH_SEMANTIC_LIMIT,
        result_limit=config.SEARCH_RESULT_LIMIT,
        similarity_threshold=config.SEARCH_SIMILARITY_THRESHOLD,
        preview_radius=config.SEARCH_PREVIEW_RADIUS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        - Validates database connectivity (required, blocks startup on failure)
        - Checks Redis connectivity (optional; falls back to an in-process
          index trigger registry)
        - Builds the embedding provider and optionally pre-loads the model

    Shutdown:
        - Cancels pending embedding tasks, releases a local embedding model,
          closes Redis and disposes the engine
    """
    logger.info("Starting NoteTree...")
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    if not await wait_for_db():
        logger.critical("Could not connect to Postgres. Shutting down.")
        raise RuntimeError("Database connection failed")

    triggers: IndexTriggerRegistry
    if await check_redis():
        triggers = RedisIndexTriggerRegistry.from_url(
            settings.REDIS_URL, settings.INDEX_TRIGGER_TTL_SECONDS
        )
    else:
        logger.warning("Redis not reachable - index triggers kept in process memory")
        triggers = LocalIndexTriggerRegistry(settings.INDEX_TRIGGER_TTL_SECONDS)

    provider = get_embedding_provider(settings)
    logger.info("Embedding provider: %s", provider.name)
    preload = getattr(provider, "preload", None)
    if settings.EMBEDDING_PRELOAD and preload is not None:
        logger.info("Pre-loading embedding model...")
        await preload()

    indexer = EmbeddingIndexer(
        provider,
        get_session_factory(),
        max_concurrency=settings.INDEXER_MAX_CONCURRENCY,
        max_retries=settings.INDEXER_MAX_RETRIES,
        retry_delay=settings.INDEXER_RETRY_DELAY_SECONDS,
    )
    init_services(app, provider, indexer, triggers)

    yield  # Application runs here

    logger.info("Shutting down NoteTree...")
    await indexer.shutdown()
    release = getattr(provider, "reset", None)
    if release is not None:
        release()
    if isinstance(triggers, RedisIndexTriggerRegistry):
        await triggers.close()
    await dispose_engine()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Trash routes first: /trash must not be captured by /{note_id}
app.include_router(trash_router, prefix="/api/v1/notes/trash", tags=["Trash"])
app.include_router(notes_router, prefix="/api/v1/notes", tags=["Notes"])


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=exc.to_dict())


@app.exception_handler(InvalidOperationError)
async def invalid_operation_handler(
    request: Request, exc: InvalidOperationError
) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=exc.to_dict())


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Reports the embedding provider state once startup has completed.
    """
    provider = getattr(app.state, "provider", None)
    return {
        "status": "ok",
        "service": "notetree",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "embeddings": {
            "provider": provider.name if provider else None,
            "available": provider.available() if provider else False,
        },
    }
