"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        POSTGRES_PORT (5432), REDIS_HOST (redis), REDIS_PORT (6379),
        LOG_LEVEL (INFO), EMBEDDING_PROVIDER (local), plus the engine
        tuning knobs below.
    """

    PROJECT_NAME: str = "NoteTree"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str

    # Redis (index trigger registry; optional at runtime)
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379

    # Logging
    LOG_LEVEL: str = "INFO"

    # Embeddings: "local" (sentence-transformers), "openai", "mock", "disabled"
    EMBEDDING_PROVIDER: str = "local"
    EMBEDDING_MODEL: str = "BAAI/bge-small-en-v1.5"
    EMBEDDING_PRELOAD: bool = True
    OPENAI_API_KEY: str | None = None

    # Version history
    VERSION_MIN_INTERVAL_SECONDS: int = 30
    VERSION_RETENTION: int = 50

    # Trash
    TRASH_AUTO_DELETE_DAYS_DEFAULT: int = 30

    # Search
    SEARCH_MIN_QUERY_LENGTH: int = 2
    SEARCH_KEYWORD_LIMIT: int = 20
    SEARCH_SEMANTIC_LIMIT: int = 15
    SEARCH_RESULT_LIMIT: int = 20
    SEARCH_SIMILARITY_THRESHOLD: float = 0.5
    SEARCH_PREVIEW_RADIUS: int = 40

    # Background indexing
    INDEX_TRIGGER_TTL_SECONDS: int = 3600
    INDEXER_MAX_CONCURRENCY: int = 4
    INDEXER_MAX_RETRIES: int = 3
    INDEXER_RETRY_DELAY_SECONDS: float = 2.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL connection string using asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def REDIS_URL(self) -> str:
        """Redis connection string."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"


settings = Settings()  # type: ignore[call-arg]
