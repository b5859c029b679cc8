"""Application settings and configuration.

This module defines all configuration options for the explore feed service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Explore Feed", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./explore_feed.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Feed pagination
    default_page_size: int = Field(default=20, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE")
    feed_filters: list[str] = Field(
        default=["trending", "latest", "popular", "media"],
        alias="FEED_FILTERS",
    )
    trending_topics_limit: int = Field(default=5, alias="TRENDING_TOPICS_LIMIT")

    # Ranking source: "sql" ranks against the local database, "remote" calls an RPC
    ranking_backend: str = Field(default="sql", alias="RANKING_BACKEND")
    ranking_base_url: str | None = Field(default=None, alias="RANKING_BASE_URL")
    ranking_rpc_path: str = Field(
        default="/rest/v1/rpc/get_explore_feed",
        alias="RANKING_RPC_PATH",
    )
    ranking_api_key: str | None = Field(default=None, alias="RANKING_API_KEY")
    ranking_timeout_seconds: float = Field(default=15.0, alias="RANKING_TIMEOUT_SECONDS")

    # View de-duplication ledger: "memory" (per process) or "redis" (shared)
    view_ledger_backend: str = Field(default="memory", alias="VIEW_LEDGER_BACKEND")
    view_session_ttl_seconds: int = Field(default=86_400, alias="VIEW_SESSION_TTL_SECONDS")
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
