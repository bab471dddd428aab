"""
Application configuration using pydantic-settings.

============================================================================
STORAGE MODEL
============================================================================
Every catalog record lives in ONE key-value table (see mvdb.db.models.KVEntry).
Keys are namespaced by prefix:

- master_{type}_{id}   master data (actor, actress, director, studio, series,
                       label, group, generation, lineup, type, tag)
- photobook_{id}       photobooks
- movie:{id}           movie records (only touched by the rename sync)
- scmovie:{id}         SC movie records (only touched by the rename sync)

There is no relational schema for these entities. Lookups that are not by key
are prefix scans filtered in Python, which is fine at personal-collection
scale.
============================================================================
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "MVDB Catalog API"
    debug: bool = False

    # Database: PostgreSQL in deployment (postgresql+asyncpg://...),
    # SQLite is enough for a single-user local catalog.
    database_url: str = "sqlite+aiosqlite:///./mvdb.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    kv_table_name: str = "kv_store"

    # Authentication
    api_key: str | None = None  # Bearer token with write access
    public_api_key: str | None = None  # Anonymous read-only key

    # CORS: production deployments MUST set CORS_ORIGINS env var explicitly.
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Rate limiting (slowapi syntax)
    rate_limit_enabled: bool = True
    rate_limit_default: str = "120/minute"
    rate_limit_translate: str = "30/minute"

    # AI translation (OpenAI-compatible chat completions endpoint)
    translation_api_url: str = "https://ai.sumopod.com/v1"
    translation_api_key: str | None = None
    translation_model: str = "gemini/gemini-2.5-flash"
    translation_temperature: float = 0.3

    # Public fallback translator
    fallback_translation_url: str = "https://api.mymemory.translated.net/get"

    # Timeouts (in seconds)
    http_request_timeout: int = 30


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    get_settings.cache_clear()
    return get_settings()
