"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Allow extra env vars without failing
    )

    # App
    app_name: str = "Outlet"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    # Secret key MUST be provided via environment (e.g. SECRET_KEY in .env)
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # API
    api_prefix: str = "/api/v1"
    allowed_origins: list[str] = ["http://localhost:5173"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./outlet.db"
    db_ssl_mode: str = "disable"  # "require" for production
    database_pool_size: int = 5
    database_max_overflow: int = 10
    auto_create_tables: bool = False  # dev only, production runs alembic
    seed_default_users: bool = False

    # Multi-org
    default_org_id: str = "default"

    # Reply generation collaborator
    reply_generator_provider: str = "template"  # template | http
    reply_generator_url: Optional[str] = None
    reply_generator_timeout_seconds: float = 10.0
    reply_breaker_failure_threshold: int = 3
    reply_breaker_recovery_seconds: int = 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
