"""
Configuration and settings for the craftshop backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3003)

    # Database (any SQLAlchemy URL; unset means in-memory)
    database_url: Optional[str] = Field(default=None)
    db_connect_timeout_seconds: float = Field(default=5.0)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="CRAFTSHOP_USE_IN_MEMORY_BACKENDS"
    )

    # Shared admin identity
    admin_username: str = Field(default="admin")
    admin_password: str = Field(default="change-me")

    # Sessions
    session_secret: str = Field(default="change-me")
    session_cookie_name: str = Field(default="craftshop_session")
    session_max_age_seconds: int = Field(default=24 * 60 * 60)
    session_cookie_secure: bool = Field(default=False)
    api_auth_required: bool = Field(default=False)

    # Session store (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_session_prefix: str = Field(default="craftshop:session:")

    # Files
    static_dir: str = Field(default="static")
    seed_dir: str = Field(default="data")
    backup_dir: str = Field(default="backups")
    backup_retention: int = Field(default=30, ge=1)

    # Reported by /version.json
    app_version: str = Field(default="0.1.0")
    build_sha: Optional[str] = Field(default=None)
    env: str = Field(default="development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
