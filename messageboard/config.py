"""
Configuration and settings for the message board service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (any SQLAlchemy URL; Postgres expected in production).
    # Read from DATABASE_URL.
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_store: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "MESSAGEBOARD_USE_IN_MEMORY_STORE", "use_in_memory_store"
        ),
    )

    # Server (HOST, PORT, LOG_LEVEL)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
