"""
Centralized configuration management using Pydantic Settings.

This module provides type-safe configuration management with validation,
loading settings from environment variables and .env files.
"""

from functools import lru_cache
from typing import Optional
import logging
import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


VALID_SCHEMES = [
    "sqlite",
    "sqlite+pysqlite",
    "sqlite+aiosqlite",
    "postgresql",
    "postgresql+psycopg",
    "postgresql+psycopg2",
    "postgresql+asyncpg",
]

# Async driver markers and the blocking driver each one maps to
ASYNC_DRIVERS = {
    "sqlite+aiosqlite": "sqlite",
    "postgresql+asyncpg": "postgresql",
}


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    All settings can be overridden via environment variables
    (DATABASE_URL, SQL_ECHO, LOG_LEVEL...) or a .env file.
    """

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/datarepo.db",
        description="Database connection URL used for async sessions"
    )
    sync_database_url: Optional[str] = Field(
        default=None,
        description="Database URL for blocking sessions (derived from database_url if unset)"
    )
    sql_echo: bool = Field(
        default=False,
        description="Echo SQL statements (debug only)"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_json: bool = Field(
        default=True,
        description="Emit logs as single-line JSON objects"
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    @field_validator("database_url", "sync_database_url")
    @classmethod
    def validate_database_url(cls, v: Optional[str], info) -> Optional[str]:
        """
        Validate database URL format.

        Ensures URL has a supported scheme and is not empty.
        """
        if v is None and info.field_name == "sync_database_url":
            return v
        if not v or v.strip() == "":
            raise ValueError(f"{info.field_name.upper()} is required and cannot be empty")

        if not any(v.startswith(scheme + "://") for scheme in VALID_SCHEMES):
            raise ValueError(
                f"{info.field_name.upper()} must start with one of: {', '.join(VALID_SCHEMES)}. "
                f"Got: {v[:20]}..."
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(
                f"LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL. Got: {v}"
            )
        return level

    @property
    def blocking_database_url(self) -> str:
        """
        URL for blocking engines.

        Prefers sync_database_url; otherwise strips a known async driver
        marker from database_url (sqlite+aiosqlite:// -> sqlite://).
        """
        if self.sync_database_url:
            return self.sync_database_url

        url = self.database_url
        for async_scheme, sync_scheme in ASYNC_DRIVERS.items():
            if url.startswith(async_scheme + "://"):
                return re.sub(rf"^{re.escape(async_scheme)}://", f"{sync_scheme}://", url)
        return url


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()


# Global settings instance
# Import this instance throughout the package
settings = get_settings()
