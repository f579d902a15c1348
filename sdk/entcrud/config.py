"""
Configuration for entcrud.

Settings are loaded from environment variables with the ENTCRUD_ prefix
(e.g. ENTCRUD_BACKEND=sqlite, ENTCRUD_SQLITE_PATH=/var/lib/entcrud/entries.db).

Invariants:
    - All settings have sensible defaults for local development
    - The in-memory backend is the default and needs no other settings
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Backend(str, Enum):
    """Supported content store / link index backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


class LogFormat(str, Enum):
    """Supported log output formats."""

    TEXT = "text"
    JSON = "json"


class Settings(BaseSettings):
    """entcrud configuration loaded from environment."""

    # Backends
    backend: Backend = Field(default=Backend.MEMORY, description="Store and link index backend")
    sqlite_path: str = Field(default="./entcrud.db", description="SQLite database file")
    sqlite_busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout")
    sqlite_wal_mode: bool = Field(default=True, description="Enable SQLite WAL journal mode")

    # Logging
    log_level: str = Field(default="INFO", description="Root logging level")
    log_format: LogFormat = Field(default=LogFormat.TEXT, description="text or json")

    model_config = {"env_prefix": "ENTCRUD_"}

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level '{value}'")
        return level

    @model_validator(mode="after")
    def _check_backend(self) -> Settings:
        if self.backend == Backend.SQLITE and not self.sqlite_path:
            raise ValueError("ENTCRUD_SQLITE_PATH is required when ENTCRUD_BACKEND=sqlite")
        return self


@lru_cache
def get_settings() -> Settings:
    """Settings loaded once from the environment."""
    return Settings()
