"""
Unit tests for configuration and logging setup.

Tests cover:
- Defaults and environment loading
- Validation
- Backend factory
- Logging formatter selection
"""

import logging
from pathlib import Path

import json_log_formatter
import pytest
from pydantic import ValidationError

from entcrud.backends import (
    InMemoryContentStore,
    InMemoryLinkIndex,
    SqliteContentStore,
    SqliteLinkIndex,
    create_backends,
)
from entcrud.client import EntityClient
from entcrud.config import Backend, LogFormat, Settings, get_settings
from entcrud.observability import setup_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from ENTCRUD_* variables in the outer environment."""
    for name in [
        "ENTCRUD_BACKEND",
        "ENTCRUD_SQLITE_PATH",
        "ENTCRUD_SQLITE_BUSY_TIMEOUT_MS",
        "ENTCRUD_SQLITE_WAL_MODE",
        "ENTCRUD_LOG_LEVEL",
        "ENTCRUD_LOG_FORMAT",
    ]:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Defaults select the in-memory backend."""
        settings = Settings()

        assert settings.backend == Backend.MEMORY
        assert settings.log_level == "INFO"
        assert settings.log_format == LogFormat.TEXT
        assert settings.sqlite_wal_mode is True

    def test_from_env(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("ENTCRUD_BACKEND", "sqlite")
        monkeypatch.setenv("ENTCRUD_SQLITE_PATH", "/tmp/entcrud-test.db")
        monkeypatch.setenv("ENTCRUD_SQLITE_WAL_MODE", "false")
        monkeypatch.setenv("ENTCRUD_LOG_LEVEL", "debug")

        settings = Settings()

        assert settings.backend == Backend.SQLITE
        assert settings.sqlite_path == "/tmp/entcrud-test.db"
        assert settings.sqlite_wal_mode is False
        assert settings.log_level == "DEBUG"

    def test_invalid_backend(self, monkeypatch):
        """Unknown backends are rejected."""
        monkeypatch.setenv("ENTCRUD_BACKEND", "kafka")

        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_log_level(self):
        """Unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_sqlite_requires_path(self):
        """The sqlite backend needs a database path."""
        with pytest.raises(ValidationError, match="ENTCRUD_SQLITE_PATH"):
            Settings(backend=Backend.SQLITE, sqlite_path="")

    def test_get_settings_is_cached(self):
        """get_settings loads once."""
        assert get_settings() is get_settings()


class TestCreateBackends:
    """Tests for the backend factory."""

    def test_memory(self):
        """Memory backend builds in-memory store and index."""
        store, links = create_backends(Settings())

        assert isinstance(store, InMemoryContentStore)
        assert isinstance(links, InMemoryLinkIndex)

    def test_sqlite(self, tmp_path: Path):
        """SQLite backend builds both on one file."""
        settings = Settings(
            backend=Backend.SQLITE,
            sqlite_path=str(tmp_path / "entries.db"),
            sqlite_wal_mode=False,
        )

        store, links = create_backends(settings)

        assert isinstance(store, SqliteContentStore)
        assert isinstance(links, SqliteLinkIndex)
        assert store.db_path == links.db_path
        assert (tmp_path / "entries.db").exists()

    def test_client_from_settings(self, monkeypatch, tmp_path: Path):
        """EntityClient.from_settings reads the environment."""
        monkeypatch.setenv("ENTCRUD_BACKEND", "sqlite")
        monkeypatch.setenv("ENTCRUD_SQLITE_PATH", str(tmp_path / "env.db"))

        client = EntityClient.from_settings()

        assert isinstance(client.store, SqliteContentStore)
        assert isinstance(client.links, SqliteLinkIndex)


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_text_format(self):
        """Text format installs a plain formatter."""
        setup_logging(Settings(log_level="WARNING"))

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_json_format(self):
        """JSON format installs the JSON formatter."""
        setup_logging(Settings(log_format=LogFormat.JSON, log_level="DEBUG"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
