"""Tests for StoreConfig — defaults, validation, environment loading."""

from __future__ import annotations

import pytest

from canopy.store.config import StoreConfig


class TestDefaults:
    def test_defaults(self):
        config = StoreConfig()
        assert config.database_url == "sqlite+aiosqlite:///canopy.db"
        assert config.echo is False
        assert config.folder_name_scope == "owner"
        assert config.max_name_length == 255
        assert config.sqlite_busy_timeout_ms == 5000

    def test_invalid_scope(self):
        with pytest.raises(ValueError, match="folder_name_scope"):
            StoreConfig(folder_name_scope="global")

    def test_invalid_name_length(self):
        with pytest.raises(ValueError):
            StoreConfig(max_name_length=0)

    def test_negative_busy_timeout(self):
        with pytest.raises(ValueError):
            StoreConfig(sqlite_busy_timeout_ms=-1)


class TestFromEnv:
    def test_empty_environment_gives_defaults(self):
        assert StoreConfig.from_env({}) == StoreConfig()

    def test_all_variables(self):
        config = StoreConfig.from_env(
            {
                "CANOPY_DATABASE_URL": "postgresql+asyncpg://u:p@db/canopy",
                "CANOPY_ECHO": "yes",
                "CANOPY_FOLDER_NAME_SCOPE": " Parent ",
                "CANOPY_MAX_NAME_LENGTH": "120",
                "CANOPY_SQLITE_BUSY_TIMEOUT_MS": "250",
            }
        )
        assert config.database_url == "postgresql+asyncpg://u:p@db/canopy"
        assert config.echo is True
        assert config.folder_name_scope == "parent"
        assert config.max_name_length == 120
        assert config.sqlite_busy_timeout_ms == 250

    @pytest.mark.parametrize(("raw", "expected"), [("1", True), ("off", False), ("", False)])
    def test_echo_values(self, raw, expected):
        assert StoreConfig.from_env({"CANOPY_ECHO": raw}).echo is expected

    def test_bad_boolean(self):
        with pytest.raises(ValueError, match="CANOPY_ECHO"):
            StoreConfig.from_env({"CANOPY_ECHO": "maybe"})

    def test_bad_integer(self):
        with pytest.raises(ValueError, match="CANOPY_MAX_NAME_LENGTH"):
            StoreConfig.from_env({"CANOPY_MAX_NAME_LENGTH": "lots"})

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CANOPY_DATABASE_URL", "sqlite+aiosqlite:///other.db")
        assert StoreConfig.from_env().database_url == "sqlite+aiosqlite:///other.db"

    def test_unrelated_variables_ignored(self):
        assert StoreConfig.from_env({"DATABASE_URL": "x", "CANOPY_OTHER": "y"}) == StoreConfig()
