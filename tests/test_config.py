"""Tests for qamus_sync.config settings models and environment loading"""

import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from qamus_sync.config import AutomaticBackupFrequency, BackupSettings, EnvLoader, SyncConfig
from qamus_sync.exceptions import ConfigurationError


class TestEnvLoader:
    """Tests for prefixed environment loading"""

    def test_precedence(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """.env < OS environment < overrides"""
        env_file = tmp_path / ".env"
        env_file.write_text("APP_FOO=file\nAPP_BAR=file\nAPP_BAZ=file\n")
        monkeypatch.setenv("APP_BAR", "env")
        monkeypatch.setenv("APP_BAZ", "env")

        data = EnvLoader("APP", env_file).load({"BAZ": "override"})

        assert data["FOO"] == "file"
        assert data["BAR"] == "env"
        assert data["BAZ"] == "override"

    def test_only_prefixed_keys(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Variables without the prefix are ignored and the prefix is stripped"""
        monkeypatch.setenv("OTHER_FOO", "x")
        monkeypatch.setenv("APP_FOO", "y")

        data = EnvLoader("APP_", tmp_path / "missing.env").load()

        assert data.get("FOO") == "y"
        assert "OTHER_FOO" not in data

    def test_empty_values_are_unset(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """An empty variable falls back to the default"""
        monkeypatch.setenv("APP_FOO", "")
        assert "FOO" not in EnvLoader("APP", tmp_path / "missing.env").load()


class TestSyncConfig:
    """Tests for SyncConfig"""

    def test_default_values(self):
        """Test default configuration"""
        config = SyncConfig()
        assert config.database_name == "qamus_database.db"
        assert config.backup_folder == "Backups"
        assert config.retry_max_attempts == 3
        assert config.retry_base_delay == 1.0
        assert config.chunk_size == 1024 * 1024
        assert config.metered_network is False
        assert config.data_dir == Path("~/.local/share/qamus").expanduser()

    def test_derived_paths(self, tmp_path):
        """Database and settings live in the data directory unless overridden"""
        config = SyncConfig(data_dir=tmp_path)
        assert config.database_path == tmp_path / "qamus_database.db"
        assert config.settings_path == tmp_path / "settings.json"

        custom = SyncConfig(data_dir=tmp_path, settings_file=tmp_path / "prefs.json")
        assert custom.settings_path == tmp_path / "prefs.json"

    def test_from_env(self, tmp_path):
        """Test loading from environment with the default prefix"""
        with patch.dict(os.environ, {
            "QAMUS_SYNC_DATA_DIR": str(tmp_path),
            "QAMUS_SYNC_BACKUP_FOLDER": "QamusBackups",
            "QAMUS_SYNC_RETRY_MAX_ATTEMPTS": "5",
            "QAMUS_SYNC_RETRY_BASE_DELAY": "0.5",
            "QAMUS_SYNC_METERED_NETWORK": "true",
        }, clear=False):
            config = SyncConfig.from_env(env_file=tmp_path / "none.env")

        assert config.data_dir == tmp_path
        assert config.backup_folder == "QamusBackups"
        assert config.retry_max_attempts == 5
        assert config.retry_base_delay == 0.5
        assert config.metered_network is True

    def test_from_env_custom_prefix_and_overrides(self, tmp_path):
        """Test a custom prefix and explicit overrides"""
        with patch.dict(os.environ, {"QAMUS_TEST_DATABASE_NAME": "other.db"}, clear=False):
            config = SyncConfig.from_env(
                env_prefix="QAMUS_TEST",
                env_file=tmp_path / "none.env",
                overrides={"DATA_DIR": str(tmp_path)},
            )
        assert config.database_path == tmp_path / "other.db"

    def test_from_env_file(self, tmp_path):
        """Values can come from a .env file"""
        env_file = tmp_path / ".env"
        env_file.write_text(f"QAMUS_SYNC_DATA_DIR={tmp_path}\nQAMUS_SYNC_CHUNK_SIZE=524288\n")

        config = SyncConfig.from_env(env_file=env_file)
        assert config.chunk_size == 512 * 1024

    def test_invalid_chunk_size(self, tmp_path):
        """Chunk sizes must be multiples of 256 KiB"""
        with pytest.raises(ConfigurationError) as exc_info:
            SyncConfig.from_env(env_file=tmp_path / "none.env", overrides={"CHUNK_SIZE": "1000"})
        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert exc_info.value.details["errors"][0]["field"] == "chunk_size"

    def test_retry_attempts_bounds(self, tmp_path):
        """Retry attempts are limited to 1..10"""
        with pytest.raises(ConfigurationError):
            SyncConfig.from_env(env_file=tmp_path / "none.env", overrides={"RETRY_MAX_ATTEMPTS": "0"})
        with pytest.raises(ConfigurationError):
            SyncConfig.from_env(env_file=tmp_path / "none.env", overrides={"RETRY_MAX_ATTEMPTS": "11"})


class TestBackupSettings:
    """Tests for the BackupSettings model"""

    def test_defaults(self):
        """Test default user settings"""
        settings = BackupSettings()
        assert settings.automatic_backup_frequency is AutomaticBackupFrequency.OFF
        assert settings.reminder_interval_minutes == 30
        assert settings.reminder_enabled is False
        assert settings.use_mobile_data is False
        assert settings.last_backup_at is None
        assert settings.last_backup_version == 0

    def test_frozen(self):
        """Settings snapshots are immutable"""
        settings = BackupSettings()
        with pytest.raises(ValidationError):
            settings.reminder_enabled = True

    def test_frequency_is_case_insensitive(self):
        """Frequency names are normalized"""
        assert BackupSettings(automatic_backup_frequency="WEEKLY").automatic_backup_frequency is (
            AutomaticBackupFrequency.WEEKLY
        )

    def test_rejects_invalid_values(self):
        """Interval must be positive and version non-negative"""
        with pytest.raises(ValidationError):
            BackupSettings(reminder_interval_minutes=0)
        with pytest.raises(ValidationError):
            BackupSettings(last_backup_version=-1)

    def test_json_round_trip(self):
        """Settings survive JSON serialization"""
        settings = BackupSettings(
            automatic_backup_frequency=AutomaticBackupFrequency.DAILY,
            last_backup_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            last_backup_version=4,
        )
        assert BackupSettings.model_validate(settings.model_dump(mode="json")) == settings
