"""Configuration and user settings.

Usage:
    from qamus_sync.config import JsonSettingsStore, SyncConfig

    config = SyncConfig.from_env()
    store = JsonSettingsStore(config.settings_path)
    store.set_reminder_interval(45)
"""

from qamus_sync.config.env import EnvLoader
from qamus_sync.config.settings import AutomaticBackupFrequency, BackupSettings
from qamus_sync.config.store import (
    JsonSettingsStore,
    MemorySettingsStore,
    SettingsListener,
    SettingsStore,
)
from qamus_sync.config.sync_config import DEFAULT_ENV_PREFIX, SyncConfig

__all__ = [
    "EnvLoader",
    "AutomaticBackupFrequency",
    "BackupSettings",
    "SettingsListener",
    "SettingsStore",
    "MemorySettingsStore",
    "JsonSettingsStore",
    "DEFAULT_ENV_PREFIX",
    "SyncConfig",
]
