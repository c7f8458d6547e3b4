"""Persistent, observable settings storage.

A store hands out immutable ``BackupSettings`` snapshots and notifies
subscribers with the current value on subscription and then with every
distinct change, in the order the changes were made.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from qamus_sync.config.settings import AutomaticBackupFrequency, BackupSettings
from qamus_sync.exceptions import ConfigurationError, LocalIOError
from qamus_sync.logger import Logger, create_logger

SettingsListener = Callable[[BackupSettings], None]


class SettingsStore(ABC):
    """Base class for settings stores.

    Subclasses implement ``_read``, ``_write`` and ``_clear``; change
    tracking and notification live here. Notifications are delivered while
    the store's lock is held, so listeners must not block.
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger or create_logger(name="qamus-sync.settings")
        self._lock = threading.RLock()
        self._listeners: List[SettingsListener] = []
        self._current: Optional[BackupSettings] = None

    @abstractmethod
    def _read(self) -> BackupSettings:
        """Load the persisted settings (defaults when nothing is stored)."""

    @abstractmethod
    def _write(self, settings: BackupSettings) -> None:
        """Persist a settings snapshot."""

    @abstractmethod
    def _clear(self) -> None:
        """Remove every persisted value."""

    def get(self) -> BackupSettings:
        with self._lock:
            if self._current is None:
                self._current = self._read()
            return self._current

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Receive the current settings now and every distinct change later.

        Returns:
            A function that unsubscribes the listener
        """
        with self._lock:
            self._listeners.append(listener)
            self._deliver(listener, self.get())

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> BackupSettings:
        """Apply field changes and persist them.

        Raises:
            ConfigurationError: If a value fails validation
        """
        with self._lock:
            current = self.get()
            try:
                updated = BackupSettings.model_validate({**current.model_dump(), **changes})
            except ValidationError as e:
                raise ConfigurationError(
                    "Invalid settings value",
                    details={"fields": sorted(changes), "errors": e.error_count()},
                ) from e
            if updated == current:
                return current
            self._write(updated)
            self._publish(updated)
            return updated

    def set_automatic_backup_frequency(self, frequency: AutomaticBackupFrequency) -> BackupSettings:
        return self.update(automatic_backup_frequency=frequency)

    def set_reminder_interval(self, minutes: int) -> BackupSettings:
        return self.update(reminder_interval_minutes=minutes)

    def set_reminder_enabled(self, enabled: bool) -> BackupSettings:
        return self.update(reminder_enabled=enabled)

    def set_use_mobile_data(self, enabled: bool) -> BackupSettings:
        return self.update(use_mobile_data=enabled)

    def update_last_backup(self, at: datetime, version: int) -> BackupSettings:
        """Overwrite the last-backup record."""
        return self.update(last_backup_at=at, last_backup_version=version)

    def record_backup(self, at: datetime) -> BackupSettings:
        """Record a finished backup taken at ``at`` and bump the version."""
        with self._lock:
            return self.update_last_backup(at, self.get().last_backup_version + 1)

    def reset(self) -> BackupSettings:
        """Drop every stored value and go back to defaults."""
        with self._lock:
            self._clear()
            defaults = BackupSettings()
            if defaults != self._current:
                self._publish(defaults)
            self._current = defaults
            self.logger.info("Settings reset to defaults")
            return defaults

    def _publish(self, settings: BackupSettings) -> None:
        self._current = settings
        for listener in list(self._listeners):
            self._deliver(listener, settings)

    def _deliver(self, listener: SettingsListener, settings: BackupSettings) -> None:
        try:
            listener(settings)
        except Exception as e:
            self.logger.error("Settings listener failed", error=str(e))


class MemorySettingsStore(SettingsStore):
    """Settings kept in memory only.

    Example:
        store = MemorySettingsStore(BackupSettings(reminder_enabled=True))
        store.update(reminder_interval_minutes=45)
    """

    def __init__(
        self,
        initial: Optional[BackupSettings] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        super().__init__(logger)
        self._stored = initial or BackupSettings()

    def _read(self) -> BackupSettings:
        return self._stored

    def _write(self, settings: BackupSettings) -> None:
        self._stored = settings

    def _clear(self) -> None:
        self._stored = BackupSettings()


class JsonSettingsStore(SettingsStore):
    """Settings persisted as a JSON document.

    Writes go to a temporary file in the same directory which then replaces
    the target, so readers never observe a half-written file. An unreadable
    or invalid file is logged and treated as defaults.
    """

    def __init__(self, path: Path, logger: Optional[Logger] = None) -> None:
        super().__init__(logger)
        self.path = Path(path)

    def _read(self) -> BackupSettings:
        if not self.path.exists():
            return BackupSettings()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return BackupSettings.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            self.logger.error("Failed to read settings, using defaults", path=str(self.path), error=str(e))
            return BackupSettings()

    def _write(self, settings: BackupSettings) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".settings-", suffix=".tmp", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(settings.model_dump(mode="json"), f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise LocalIOError(f"Failed to save settings: {e}", details={"path": str(self.path)}) from e
        self.logger.debug("Settings saved", path=str(self.path))

    def _clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise LocalIOError(f"Failed to remove settings: {e}", details={"path": str(self.path)}) from e


__all__ = [
    "SettingsListener",
    "SettingsStore",
    "MemorySettingsStore",
    "JsonSettingsStore",
]
