"""Work run by the recurring jobs."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from qamus_sync.backup.orchestrator import BackupOrchestrator
from qamus_sync.config.store import SettingsStore
from qamus_sync.exceptions import SyncError
from qamus_sync.logger import Logger, create_logger
from qamus_sync.scheduling.job_queue import JobResult
from qamus_sync.scheduling.retry import RetryPolicy


@runtime_checkable
class Notifier(Protocol):
    """Presents the periodic word reminder."""

    def show_reminder(self) -> None:
        ...


@runtime_checkable
class NetworkMonitor(Protocol):
    def is_metered(self) -> bool:
        """Whether the active connection is metered (mobile data)."""
        ...


class LoggingNotifier:
    """Notifier that writes the reminder to the log."""

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger or create_logger(name="qamus-sync.reminder")
        self.shown = 0

    def show_reminder(self) -> None:
        self.shown += 1
        self.logger.info("Time to review a word", reminder=self.shown)


class StaticNetworkMonitor:
    """NetworkMonitor with a fixed answer, set from configuration."""

    def __init__(self, metered: bool = False) -> None:
        self.metered = metered

    def is_metered(self) -> bool:
        return self.metered


class AutomaticBackupJob:
    """One scheduled backup attempt.

    Backups wait for an unmetered connection unless the user allowed mobile
    data. The orchestrator records successful backups in the settings store
    it was given; a failed run leaves the record alone.
    """

    def __init__(
        self,
        orchestrator: BackupOrchestrator,
        settings_store: SettingsStore,
        retry_policy: Optional[RetryPolicy] = None,
        network_monitor: Optional[NetworkMonitor] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.settings_store = settings_store
        self.logger = logger or create_logger(name="qamus-sync.jobs.backup")
        self.retry_policy = retry_policy or RetryPolicy(logger=self.logger)
        self.network_monitor = network_monitor or StaticNetworkMonitor()

    def run(self) -> JobResult:
        settings = self.settings_store.get()
        if not settings.use_mobile_data and self.network_monitor.is_metered():
            self.logger.info("Metered connection, automatic backup postponed")
            return JobResult.retry(reason="metered_network")

        try:
            metadata = self.retry_policy.run(self.orchestrator.backup)
        except SyncError as e:
            return JobResult.failure(error=e.message, code=e.code)

        return JobResult.success(
            progress=100,
            bytes_transferred=metadata.size_bytes,
            backup_id=metadata.id,
            version=self.settings_store.get().last_backup_version,
        )


class ReminderJob:
    """Show the word reminder, retrying transient presentation failures."""

    def __init__(
        self,
        notifier: Notifier,
        retry_policy: Optional[RetryPolicy] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.notifier = notifier
        self.logger = logger or create_logger(name="qamus-sync.jobs.reminder")
        self.retry_policy = retry_policy or RetryPolicy(logger=self.logger)

    def run(self) -> JobResult:
        try:
            self.retry_policy.run(self.notifier.show_reminder)
        except Exception as e:
            return JobResult.failure(error=str(e))
        return JobResult.success()
