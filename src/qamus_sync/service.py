"""Long-running sync service: schedulers, job queue and backup engine wired together."""

from __future__ import annotations

import signal
import threading
from typing import Optional, Union

from qamus_sync.auth import GoogleSessionProvider, Session, SessionProvider
from qamus_sync.backup import BackupOrchestrator, ClientFactory
from qamus_sync.cloud import GoogleDriveClient
from qamus_sync.config import JsonSettingsStore, SettingsStore, SyncConfig
from qamus_sync.database import LocalStore, SqliteLocalStore
from qamus_sync.exceptions import AuthError
from qamus_sync.logger import Logger, create_logger
from qamus_sync.scheduling import (
    APSchedulerJobQueue,
    AutomaticBackupJob,
    LoggingNotifier,
    MemoryJobQueue,
    NetworkMonitor,
    Notifier,
    ReminderJob,
    RetryPolicy,
    StaticNetworkMonitor,
    backup_scheduler,
    reminder_scheduler,
)


class SyncService:
    """Owns every component of the sync engine for one data directory.

    Collaborators default to the production adapters built from ``config``;
    tests pass in-memory replacements.

    Example:
        service = SyncService(SyncConfig.from_env())
        service.run_forever()
    """

    def __init__(
        self,
        config: SyncConfig,
        session_provider: Optional[SessionProvider] = None,
        client_factory: Optional[ClientFactory] = None,
        local_store: Optional[LocalStore] = None,
        settings_store: Optional[SettingsStore] = None,
        job_queue: Optional[Union[APSchedulerJobQueue, MemoryJobQueue]] = None,
        notifier: Optional[Notifier] = None,
        network_monitor: Optional[NetworkMonitor] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or create_logger(name="qamus-sync.service")
        self.local_store = local_store or SqliteLocalStore(config.database_path)
        self.settings_store = settings_store or JsonSettingsStore(config.settings_path)
        self.session_provider = session_provider or GoogleSessionProvider(config.credentials_file)
        self.orchestrator = BackupOrchestrator(
            self.local_store,
            self.session_provider,
            client_factory or self._drive_client,
            folder_name=config.backup_folder,
            settings_store=self.settings_store,
        )

        retry_policy = RetryPolicy(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            logger=self.logger,
        )
        self.job_queue = job_queue or APSchedulerJobQueue()
        self.backup_job = AutomaticBackupJob(
            self.orchestrator,
            self.settings_store,
            retry_policy=retry_policy,
            network_monitor=network_monitor or StaticNetworkMonitor(config.metered_network),
        )
        self.reminder_job = ReminderJob(notifier or LoggingNotifier(), retry_policy=retry_policy)
        self.backup_scheduler = backup_scheduler(self.job_queue, self.backup_job.run)
        self.reminder_scheduler = reminder_scheduler(self.job_queue, self.reminder_job.run)

        self._shutdown = threading.Event()
        self._started = False

    def _drive_client(self, session: Session) -> GoogleDriveClient:
        return GoogleDriveClient(session, chunk_size=self.config.chunk_size)

    def ensure_session(self) -> Session:
        """Return the current session, signing in when there is none.

        Raises:
            AuthError: If no credentials are available
        """
        session = self.session_provider.current_session()
        if session is None:
            session = self.session_provider.authenticate()
        return session

    def start(self) -> None:
        """Start the job queue and both schedulers."""
        if self._started:
            return
        try:
            self.ensure_session()
        except AuthError as e:
            self.logger.warning("Not signed in, automatic backups will fail until credentials exist", error=e.message)

        self.job_queue.start()
        self.backup_scheduler.start(self.settings_store)
        self.reminder_scheduler.start(self.settings_store)
        self._started = True
        self.logger.info(
            "Sync service started",
            data_dir=str(self.config.data_dir),
            folder=self.config.backup_folder,
        )

    def stop(self) -> None:
        """Stop schedulers, then the job queue, then close the database."""
        if not self._started:
            return
        self.backup_scheduler.stop()
        self.reminder_scheduler.stop()
        self.job_queue.shutdown(wait=True)
        self.local_store.close()
        self._started = False
        self.logger.info("Sync service stopped")

    def handle_shutdown(self, signum, frame) -> None:
        """Handle shutdown signals"""
        self.logger.info("Received signal, shutting down", signal=signum)
        self._shutdown.set()

    def request_shutdown(self) -> None:
        self._shutdown.set()

    def run_forever(self) -> None:
        """Run until SIGINT/SIGTERM or ``request_shutdown()``."""
        signal.signal(signal.SIGTERM, self.handle_shutdown)
        signal.signal(signal.SIGINT, self.handle_shutdown)
        self.start()
        try:
            while not self._shutdown.wait(1.0):
                pass
        finally:
            self.stop()
