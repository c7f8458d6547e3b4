"""Backup and restore of the local database through a cloud storage client."""

from __future__ import annotations

import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from qamus_sync.auth import Session, SessionProvider
from qamus_sync.cloud.base import BACKUP_MIME_TYPE, BackupMetadata, CloudStorageClient
from qamus_sync.config import SettingsStore
from qamus_sync.database import LocalStore
from qamus_sync.exceptions import (
    AuthError,
    LocalIOError,
    NotFoundError,
    SyncError,
    TransferCancelledError,
    TransferInProgressError,
)
from qamus_sync.logger import Logger, create_logger
from qamus_sync.transfer import (
    CancellationToken,
    StateListener,
    TransferKind,
    TransferState,
    TransferStateMachine,
    is_terminal,
)

DEFAULT_BACKUP_FOLDER = "Backups"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

ClientFactory = Callable[[Session], CloudStorageClient]


def backup_file_name(source: Path, when: datetime) -> str:
    """Name of the remote copy of ``source`` taken at ``when``.

    ``qamus_database.db`` becomes ``qamus_database_2024-05-01_10-20-30.db``.
    """
    return f"{source.stem}_{when.strftime(TIMESTAMP_FORMAT)}{source.suffix}"


def _local_now() -> datetime:
    return datetime.now().astimezone()


@contextmanager
def _local_io(action: str, path: Path) -> Iterator[None]:
    try:
        yield
    except OSError as e:
        raise LocalIOError(f"Failed to {action}: {e}", details={"path": str(path)}) from e


class BackupOrchestrator:
    """Runs backups and restores and tracks them in a TransferStateMachine.

    One operation runs at a time: a second ``backup()``/``restore()`` while
    one is in flight raises ``TransferInProgressError`` immediately. A state
    left terminal by the previous operation is reset when the next starts.

    A backup uploads the database file under a timestamped name and then
    deletes every other backup in the folder, so the folder normally holds a
    single backup. With a settings store attached, every successful backup
    is also recorded there. A restore downloads into a temporary file beside the
    database and swaps it in only once the download has finished.

    Example:
        orchestrator = BackupOrchestrator(store, sessions, lambda s: GoogleDriveClient(s))
        orchestrator.backup()
        orchestrator.restore_and_reopen()
    """

    def __init__(
        self,
        local_store: LocalStore,
        session_provider: SessionProvider,
        client_factory: ClientFactory,
        folder_name: str = DEFAULT_BACKUP_FOLDER,
        clock: Optional[Callable[[], datetime]] = None,
        settings_store: Optional[SettingsStore] = None,
        machine: Optional[TransferStateMachine] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.local_store = local_store
        self.session_provider = session_provider
        self.client_factory = client_factory
        self.folder_name = folder_name
        self.clock = clock or _local_now
        self.settings_store = settings_store
        self.logger = logger or create_logger(name="qamus-sync.backup")
        self.machine = machine or TransferStateMachine(logger=self.logger)
        self._operation_lock = threading.Lock()

    @property
    def state(self) -> TransferState:
        return self.machine.state

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        return self.machine.add_listener(listener)

    def cancel(self) -> bool:
        """Cancel the running backup or restore. Returns False if none is running."""
        return self.machine.cancel()

    def backup(self) -> BackupMetadata:
        """Upload the local database and prune older backups.

        Returns:
            Metadata of the new backup

        Raises:
            AuthError: If nobody is signed in
            TransferInProgressError: If another operation is running
            SyncError: Whatever failed the upload (state ends in Error)
        """
        with self._exclusive():
            client = self._client()
            token = self._begin(TransferKind.BACKUP)
            source = self.local_store.path()
            self.logger.info("Backup started", source=str(source), folder=self.folder_name)
            try:
                folder_id = client.get_or_create_folder(self.folder_name)
                metadata = self._upload(client, folder_id, source, token)
                token.raise_if_cancelled("Backup cancelled")
            except BaseException as e:
                self._fail(TransferKind.BACKUP, e)
                raise

            self._prune(client, folder_id, keep_id=metadata.id)
            if not self.machine.complete():
                raise TransferCancelledError("Backup cancelled")
            self._record(metadata)
            self.logger.info(
                "Backup finished",
                backup_id=metadata.id,
                name=metadata.name,
                size=metadata.size_bytes,
            )
            return metadata

    def restore(self, backup_id: Optional[str] = None) -> None:
        """Replace the local database with a backup.

        The local store is closed and left closed; call ``reopen()`` on it
        afterwards or use ``restore_and_reopen()``.

        Args:
            backup_id: Backup to restore; the most recent one when omitted

        Raises:
            AuthError: If nobody is signed in
            NotFoundError: If there is no backup to restore
            TransferInProgressError: If another operation is running
        """
        with self._exclusive():
            client = self._client()
            token = self._begin(TransferKind.RESTORE)
            try:
                if backup_id is None:
                    backup_id = self._latest(client).id
                self.logger.info("Restore started", backup_id=backup_id)
                self.local_store.close()
                self._download(client, backup_id, self.local_store.path(), token)
            except BaseException as e:
                self._fail(TransferKind.RESTORE, e)
                raise

            if not self.machine.complete():
                raise TransferCancelledError("Restore cancelled")
            self.logger.info("Restore finished", backup_id=backup_id)

    def restore_and_reopen(self, backup_id: Optional[str] = None) -> None:
        """Restore, then reopen the local store whether or not it succeeded."""
        try:
            self.restore(backup_id)
        finally:
            self.local_store.reopen()

    def list_backups(self) -> List[BackupMetadata]:
        """Backups in the folder, newest first."""
        client = self._client()
        folder_id = client.get_or_create_folder(self.folder_name)
        return sorted(client.list_files(folder_id), key=lambda b: b.created_time, reverse=True)

    def latest_backup(self) -> Optional[BackupMetadata]:
        backups = self.list_backups()
        return backups[0] if backups else None

    def delete_backup(self, backup_id: str) -> None:
        self._client().delete(backup_id)
        self.logger.info("Backup deleted", backup_id=backup_id)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._operation_lock.acquire(blocking=False):
            raise TransferInProgressError("A backup or restore is already running")
        try:
            yield
        finally:
            self._operation_lock.release()

    def _client(self) -> CloudStorageClient:
        session = self.session_provider.current_session()
        if session is None:
            raise AuthError("Sign in to Google Drive first")
        return self.client_factory(session)

    def _begin(self, kind: TransferKind) -> CancellationToken:
        if is_terminal(self.machine.state):
            self.machine.reset()
        return self.machine.start(kind)

    def _fail(self, kind: TransferKind, error: BaseException) -> None:
        self.machine.fail(error)
        if isinstance(error, TransferCancelledError):
            self.logger.info(f"{kind.value.capitalize()} cancelled")
        elif isinstance(error, SyncError):
            self.logger.error(f"{kind.value.capitalize()} failed", code=error.code, error=error.message)
        else:
            self.logger.error(f"{kind.value.capitalize()} failed", error=str(error), type=type(error).__name__)

    def _latest(self, client: CloudStorageClient) -> BackupMetadata:
        folder_id = client.get_or_create_folder(self.folder_name)
        backups = client.list_files(folder_id)
        if not backups:
            raise NotFoundError("No backup found", details={"folder": self.folder_name})
        return max(backups, key=lambda b: b.created_time)

    def _upload(
        self,
        client: CloudStorageClient,
        folder_id: str,
        source: Path,
        token: CancellationToken,
    ) -> BackupMetadata:
        if not source.is_file():
            raise NotFoundError("Local database not found", details={"path": str(source)})
        name = backup_file_name(source, self.clock())
        with _local_io("read local database", source):
            size = source.stat().st_size
            stream = open(source, "rb")
        with stream:
            return client.upload(
                folder_id,
                name,
                BACKUP_MIME_TYPE,
                stream,
                size,
                self.machine.report_progress,
                token,
            )

    def _download(
        self,
        client: CloudStorageClient,
        backup_id: str,
        target: Path,
        token: CancellationToken,
    ) -> None:
        with _local_io("create temporary restore file", target):
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".restore", dir=target.parent)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as dest:
                client.download(backup_id, dest, self.machine.report_progress, token)
                with _local_io("write restored database", target):
                    dest.flush()
                    os.fsync(dest.fileno())
            token.raise_if_cancelled("Restore cancelled")
            with _local_io("replace local database", target):
                os.replace(tmp_path, target)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def _record(self, metadata: BackupMetadata) -> None:
        if self.settings_store is None:
            return
        try:
            self.settings_store.record_backup(self.clock())
        except SyncError as e:
            self.logger.warning("Could not record backup in settings", backup_id=metadata.id, error=e.message)

    def _prune(self, client: CloudStorageClient, folder_id: str, keep_id: str) -> None:
        try:
            stale = [b for b in client.list_files(folder_id) if b.id != keep_id]
        except SyncError as e:
            self.logger.warning("Could not list old backups", error=e.message, code=e.code)
            return
        for backup in stale:
            try:
                client.delete(backup.id)
                self.logger.debug("Old backup deleted", backup_id=backup.id, name=backup.name)
            except SyncError as e:
                self.logger.warning("Failed to delete old backup", backup_id=backup.id, error=e.message)
