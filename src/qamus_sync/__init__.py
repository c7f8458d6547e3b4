"""qamus-sync: Google Drive backup, restore and scheduling for the Qamus dictionary.

Usage:
    from qamus_sync import SyncConfig, SyncService

    service = SyncService(SyncConfig.from_env())
    service.orchestrator.backup()
"""

__version__ = "1.0.0"

from qamus_sync.backup import BackupOrchestrator
from qamus_sync.cloud import BackupMetadata, CloudStorageClient, GoogleDriveClient
from qamus_sync.config import AutomaticBackupFrequency, BackupSettings, SyncConfig
from qamus_sync.exceptions import SyncError
from qamus_sync.scheduling import PeriodicScheduler, RetryPolicy
from qamus_sync.service import SyncService
from qamus_sync.transfer import TransferKind, TransferStateMachine

__all__ = [
    "__version__",
    "AutomaticBackupFrequency",
    "BackupMetadata",
    "BackupOrchestrator",
    "BackupSettings",
    "CloudStorageClient",
    "GoogleDriveClient",
    "PeriodicScheduler",
    "RetryPolicy",
    "SyncConfig",
    "SyncError",
    "SyncService",
    "TransferKind",
    "TransferStateMachine",
]
