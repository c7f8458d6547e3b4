"""Backup and restore orchestration."""

from qamus_sync.backup.orchestrator import (
    DEFAULT_BACKUP_FOLDER,
    TIMESTAMP_FORMAT,
    BackupOrchestrator,
    ClientFactory,
    backup_file_name,
)

__all__ = [
    "DEFAULT_BACKUP_FOLDER",
    "TIMESTAMP_FORMAT",
    "BackupOrchestrator",
    "ClientFactory",
    "backup_file_name",
]
