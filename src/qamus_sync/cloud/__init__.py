"""Remote storage clients for backups.

Usage:
    from qamus_sync.cloud import GoogleDriveClient

    client = GoogleDriveClient(session)
    folder_id = client.get_or_create_folder("Backups")
    for backup in client.list_files(folder_id):
        print(backup.name, backup.created_time)
"""

from qamus_sync.cloud.base import (
    BACKUP_MIME_TYPE,
    CHUNK_SIZE_UNIT,
    DEFAULT_CHUNK_SIZE,
    FOLDER_MIME_TYPE,
    BackupMetadata,
    CloudStorageClient,
    ProgressCallback,
    parse_rfc3339,
)
from qamus_sync.cloud.drive import GoogleDriveClient, translate_http_error
from qamus_sync.cloud.memory import MemoryCloudClient, MemoryCloudStorage, StoredObject

__all__ = [
    "BACKUP_MIME_TYPE",
    "FOLDER_MIME_TYPE",
    "CHUNK_SIZE_UNIT",
    "DEFAULT_CHUNK_SIZE",
    "BackupMetadata",
    "CloudStorageClient",
    "ProgressCallback",
    "parse_rfc3339",
    "GoogleDriveClient",
    "translate_http_error",
    "MemoryCloudStorage",
    "MemoryCloudClient",
    "StoredObject",
]
