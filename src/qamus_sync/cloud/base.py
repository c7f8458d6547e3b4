"""Cloud storage client protocol and shared types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Callable, List, Optional, Protocol, runtime_checkable

from qamus_sync.transfer.cancellation import CancellationToken

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
BACKUP_MIME_TYPE = "application/octet-stream"

# Drive resumable uploads require chunk sizes in multiples of 256 KiB
CHUNK_SIZE_UNIT = 256 * 1024
DEFAULT_CHUNK_SIZE = 4 * CHUNK_SIZE_UNIT

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class BackupMetadata:
    """One remote backup object."""

    id: str
    name: str
    created_time: datetime
    size_bytes: int = 0


def parse_rfc3339(value: str) -> datetime:
    """Parse a Drive timestamp such as ``2024-05-01T10:20:30.123Z``."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def progress_percent(done: int, total: int) -> int:
    if total <= 0:
        return 100
    return max(0, min(100, done * 100 // total))


@runtime_checkable
class CloudStorageClient(Protocol):
    """Operations the backup engine needs from a remote provider.

    A client is bound to one session. Every operation raises ``AuthError``
    when that session is missing or rejected.
    """

    def get_or_create_folder(self, name: str) -> str:
        """Return the id of the folder called ``name``, creating it if absent.

        Two callers racing on an absent folder can both create it; callers
        serialize their calls.
        """
        ...

    def list_files(self, folder_id: str, mime_type: str = BACKUP_MIME_TYPE) -> List[BackupMetadata]:
        """List immediate children of a folder with the given MIME type."""
        ...

    def upload(
        self,
        folder_id: str,
        name: str,
        mime_type: str,
        source: BinaryIO,
        source_length: int,
        on_progress: ProgressCallback,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BackupMetadata:
        """Stream ``source`` into a new object and return its metadata."""
        ...

    def download(
        self,
        file_id: str,
        dest: BinaryIO,
        on_progress: ProgressCallback,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        """Stream the object's bytes into ``dest``; the caller owns ``dest``."""
        ...

    def delete(self, file_id: str) -> None:
        """Delete an object; deleting a missing id succeeds."""
        ...
