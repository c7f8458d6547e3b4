"""In-memory cloud storage for testing.

Objects live in a dict shared by every client created from the same
``MemoryCloudStorage``, so a backup made through one client is visible to
a restore made through another. Transfers are chunked like the real client
so progress and cancellation behave the same way.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Callable, Dict, List, Optional, Set

from qamus_sync.auth import Session
from qamus_sync.cloud.base import (
    BACKUP_MIME_TYPE,
    CHUNK_SIZE_UNIT,
    FOLDER_MIME_TYPE,
    BackupMetadata,
    ProgressCallback,
    progress_percent,
)
from qamus_sync.exceptions import AuthError, NotFoundError
from qamus_sync.transfer.cancellation import CancellationToken


@dataclass
class StoredObject:
    """A file or folder held by MemoryCloudStorage."""

    id: str
    name: str
    mime_type: str
    parent: Optional[str]
    created_time: datetime
    data: bytes = b""

    def metadata(self) -> BackupMetadata:
        return BackupMetadata(
            id=self.id,
            name=self.name,
            created_time=self.created_time,
            size_bytes=len(self.data),
        )


class MemoryCloudStorage:
    """Process-local stand-in for a Drive account.

    Example:
        storage = MemoryCloudStorage()
        client = storage.client(Session(account="reader"))
        folder_id = client.get_or_create_folder("Backups")
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        chunk_size: int = CHUNK_SIZE_UNIT,
    ) -> None:
        self.chunk_size = chunk_size
        self.rejected_accounts: Set[str] = set()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._objects: Dict[str, StoredObject] = {}
        self._ids = itertools.count(1)
        self._last_created: Optional[datetime] = None
        self._lock = threading.Lock()

    def client(self, session: Optional[Session]) -> "MemoryCloudClient":
        """Client factory matching the orchestrator's ``Session -> client`` shape."""
        return MemoryCloudClient(self, session)

    def revoke(self, account: str) -> None:
        """Reject every later call made with ``account``'s session."""
        self.rejected_accounts.add(account)

    def add_object(
        self,
        name: str,
        parent: Optional[str] = None,
        mime_type: str = BACKUP_MIME_TYPE,
        data: bytes = b"",
        created_time: Optional[datetime] = None,
    ) -> str:
        """Insert an object directly, bypassing any client."""
        with self._lock:
            return self._insert(name, parent, mime_type, data, created_time)

    def get(self, object_id: str) -> Optional[StoredObject]:
        with self._lock:
            return self._objects.get(object_id)

    def children(self, parent: str, mime_type: Optional[str] = None) -> List[StoredObject]:
        with self._lock:
            return [
                obj
                for obj in self._objects.values()
                if obj.parent == parent and (mime_type is None or obj.mime_type == mime_type)
            ]

    def remove(self, object_id: str) -> bool:
        with self._lock:
            return self._objects.pop(object_id, None) is not None

    def clear(self) -> None:
        """Drop every object. Useful for test cleanup."""
        with self._lock:
            self._objects.clear()
            self._last_created = None

    def _insert(
        self,
        name: str,
        parent: Optional[str],
        mime_type: str,
        data: bytes,
        created_time: Optional[datetime],
    ) -> str:
        object_id = f"mem-{next(self._ids)}"
        if created_time is None:
            created_time = self._clock()
            # Keep creation times strictly increasing so "latest" is unambiguous
            if self._last_created is not None and created_time <= self._last_created:
                created_time = self._last_created + timedelta(microseconds=1)
            self._last_created = created_time
        self._objects[object_id] = StoredObject(
            id=object_id,
            name=name,
            mime_type=mime_type,
            parent=parent,
            created_time=created_time,
            data=data,
        )
        return object_id


class MemoryCloudClient:
    """CloudStorageClient backed by a MemoryCloudStorage."""

    def __init__(self, storage: MemoryCloudStorage, session: Optional[Session]) -> None:
        if session is None:
            raise AuthError("Not signed in")
        self.storage = storage
        self.session = session

    def _authorize(self) -> None:
        if self.session.account in self.storage.rejected_accounts:
            raise AuthError("Session was rejected", details={"account": self.session.account})

    def get_or_create_folder(self, name: str) -> str:
        self._authorize()
        with self.storage._lock:
            folders = sorted(
                (
                    obj
                    for obj in self.storage._objects.values()
                    if obj.mime_type == FOLDER_MIME_TYPE and obj.name == name
                ),
                key=lambda obj: obj.created_time,
            )
            if folders:
                return folders[0].id
            return self.storage._insert(name, None, FOLDER_MIME_TYPE, b"", None)

    def list_files(self, folder_id: str, mime_type: str = BACKUP_MIME_TYPE) -> List[BackupMetadata]:
        self._authorize()
        return [obj.metadata() for obj in self.storage.children(folder_id, mime_type)]

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
        self._authorize()
        chunks: List[bytes] = []
        sent = 0
        while True:
            if cancel_token is not None and cancel_token.cancelled:
                source.close()
                cancel_token.raise_if_cancelled("Upload cancelled")
            chunk = source.read(self.storage.chunk_size)
            if not chunk:
                break
            chunks.append(chunk)
            sent += len(chunk)
            on_progress(progress_percent(sent, source_length), sent)

        with self.storage._lock:
            object_id = self.storage._insert(name, folder_id, mime_type, b"".join(chunks), None)
            return self.storage._objects[object_id].metadata()

    def download(
        self,
        file_id: str,
        dest: BinaryIO,
        on_progress: ProgressCallback,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        self._authorize()
        obj = self.storage.get(file_id)
        if obj is None:
            raise NotFoundError("Backup not found", details={"file_id": file_id})

        total = len(obj.data)
        for offset in range(0, total, self.storage.chunk_size):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled("Download cancelled")
            chunk = obj.data[offset : offset + self.storage.chunk_size]
            dest.write(chunk)
            done = offset + len(chunk)
            on_progress(progress_percent(done, total), done)

    def delete(self, file_id: str) -> None:
        self._authorize()
        self.storage.remove(file_id)
