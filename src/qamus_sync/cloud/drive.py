"""Google Drive v3 implementation of CloudStorageClient."""

from __future__ import annotations

from typing import Any, BinaryIO, Callable, Dict, List, Optional, TypeVar

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from qamus_sync.auth import Session
from qamus_sync.cloud.base import (
    BACKUP_MIME_TYPE,
    DEFAULT_CHUNK_SIZE,
    FOLDER_MIME_TYPE,
    BackupMetadata,
    ProgressCallback,
    parse_rfc3339,
    progress_percent,
)
from qamus_sync.exceptions import (
    AuthError,
    NetworkError,
    NotFoundError,
    QuotaError,
    SyncError,
    TransferCancelledError,
)
from qamus_sync.logger import Logger, create_logger
from qamus_sync.transfer.cancellation import CancellationToken

T = TypeVar("T")

FILE_FIELDS = "id, name, createdTime, size"
LIST_FIELDS = f"nextPageToken, files({FILE_FIELDS})"
PAGE_SIZE = 100

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})
QUOTA_REASONS = frozenset({"storageQuotaExceeded"})


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _error_reason(error: HttpError) -> str:
    details = getattr(error, "error_details", None)
    if isinstance(details, list):
        for item in details:
            if isinstance(item, dict) and item.get("reason"):
                return str(item["reason"])
    text = str(error)
    for reason in RATE_LIMIT_REASONS | QUOTA_REASONS:
        if reason in text:
            return reason
    return ""


def translate_http_error(error: HttpError, action: str) -> SyncError:
    """Map a Drive HTTP failure onto the sync error taxonomy."""
    status = int(getattr(error.resp, "status", 0) or 0)
    reason = _error_reason(error)
    details: Dict[str, Any] = {"action": action, "status": status}
    if reason:
        details["reason"] = reason

    if status == 401:
        return AuthError("Google session was rejected", details=details)
    if status == 403 and reason in QUOTA_REASONS:
        return QuotaError("Drive storage quota exceeded", details=details)
    if status == 429 or status >= 500 or (status == 403 and reason in RATE_LIMIT_REASONS):
        return NetworkError(f"Drive {action} failed with HTTP {status}", details=details)
    if status == 404:
        return NotFoundError(f"Drive object not found during {action}", details=details)
    if status == 403:
        return AuthError("Drive access denied", details=details)
    return SyncError(f"Drive {action} failed with HTTP {status}", details=details)


class GoogleDriveClient:
    """CloudStorageClient over the Drive v3 REST API.

    Uploads and downloads are chunked and resumable; progress is reported
    after every chunk and a cancellation token is checked before each one.

    Example:
        client = GoogleDriveClient(provider.authenticate())
        folder_id = client.get_or_create_folder("Backups")
    """

    def __init__(
        self,
        session: Optional[Session],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        service: Any = None,
        logger: Optional[Logger] = None,
    ) -> None:
        """Bind a client to a signed-in session.

        Args:
            session: Active session; None raises AuthError
            chunk_size: Transfer chunk size in bytes
            service: Prebuilt Drive resource (tests pass a mock)
            logger: Optional logger

        Raises:
            AuthError: If there is no session
        """
        if session is None:
            raise AuthError("Not signed in to Google Drive")
        self.session = session
        self.chunk_size = chunk_size
        self.logger = logger or create_logger(name="qamus-sync.cloud")
        self._service = service or build(
            "drive", "v3", credentials=session.credentials, cache_discovery=False
        )

    def _call(self, action: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except HttpError as e:
            raise translate_http_error(e, action) from e
        except RefreshError as e:
            raise AuthError(f"Could not refresh Google credentials: {e}", details={"action": action}) from e
        except (TransportError, httplib2.HttpLib2Error, OSError) as e:
            # httplib2 re-raises socket and ssl errors unchanged
            raise NetworkError(f"Drive {action} failed: {e}", details={"action": action}) from e

    def get_or_create_folder(self, name: str) -> str:
        query = (
            f"mimeType='{FOLDER_MIME_TYPE}' and name='{escape_query_value(name)}' and trashed=false"
        )
        request = self._service.files().list(
            q=query,
            spaces="drive",
            fields="files(id, createdTime)",
            orderBy="createdTime",
        )
        folders = self._call("find folder", request.execute).get("files", [])

        if len(folders) > 1:
            self.logger.warning(
                "Duplicate backup folders found, using the oldest",
                folder=name,
                count=len(folders),
            )
        if folders:
            return folders[0]["id"]

        body = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        created = self._call(
            "create folder", self._service.files().create(body=body, fields="id").execute
        )
        self.logger.info("Created backup folder", folder=name, folder_id=created["id"])
        return created["id"]

    def list_files(self, folder_id: str, mime_type: str = BACKUP_MIME_TYPE) -> List[BackupMetadata]:
        query = (
            f"'{escape_query_value(folder_id)}' in parents "
            f"and mimeType='{escape_query_value(mime_type)}' and trashed=false"
        )
        result: List[BackupMetadata] = []
        page_token: Optional[str] = None
        while True:
            request = self._service.files().list(
                q=query,
                spaces="drive",
                fields=LIST_FIELDS,
                pageSize=PAGE_SIZE,
                pageToken=page_token,
            )
            response = self._call("list", request.execute)
            result.extend(_to_metadata(item) for item in response.get("files", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                return result

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
        media = MediaIoBaseUpload(source, mimetype=mime_type, chunksize=self.chunk_size, resumable=True)
        body = {"name": name, "parents": [folder_id], "mimeType": mime_type}
        request = self._service.files().create(body=body, media_body=media, fields=FILE_FIELDS)
        remove_callback = cancel_token.on_cancel(source.close) if cancel_token else None

        try:
            response = None
            while response is None:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled("Upload cancelled")
                status, response = self._call("upload", request.next_chunk)
                if status is not None:
                    sent = status.resumable_progress
                    on_progress(progress_percent(sent, source_length), sent)
        except TransferCancelledError:
            raise
        except Exception as e:
            # A stream closed by cancel() fails mid-read with ValueError/OSError
            if cancel_token is not None and cancel_token.cancelled:
                raise TransferCancelledError("Upload cancelled") from e
            raise
        finally:
            if remove_callback is not None:
                remove_callback()

        on_progress(100, source_length)
        metadata = _to_metadata(response)
        self.logger.debug("Upload finished", file_id=metadata.id, size=metadata.size_bytes)
        return metadata

    def download(
        self,
        file_id: str,
        dest: BinaryIO,
        on_progress: ProgressCallback,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        request = self._service.files().get_media(fileId=file_id)
        downloader = MediaIoBaseDownload(dest, request, chunksize=self.chunk_size)
        # Closing the connections makes a blocked next_chunk fail fast
        remove_callback = cancel_token.on_cancel(request.http.close) if cancel_token else None

        try:
            done = False
            while not done:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled("Download cancelled")
                status, done = self._call("download", downloader.next_chunk)
                if status is not None:
                    on_progress(int(status.progress() * 100), status.resumable_progress)
        except TransferCancelledError:
            raise
        except Exception as e:
            if cancel_token is not None and cancel_token.cancelled:
                raise TransferCancelledError("Download cancelled") from e
            raise
        finally:
            if remove_callback is not None:
                remove_callback()

    def delete(self, file_id: str) -> None:
        try:
            self._call("delete", self._service.files().delete(fileId=file_id).execute)
        except NotFoundError:
            self.logger.debug("Delete of missing file ignored", file_id=file_id)


def _to_metadata(item: Dict[str, Any]) -> BackupMetadata:
    return BackupMetadata(
        id=item["id"],
        name=item.get("name", ""),
        created_time=parse_rfc3339(item["createdTime"]),
        size_bytes=int(item.get("size") or 0),
    )
