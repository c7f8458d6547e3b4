"""Tests for the in-memory cloud storage client."""

import io
from datetime import datetime, timezone

import pytest

from qamus_sync.auth import Session
from qamus_sync.cloud import (
    BACKUP_MIME_TYPE,
    FOLDER_MIME_TYPE,
    CloudStorageClient,
    MemoryCloudClient,
    MemoryCloudStorage,
)
from qamus_sync.exceptions import AuthError, NotFoundError, TransferCancelledError
from qamus_sync.transfer import CancellationToken


@pytest.fixture
def client(cloud):
    return cloud.client(Session(account="reader"))


class TestProtocol:
    """Tests for protocol conformance and auth."""

    def test_is_cloud_storage_client(self, client):
        """MemoryCloudClient implements CloudStorageClient."""
        assert isinstance(client, CloudStorageClient)

    def test_requires_session(self, cloud):
        """No session means AuthError."""
        with pytest.raises(AuthError):
            MemoryCloudClient(cloud, None)

    def test_revoked_session(self, cloud, client):
        """Calls with a revoked account fail with AuthError."""
        cloud.revoke("reader")
        with pytest.raises(AuthError):
            client.get_or_create_folder("Backups")


class TestFolders:
    """Tests for folder lookup."""

    def test_get_or_create_is_idempotent(self, client):
        """Two calls return the same folder id."""
        assert client.get_or_create_folder("Backups") == client.get_or_create_folder("Backups")

    def test_duplicate_folders_resolve_to_oldest(self, cloud, client):
        """With several folders of one name the oldest wins."""
        older = cloud.add_object(
            "Backups", mime_type=FOLDER_MIME_TYPE, created_time=datetime(2020, 1, 1, tzinfo=timezone.utc)
        )
        cloud.add_object(
            "Backups", mime_type=FOLDER_MIME_TYPE, created_time=datetime(2021, 1, 1, tzinfo=timezone.utc)
        )
        assert client.get_or_create_folder("Backups") == older


class TestTransfers:
    """Tests for upload, download, listing and delete."""

    def test_upload_reports_chunked_progress(self, cloud, client):
        """Progress is reported per chunk and ends at 100%."""
        folder = client.get_or_create_folder("Backups")
        progress = []
        data = b"0123456789"

        metadata = client.upload(folder, "db.db", BACKUP_MIME_TYPE, io.BytesIO(data), len(data),
                                 lambda p, b: progress.append((p, b)))

        assert progress == [(40, 4), (80, 8), (100, 10)]
        assert metadata.size_bytes == 10
        assert cloud.get(metadata.id).data == data

    def test_list_filters_by_parent_and_mime(self, cloud, client):
        """Only direct children with the requested MIME type are listed."""
        folder = client.get_or_create_folder("Backups")
        cloud.add_object("a.db", parent=folder, data=b"a")
        cloud.add_object("notes.txt", parent=folder, mime_type="text/plain")
        cloud.add_object("b.db", parent="elsewhere")

        assert [m.name for m in client.list_files(folder)] == ["a.db"]

    def test_download_writes_bytes(self, cloud, client):
        """Download streams the object into the destination."""
        file_id = cloud.add_object("a.db", parent="f", data=b"hello world")
        dest = io.BytesIO()
        progress = []

        client.download(file_id, dest, lambda p, b: progress.append(p))

        assert dest.getvalue() == b"hello world"
        assert progress[-1] == 100

    def test_download_missing(self, client):
        """Downloading an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            client.download("nope", io.BytesIO(), lambda p, b: None)

    def test_delete_is_idempotent(self, cloud, client):
        """Deleting twice succeeds."""
        file_id = cloud.add_object("a.db", parent="f")
        client.delete(file_id)
        client.delete(file_id)
        assert cloud.get(file_id) is None

    def test_cancelled_upload_closes_source(self, cloud, client):
        """A cancelled upload stops, closes the source and stores nothing."""
        folder = client.get_or_create_folder("Backups")
        token = CancellationToken()
        source = io.BytesIO(b"0123456789")

        def on_progress(percent, sent):
            if percent >= 40:
                token.cancel()

        with pytest.raises(TransferCancelledError):
            client.upload(folder, "db.db", BACKUP_MIME_TYPE, source, 10, on_progress, token)

        assert source.closed
        assert client.list_files(folder) == []

    def test_created_times_are_increasing(self):
        """Objects created in the same instant still sort in creation order."""
        instant = datetime(2024, 1, 1, tzinfo=timezone.utc)
        storage = MemoryCloudStorage(clock=lambda: instant)
        first = storage.get(storage.add_object("a"))
        second = storage.get(storage.add_object("b"))
        assert second.created_time > first.created_time
