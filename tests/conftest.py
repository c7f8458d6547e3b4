"""Shared fixtures for qamus-sync tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from qamus_sync.auth import MemorySessionProvider
from qamus_sync.backup import BackupOrchestrator
from qamus_sync.cloud import MemoryCloudStorage
from qamus_sync.config import MemorySettingsStore, SyncConfig
from qamus_sync.exceptions import NetworkError
from qamus_sync.scheduling import MemoryJobQueue, StaticNetworkMonitor
from qamus_sync.service import SyncService


class StepClock:
    """Clock that advances by a fixed step on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = current + self.step
        return current


class FileStore:
    """LocalStore over a plain file that records close/reopen calls."""

    def __init__(self, path: Path):
        self.db_path = path
        self.closed = 0
        self.reopened = 0

    def path(self) -> Path:
        return self.db_path

    def close(self) -> None:
        self.closed += 1

    def reopen(self) -> None:
        self.reopened += 1


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def cloud(clock):
    return MemoryCloudStorage(clock=clock, chunk_size=4)


@pytest.fixture
def sessions():
    return MemorySessionProvider(account="reader@example.com", signed_in=True)


@pytest.fixture
def db_file(tmp_path):
    path = tmp_path / "qamus_database.db"
    path.write_bytes(b"dictionary-v1")
    return path


@pytest.fixture
def local_store(db_file):
    return FileStore(db_file)


@pytest.fixture
def settings_store():
    return MemorySettingsStore()


@pytest.fixture
def orchestrator(local_store, sessions, cloud, clock, settings_store):
    return BackupOrchestrator(local_store, sessions, cloud.client, clock=clock, settings_store=settings_store)


class FlakyCloud:
    """Client factory over MemoryCloudStorage with injectable failures.

    ``upload_failures`` uploads fail with NetworkError before uploads start
    succeeding; ``delete_error`` and ``download_error`` are raised by every
    delete/download (a download writes a few bytes first).
    """

    def __init__(self, storage):
        self.storage = storage
        self.upload_failures = 0
        self.upload_attempts = 0
        self.delete_error = None
        self.download_error = None

    def __call__(self, session):
        return _FlakyClient(self, self.storage.client(session))


class _FlakyClient:
    def __init__(self, owner, inner):
        self.owner = owner
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def upload(self, *args, **kwargs):
        self.owner.upload_attempts += 1
        if self.owner.upload_attempts <= self.owner.upload_failures:
            raise NetworkError("Connection reset")
        return self.inner.upload(*args, **kwargs)

    def download(self, file_id, dest, on_progress, cancel_token=None):
        if self.owner.download_error is not None:
            dest.write(b"partial")
            raise self.owner.download_error
        return self.inner.download(file_id, dest, on_progress, cancel_token)

    def delete(self, file_id):
        if self.owner.delete_error is not None:
            raise self.owner.delete_error
        return self.inner.delete(file_id)


@pytest.fixture
def flaky(cloud):
    return FlakyCloud(cloud)


@pytest.fixture
def make_file_store():
    return FileStore


@pytest.fixture
def job_queue():
    return MemoryJobQueue()


@pytest.fixture
def service(tmp_path, local_store, sessions, cloud, settings_store, job_queue):
    """SyncService wired to in-memory collaborators."""
    svc = SyncService(
        SyncConfig(data_dir=tmp_path, retry_base_delay=0),
        session_provider=sessions,
        client_factory=cloud.client,
        local_store=local_store,
        settings_store=settings_store,
        job_queue=job_queue,
        network_monitor=StaticNetworkMonitor(metered=False),
    )
    yield svc
    svc.stop()
