"""Local database handle the backup engine copies to and from the cloud."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol, runtime_checkable

from qamus_sync.exceptions import LocalIOError


@runtime_checkable
class LocalStore(Protocol):
    """A single-file local store.

    Restore replaces the backing file, so the store must be closed first and
    reopened afterwards.
    """

    def path(self) -> Path:
        """Backing file of the store."""
        ...

    def close(self) -> None:
        ...

    def reopen(self) -> None:
        ...


class SqliteLocalStore:
    """SQLite-backed LocalStore holding one shared connection.

    Example:
        store = SqliteLocalStore(Path("~/.local/share/qamus/qamus_database.db").expanduser())
        with store.connection() as conn:
            conn.execute("SELECT count(*) FROM words")
    """

    def __init__(self, db_path: Path, open_now: bool = False) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        if open_now:
            self.reopen()

    def path(self) -> Path:
        return self.db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def reopen(self) -> None:
        """(Re)open the connection, creating the file when it does not exist."""
        with self._lock:
            self.close()
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(self.db_path, check_same_thread=False)
            except (OSError, sqlite3.Error) as e:
                raise LocalIOError(f"Cannot open database: {e}", details={"path": str(self.db_path)}) from e
            conn.row_factory = sqlite3.Row
            self._conn = conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield the open connection, committing on success."""
        with self._lock:
            if self._conn is None:
                self.reopen()
            conn = self._conn
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise


__all__ = ["LocalStore", "SqliteLocalStore"]
