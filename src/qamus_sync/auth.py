"""Session and credential providers.

The engine only needs "is someone signed in, and with which credentials".
``GoogleSessionProvider`` loads google-auth credentials scoped to the files
the app itself created in Drive; ``MemorySessionProvider`` is for tests.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable

import google.auth
from google.auth.exceptions import DefaultCredentialsError
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account

from qamus_sync.exceptions import AuthError
from qamus_sync.logger import Logger, create_logger

DRIVE_FILE_SCOPE = "https://www.googleapis.com/auth/drive.file"


@dataclass(frozen=True)
class Session:
    """An authenticated account and the credentials used for API calls."""

    account: str
    credentials: Any = None


@runtime_checkable
class SessionProvider(Protocol):
    """Protocol for credential providers."""

    def current_session(self) -> Optional[Session]:
        """Return the signed-in session, or None."""
        ...

    def authenticate(self) -> Session:
        """Sign in and return the new session.

        Raises:
            AuthError: If credentials cannot be obtained
        """
        ...

    def invalidate(self) -> None:
        """Forget the current session (sign out)."""
        ...


class MemorySessionProvider:
    """In-memory session provider for tests and offline use.

    Example:
        provider = MemorySessionProvider(account="reader@example.com")
        provider.authenticate()
    """

    def __init__(self, account: str = "local", signed_in: bool = False) -> None:
        self.account = account
        self.authenticate_calls = 0
        self._session: Optional[Session] = Session(account=account) if signed_in else None

    def current_session(self) -> Optional[Session]:
        return self._session

    def authenticate(self) -> Session:
        self.authenticate_calls += 1
        self._session = Session(account=self.account)
        return self._session

    def invalidate(self) -> None:
        self._session = None


class GoogleSessionProvider:
    """Session provider backed by google-auth credentials.

    Credentials come from ``credentials_file`` when given (a service account
    key or an authorized-user file written by an OAuth consent flow), and
    from Application Default Credentials otherwise. Expired access tokens
    are refreshed by the HTTP transport; a refresh that fails surfaces as
    ``AuthError`` from the storage client.
    """

    def __init__(
        self,
        credentials_file: Optional[Path] = None,
        scopes: Sequence[str] = (DRIVE_FILE_SCOPE,),
        logger: Optional[Logger] = None,
    ) -> None:
        self.credentials_file = Path(credentials_file) if credentials_file else None
        self.scopes: List[str] = list(scopes)
        self.logger = logger or create_logger(name="qamus-sync.auth")
        self._lock = threading.Lock()
        self._session: Optional[Session] = None

    def current_session(self) -> Optional[Session]:
        with self._lock:
            return self._session

    def authenticate(self) -> Session:
        credentials, account = self._load_credentials()
        session = Session(account=account, credentials=credentials)
        with self._lock:
            self._session = session
        self.logger.info("Signed in", account=account)
        return session

    def invalidate(self) -> None:
        with self._lock:
            had_session = self._session is not None
            self._session = None
        if had_session:
            self.logger.info("Signed out")

    def _load_credentials(self) -> tuple[Any, str]:
        if self.credentials_file is None:
            try:
                credentials, project_id = google.auth.default(scopes=self.scopes)
            except DefaultCredentialsError as e:
                raise AuthError(
                    "No Google credentials available",
                    details={"hint": "set a credentials file or application default credentials"},
                ) from e
            account = getattr(credentials, "service_account_email", None) or project_id or "default"
            return credentials, account

        try:
            info = json.loads(self.credentials_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise AuthError(
                f"Cannot read credentials file: {e}",
                details={"path": str(self.credentials_file)},
            ) from e

        kind = info.get("type")
        try:
            if kind == "service_account":
                credentials = service_account.Credentials.from_service_account_info(
                    info, scopes=self.scopes
                )
                return credentials, credentials.service_account_email
            if kind == "authorized_user":
                credentials = user_credentials.Credentials.from_authorized_user_info(
                    info, scopes=self.scopes
                )
                return credentials, info.get("account") or info.get("client_id", "authorized_user")
        except ValueError as e:
            raise AuthError(
                f"Invalid credentials file: {e}",
                details={"path": str(self.credentials_file)},
            ) from e

        raise AuthError(
            f"Unsupported credentials type: {kind!r}",
            details={"path": str(self.credentials_file)},
        )


__all__ = [
    "DRIVE_FILE_SCOPE",
    "Session",
    "SessionProvider",
    "MemorySessionProvider",
    "GoogleSessionProvider",
]
