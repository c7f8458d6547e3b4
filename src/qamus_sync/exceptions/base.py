"""Exception classes for the backup/restore engine.

Every error carries structured information:
- code: Machine-readable error identifier
- message: Human-readable error description
- details: Additional context for debugging/recovery

``retryable`` tells RetryPolicy whether another attempt may succeed.
"""

from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base exception for all qamus-sync errors.

    Attributes:
        code: Machine-readable error code (e.g., "NETWORK_ERROR")
        message: Human-readable error message
        details: Optional additional context
    """

    default_code = "SYNC_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize error with structured information.

        Args:
            message: Human-readable error message
            code: Error code, defaults to the class's default_code
            details: Optional additional context
        """
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class AuthError(SyncError):
    """No session, or the provider rejected the current one."""

    default_code = "AUTH_REQUIRED"


class NotFoundError(SyncError):
    """No backup exists remotely, or the local database file is missing."""

    default_code = "NOT_FOUND"


class NetworkError(SyncError):
    """Transient transport failure: timeouts, throttling, 5xx responses."""

    default_code = "NETWORK_ERROR"
    retryable = True


class LocalIOError(SyncError):
    """Reading or writing the local database file failed."""

    default_code = "LOCAL_IO_ERROR"


class QuotaError(SyncError):
    """Remote storage is full."""

    default_code = "QUOTA_EXCEEDED"


class ConfigurationError(SyncError):
    """Invalid or incomplete configuration."""

    default_code = "CONFIGURATION_ERROR"


class TransferCancelledError(SyncError):
    """The transfer was cancelled before it finished."""

    default_code = "TRANSFER_CANCELLED"


class TransferInProgressError(SyncError):
    """A backup or restore is already running on this orchestrator."""

    default_code = "TRANSFER_IN_PROGRESS"


class InvalidTransitionError(SyncError):
    """A transfer state change that the lifecycle does not allow."""

    default_code = "INVALID_TRANSITION"


class RetryExhaustedError(SyncError):
    """Every attempt allowed by a RetryPolicy failed.

    The last underlying failure is kept on ``last_error`` and chained as
    ``__cause__``.
    """

    default_code = "RETRY_EXHAUSTED"

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            f"Gave up after {attempts} attempt(s): {last_error}",
            details={"attempts": attempts, "last_error": type(last_error).__name__},
        )
        self.attempts = attempts
        self.last_error = last_error


def is_retryable(error: BaseException) -> bool:
    """Whether a failure is worth another attempt."""
    if isinstance(error, SyncError):
        return error.retryable
    return isinstance(error, (TimeoutError, ConnectionError))
