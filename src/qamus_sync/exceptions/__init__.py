"""Exceptions for qamus-sync.

Usage:
    from qamus_sync.exceptions import AuthError, NetworkError, SyncError

    try:
        orchestrator.backup()
    except SyncError as e:
        print(e.to_dict())
"""

from qamus_sync.exceptions.base import (
    AuthError,
    ConfigurationError,
    InvalidTransitionError,
    LocalIOError,
    NetworkError,
    NotFoundError,
    QuotaError,
    RetryExhaustedError,
    SyncError,
    TransferCancelledError,
    TransferInProgressError,
    is_retryable,
)

__all__ = [
    "SyncError",
    "AuthError",
    "NotFoundError",
    "NetworkError",
    "LocalIOError",
    "QuotaError",
    "ConfigurationError",
    "TransferCancelledError",
    "TransferInProgressError",
    "InvalidTransitionError",
    "RetryExhaustedError",
    "is_retryable",
]
