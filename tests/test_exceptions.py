"""Tests for the sync exception hierarchy.

These tests verify:
1. Exception structure (code, message, details)
2. Default codes per error type
3. Retryability flags
4. Dictionary conversion for JSON serialization
"""

import pytest

from qamus_sync.exceptions import (
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


class TestSyncError:
    """Tests for base SyncError class."""

    def test_basic_construction(self):
        """Test basic exception construction."""
        error = SyncError("Test message", code="TEST_CODE")

        assert error.code == "TEST_CODE"
        assert error.message == "Test message"
        assert error.details == {}

    def test_default_code(self):
        """Test that code falls back to the class default."""
        assert SyncError("boom").code == "SYNC_ERROR"

    def test_str_without_details(self):
        """Test string representation without details."""
        assert str(SyncError("Test message", code="TEST_CODE")) == "TEST_CODE: Test message"

    def test_str_with_details(self):
        """Test string representation with details."""
        result = str(SyncError("Test message", details={"foo": "bar"}))
        assert "SYNC_ERROR" in result
        assert "foo" in result

    def test_to_dict(self):
        """Test conversion to dictionary."""
        error = NotFoundError("No backup found", details={"folder": "Backups"})

        assert error.to_dict() == {
            "code": "NOT_FOUND",
            "message": "No backup found",
            "details": {"folder": "Backups"},
        }


class TestErrorCodes:
    """Tests for the codes of each error type."""

    @pytest.mark.parametrize(
        "error_class,code",
        [
            (AuthError, "AUTH_REQUIRED"),
            (NotFoundError, "NOT_FOUND"),
            (NetworkError, "NETWORK_ERROR"),
            (LocalIOError, "LOCAL_IO_ERROR"),
            (QuotaError, "QUOTA_EXCEEDED"),
            (ConfigurationError, "CONFIGURATION_ERROR"),
            (TransferCancelledError, "TRANSFER_CANCELLED"),
            (TransferInProgressError, "TRANSFER_IN_PROGRESS"),
            (InvalidTransitionError, "INVALID_TRANSITION"),
        ],
    )
    def test_default_codes(self, error_class, code):
        """Each error type carries its own machine code."""
        error = error_class("message")
        assert error.code == code
        assert isinstance(error, SyncError)

    def test_retry_exhausted_keeps_last_error(self):
        """RetryExhaustedError records attempts and the last failure."""
        last = NetworkError("timeout")
        error = RetryExhaustedError(3, last)

        assert error.code == "RETRY_EXHAUSTED"
        assert error.attempts == 3
        assert error.last_error is last
        assert error.details == {"attempts": 3, "last_error": "NetworkError"}


class TestRetryable:
    """Tests for is_retryable."""

    def test_network_error_is_retryable(self):
        """Only transient sync errors are retryable."""
        assert is_retryable(NetworkError("503"))
        assert not is_retryable(AuthError("expired"))
        assert not is_retryable(QuotaError("full"))

    def test_builtin_transport_errors_are_retryable(self):
        """Builtin timeouts and connection errors are retried."""
        assert is_retryable(TimeoutError())
        assert is_retryable(ConnectionResetError())
        assert not is_retryable(ValueError())
