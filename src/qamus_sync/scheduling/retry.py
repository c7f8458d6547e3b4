"""Bounded retry with linear backoff for scheduled work.

Only transient failures are retried (``NetworkError`` and the builtin
``TimeoutError``/``ConnectionError``); anything else is re-raised on the
first attempt.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from qamus_sync.exceptions import RetryExhaustedError, TransferCancelledError, is_retryable
from qamus_sync.logger import Logger
from qamus_sync.transfer.cancellation import CancellationToken

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Call an operation up to ``max_attempts`` times.

    After failed attempt ``n`` the policy waits ``base_delay * n`` seconds.

    Example:
        policy = RetryPolicy(max_attempts=3, base_delay=1.0)
        metadata = policy.run(orchestrator.backup)
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    logger: Optional[Logger] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * attempt

    def run(self, operation: Callable[[], T], cancel_token: Optional[CancellationToken] = None) -> T:
        """Run ``operation`` until it succeeds or the attempts run out.

        Args:
            operation: Zero-argument callable
            cancel_token: Optional token; cancelling it ends the backoff wait

        Returns:
            The operation's result

        Raises:
            RetryExhaustedError: After ``max_attempts`` retryable failures
            TransferCancelledError: If cancelled while waiting
            Exception: Any non-retryable failure, unchanged
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            if last_error is not None:
                self._wait(attempt - 1, last_error, cancel_token)
            try:
                return operation()
            except Exception as e:
                if not is_retryable(e):
                    raise
                last_error = e

        if self.logger:
            self.logger.error("Retries exhausted", attempts=self.max_attempts, error=str(last_error))
        raise RetryExhaustedError(self.max_attempts, last_error) from last_error

    def _wait(self, attempt: int, error: Exception, cancel_token: Optional[CancellationToken]) -> None:
        delay = self.delay_for(attempt)
        if self.logger:
            self.logger.warning(
                "Attempt failed, retrying",
                attempt=attempt,
                max_attempts=self.max_attempts,
                delay_seconds=delay,
                error=str(error),
            )
        if cancel_token is not None:
            if cancel_token.wait(delay):
                raise TransferCancelledError("Retry cancelled") from error
        elif delay > 0:
            time.sleep(delay)
