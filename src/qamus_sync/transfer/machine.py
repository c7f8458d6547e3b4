"""State machine tracking one backup or restore at a time."""

import threading
from typing import Callable, List, Optional

from qamus_sync.exceptions import (
    InvalidTransitionError,
    TransferCancelledError,
    TransferInProgressError,
)
from qamus_sync.logger import Logger, create_logger
from qamus_sync.transfer.cancellation import CancellationToken
from qamus_sync.transfer.state import (
    Error,
    Idle,
    InProgress,
    Success,
    TransferKind,
    TransferState,
    is_terminal,
)

StateListener = Callable[[TransferState], None]


class TransferStateMachine:
    """Lifecycle of a single transfer, observable by listeners.

    Transitions and listener notifications happen under one re-entrant lock,
    so listeners see states in the order they were produced and may call
    back into the machine (for example ``cancel()`` from a progress handler).

    Example:
        machine = TransferStateMachine()
        token = machine.start(TransferKind.BACKUP)
        machine.report_progress(40, 4096)
        machine.complete()
        machine.reset()
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger or create_logger(name="qamus-sync.transfer")
        self._lock = threading.RLock()
        self._state: TransferState = Idle()
        self._token: Optional[CancellationToken] = None
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> TransferState:
        with self._lock:
            return self._state

    @property
    def token(self) -> Optional[CancellationToken]:
        """Cancellation token of the current (or last) operation."""
        with self._lock:
            return self._token

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Subscribe to state changes; the current state is delivered immediately.

        Returns:
            A function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)
            self._deliver(listener, self._state)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def start(self, kind: TransferKind) -> CancellationToken:
        """Begin a transfer.

        Returns:
            The cancellation token the I/O for this transfer must honour

        Raises:
            TransferInProgressError: If a transfer is already running
            InvalidTransitionError: If the last transfer was not reset
        """
        with self._lock:
            if isinstance(self._state, InProgress):
                raise TransferInProgressError(
                    f"A {self._state.kind.value} is already in progress",
                    details={"requested": kind.value, "running": self._state.kind.value},
                )
            if is_terminal(self._state):
                raise InvalidTransitionError(
                    "Transfer state must be reset before starting a new transfer",
                    details={"state": type(self._state).__name__},
                )
            self._token = CancellationToken()
            self._transition(InProgress(kind=kind))
            return self._token

    def report_progress(self, percent: int, bytes_transferred: int) -> None:
        """Record progress; stale or out-of-order updates are dropped."""
        with self._lock:
            current = self._state
            if not isinstance(current, InProgress):
                self.logger.debug("Progress ignored outside a transfer", percent=percent)
                return
            percent = max(0, min(100, int(percent)))
            if percent < current.progress_percent or bytes_transferred < current.bytes_transferred:
                self.logger.debug(
                    "Out-of-order progress dropped",
                    percent=percent,
                    current=current.progress_percent,
                )
                return
            if percent == current.progress_percent and bytes_transferred == current.bytes_transferred:
                return
            self._transition(InProgress(current.kind, percent, bytes_transferred))

    def complete(self) -> bool:
        """Move to Success. Returns False if the transfer had already ended."""
        with self._lock:
            current = self._state
            if not isinstance(current, InProgress):
                self.logger.debug("Duplicate terminal notification dropped", outcome="success")
                return False
            self._transition(Success(kind=current.kind))
            return True

    def fail(self, error: BaseException) -> bool:
        """Move to Error. Returns False if the transfer had already ended."""
        with self._lock:
            current = self._state
            if not isinstance(current, InProgress):
                self.logger.debug("Duplicate terminal notification dropped", outcome="error")
                return False
            message = getattr(error, "message", None) or str(error) or type(error).__name__
            self._transition(Error(kind=current.kind, message=message, cause=error))
            return True

    def cancel(self) -> bool:
        """Cancel the running transfer and signal its I/O to stop.

        Returns:
            False when nothing was in progress
        """
        with self._lock:
            current = self._state
            if not isinstance(current, InProgress):
                return False
            cause = TransferCancelledError(f"{current.kind.value.capitalize()} cancelled")
            self._transition(Error(kind=current.kind, message=cause.message, cause=cause))
            token = self._token
        if token is not None:
            token.cancel()
        self.logger.info("Transfer cancelled", kind=current.kind.value)
        return True

    def reset(self) -> None:
        """Return to Idle from a terminal state.

        Raises:
            TransferInProgressError: If a transfer is still running
        """
        with self._lock:
            if isinstance(self._state, InProgress):
                raise TransferInProgressError("Cannot reset while a transfer is in progress")
            if isinstance(self._state, Idle):
                return
            self._transition(Idle())

    def _transition(self, new_state: TransferState) -> None:
        self._state = new_state
        for listener in list(self._listeners):
            self._deliver(listener, new_state)

    def _deliver(self, listener: StateListener, state: TransferState) -> None:
        try:
            listener(state)
        except Exception as e:
            self.logger.error("Transfer listener failed", error=str(e), state=type(state).__name__)
