"""Tests for the transfer state machine and cancellation tokens."""

import threading

import pytest

from qamus_sync.exceptions import (
    InvalidTransitionError,
    NetworkError,
    TransferCancelledError,
    TransferInProgressError,
)
from qamus_sync.transfer import (
    CancellationToken,
    Error,
    Idle,
    InProgress,
    Success,
    TransferKind,
    TransferStateMachine,
    is_terminal,
)


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_cancel_runs_callbacks_once(self):
        """Callbacks run on the first cancel only."""
        token = CancellationToken()
        calls = []
        token.on_cancel(lambda: calls.append("closed"))

        assert token.cancel() is True
        assert token.cancel() is False
        assert calls == ["closed"]
        assert token.cancelled

    def test_callback_after_cancel_runs_immediately(self):
        """Registering on a cancelled token runs the callback at once."""
        token = CancellationToken()
        token.cancel()
        calls = []
        token.on_cancel(lambda: calls.append(1))
        assert calls == [1]

    def test_removed_callback_does_not_run(self):
        """The returned remover unregisters the callback."""
        token = CancellationToken()
        calls = []
        remove = token.on_cancel(lambda: calls.append(1))
        remove()
        token.cancel()
        assert calls == []

    def test_wait_wakes_on_cancel(self):
        """wait() returns True as soon as another thread cancels."""
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        assert token.wait(5) is True
        timer.join()

    def test_raise_if_cancelled(self):
        """raise_if_cancelled raises only after cancellation."""
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()
        with pytest.raises(TransferCancelledError):
            token.raise_if_cancelled()


class TestTransitions:
    """Tests for the transfer lifecycle."""

    def test_happy_path(self):
        """Idle -> InProgress -> Success -> Idle."""
        machine = TransferStateMachine()
        assert machine.state == Idle()

        machine.start(TransferKind.BACKUP)
        assert machine.state == InProgress(TransferKind.BACKUP)

        assert machine.complete() is True
        assert machine.state == Success(TransferKind.BACKUP)
        assert is_terminal(machine.state)

        machine.reset()
        assert machine.state == Idle()

    def test_start_while_in_progress_raises(self):
        """A second start while running is rejected."""
        machine = TransferStateMachine()
        machine.start(TransferKind.BACKUP)
        with pytest.raises(TransferInProgressError):
            machine.start(TransferKind.RESTORE)

    def test_start_from_terminal_requires_reset(self):
        """A terminal state must be reset before starting again."""
        machine = TransferStateMachine()
        machine.start(TransferKind.BACKUP)
        machine.complete()
        with pytest.raises(InvalidTransitionError):
            machine.start(TransferKind.BACKUP)

    def test_fail_records_error(self):
        """fail() keeps the message and cause."""
        machine = TransferStateMachine()
        machine.start(TransferKind.RESTORE)
        cause = NetworkError("Connection reset")
        machine.fail(cause)

        state = machine.state
        assert isinstance(state, Error)
        assert state.kind is TransferKind.RESTORE
        assert state.message == "Connection reset"
        assert state.cause is cause

    def test_duplicate_terminal_is_dropped(self):
        """Only the first terminal notification wins."""
        machine = TransferStateMachine()
        machine.start(TransferKind.BACKUP)
        machine.complete()

        assert machine.fail(NetworkError("late")) is False
        assert machine.complete() is False
        assert machine.state == Success(TransferKind.BACKUP)

    def test_reset_rules(self):
        """reset() is a no-op from Idle and an error while running."""
        machine = TransferStateMachine()
        machine.reset()
        machine.start(TransferKind.BACKUP)
        with pytest.raises(TransferInProgressError):
            machine.reset()


class TestProgress:
    """Tests for progress reporting."""

    def test_progress_updates_state(self):
        """Progress is reflected in the InProgress state."""
        machine = TransferStateMachine()
        machine.start(TransferKind.BACKUP)
        machine.report_progress(40, 4096)
        assert machine.state == InProgress(TransferKind.BACKUP, 40, 4096)

    def test_progress_is_clamped(self):
        """Percent is clamped to 0..100."""
        machine = TransferStateMachine()
        machine.start(TransferKind.BACKUP)
        machine.report_progress(250, 10)
        assert machine.state.progress_percent == 100

    def test_out_of_order_progress_is_dropped(self):
        """Lower percent or byte counts never move progress backwards."""
        machine = TransferStateMachine()
        machine.start(TransferKind.BACKUP)
        machine.report_progress(60, 600)
        machine.report_progress(30, 300)
        machine.report_progress(60, 500)
        assert machine.state == InProgress(TransferKind.BACKUP, 60, 600)

    def test_progress_outside_transfer_is_ignored(self):
        """Progress in Idle or terminal states changes nothing."""
        machine = TransferStateMachine()
        machine.report_progress(50, 10)
        assert machine.state == Idle()

        machine.start(TransferKind.BACKUP)
        machine.complete()
        machine.report_progress(50, 10)
        assert machine.state == Success(TransferKind.BACKUP)


class TestCancel:
    """Tests for cancellation through the machine."""

    def test_cancel_moves_to_error_and_fires_token(self):
        """cancel() ends in Error with a cancellation cause."""
        machine = TransferStateMachine()
        token = machine.start(TransferKind.BACKUP)

        assert machine.cancel() is True
        assert token.cancelled
        state = machine.state
        assert isinstance(state, Error)
        assert isinstance(state.cause, TransferCancelledError)

    def test_cancel_when_idle(self):
        """Nothing to cancel returns False."""
        assert TransferStateMachine().cancel() is False

    def test_each_start_gets_fresh_token(self):
        """A new transfer is not affected by an earlier cancellation."""
        machine = TransferStateMachine()
        first = machine.start(TransferKind.BACKUP)
        machine.cancel()
        machine.reset()
        second = machine.start(TransferKind.BACKUP)
        assert first.cancelled
        assert not second.cancelled


class TestListeners:
    """Tests for state listeners."""

    def test_listener_sees_current_then_transitions(self):
        """Listeners get the current state and every change in order."""
        machine = TransferStateMachine()
        seen = []
        machine.add_listener(seen.append)

        machine.start(TransferKind.RESTORE)
        machine.report_progress(50, 5)
        machine.complete()

        assert seen == [
            Idle(),
            InProgress(TransferKind.RESTORE),
            InProgress(TransferKind.RESTORE, 50, 5),
            Success(TransferKind.RESTORE),
        ]

    def test_failing_listener_is_isolated(self):
        """A listener exception does not break the machine."""
        machine = TransferStateMachine()

        def broken(_state):
            raise RuntimeError("ui bug")

        machine.add_listener(broken)
        machine.start(TransferKind.BACKUP)
        assert machine.complete() is True

    def test_remove_listener(self):
        """Removed listeners receive nothing further."""
        machine = TransferStateMachine()
        seen = []
        remove = machine.add_listener(seen.append)
        remove()
        machine.start(TransferKind.BACKUP)
        assert seen == [Idle()]
