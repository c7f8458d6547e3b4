"""Transfer state tracking for backup and restore operations."""

from qamus_sync.transfer.cancellation import CancellationToken
from qamus_sync.transfer.machine import StateListener, TransferStateMachine
from qamus_sync.transfer.state import (
    Error,
    Idle,
    InProgress,
    Success,
    TransferKind,
    TransferState,
    is_terminal,
)

__all__ = [
    "CancellationToken",
    "TransferStateMachine",
    "StateListener",
    "TransferKind",
    "TransferState",
    "Idle",
    "InProgress",
    "Success",
    "Error",
    "is_terminal",
]
