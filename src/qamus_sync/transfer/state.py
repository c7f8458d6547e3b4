"""Transfer lifecycle states.

    Idle -> InProgress* -> Success | Error -> Idle
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class TransferKind(str, Enum):
    BACKUP = "backup"
    RESTORE = "restore"


@dataclass(frozen=True)
class Idle:
    """No transfer has started since the last reset."""


@dataclass(frozen=True)
class InProgress:
    kind: TransferKind
    progress_percent: int = 0
    bytes_transferred: int = 0


@dataclass(frozen=True)
class Success:
    kind: TransferKind


@dataclass(frozen=True)
class Error:
    kind: TransferKind
    message: str
    cause: Optional[BaseException] = None


TransferState = Union[Idle, InProgress, Success, Error]


def is_terminal(state: TransferState) -> bool:
    return isinstance(state, (Success, Error))
