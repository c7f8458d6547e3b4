"""Cooperative cancellation shared between a controller and background I/O."""

import threading
from typing import Callable, List, Optional

from qamus_sync.exceptions import TransferCancelledError


class CancellationToken:
    """One-shot cancellation flag with close callbacks.

    The side doing I/O polls ``cancelled`` between chunks and registers
    ``on_cancel`` callbacks to close its streams, so a blocked read unwinds
    as soon as the controller calls ``cancel()``.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """Fire the token. Returns False when it had already fired."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation (immediately if already cancelled).

        Returns:
            A function that unregisters the callback
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return remove
        callback()
        return lambda: None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns:
            True if the token was cancelled
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self, message: str = "Transfer cancelled") -> None:
        if self._event.is_set():
            raise TransferCancelledError(message)
