"""
Logger interface for qamus-sync.

Every component takes an optional ``Logger`` and falls back to a named
``StructuredLogger``, so tests can inject a recording implementation.
"""

from abc import ABC, abstractmethod
from typing import Any


class Logger(ABC):
    """Abstract logging contract.

    Keyword arguments are structured fields: they are appended to text
    output or emitted as JSON keys, never interpolated into the message.

    Example:
        logger.info("Backup uploaded", file_id="abc", size_bytes=4096)
    """

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug message."""

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message."""

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error message."""

    @abstractmethod
    def critical(self, message: str, **kwargs: Any) -> None:
        """Log a critical message."""

    @abstractmethod
    def get_session_id(self) -> str:
        """Return the identifier shared by every record of this logger instance."""
