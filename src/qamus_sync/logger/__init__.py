"""
qamus-sync logger module

Usage:
    from qamus_sync.logger import get_logger, create_logger

    logger = get_logger("qamus-sync")
    logger.info("Scheduler started", job="backup")

    logger = create_logger("qamus-sync", level=logging.DEBUG, json_format=True)

Environment Variables:
    {PREFIX}_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL
    {PREFIX}_LOG_FILE: Optional file path for log output
    {PREFIX}_LOG_JSON: "true" for JSON output

    {PREFIX} is the first dotted segment of the logger name, upper-cased with
    dashes turned into underscores ("qamus-sync.backup" -> "QAMUS_SYNC").
"""

import logging
import os
from typing import Optional

from .interface import Logger
from .structured_logger import JsonFormatter, StructuredLogger, TextFormatter


def _get_env_prefix(name: str) -> str:
    return name.split(".", 1)[0].upper().replace("-", "_")


def create_logger(
    name: str = "qamus-sync",
    level: Optional[int] = None,
    log_file: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> Logger:
    """Create a logger, filling unset options from the environment.

    Args:
        name: Logger name (e.g. "qamus-sync.scheduler.backup")
        level: Logging level (defaults to {PREFIX}_LOG_LEVEL or INFO)
        log_file: Optional file path (defaults to {PREFIX}_LOG_FILE)
        json_format: JSON output (defaults to {PREFIX}_LOG_JSON)

    Returns:
        A configured Logger instance
    """
    env_prefix = _get_env_prefix(name)

    if level is None:
        level_name = os.environ.get(f"{env_prefix}_LOG_LEVEL", "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)

    if log_file is None:
        log_file = os.environ.get(f"{env_prefix}_LOG_FILE")

    if json_format is None:
        json_format = os.environ.get(f"{env_prefix}_LOG_JSON", "false").lower() == "true"

    return StructuredLogger(name=name, level=level, log_file=log_file, json_format=json_format)


def get_logger(name: str = "qamus-sync") -> Logger:
    """Get a logger configured entirely from environment variables."""
    return create_logger(name=name)


__all__ = [
    "Logger",
    "StructuredLogger",
    "JsonFormatter",
    "TextFormatter",
    "create_logger",
    "get_logger",
]
