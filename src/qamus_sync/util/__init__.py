"""Small shared helpers."""

from qamus_sync.util.format import format_bytes, format_minutes

__all__ = ["format_bytes", "format_minutes"]
