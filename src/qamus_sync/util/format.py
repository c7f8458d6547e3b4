"""Human-readable sizes and durations for CLI output."""

BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    """Format a byte count with one decimal, e.g. ``1536`` -> ``"1.5 KB"``."""
    if size <= 0:
        return "0 B"
    group = 0
    while group < len(BYTE_UNITS) - 1 and size >= 1024 ** (group + 1):
        group += 1
    return f"{size / 1024 ** group:.1f} {BYTE_UNITS[group]}"


def format_minutes(minutes: float) -> str:
    """Format minutes as ``"2 hours 5 minutes"`` or ``"45 minutes"``."""
    hours = int(minutes // 60)
    mins = int(minutes % 60)
    if hours > 0:
        return f"{hours} hours {mins} minutes"
    return f"{mins} minutes"
