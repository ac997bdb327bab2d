"""Timestamp formatting utilities."""

from datetime import datetime, timedelta


def now() -> str:
    """Compact timestamp for directory names (e.g., "20251114_123456")."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def today() -> str:
    """Current date as YYYY-MM-DD."""
    return datetime.now().strftime("%Y-%m-%d")


def format_duration(duration: timedelta) -> str:
    """
    Format a duration the way it appears in timeout messages.

    Whole seconds print as "30s", fractional seconds keep millisecond
    precision ("0.250s"), and anything a minute or longer falls back to
    H:MM:SS.

    Examples:
        format_duration(timedelta(seconds=30))
        # "30s"

        format_duration(timedelta(milliseconds=250))
        # "0.250s"

        format_duration(timedelta(minutes=2, seconds=5))
        # "0:02:05"
    """
    seconds = duration.total_seconds()
    if seconds >= 60:
        return str(timedelta(seconds=round(seconds)))
    if seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{seconds:.3f}s"
