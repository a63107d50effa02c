"""Utility functions for the Overwatch core."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a naive UTC datetime.

    Every datetime persisted by the store is naive UTC so SQLite and
    PostgreSQL round-trip the same values.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_week_start(reference: Optional[datetime] = None) -> datetime:
    """Return Monday 00:00 of the week containing ``reference``.

    Examples:
        >>> get_week_start(datetime(2026, 10, 14, 15, 30))
        datetime.datetime(2026, 10, 12, 0, 0)
        >>> get_week_start(datetime(2026, 10, 18, 23, 59))
        datetime.datetime(2026, 10, 12, 0, 0)
    """
    ref = reference or utc_now()
    monday = ref - timedelta(days=ref.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def elapsed_seconds(start: datetime, end: Optional[datetime] = None) -> int:
    """Whole seconds between ``start`` and ``end`` (never negative)."""
    end = end or utc_now()
    return max(0, int((end - start).total_seconds()))


def split_duration(total_seconds: int) -> tuple[int, int, int]:
    """Split seconds into (hours, minutes, seconds)."""
    hours, remainder = divmod(int(total_seconds), 3600)
    minutes, seconds = divmod(remainder, 60)
    return hours, minutes, seconds


def format_hm(total_seconds: int) -> str:
    """Format seconds as ``"1h 5m"``."""
    hours, minutes, _ = split_duration(total_seconds)
    return f"{hours}h {minutes}m"


def format_hms(total_seconds: int) -> str:
    """Format seconds as ``"1h 5m 9s"``."""
    hours, minutes, seconds = split_duration(total_seconds)
    return f"{hours}h {minutes}m {seconds}s"


def format_wait(seconds: float) -> str:
    """Humanize a wait time, omitting zero components.

    Examples:
        >>> format_wait(3723)
        '1h 2m 3s'
        >>> format_wait(120)
        '2m'
        >>> format_wait(0)
        '0s'
    """
    hours, minutes, secs = split_duration(int(seconds))
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
