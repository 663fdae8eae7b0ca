"""
Time helpers for the referee league sync application.

Timestamps come in two shapes on the wire: ``lastModified`` values are epoch
seconds, calendar values (``date``, ``scheduledTime``) are ISO-8601 strings.
"""
import time
from datetime import datetime, timezone
from typing import Optional


def now_ts() -> float:
    """
    Get current timestamp in epoch seconds.

    Returns:
        Current time as floating point epoch seconds
    """
    return time.time()


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def next_timestamp(previous: Optional[float]) -> float:
    """
    Return a modification timestamp strictly greater than ``previous``.

    The wall clock can return the same value twice (or step backwards), so
    the result is bumped just past ``previous`` when needed.
    """
    current = now_ts()
    if previous is not None and current <= previous:
        return previous + 0.001
    return current


def format_iso(value: datetime) -> str:
    """
    Format a datetime as an ISO-8601 UTC string.

    Naive datetimes are taken to be UTC already.

    Example:
        >>> format_iso(datetime(2025, 3, 2, 14, 0))
        '2025-03-02T14:00:00+00:00'
    """
    return ensure_utc(value).isoformat()


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Accepts the trailing ``Z`` that JavaScript's ``toISOString`` produces.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
