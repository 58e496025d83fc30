"""
Time utilities: UTC now, RFC 3339 formatting and parsing.

All functions use timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def to_rfc3339(dt: datetime) -> str:
    """
    Format a datetime as RFC 3339 with a Z suffix. Naive datetimes are
    assumed to be UTC.

    >>> from datetime import datetime, timezone
    >>> to_rfc3339(datetime(2024, 2, 15, 10, 30, tzinfo=timezone.utc))
    '2024-02-15T10:30:00.000000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def now_iso() -> str:
    """
    Return current UTC time as RFC 3339 string.

    >>> s = now_iso()
    >>> s.endswith('Z') and 'T' in s
    True
    """
    return to_rfc3339(utc_now())


def iso_to_dt(s: str) -> datetime:
    """
    Parse ISO 8601 / RFC 3339 string to timezone-aware datetime.
    Assumes UTC if no timezone in string.

    >>> dt = iso_to_dt("2024-02-15T10:30:00.000000Z")
    >>> dt.tzinfo is not None
    True
    """
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
