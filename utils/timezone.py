"""UTC-everywhere time handling for token claims and audit rows."""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def from_timestamp(seconds: int | float) -> datetime:
    """Convert a POSIX timestamp (e.g. a JWT 'exp' claim) to a UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
