"""
Time Utilities

All timestamps in market records are timezone-aware UTC datetimes. Exchanges,
the database driver and tests hand us naive or aware values; these helpers
normalize them.
"""

from datetime import datetime, timezone


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC

    Example:
        >>> current_utc_datetime()
        datetime.datetime(2024, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Return `dt` as a timezone-aware UTC datetime.

    Naive datetimes are assumed to already be in UTC; aware ones are converted.

    Examples:
        >>> ensure_utc(datetime(2024, 1, 1, 12, 0))
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
