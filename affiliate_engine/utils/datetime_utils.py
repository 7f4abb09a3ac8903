"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, date, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def utc_today() -> date:
    """Get current UTC calendar date."""
    return utc_now().date()


def add_days(moment: datetime, days: int) -> datetime:
    """
    Shift a datetime by whole days.

    Args:
        moment: Base datetime
        days: Number of days (may be zero)

    Returns:
        Shifted datetime
    """
    return moment + timedelta(days=days)


def as_utc(moment: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values (as returned by some drivers) are assumed to be UTC.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)
