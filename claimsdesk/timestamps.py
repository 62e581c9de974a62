"""
Claims Desk - Timestamp Utilities

Australian Eastern Standard Time (AEST = UTC+10) helpers for client-facing
messages. Timestamps stored in the database remain naive UTC.
"""

from datetime import datetime, timezone, timedelta

# Australian Eastern Standard Time (UTC+10). Emails say "AEST" year-round.
AEST = timezone(timedelta(hours=10), name="AEST")


def now_utc() -> datetime:
    """Return the current time as naive UTC (compatible with database datetimes)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_aest(dt: datetime) -> datetime:
    """
    Convert a UTC datetime to an AEST-aware datetime.

    Args:
        dt: A datetime in UTC (naive or aware).

    Returns:
        Timezone-aware datetime in AEST.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(AEST)


def format_aest(utc_naive: datetime, fmt: str = "%d %B %Y at %I:%M %p AEST") -> str:
    """Format a naive UTC datetime as an AEST string for display."""
    return to_aest(utc_naive).strftime(fmt)


def isoformat_utc(utc_naive: datetime) -> str:
    """ISO-8601 string with an explicit UTC offset, for JSON responses."""
    return utc_naive.replace(tzinfo=timezone.utc).isoformat()
