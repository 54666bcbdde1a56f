"""
utils/time_utils.py

Purpose: Time helpers

- Report date ranges in the business timezone
- Month keys for the monthly document allowance
- Timestamp formatting
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo


def local_now(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """
    Current time in `tz_name`. `now` is a naive UTC datetime (as stored).
    """
    utc_now = (now or datetime.utcnow()).replace(tzinfo=timezone.utc)
    return utc_now.astimezone(ZoneInfo(tz_name))


def _to_naive_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def report_range(period: str, tz_name: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Resolves a report period to a naive-UTC [start, end) range.

    - daily: since local midnight today
    - weekly: the last 7 days including today
    - monthly: since the 1st of the current month

    Raises:
        ValueError: for an unknown period
    """
    local = local_now(tz_name, now)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == "daily":
        start = midnight
    elif period == "weekly":
        start = midnight - timedelta(days=6)
    elif period == "monthly":
        start = midnight.replace(day=1)
    else:
        raise ValueError(f"Unknown report period: {period}")

    return _to_naive_utc(start), _to_naive_utc(local) + timedelta(seconds=1)


def month_key(now: Optional[datetime] = None) -> str:
    """YYYY-MM of a naive UTC datetime."""
    return (now or datetime.utcnow()).strftime("%Y-%m")


def format_timestamp(dt: Optional[datetime], format_str: str = "%d %b %Y") -> str:
    """
    Formats a datetime object to string.
    """
    if not dt:
        return "N/A"
    return dt.strftime(format_str)
