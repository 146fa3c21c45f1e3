"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def period_start(period: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Resolve a named period to its lower bound.

    - today:   midnight today
    - week:    rolling last 7 days
    - month:   first day of the month
    - quarter: first day of the quarter
    - year:    January 1st

    Unrecognized names return None (no lower bound).
    """
    now = as_utc(now) if now else utc_now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    name = (period or "").lower()

    if name == "today":
        return midnight
    elif name == "week":
        return now - timedelta(days=7)
    elif name == "month":
        return midnight.replace(day=1)
    elif name == "quarter":
        quarter_month = (now.month - 1) // 3 * 3 + 1
        return midnight.replace(month=quarter_month, day=1)
    elif name == "year":
        return midnight.replace(month=1, day=1)
    return None


def week_key(value: datetime) -> str:
    """ISO week key, e.g. 2024-W01 (the ISO year can differ from the calendar year)"""
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def bucket_key(value: datetime, group_by: str) -> str:
    """Trend bucket for a timestamp: day (YYYY-MM-DD), week (YYYY-Www) or month (YYYY-MM)"""
    value = as_utc(value)
    if group_by == "week":
        return week_key(value)
    elif group_by == "month":
        return value.strftime("%Y-%m")
    return value.strftime("%Y-%m-%d")
