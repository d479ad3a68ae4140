"""
Calendar helpers.
Timestamps are stored as naive UTC; business dates ("today", due dates,
days open) are taken in the workshop timezone.
"""
from datetime import datetime, date
from typing import Optional, Union
import pytz
from ..config import settings


def local_now(timezone_str: Optional[str] = None) -> datetime:
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.now(tz)


def local_today(timezone_str: Optional[str] = None) -> date:
    return local_now(timezone_str).date()


def utc_to_local(utc_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert UTC datetime to local timezone.

    Args:
        utc_datetime: UTC datetime (naive values are treated as UTC)
        timezone_str: Timezone string (defaults to TZ_DEFAULT)

    Returns:
        Local datetime (timezone-aware)
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    if utc_datetime.tzinfo is None:
        utc_dt = utc_datetime.replace(tzinfo=pytz.UTC)
    else:
        utc_dt = utc_datetime.astimezone(pytz.UTC)
    return utc_dt.astimezone(tz)


def to_local_date(value: Union[datetime, date]) -> date:
    if isinstance(value, datetime):
        return utc_to_local(value).date()
    return value


def local_day_start_utc(day: date, timezone_str: Optional[str] = None) -> datetime:
    """Naive UTC instant at which ``day`` starts in the workshop timezone."""
    tz = pytz.timezone(timezone_str or settings.tz_default)
    start = tz.localize(datetime.combine(day, datetime.min.time()))
    return start.astimezone(pytz.UTC).replace(tzinfo=None)


def days_since(value: Optional[Union[datetime, date]], today: Optional[date] = None) -> Optional[int]:
    """Whole calendar days between value and today (None when value is None)."""
    if value is None:
        return None
    today = today or local_today()
    return (today - to_local_date(value)).days


def iso(value: Optional[Union[datetime, date]]) -> Optional[str]:
    return value.isoformat() if value else None
