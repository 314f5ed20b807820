"""Date manipulation utilities for Bangladesh local time (UTC+6)"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional, Union

# Asia/Dhaka has no DST, so a fixed offset is exact
BD_TIMEZONE = timezone(timedelta(hours=6), "Asia/Dhaka")

Moment = Union[date, datetime]


def parse_moment(value: Any) -> Optional[Moment]:
    """
    Parse an arbitrary backend date value.

    Returns an aware datetime for instants, a plain date for date-only values,
    and None when the value is missing or unparseable. Naive datetimes are
    treated as UTC; numbers are epoch milliseconds.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, date):
        return value

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if len(text) == 10:
            try:
                return date.fromisoformat(text)
            except ValueError:
                return None
        try:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)

    return None


def to_local_calendar_date(value: Any) -> Optional[date]:
    """Normalize any date value to its Bangladesh calendar day (None if invalid)"""
    moment = parse_moment(value)
    if moment is None:
        return None
    if isinstance(moment, datetime):
        return moment.astimezone(BD_TIMEZONE).date()
    return moment


def is_within_day_range(value: Any, target: Any, days: int) -> bool:
    """True iff both dates are valid and at most `days` calendar days apart"""
    left = to_local_calendar_date(value)
    right = to_local_calendar_date(target)
    if left is None or right is None:
        return False
    return abs((left - right).days) <= days


def current_bd_date() -> date:
    return datetime.now(BD_TIMEZONE).date()


def format_bd_date(value: Any) -> str:
    """Format as DD/MM/YYYY in Bangladesh time"""
    day = to_local_calendar_date(value)
    if day is None:
        return "N/A"
    return day.strftime("%d/%m/%Y")


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]
