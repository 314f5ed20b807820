"""Collection sheet column dates for a month window"""

import calendar
from datetime import date
from enum import Enum
from typing import List, Optional, Union

from collection_gateway.utils.date_utils import generate_date_range

FRIDAY = 4  # date.weekday(): Monday=0 ... Sunday=6

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}
DEFAULT_WEEKDAY = "saturday"


class ScheduleMode(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def parse_weekday(value: Union[str, int, None]) -> int:
    """Weekday name ("Saturday") or number (Monday=0) -> number"""
    if value is None:
        return WEEKDAYS[DEFAULT_WEEKDAY]
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise ValueError(f"Weekday out of range: {value}")
    key = value.strip().lower()
    if key not in WEEKDAYS:
        raise ValueError(f"Unknown weekday: {value}")
    return WEEKDAYS[key]


def generate_collection_dates(
    mode: Union[ScheduleMode, str],
    year: int,
    month: int,
    weekday: Union[str, int, None] = None,
) -> List[date]:
    """
    Ordered, de-duplicated column dates for one month.

    - daily: every day except Fridays
    - weekly: every occurrence of `weekday` (default Saturday)
    - monthly: the first non-Friday day of the month

    Raises:
        ValueError: unknown mode, invalid month, or unknown weekday
    """
    mode = ScheduleMode(mode)
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    last_day = calendar.monthrange(year, month)[1]
    days = generate_date_range(date(year, month, 1), date(year, month, last_day))

    if mode == ScheduleMode.DAILY:
        selected = [day for day in days if day.weekday() != FRIDAY]
    elif mode == ScheduleMode.WEEKLY:
        target = parse_weekday(weekday)
        selected = [day for day in days if day.weekday() == target]
    else:
        first: Optional[date] = next((day for day in days if day.weekday() != FRIDAY), None)
        selected = [first] if first else []

    return sorted(set(selected))
