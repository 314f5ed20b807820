"""Unit tests for Bangladesh calendar-date normalization"""

import pytest
from datetime import date, datetime, timedelta, timezone
from collection_gateway.utils.date_utils import (
    format_bd_date,
    generate_date_range,
    is_within_day_range,
    parse_moment,
    to_local_calendar_date,
)


@pytest.mark.parametrize(
    "value",
    [
        "2024-06-15T18:00:00Z",  # 00:00 in Dhaka
        "2024-06-16T00:30:00+06:00",
        "2024-06-16T05:30:00+05:30",  # same instant seen from India
        "2024-06-15T13:00:00-05:00",
        "2024-06-16T17:59:59Z",  # 23:59:59 in Dhaka
        datetime(2024, 6, 16, 9, 0, tzinfo=timezone(timedelta(hours=-8))) - timedelta(hours=9),
    ],
)
def test_instants_on_the_same_dhaka_day_normalize_equal(value):
    """Any instant inside one Dhaka calendar day maps to that day, whatever the offset"""
    assert to_local_calendar_date(value) == date(2024, 6, 16)


def test_dhaka_day_boundary():
    assert to_local_calendar_date("2024-06-15T17:59:59Z") == date(2024, 6, 15)
    assert to_local_calendar_date("2024-06-15T18:00:00Z") == date(2024, 6, 16)


def test_date_only_values_are_taken_verbatim():
    assert to_local_calendar_date("2024-06-15") == date(2024, 6, 15)
    assert to_local_calendar_date(date(2024, 6, 15)) == date(2024, 6, 15)


def test_naive_datetime_treated_as_utc():
    assert to_local_calendar_date(datetime(2024, 6, 15, 20, 0)) == date(2024, 6, 16)


def test_epoch_milliseconds():
    # 2024-06-15T18:00:00Z
    assert to_local_calendar_date(1718474400000) == date(2024, 6, 16)


@pytest.mark.parametrize("value", [None, "", "not-a-date", "2024-13-45", float("nan"), True, {"$date": 1}])
def test_invalid_input_yields_none(value):
    assert parse_moment(value) is None
    assert to_local_calendar_date(value) is None


def test_is_within_day_range():
    target = date(2024, 6, 8)
    assert is_within_day_range("2024-06-05", target, 3)
    assert is_within_day_range("2024-06-11T17:00:00Z", target, 3)  # 23:00 on the 11th in Dhaka
    assert not is_within_day_range("2024-06-11T18:00:00Z", target, 3)  # already the 12th
    assert not is_within_day_range("2024-06-04", target, 3)


def test_is_within_day_range_invalid_is_false():
    assert not is_within_day_range("garbage", date(2024, 6, 8), 3)
    assert not is_within_day_range(date(2024, 6, 8), None, 3)


def test_format_bd_date():
    assert format_bd_date("2024-06-15T18:30:00Z") == "16/06/2024"
    assert format_bd_date(None) == "N/A"


def test_generate_date_range_inclusive():
    days = generate_date_range(date(2024, 2, 27), date(2024, 3, 1))
    assert days == [date(2024, 2, 27), date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
