"""Unit tests for collection sheet column dates"""

import pytest
from datetime import date
from collection_gateway.domain.schedule import FRIDAY, ScheduleMode, generate_collection_dates, parse_weekday


def test_daily_excludes_fridays():
    """June 2024 has 30 days and 4 Fridays"""
    dates = generate_collection_dates(ScheduleMode.DAILY, 2024, 6)
    assert len(dates) == 26
    assert all(d.weekday() != FRIDAY for d in dates)
    assert dates == sorted(set(dates))
    assert dates[0] == date(2024, 6, 1)
    assert dates[-1] == date(2024, 6, 30)


def test_weekly_defaults_to_saturday():
    dates = generate_collection_dates("weekly", 2024, 6)
    assert dates == [date(2024, 6, d) for d in (1, 8, 15, 22, 29)]


@pytest.mark.parametrize("weekday", ["Tuesday", "tuesday", " TUESDAY ", 1])
def test_weekly_on_weekday(weekday):
    dates = generate_collection_dates(ScheduleMode.WEEKLY, 2024, 6, weekday)
    assert dates == [date(2024, 6, d) for d in (4, 11, 18, 25)]


def test_monthly_skips_a_leading_friday():
    # 1 March 2024 is a Friday
    assert generate_collection_dates(ScheduleMode.MONTHLY, 2024, 3) == [date(2024, 3, 2)]
    assert generate_collection_dates(ScheduleMode.MONTHLY, 2024, 6) == [date(2024, 6, 1)]


def test_leap_february_daily():
    dates = generate_collection_dates(ScheduleMode.DAILY, 2024, 2)
    # 29 days, Fridays on 2, 9, 16, 23
    assert len(dates) == 25


@pytest.mark.parametrize(
    "mode, month, weekday",
    [
        ("fortnightly", 6, None),
        (ScheduleMode.DAILY, 13, None),
        (ScheduleMode.DAILY, 0, None),
        (ScheduleMode.WEEKLY, 6, "Caturday"),
        (ScheduleMode.WEEKLY, 6, 7),
    ],
)
def test_invalid_arguments_raise_value_error(mode, month, weekday):
    with pytest.raises(ValueError):
        generate_collection_dates(mode, 2024, month, weekday)


def test_parse_weekday_default():
    assert parse_weekday(None) == 5
