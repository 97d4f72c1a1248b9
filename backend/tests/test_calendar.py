"""Tests for weekday numbering, date projection and schedule walking."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.services.calendar import (
    add_elapsed_minutes,
    day_name_to_number,
    iter_schedule_dates,
    local_datetime,
    local_today,
    parse_hhmm,
    project_date,
    resolve_timezone,
    weekday_of,
)


@pytest.mark.parametrize("d,expected", [
    (date(2024, 6, 2), 0),  # Sunday
    (date(2024, 6, 3), 1),
    (date(2024, 6, 5), 3),
    (date(2024, 6, 8), 6),  # Saturday
])
def test_weekday_of_is_sunday_based(d, expected):
    assert weekday_of(d) == expected


@pytest.mark.parametrize("name,expected", [
    ("sunday", 0),
    ("Monday", 1),
    ("WEDNESDAY", 3),
    (" friday ", 5),
    ("sat", 6),
    ("thu", 4),
    ("thurs", 4),
])
def test_day_name_to_number(name, expected):
    assert day_name_to_number(name) == expected


@pytest.mark.parametrize("name", ["", "mo", "funday", None])
def test_day_name_to_number_rejects_unknown(name):
    with pytest.raises(ValueError):
        day_name_to_number(name)


def test_project_date_from_sunday_anchor():
    sunday = date(2024, 6, 2)
    assert project_date(sunday, 0) == sunday
    assert project_date(sunday, 3) == date(2024, 6, 5)
    assert project_date(sunday, 6) == date(2024, 6, 8)


def test_project_date_never_before_anchor():
    """A mid-week anchor wraps earlier weekdays into the following week."""
    wednesday = date(2024, 6, 5)
    assert project_date(wednesday, 3) == wednesday
    assert project_date(wednesday, 1) == date(2024, 6, 10)
    for dow in range(7):
        projected = project_date(wednesday, dow)
        assert 0 <= (projected - wednesday).days <= 6
        assert weekday_of(projected) == dow


def test_iter_schedule_dates_inclusive_window():
    # Tuesday 2024-06-04 through Tuesday 2024-06-18, Mon/Wed/Fri
    dates = list(iter_schedule_dates(date(2024, 6, 4), date(2024, 6, 18), [1, 3, 5]))
    assert dates == [
        date(2024, 6, 5),
        date(2024, 6, 7),
        date(2024, 6, 10),
        date(2024, 6, 12),
        date(2024, 6, 14),
        date(2024, 6, 17),
    ]


def test_iter_schedule_dates_end_date_caps():
    dates = list(iter_schedule_dates(date(2024, 6, 4), date(2024, 6, 18), [1, 3, 5], end_date=date(2024, 6, 10)))
    assert dates == [date(2024, 6, 5), date(2024, 6, 7), date(2024, 6, 10)]


def test_iter_schedule_dates_end_date_in_past_yields_nothing():
    assert list(iter_schedule_dates(date(2024, 6, 4), date(2024, 6, 18), [1, 3, 5], end_date=date(2024, 6, 1))) == []


def test_parse_hhmm():
    assert parse_hhmm("16:45") == time(16, 45)
    assert parse_hhmm("07:30:00") == time(7, 30)
    assert parse_hhmm(None, "09:00") == time(9, 0)
    with pytest.raises(ValueError):
        parse_hhmm("25:00")
    with pytest.raises(ValueError):
        parse_hhmm("noon")


def test_resolve_timezone_falls_back_to_default():
    assert resolve_timezone("America/New_York").key == "America/New_York"
    assert resolve_timezone("Not/AZone").key == "UTC"
    assert resolve_timezone(None).key == "UTC"


def test_local_today_uses_owner_timezone():
    """23:30 UTC on June 4 is still June 4 in New York but June 5 in Tokyo."""
    now = datetime(2024, 6, 4, 23, 30, tzinfo=timezone.utc)
    assert local_today(resolve_timezone("America/New_York"), now) == date(2024, 6, 4)
    assert local_today(resolve_timezone("Asia/Tokyo"), now) == date(2024, 6, 5)


NEW_YORK = ZoneInfo("America/New_York")


def test_local_datetime_moves_gap_time_forward():
    # 2024-03-10 02:00 EST jumps to 03:00 EDT
    dt = local_datetime(date(2024, 3, 10), time(2, 30), NEW_YORK)
    assert (dt.hour, dt.minute) == (3, 30)
    assert dt.utcoffset() == timedelta(hours=-4)
    assert dt.astimezone(timezone.utc) == datetime(2024, 3, 10, 7, 30, tzinfo=timezone.utc)


def test_local_datetime_plain_day_keeps_wall_clock():
    dt = local_datetime(date(2024, 6, 5), time(6, 30), NEW_YORK)
    assert (dt.hour, dt.minute) == (6, 30)
    assert dt.utcoffset() == timedelta(hours=-4)


@pytest.mark.parametrize("start_day,start_time,expected_wall", [
    (date(2024, 11, 3), time(1, 30), (1, 30)),  # clocks fall back inside the hour
    (date(2024, 3, 10), time(1, 30), (3, 30)),  # clocks spring forward inside the hour
    (date(2024, 6, 5), time(6, 30), (7, 30)),
])
def test_add_elapsed_minutes_counts_real_time(start_day, start_time, expected_wall):
    start = local_datetime(start_day, start_time, NEW_YORK)
    end = add_elapsed_minutes(start, 60)
    assert end.astimezone(timezone.utc) - start.astimezone(timezone.utc) == timedelta(minutes=60)
    assert (end.hour, end.minute) == expected_wall


def test_add_elapsed_minutes_naive_is_plain_addition():
    assert add_elapsed_minutes(datetime(2024, 6, 5, 6, 30), 75) == datetime(2024, 6, 5, 7, 45)
