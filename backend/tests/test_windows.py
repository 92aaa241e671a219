from datetime import date, datetime

import pytest

from punchclock.services.windows import build_window, get_timezone, local_date, weekday_name

TZ = get_timezone("America/Chicago")


def test_weekday_names_start_on_sunday():
    assert weekday_name(date(2026, 2, 1)) == "sunday"
    assert weekday_name(date(2026, 2, 4)) == "wednesday"


def test_local_date_uses_schedule_timezone():
    # 03:00 UTC on the 5th is still the 4th in Chicago
    assert local_date(datetime(2026, 2, 5, 3, 0), TZ) == date(2026, 2, 4)


def test_day_window():
    window = build_window("day", date(2026, 2, 4), tz=TZ)
    assert window.start == datetime(2026, 2, 4, 6, 0)
    assert window.end == datetime(2026, 2, 5, 6, 0)


def test_week_window_honours_week_start():
    monday = build_window("week", date(2026, 2, 4), week_starts_on=1, tz=TZ)
    assert monday.start == datetime(2026, 2, 2, 6, 0)
    assert monday.end == datetime(2026, 2, 9, 6, 0)

    sunday = build_window("week", date(2026, 2, 4), week_starts_on=0, tz=TZ)
    assert sunday.start == datetime(2026, 2, 1, 6, 0)


def test_week_window_from_instant():
    # Sunday night in Chicago, Monday morning UTC
    window = build_window("week", datetime(2026, 2, 9, 3, 0), week_starts_on=1, tz=TZ)
    assert window.start == datetime(2026, 2, 2, 6, 0)


def test_month_window():
    window = build_window("month", date(2026, 2, 17), tz=TZ)
    assert window.start == datetime(2026, 2, 1, 6, 0)
    assert window.end == datetime(2026, 3, 1, 6, 0)


def test_custom_window_is_inclusive_of_end_date():
    window = build_window("custom", date(2026, 2, 4), tz=TZ,
                          custom_start=date(2026, 2, 2), custom_end=date(2026, 2, 3))
    assert window.start == datetime(2026, 2, 2, 6, 0)
    assert window.end == datetime(2026, 2, 4, 6, 0)
    assert len(window.local_days(TZ)) == 2


def test_bad_views_raise():
    with pytest.raises(ValueError):
        build_window("year", date(2026, 2, 4), tz=TZ)
    with pytest.raises(ValueError):
        build_window("custom", date(2026, 2, 4), tz=TZ, custom_start=date(2026, 2, 2))
    with pytest.raises(ValueError):
        build_window("custom", date(2026, 2, 4), tz=TZ,
                     custom_start=date(2026, 2, 5), custom_end=date(2026, 2, 2))


def test_previous_week():
    window = build_window("week", date(2026, 2, 4), week_starts_on=1, tz=TZ)
    previous = window.previous(7)
    assert previous.end == window.start
    assert previous.start == datetime(2026, 1, 26, 6, 0)
