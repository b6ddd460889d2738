from datetime import date, datetime, timedelta, timezone

import pytest

from journalbook.services.weeks import FixedClock, Week, week_ending, week_of


def test_every_day_maps_to_monday_through_sunday():
    start = date(2023, 12, 1)
    for offset in range(120):
        d = start + timedelta(days=offset)
        week = week_of(d)
        assert week.start.isoweekday() == 1
        assert week.end.isoweekday() == 7
        assert week.end - week.start == timedelta(days=6)
        assert d in week


def test_sunday_belongs_to_the_week_before_it():
    # 2024-01-07 is a Sunday; its week started on Monday 2024-01-01
    assert week_of(date(2024, 1, 7)) == Week(date(2024, 1, 1), date(2024, 1, 7))
    assert week_of(date(2024, 1, 8)).start == date(2024, 1, 8)


def test_week_crossing_year_boundary():
    week = week_of(date(2025, 1, 1))
    assert week.start == date(2024, 12, 30)
    assert week.end == date(2025, 1, 5)


def test_week_ending_requires_sunday():
    assert week_ending(date(2024, 1, 7)) == Week(date(2024, 1, 1), date(2024, 1, 7))
    with pytest.raises(ValueError):
        week_ending(date(2024, 1, 6))


def test_fixed_clock_reports_local_day():
    # 02:00 UTC Monday is still Sunday evening in New York
    clock = FixedClock(datetime(2024, 1, 8, 2, 0, tzinfo=timezone.utc), "America/New_York")
    assert clock.today() == date(2024, 1, 7)


def test_naive_datetimes_are_treated_as_utc():
    clock = FixedClock(datetime(2024, 1, 8, 2, 0), "America/New_York")
    assert clock.today() == date(2024, 1, 7)
