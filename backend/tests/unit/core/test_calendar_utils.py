from datetime import date, time

import pytest

from dispatchly.core.calendar_utils import (
    add_months,
    day_of_week,
    end_minutes_of,
    format_minutes,
    holiday_matches,
    iso_week_bounds,
    iter_dates,
    month_bounds,
    time_from_minutes,
)


class TestWeekday:
    def test_sunday_is_zero(self):
        assert day_of_week(date(2030, 1, 6)) == 0

    def test_saturday_is_six(self):
        assert day_of_week(date(2030, 1, 12)) == 6

    def test_leap_day_weekday(self):
        # Feb 29, 2028 is a Tuesday
        assert day_of_week(date(2028, 2, 29)) == 2


class TestBounds:
    def test_iso_week_is_monday_to_sunday(self):
        assert iso_week_bounds(date(2030, 1, 9)) == (date(2030, 1, 7), date(2030, 1, 13))

    def test_iso_week_for_sunday_belongs_to_previous_monday(self):
        assert iso_week_bounds(date(2030, 1, 13)) == (date(2030, 1, 7), date(2030, 1, 13))

    def test_month_bounds_handles_leap_february(self):
        assert month_bounds(date(2028, 2, 10)) == (date(2028, 2, 1), date(2028, 2, 29))

    def test_iter_dates_is_inclusive(self):
        assert list(iter_dates(date(2030, 1, 30), date(2030, 2, 1))) == [
            date(2030, 1, 30),
            date(2030, 1, 31),
            date(2030, 2, 1),
        ]


class TestAddMonths:
    def test_clamps_to_short_month(self):
        assert add_months(date(2030, 1, 31), 1) == date(2030, 2, 28)

    def test_offsets_from_anchor_restore_long_months(self):
        anchor = date(2030, 1, 31)
        assert [add_months(anchor, k) for k in range(4)] == [
            date(2030, 1, 31),
            date(2030, 2, 28),
            date(2030, 3, 31),
            date(2030, 4, 30),
        ]

    def test_crosses_year_boundary(self):
        assert add_months(date(2030, 11, 15), 3) == date(2031, 2, 15)

    def test_leap_day_yearly(self):
        assert add_months(date(2028, 2, 29), 12) == date(2029, 2, 28)


class TestMinutes:
    def test_midnight_end_means_end_of_day(self):
        assert end_minutes_of(time(0, 0)) == 1440
        assert end_minutes_of(time(17, 30)) == 1050

    def test_time_from_minutes_round_trips_end_of_day(self):
        assert time_from_minutes(1440) == time(0, 0)
        assert time_from_minutes(570) == time(9, 30)

    def test_time_from_minutes_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            time_from_minutes(1441)

    def test_format_minutes(self):
        assert format_minutes(1440) == "24:00"
        assert format_minutes(65) == "01:05"


class TestHolidayMatches:
    def test_exact_date(self):
        assert holiday_matches(date(2030, 7, 4), False, date(2030, 7, 4))

    def test_non_recurring_does_not_repeat(self):
        assert not holiday_matches(date(2030, 7, 4), False, date(2031, 7, 4))

    def test_recurring_repeats_yearly(self):
        assert holiday_matches(date(2029, 12, 25), True, date(2031, 12, 25))
