"""
Calendar primitives shared by the scheduling engine.

Everything here works on plain calendar dates and wall-clock times. No
function consults a clock or a timezone: "today" is always passed in by the
caller, and the weekday of a date is a property of the date alone.
"""

from calendar import monthrange
from datetime import date, time, timedelta
from typing import Iterator, Tuple

from .constants import MINUTES_PER_DAY


def day_of_week(d: date) -> int:
    """Return the weekday of ``d`` with Sunday=0 through Saturday=6."""
    return (d.weekday() + 1) % 7


def iso_week_bounds(d: date) -> Tuple[date, date]:
    """Return the Monday and Sunday of the ISO week containing ``d``."""
    monday = d - timedelta(days=d.weekday())
    return monday, monday + timedelta(days=6)


def month_bounds(d: date) -> Tuple[date, date]:
    """Return the first and last day of the month containing ``d``."""
    last_day = monthrange(d.year, d.month)[1]
    return d.replace(day=1), d.replace(day=last_day)


def add_months(anchor: date, months: int) -> date:
    """
    Shift ``anchor`` by whole months, clamping the day to the target month.

    Callers stepping through a series should always offset from the original
    anchor (``add_months(start, k)``) rather than chaining results, so that a
    Jan 31 anchor yields Feb 28/29 and then Mar 31 again.
    """
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, monthrange(year, month)[1])
    return date(year, month, day)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` through ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def minutes_of(t: time) -> int:
    return t.hour * 60 + t.minute


def end_minutes_of(t: time) -> int:
    """Minutes for an interval end; midnight means end of day (24:00)."""
    minutes = minutes_of(t)
    return MINUTES_PER_DAY if minutes == 0 else minutes


def time_from_minutes(minutes: int) -> time:
    """Convert minutes since midnight back to a ``time``; 24:00 maps to 00:00."""
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f"Minute offset out of range: {minutes}")
    if minutes == MINUTES_PER_DAY:
        return time(0, 0)
    return time(minutes // 60, minutes % 60)


def format_minutes(minutes: int) -> str:
    """Render minutes since midnight as HH:MM, using 24:00 for end of day."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def holiday_matches(holiday_date: date, recurring: bool, d: date) -> bool:
    """A holiday applies on its exact date, or every year on month/day when recurring."""
    if holiday_date == d:
        return True
    return bool(recurring) and holiday_date.month == d.month and holiday_date.day == d.day
