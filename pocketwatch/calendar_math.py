from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta

ONE_DAY = timedelta(days=1)


def start_of_day(value: date | datetime | str) -> date:
    """Strip any time-of-day and return the local calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value.strip()).date()


def add_weeks(value: date, weeks: int) -> date:
    return value + timedelta(weeks=weeks)


def add_months(value: date, months: int, anchor_day: int | None = None) -> date:
    """Shift ``value`` by whole calendar months.

    The day-of-month is ``anchor_day`` (or the day of ``value``) clamped to
    the length of the target month, so Jan 31 + 1 month is the last day of
    February rather than a rollover into March.
    """
    day = anchor_day if anchor_day is not None else value.day
    total_month = value.month - 1 + months
    year = value.year + total_month // 12
    month = total_month % 12 + 1
    last_day = monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def is_before(left: date, right: date) -> bool:
    return start_of_day(left) < start_of_day(right)


def is_after(left: date, right: date) -> bool:
    return start_of_day(left) > start_of_day(right)


def is_equal(left: date, right: date) -> bool:
    return start_of_day(left) == start_of_day(right)


def is_within_interval(value: date, start: date, end: date) -> bool:
    """Inclusive on both ends."""
    if start > end:
        raise ValueError("Interval start must be on or before its end.")
    return start <= start_of_day(value) <= end


def in_half_open(value: date, start: date, end: date) -> bool:
    # [start, end) expressed as an inclusive check against the day before end.
    if end <= start:
        return False
    return is_within_interval(value, start, end - ONE_DAY)


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    return value.replace(day=monthrange(value.year, value.month)[1])


def month_window(value: date) -> tuple[date, date]:
    """Return the calendar month containing ``value`` as ``[start, end)``."""
    start = month_start(value)
    if start.year == date.max.year and start.month == 12:
        # The following month is not representable; the window stops at date.max.
        return start, date.max
    return start, add_months(start, 1)
