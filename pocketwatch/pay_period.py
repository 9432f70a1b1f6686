from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List

from pocketwatch.bill_projection import Bill, occurrences_in_window
from pocketwatch.calendar_math import add_months, in_half_open, month_start, month_window, start_of_day
from pocketwatch.recurrence import (
    BIWEEKLY,
    GUARD_FLOOR,
    MONTHLY,
    normalize_frequency,
    step_in_range,
)

logger = logging.getLogger(__name__)

PAYDAY_ID = "payday"


@dataclass(frozen=True)
class PaySchedule:
    amount: Decimal
    last_payday: date
    frequency: str = BIWEEKLY

    def as_bill(self) -> Bill:
        """Treat the schedule as a recurring entity whose anchor already occurred."""
        return Bill(
            id=PAYDAY_ID,
            name="Payday",
            amount=self.amount,
            due_date=self.last_payday,
            frequency=normalize_frequency(self.frequency),
            existing_recurring=True,
        )


@dataclass(frozen=True)
class PayPeriod:
    start: date
    end: date
    stalled: bool = False

    def contains(self, value: date) -> bool:
        return in_half_open(value, self.start, self.end)


def locate_pay_period(schedule: PaySchedule, reference: date) -> PayPeriod:
    """Return the pay period ``[start, end)`` that contains ``reference``.

    A frequency that does not advance, or a walk that leaves the supported
    date range, stops the search; the last window reached comes back with
    ``stalled`` set and may not contain ``reference``.
    """
    frequency = normalize_frequency(schedule.frequency)
    anchor = start_of_day(schedule.last_payday)
    reference = start_of_day(reference)

    if frequency == MONTHLY:
        # Re-align on the anchor's day-of-month so clamping never drifts.
        start = add_months(month_start(reference), 0, anchor.day)
        if start > reference:
            aligned = step_in_range(start, frequency, -1, anchor.day)
            if aligned is None:
                return _stalled(start, start, frequency)
            start = aligned
    else:
        start = anchor
    end = step_in_range(start, frequency, 1, anchor.day)
    if end is None or end <= start:
        return _stalled(start, start, frequency)

    while end <= reference:
        following = step_in_range(end, frequency, 1, anchor.day)
        if following is None or following <= end:
            return _stalled(start, end, frequency)
        start, end = end, following
    while start > reference:
        if start <= GUARD_FLOOR:
            logger.warning(
                "Pay period walk reached the %s floor; %s is not covered.", GUARD_FLOOR, reference
            )
            return PayPeriod(start=start, end=end, stalled=True)
        preceding = step_in_range(start, frequency, -1, anchor.day)
        if preceding is None or preceding >= start:
            return _stalled(start, end, frequency)
        start, end = preceding, start
    return PayPeriod(start=start, end=end)


def _stalled(start: date, end: date, frequency: str) -> PayPeriod:
    logger.warning(
        "Pay period walk stalled at [%s, %s) (frequency %r); keeping last window.",
        start,
        end,
        frequency,
    )
    return PayPeriod(start=start, end=end, stalled=True)


def pay_dates_in_window(schedule: PaySchedule, start: date, end: date) -> List[date]:
    totals = occurrences_in_window([schedule.as_bill()], start, end)
    return [occurrence.date for occurrence in totals.occurrences]


def monthly_income(schedule: PaySchedule, month: date) -> Decimal:
    """Estimated income from paydays falling in the calendar month of ``month``."""
    start, end = month_window(start_of_day(month))
    return occurrences_in_window([schedule.as_bill()], start, end).total
