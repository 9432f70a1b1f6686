from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Tuple

from pocketwatch.calendar_math import in_half_open, month_window, start_of_day
from pocketwatch.recurrence import (
    ONE_TIME,
    normalize_frequency,
    resolve_occurrence,
    step_in_range,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class Bill:
    id: str
    name: str
    amount: Decimal
    due_date: date
    frequency: str = "monthly"
    existing_recurring: bool = False


@dataclass(frozen=True)
class Occurrence:
    date: date
    amount: Decimal
    bill: Bill


@dataclass(frozen=True)
class WindowTotals:
    total: Decimal
    occurrences: List[Occurrence] = field(default_factory=list)
    stalled: List[str] = field(default_factory=list)


def resolve_current_occurrence(bill: Bill, reference: date) -> date:
    """Return the bill's due date in force as of ``reference``."""
    return resolve_occurrence(
        bill.due_date, bill.frequency, bill.existing_recurring, reference
    ).date


def occurrences_in_window(bills: Iterable[Bill], start: date, end: date) -> WindowTotals:
    """Collect every bill occurrence in the half-open window ``[start, end)``."""
    start = start_of_day(start)
    end = start_of_day(end)
    if start > end:
        raise ValueError("start must be on or before end.")

    occurrences: List[Occurrence] = []
    stalled: List[str] = []
    for bill in bills:
        dates, bill_stalled = _bill_dates_in_window(bill, start, end)
        if bill_stalled:
            stalled.append(bill.id)
        amount = _coerce_amount(bill.amount)
        occurrences.extend(Occurrence(date=d, amount=amount, bill=bill) for d in dates)

    # sort() is stable, so same-day occurrences keep input order.
    occurrences.sort(key=lambda occurrence: occurrence.date)
    total = sum((occurrence.amount for occurrence in occurrences), ZERO)
    return WindowTotals(total=total, occurrences=occurrences, stalled=stalled)


def monthly_bill_total(bills: Iterable[Bill], month: date) -> Decimal:
    """Total of all bill occurrences in the calendar month containing ``month``."""
    start, end = month_window(start_of_day(month))
    return occurrences_in_window(bills, start, end).total


def _bill_dates_in_window(bill: Bill, start: date, end: date) -> Tuple[List[date], bool]:
    anchor = start_of_day(bill.due_date)
    frequency = normalize_frequency(bill.frequency)
    if frequency == ONE_TIME:
        return ([anchor] if in_half_open(anchor, start, end) else []), False

    resolution = resolve_occurrence(anchor, frequency, bill.existing_recurring, start)
    dates: List[date] = []
    current = resolution.date
    while current < end:
        if in_half_open(current, start, end):
            dates.append(current)
        following = step_in_range(current, frequency, 1, anchor.day)
        if following is None:
            # No later occurrence is representable, so the window is exhausted.
            break
        if following <= current:
            logger.warning(
                "Stopped projecting bill %s at %s: frequency %r does not advance.",
                bill.id,
                current,
                bill.frequency,
            )
            return dates, True
        current = following
    return dates, resolution.stalled


def _coerce_amount(amount: Decimal) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
