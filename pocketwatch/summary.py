"""Pay-period and calendar-month summaries built on the projection engines.

Everything here is a full recompute from the bills and the pay schedule.
Without a pay schedule there is nothing to anchor a pay period on, so the
summaries come back as ``None`` instead of being computed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from pocketwatch.bill_projection import (
    Bill,
    Occurrence,
    occurrences_in_window,
    resolve_current_occurrence,
)
from pocketwatch.calendar_math import month_window, start_of_day
from pocketwatch.pay_period import PAYDAY_ID, PayPeriod, PaySchedule, locate_pay_period


@dataclass(frozen=True)
class PayPeriodSummary:
    period: PayPeriod
    pay_amount: Decimal
    bills_total: Decimal
    leftover: Decimal
    due_bills: List[Occurrence]
    stalled: List[str]


@dataclass(frozen=True)
class MonthlySummary:
    month: date
    income: Decimal
    bills: Decimal
    net: Decimal
    stalled: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Dashboard:
    pay_period: Optional[PayPeriodSummary]
    monthly: Optional[MonthlySummary]


def pay_period_summary(
    schedule: Optional[PaySchedule],
    bills: Iterable[Bill],
    today: date,
) -> Optional[PayPeriodSummary]:
    if schedule is None or schedule.last_payday is None:
        return None
    period = locate_pay_period(schedule, today)
    totals = occurrences_in_window(bills, period.start, period.end)
    pay_amount = Decimal(str(schedule.amount))
    return PayPeriodSummary(
        period=period,
        pay_amount=pay_amount,
        bills_total=totals.total,
        leftover=pay_amount - totals.total,
        due_bills=totals.occurrences,
        stalled=([PAYDAY_ID] if period.stalled else []) + totals.stalled,
    )


def monthly_summary(
    schedule: Optional[PaySchedule],
    bills: Iterable[Bill],
    today: date,
) -> Optional[MonthlySummary]:
    if schedule is None or schedule.last_payday is None:
        return None
    start, end = month_window(start_of_day(today))
    income = occurrences_in_window([schedule.as_bill()], start, end)
    bills_due = occurrences_in_window(bills, start, end)
    return MonthlySummary(
        month=start,
        income=income.total,
        bills=bills_due.total,
        net=income.total - bills_due.total,
        stalled=income.stalled + bills_due.stalled,
    )


def build_dashboard(
    schedule: Optional[PaySchedule],
    bills: Iterable[Bill],
    today: date,
) -> Dashboard:
    bills = list(bills)
    return Dashboard(
        pay_period=pay_period_summary(schedule, bills, today),
        monthly=monthly_summary(schedule, bills, today),
    )


def sort_bills_by_current_occurrence(bills: Iterable[Bill], today: date) -> List[Tuple[Bill, date]]:
    """Pair each bill with its current due date, earliest first."""
    resolved = [(bill, resolve_current_occurrence(bill, today)) for bill in bills]
    resolved.sort(key=lambda item: item[1])
    return resolved
