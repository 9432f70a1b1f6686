"""Occurrence stepping and anchor resolution for recurring bills and paydays.

Occurrences are never stored. They are recomputed from an anchor date and a
frequency each time they are needed, so every walk here is bounded: a step
must strictly move the candidate or the walk stops and reports a stall.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from pocketwatch.calendar_math import add_months, add_weeks, start_of_day

logger = logging.getLogger(__name__)

ONE_TIME = "one-time"
WEEKLY = "weekly"
BIWEEKLY = "bi-weekly"
TRIWEEKLY = "tri-weekly"
MONTHLY = "monthly"

BILL_FREQUENCIES = (ONE_TIME, WEEKLY, BIWEEKLY, TRIWEEKLY, MONTHLY)
PAY_FREQUENCIES = (WEEKLY, BIWEEKLY, MONTHLY)
WEEKS_PER_STEP = {WEEKLY: 1, BIWEEKLY: 2, TRIWEEKLY: 3}

# Backward walks never go past this date.
GUARD_FLOOR = date(1900, 1, 1)

_ALIASES = {
    "onetime": ONE_TIME,
    "once": ONE_TIME,
    "weekly": WEEKLY,
    "biweekly": BIWEEKLY,
    "byweekly": BIWEEKLY,
    "triweekly": TRIWEEKLY,
    "every3weeks": TRIWEEKLY,
    "monthly": MONTHLY,
}


@dataclass(frozen=True)
class Resolution:
    date: date
    stalled: bool = False


def normalize_frequency(value: str) -> str:
    key = "".join(ch for ch in value.strip().lower() if ch.isalnum())
    return _ALIASES.get(key, value.strip().lower())


def validate_frequency(value: str, allowed: tuple[str, ...] = BILL_FREQUENCIES) -> str:
    normalized = normalize_frequency(value)
    if normalized not in allowed:
        raise ValueError(f"Unsupported frequency: {value!r}.")
    return normalized


def next_occurrence(current: date, frequency: str, anchor_day: int | None = None) -> date:
    """Return the occurrence after ``current``.

    ``anchor_day`` keeps monthly steps on the anchor's day-of-month so that a
    bill due on the 31st comes back to the 31st after a short month. One-time
    and unknown frequencies return ``current`` unchanged.
    """
    return _step(current, frequency, 1, anchor_day)


def previous_occurrence(current: date, frequency: str, anchor_day: int | None = None) -> date:
    return _step(current, frequency, -1, anchor_day)


def step_in_range(
    current: date, frequency: str, direction: int = 1, anchor_day: int | None = None
) -> date | None:
    """Step like ``next_occurrence``/``previous_occurrence``.

    Returns ``None`` when the step would fall outside the representable date
    range, which ends a walk near ``date.min`` or ``date.max``.
    """
    try:
        return _step(current, frequency, direction, anchor_day)
    except (OverflowError, ValueError):
        logger.debug("Stepping %s by %r leaves the supported date range.", current, frequency)
        return None


def _step(current: date, frequency: str, direction: int, anchor_day: int | None) -> date:
    normalized = normalize_frequency(frequency)
    if normalized in WEEKS_PER_STEP:
        return add_weeks(current, direction * WEEKS_PER_STEP[normalized])
    if normalized == MONTHLY:
        return add_months(current, direction, anchor_day)
    if normalized != ONE_TIME:
        logger.warning("Unknown frequency %r; occurrence %s not advanced.", frequency, current)
    return current


def resolve_occurrence(
    anchor: date,
    frequency: str,
    existing_recurring: bool,
    reference: date,
) -> Resolution:
    """Resolve the occurrence in force as of ``reference``.

    The result is the earliest occurrence on or after ``reference``. A bill
    that is not marked as existing recurring treats its anchor as the first
    occurrence and only ever rolls forward from it; an existing recurring
    bill may also walk backward from an anchor that lies after
    ``reference``.
    """
    anchor = start_of_day(anchor)
    reference = start_of_day(reference)
    normalized = normalize_frequency(frequency)
    if normalized == ONE_TIME:
        return Resolution(anchor)
    if not existing_recurring or anchor < reference:
        return _roll_forward(anchor, normalized, reference, anchor.day)
    return _walk_back(anchor, normalized, reference, anchor.day)


def _roll_forward(candidate: date, frequency: str, reference: date, anchor_day: int) -> Resolution:
    while candidate < reference:
        following = step_in_range(candidate, frequency, 1, anchor_day)
        if following is None:
            logger.warning("No occurrence of %r on or after %s is representable.", frequency, reference)
            return Resolution(candidate, stalled=True)
        if following <= candidate:
            logger.warning(
                "Occurrence walk stalled at %s (frequency %r); keeping last candidate.",
                candidate,
                frequency,
            )
            return Resolution(candidate, stalled=True)
        candidate = following
    return Resolution(candidate)


def _walk_back(candidate: date, frequency: str, reference: date, anchor_day: int) -> Resolution:
    while True:
        preceding = step_in_range(candidate, frequency, -1, anchor_day)
        if preceding is None:
            logger.warning("Backward occurrence walk left the supported date range at %s.", candidate)
            return Resolution(candidate, stalled=True)
        if preceding >= candidate:
            logger.warning(
                "Backward occurrence walk stalled at %s (frequency %r); keeping last candidate.",
                candidate,
                frequency,
            )
            return Resolution(candidate, stalled=True)
        if preceding < reference:
            # One step forward from ``preceding`` lands back on ``candidate``.
            return Resolution(candidate)
        if preceding < GUARD_FLOOR:
            logger.warning("Backward occurrence walk reached the %s floor.", GUARD_FLOOR)
            return Resolution(candidate, stalled=True)
        candidate = preceding
