import unittest
from datetime import date

from pocketwatch.recurrence import (
    BIWEEKLY,
    MONTHLY,
    ONE_TIME,
    TRIWEEKLY,
    WEEKLY,
    Resolution,
    next_occurrence,
    normalize_frequency,
    previous_occurrence,
    resolve_occurrence,
    step_in_range,
    validate_frequency,
)

RECURRING = (WEEKLY, BIWEEKLY, TRIWEEKLY, MONTHLY)


class OccurrenceAdvancerTests(unittest.TestCase):
    def test_steps_by_frequency(self) -> None:
        start = date(2024, 1, 5)
        self.assertEqual(next_occurrence(start, WEEKLY), date(2024, 1, 12))
        self.assertEqual(next_occurrence(start, BIWEEKLY), date(2024, 1, 19))
        self.assertEqual(next_occurrence(start, TRIWEEKLY), date(2024, 1, 26))
        self.assertEqual(next_occurrence(start, MONTHLY), date(2024, 2, 5))
        self.assertEqual(next_occurrence(start, ONE_TIME), start)

    def test_next_and_previous_are_inverse(self) -> None:
        for day in (date(2024, 1, 1), date(2024, 2, 28), date(2023, 12, 15)):
            for frequency in RECURRING:
                with self.subTest(day=day, frequency=frequency):
                    self.assertEqual(next_occurrence(previous_occurrence(day, frequency), frequency), day)
                    self.assertEqual(previous_occurrence(next_occurrence(day, frequency), frequency), day)

    def test_monthly_inverse_holds_with_anchor_day(self) -> None:
        day = date(2024, 3, 31)
        before = previous_occurrence(day, MONTHLY, anchor_day=31)
        self.assertEqual(before, date(2024, 2, 29))
        self.assertEqual(next_occurrence(before, MONTHLY, anchor_day=31), day)

    def test_recurring_frequencies_strictly_advance(self) -> None:
        day = date(2024, 1, 31)
        for frequency in RECURRING:
            with self.subTest(frequency=frequency):
                self.assertGreater(next_occurrence(day, frequency), day)
                self.assertLess(previous_occurrence(day, frequency), day)

    def test_unknown_frequency_is_a_logged_no_op(self) -> None:
        with self.assertLogs("pocketwatch.recurrence", level="WARNING"):
            self.assertEqual(next_occurrence(date(2024, 1, 1), "quarterly"), date(2024, 1, 1))

    def test_frequency_aliases(self) -> None:
        self.assertEqual(normalize_frequency("Biweekly"), BIWEEKLY)
        self.assertEqual(normalize_frequency("every-3-weeks"), TRIWEEKLY)
        self.assertEqual(normalize_frequency("One Time"), ONE_TIME)
        with self.assertRaises(ValueError):
            validate_frequency("tri-weekly", allowed=(WEEKLY, BIWEEKLY, MONTHLY))


class AnchorResolverTests(unittest.TestCase):
    def test_one_time_returns_anchor(self) -> None:
        resolution = resolve_occurrence(date(2024, 1, 10), ONE_TIME, True, date(2024, 6, 1))
        self.assertEqual(resolution, Resolution(date(2024, 1, 10)))

    def test_new_bill_rolls_forward_from_past_anchor(self) -> None:
        resolution = resolve_occurrence(date(2024, 1, 1), WEEKLY, False, date(2024, 1, 17))
        self.assertEqual(resolution.date, date(2024, 1, 22))
        self.assertFalse(resolution.stalled)

    def test_new_bill_never_rolls_back_past_its_start(self) -> None:
        anchor = date(2024, 6, 15)
        for frequency in RECURRING:
            with self.subTest(frequency=frequency):
                resolution = resolve_occurrence(anchor, frequency, False, date(2024, 3, 10))
                self.assertEqual(resolution.date, anchor)

    def test_existing_bill_walks_back_to_reference(self) -> None:
        monthly = resolve_occurrence(date(2024, 6, 15), MONTHLY, True, date(2024, 3, 10))
        self.assertEqual(monthly.date, date(2024, 3, 15))
        weekly = resolve_occurrence(date(2024, 5, 6), WEEKLY, True, date(2024, 4, 10))
        self.assertEqual(weekly.date, date(2024, 4, 15))

    def test_reference_on_an_occurrence_returns_it(self) -> None:
        resolution = resolve_occurrence(date(2024, 5, 6), BIWEEKLY, True, date(2024, 4, 22))
        self.assertEqual(resolution.date, date(2024, 4, 22))
        resolution = resolve_occurrence(date(2024, 5, 6), BIWEEKLY, True, date(2024, 5, 6))
        self.assertEqual(resolution.date, date(2024, 5, 6))

    def test_month_end_anchor_clamps_without_drift(self) -> None:
        resolution = resolve_occurrence(date(2024, 1, 31), MONTHLY, True, date(2024, 3, 15))
        self.assertEqual(resolution.date, date(2024, 3, 31))
        resolution = resolve_occurrence(date(2024, 1, 31), MONTHLY, True, date(2024, 2, 10))
        self.assertEqual(resolution.date, date(2024, 2, 29))

    def test_resolution_is_idempotent(self) -> None:
        args = (date(2023, 11, 30), MONTHLY, True, date(2024, 2, 1))
        self.assertEqual(resolve_occurrence(*args), resolve_occurrence(*args))

    def test_roll_past_last_representable_date_stalls(self) -> None:
        with self.assertLogs("pocketwatch.recurrence", level="WARNING"):
            resolution = resolve_occurrence(date(9999, 12, 29), WEEKLY, False, date(9999, 12, 31))
        self.assertEqual(resolution, Resolution(date(9999, 12, 29), stalled=True))
        with self.assertLogs("pocketwatch.recurrence", level="WARNING"):
            resolution = resolve_occurrence(date(9999, 12, 15), MONTHLY, True, date(9999, 12, 20))
        self.assertTrue(resolution.stalled)

    def test_step_in_range_returns_none_outside_date_range(self) -> None:
        self.assertIsNone(step_in_range(date(9999, 12, 29), WEEKLY))
        self.assertIsNone(step_in_range(date(9999, 12, 15), MONTHLY))
        self.assertIsNone(step_in_range(date(1, 1, 3), BIWEEKLY, direction=-1))
        self.assertEqual(step_in_range(date(2024, 1, 31), MONTHLY), date(2024, 2, 29))

    def test_unknown_frequency_stalls_instead_of_looping(self) -> None:
        with self.assertLogs("pocketwatch.recurrence", level="WARNING"):
            resolution = resolve_occurrence(date(2024, 1, 1), "quarterly", True, date(2024, 6, 1))
        self.assertEqual(resolution, Resolution(date(2024, 1, 1), stalled=True))
        with self.assertLogs("pocketwatch.recurrence", level="WARNING"):
            resolution = resolve_occurrence(date(2024, 9, 1), "quarterly", True, date(2024, 6, 1))
        self.assertTrue(resolution.stalled)


if __name__ == "__main__":
    unittest.main()
