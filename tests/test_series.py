import unittest
from datetime import date, datetime, timedelta, timezone

from cadence.errors import InvalidArgumentError
from cadence.models import ItemStatus
from cadence.series import add_one_year, generate_series


class GenerateSeriesTests(unittest.TestCase):
    def test_thirty_day_cadence_over_leap_year(self) -> None:
        items = generate_series(7, 30, date(2024, 1, 1))

        self.assertEqual(len(items), 12)
        self.assertEqual(items[0].cadence_date, date(2024, 1, 31))
        self.assertEqual(items[-1].cadence_date, date(2024, 12, 26))

    def test_dates_step_by_interval_and_stay_within_horizon(self) -> None:
        start = date(2023, 5, 17)
        for cadence_days in (1, 7, 13, 45, 90, 365):
            with self.subTest(cadence_days=cadence_days):
                items = generate_series(1, cadence_days, start)
                dates = [item.cadence_date for item in items]
                horizon = date(2024, 5, 17)

                self.assertEqual(dates[0], start + timedelta(days=cadence_days))
                for earlier, later in zip(dates, dates[1:]):
                    self.assertEqual(later - earlier, timedelta(days=cadence_days))
                self.assertLessEqual(dates[-1], horizon)
                self.assertGreater(dates[-1] + timedelta(days=cadence_days), horizon)

    def test_horizon_is_inclusive(self) -> None:
        items = generate_series(1, 365, date(2023, 1, 1))

        self.assertEqual([item.cadence_date for item in items], [date(2024, 1, 1)])

    def test_interval_longer_than_a_year_yields_nothing(self) -> None:
        self.assertEqual(generate_series(1, 400, date(2023, 1, 1)), [])

    def test_drafts_carry_identifiers_and_defaults(self) -> None:
        items = generate_series(
            11, 90, date(2024, 2, 1), test_order_id=5, practice_id=3, method="Mobile Phlebotomy"
        )

        for item in items:
            self.assertIsNone(item.id)
            self.assertEqual(item.patient_id, 11)
            self.assertEqual(item.test_order_id, 5)
            self.assertEqual(item.practice_id, 3)
            self.assertEqual(item.blood_collection_method, "Mobile Phlebotomy")
            self.assertEqual(item.item_status, ItemStatus.FUTURE)
            self.assertFalse(item.active)
            self.assertFalse(item.published)

    def test_start_datetime_is_truncated_to_day(self) -> None:
        from_datetime = generate_series(1, 30, datetime(2024, 1, 1, 23, 59))
        from_date = generate_series(1, 30, date(2024, 1, 1))

        self.assertEqual(from_datetime, from_date)

    def test_aware_datetime_is_read_in_utc(self) -> None:
        eastern_evening = datetime(2024, 1, 1, 21, 0, tzinfo=timezone(timedelta(hours=-5)))

        items = generate_series(1, 30, eastern_evening)

        self.assertEqual(items[0].cadence_date, date(2024, 2, 1))

    def test_identical_inputs_give_identical_series(self) -> None:
        self.assertEqual(
            generate_series(2, 14, date(2024, 6, 1), method="Clinic"),
            generate_series(2, 14, date(2024, 6, 1), method="Clinic"),
        )

    def test_non_positive_interval_is_rejected(self) -> None:
        for cadence_days in (0, -1, -30):
            with self.subTest(cadence_days=cadence_days):
                with self.assertRaises(InvalidArgumentError):
                    generate_series(1, cadence_days, date(2024, 1, 1))

    def test_non_integer_interval_is_rejected(self) -> None:
        for cadence_days in (1.5, "30", True):
            with self.subTest(cadence_days=cadence_days):
                with self.assertRaises(InvalidArgumentError):
                    generate_series(1, cadence_days, date(2024, 1, 1))

    def test_invalid_argument_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            generate_series(1, 0, date(2024, 1, 1))


class AddOneYearTests(unittest.TestCase):
    def test_regular_day(self) -> None:
        self.assertEqual(add_one_year(date(2023, 8, 9)), date(2024, 8, 9))

    def test_leap_day_rolls_to_march(self) -> None:
        self.assertEqual(add_one_year(date(2024, 2, 29)), date(2025, 3, 1))


if __name__ == "__main__":
    unittest.main()
