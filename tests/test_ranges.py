import unittest
from datetime import date

from services.cot.ranges import resolve_range

TODAY = date(2025, 9, 2)


class RangeTests(unittest.TestCase):
    def test_presets(self):
        self.assertEqual(resolve_range("ytd", today=TODAY).start, "2025-01-01")
        self.assertEqual(resolve_range("1y", today=TODAY).start, "2024-09-02")
        self.assertEqual(resolve_range("3Y", today=TODAY).start, "2022-09-02")
        five = resolve_range("5y", today=TODAY)
        self.assertEqual((five.start, five.end, five.label), ("2020-09-02", "2025-09-02", "5y"))

    def test_default_and_unknown_fall_back_to_five_years(self):
        self.assertEqual(resolve_range(None, today=TODAY).label, "5y")
        self.assertEqual(resolve_range("10w", today=TODAY).label, "5y")

    def test_max_has_no_lower_bound(self):
        rng = resolve_range("max", today=TODAY)
        self.assertIsNone(rng.start)
        self.assertEqual(rng.predicate().render(), "report_date_as_yyyy_mm_dd <= '2025-09-02T00:00:00.000'")
        self.assertEqual(rng.to_dict(), {"from": None, "to": "2025-09-02", "label": "max"})

    def test_years_override_is_clamped(self):
        self.assertEqual(resolve_range("ytd", years="2", today=TODAY).label, "2y")
        self.assertEqual(resolve_range(None, years="99", today=TODAY).years, 20)
        self.assertEqual(resolve_range(None, years="99", today=TODAY, max_years=15).years, 15)
        self.assertEqual(resolve_range(None, years="-3", today=TODAY).years, 1)
        self.assertEqual(resolve_range(None, years="abc", today=TODAY).years, 5)

    def test_non_finite_years_fall_back_to_five(self):
        for raw in ("inf", "-inf", "1e999", "nan"):
            rng = resolve_range(None, years=raw, today=TODAY)
            self.assertEqual((rng.years, rng.label), (5, "5y"), raw)

    def test_explicit_dates_win(self):
        rng = resolve_range("1y", years="3", start="2024-01-01", today=TODAY)
        self.assertEqual((rng.start, rng.end, rng.label), ("2024-01-01", "2025-09-02", "custom"))

    def test_malformed_explicit_dates_are_rejected(self):
        with self.assertRaisesRegex(ValueError, "start must be YYYY-MM-DD"):
            resolve_range(start="01/02/2024", today=TODAY)
        with self.assertRaisesRegex(ValueError, "end must be YYYY-MM-DD"):
            resolve_range(start="2024-01-01", end="2024-13-40", today=TODAY)
        self.assertEqual(resolve_range(end="2025-01-07T00:00:00.000", today=TODAY).end, "2025-01-07")

    def test_leap_day(self):
        self.assertEqual(resolve_range("1y", today=date(2024, 2, 29)).start, "2023-02-28")

    def test_bounded_predicate(self):
        rng = resolve_range("1y", today=TODAY)
        self.assertTrue(rng.predicate().matches({"report_date_as_yyyy_mm_dd": "2025-01-07T00:00:00.000"}))
        self.assertFalse(rng.predicate().matches({"report_date_as_yyyy_mm_dd": "2024-01-02T00:00:00.000"}))


if __name__ == "__main__":
    unittest.main()
