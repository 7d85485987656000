import unittest

from cot_fakes import cot_row
from services.cot.aggregation import (
    aggregate_positions,
    dates_with_multiple_contracts,
    recent_view,
    to_count,
    to_number,
)

EUR = "EURO FX - CHICAGO MERCANTILE EXCHANGE"


class AggregationTests(unittest.TestCase):
    def test_two_rows_same_date_are_summed(self):
        rows = [
            cot_row("2024-01-02", EUR, "EURO FX", large=(100, 40)),
            cot_row("2024-01-02", EUR, "EURO FX", large=(10, 5)),
        ]
        [agg] = aggregate_positions(rows)
        self.assertEqual(agg.large_long, 110)
        self.assertEqual(agg.large_short, 45)
        self.assertEqual(agg.large_net, 65)
        self.assertEqual(agg.source_rows, 2)

    def test_net_of_sums_equals_sum_of_nets(self):
        rows = [
            cot_row("2024-01-02", EUR, "A", large=(7, 3), comm=(20, 50), small=(4, 1)),
            cot_row("2024-01-02", EUR, "B", large=(11, 13), comm=(5, 2), small=(0, 9)),
            cot_row("2024-01-02", EUR, "C", large=(1, 0), comm=(8, 8), small=(2, 2)),
        ]
        [agg] = aggregate_positions(rows)
        self.assertEqual(agg.large_net, (7 - 3) + (11 - 13) + (1 - 0))
        self.assertEqual(agg.comm_net, (20 - 50) + (5 - 2) + (8 - 8))
        self.assertEqual(agg.small_net, (4 - 1) + (0 - 9) + (2 - 2))

    def test_one_output_row_per_distinct_date_ascending(self):
        rows = [
            cot_row("2024-01-16", EUR, "EURO FX"),
            cot_row("2024-01-02", EUR, "EURO FX"),
            cot_row("2024-01-09", EUR, "EURO FX"),
            cot_row("2024-01-02", EUR, "EURO FX"),
        ]
        out = aggregate_positions(rows)
        self.assertEqual([a.date for a in out], ["2024-01-02", "2024-01-09", "2024-01-16"])

    def test_malformed_counts_are_zero_and_missing_open_interest_is_none(self):
        row = cot_row("2024-01-02", EUR, "EURO FX", large=("abc", 5))
        row["comm_positions_long_all"] = None
        [agg] = aggregate_positions([row])
        self.assertEqual(agg.large_long, 0)
        self.assertEqual(agg.comm_long, 0)
        self.assertIsNone(agg.open_interest)

    def test_open_interest_sums_only_finite_values(self):
        rows = [
            cot_row("2024-01-02", EUR, "EURO FX", oi=1000),
            cot_row("2024-01-02", EUR, "EURO FX"),
            cot_row("2024-01-02", EUR, "EURO FX", oi="NaN"),
        ]
        [agg] = aggregate_positions(rows)
        self.assertEqual(agg.open_interest, 1000)

    def test_ratio_is_none_when_short_is_zero(self):
        [agg] = aggregate_positions([cot_row("2024-01-02", EUR, "EURO FX", large=(10, 0), comm=(6, 3))])
        self.assertIsNone(agg.ls_large)
        self.assertEqual(agg.ls_comm, 2.0)

    def test_recent_view_is_newest_first_with_deltas(self):
        rows = [
            cot_row("2024-01-02", EUR, "EURO FX", large=(100, 50), oi=500),
            cot_row("2024-01-09", EUR, "EURO FX", large=(120, 40), oi=520),
        ]
        recent = recent_view(aggregate_positions(rows))
        self.assertEqual([r["date"] for r in recent], ["2024-01-09", "2024-01-02"])
        self.assertEqual(recent[0]["d_large"], 80 - 50)
        self.assertEqual(recent[0]["d_oi"], 20)
        self.assertIsNone(recent[1]["d_large"])
        self.assertIsNone(recent[1]["d_oi"])

    def test_open_interest_delta_uses_last_known_value(self):
        rows = [
            cot_row("2024-01-02", EUR, "EURO FX", oi=500),
            cot_row("2024-01-09", EUR, "EURO FX"),
            cot_row("2024-01-16", EUR, "EURO FX", oi=530),
        ]
        recent = recent_view(aggregate_positions(rows))
        self.assertEqual([r["d_oi"] for r in recent], [30, None, None])

    def test_distinct_contract_names_are_recorded(self):
        rows = [
            cot_row("2024-01-02", EUR, "BRENT CRUDE OIL"),
            cot_row("2024-01-02", EUR, "CRUDE OIL, BRENT"),
            cot_row("2024-01-09", EUR, "BRENT CRUDE OIL"),
        ]
        multi = dates_with_multiple_contracts(aggregate_positions(rows))
        self.assertEqual(multi, {"2024-01-02": ("BRENT CRUDE OIL", "CRUDE OIL, BRENT")})

    def test_number_coercion(self):
        self.assertEqual(to_number("12.5"), 12.5)
        self.assertIsNone(to_number("inf"))
        self.assertIsNone(to_number(""))
        self.assertEqual(to_count("42"), 42)
        self.assertIsInstance(to_count("42"), int)
        self.assertEqual(to_count(None), 0)


if __name__ == "__main__":
    unittest.main()
