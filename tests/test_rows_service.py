import asyncio
import unittest
from datetime import date

from cot_fakes import FakeClock, FakeCftcClient, cot_row
from services.cache.cache_backend import MemoryCache
from services.cot.rows_service import CotRowsService

TODAY = date(2024, 2, 1)
EUR = "EURO FX - CHICAGO MERCANTILE EXCHANGE"
JPY = "JAPANESE YEN - CHICAGO MERCANTILE EXCHANGE"
GOLD = "GOLD - COMMODITY EXCHANGE INC."

ROWS = [
    cot_row("2024-01-02", EUR, "EURO FX", large=(100, 40)),
    cot_row("2024-01-09", EUR, "EURO FX", large=(120, 50)),
    cot_row("2024-01-09", JPY, "JAPANESE YEN", large=(10, 70)),
    cot_row("2024-01-09", GOLD, "GOLD", large=(300, 100)),
]
ROWS[1]["pct_of_oi_noncomm_long_all"] = "41.2"
ROWS[1]["pct_of_oi_noncomm_short_all"] = "n/a"


def make_service(rows=ROWS):
    client = FakeCftcClient(rows)
    return CotRowsService(client, MemoryCache(clock=FakeClock()), ttl=3600), client


class RowsServiceTests(unittest.TestCase):
    def test_group_filter_uses_dataset_names(self):
        service, client = make_service()
        out = asyncio.run(service.build(group="fx", today=TODAY))
        self.assertEqual(out["count"], 3)
        self.assertEqual({r["contract_market_name"] for r in out["rows"]}, {"EURO FX", "JAPANESE YEN"})
        self.assertEqual(out["rows"][-1]["report_date_as_yyyy_mm_dd"][:10], "2024-01-02")
        self.assertIn("market_and_exchange_names in (", client.calls[0].where.render())
        self.assertNotIn("distribution", out)
        self.assertEqual(out["range"]["label"], "5y")

    def test_distribution_is_latest_per_contract(self):
        service, _ = make_service()
        out = asyncio.run(service.build(group="FX", format_="distribution", today=TODAY))
        by_market = {d["market"]: d for d in out["distribution"]}
        self.assertEqual(set(by_market), {"EURO FX", "JAPANESE YEN"})
        eur = by_market["EURO FX"]
        self.assertEqual((eur["date"], eur["long"], eur["short"], eur["net"]), ("2024-01-09", 120, 50, 70))
        self.assertEqual(eur["pctLong"], 41.2)
        self.assertIsNone(eur["pctShort"])

    def test_cached_until_refresh(self):
        service, client = make_service()
        asyncio.run(service.build(group="FX", today=TODAY))
        asyncio.run(service.build(group="FX", today=TODAY))
        self.assertEqual(len(client.calls), 1)
        asyncio.run(service.build(group="FX", refresh=True, today=TODAY))
        self.assertEqual(len(client.calls), 2)

    def test_group_without_markets_skips_upstream(self):
        service, client = make_service()
        out = asyncio.run(service.build(group="RATES", today=TODAY))
        self.assertEqual(out["count"], 0)
        self.assertEqual(client.calls, [])

    def test_invalid_arguments(self):
        service, _ = make_service()
        with self.assertRaises(ValueError):
            asyncio.run(service.build(group="PLANETS"))
        with self.assertRaises(ValueError):
            asyncio.run(service.build(format_="csv"))


if __name__ == "__main__":
    unittest.main()
