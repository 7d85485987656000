import asyncio
import unittest

from cot_fakes import FakeClock, FakeQuoteSource
from services.cache.cache_backend import MemoryCache
from services.cot.contracts import ContractSpec, FixedUSD, YahooPrice
from services.pricing.price_resolver import PriceResolver, inverse_alt_ticker, nearest_close


def make_resolver(source, clock=None, today="2030-01-01"):
    cache = MemoryCache(clock=clock or FakeClock())
    return PriceResolver(source, cache, today=lambda: today, max_concurrency=4)


class PriceResolverTests(unittest.TestCase):
    def test_second_lookup_is_served_from_cache(self):
        source = FakeQuoteSource(daily={"EURUSD=X": {"2024-01-02": 1.10}})
        resolver = make_resolver(source)

        async def run():
            first = await resolver.resolve_price("EURUSD=X", "2024-01-02")
            second = await resolver.resolve_price("EURUSD=X", "2024-01-02")
            return first, second

        first, second = asyncio.run(run())
        self.assertEqual(first, 1.10)
        self.assertEqual(second, 1.10)
        self.assertEqual(source.count("daily"), 1)

    def test_nearest_close_in_window(self):
        source = FakeQuoteSource(daily={"GC=F": {"2023-12-25": 1900.0, "2024-01-01": 2000.0, "2024-01-04": 2100.0}})
        resolver = make_resolver(source)
        self.assertEqual(asyncio.run(resolver.resolve_price("GC=F", "2024-01-02")), 2000.0)

    def test_inverse_alternate_ticker(self):
        source = FakeQuoteSource(daily={"GBP=X": {"2024-01-02": 0.8}})
        resolver = make_resolver(source)
        price = asyncio.run(resolver.resolve_price("GBPUSD=X", "2024-01-02"))
        self.assertAlmostEqual(price, 1.25)
        self.assertEqual(source.count("daily", "GBPUSD=X"), 1)
        self.assertEqual(source.count("daily", "GBP=X"), 1)
        self.assertEqual(source.count("spot"), 0)

    def test_zero_alternate_close_is_not_inverted(self):
        source = FakeQuoteSource(daily={"GBP=X": {"2024-01-02": 0.0}}, spot={"GBPUSD=X": 1.27})
        resolver = make_resolver(source)
        self.assertEqual(asyncio.run(resolver.resolve_price("GBPUSD=X", "2024-01-02")), 1.27)

    def test_spot_fallback_is_cached_briefly(self):
        clock = FakeClock()
        source = FakeQuoteSource(spot={"CL=F": 80.0})
        resolver = make_resolver(source, clock)

        self.assertEqual(asyncio.run(resolver.resolve_price("CL=F", "2024-01-02")), 80.0)
        self.assertEqual(asyncio.run(resolver.resolve_price("CL=F", "2024-01-02")), 80.0)
        self.assertEqual(source.count("spot"), 1)

        clock.advance(61)
        asyncio.run(resolver.resolve_price("CL=F", "2024-01-02"))
        self.assertEqual(source.count("spot"), 2)
        # the historical miss is still negatively cached
        self.assertEqual(source.count("daily"), 1)

    def test_failures_resolve_to_none(self):
        source = FakeQuoteSource(fail={"ZC=F"})
        resolver = make_resolver(source)

        with self.assertLogs("services.pricing.price_resolver", level="WARNING"):
            price = asyncio.run(resolver.resolve_price("ZC=F", "2024-01-02"))
        self.assertIsNone(price)

        asyncio.run(resolver.resolve_price("ZC=F", "2024-01-02"))
        self.assertEqual(source.count("daily"), 2)

    def test_transient_failure_is_retried_on_next_lookup(self):
        clock = FakeClock()
        source = FakeQuoteSource(daily={"GC=F": {"2024-01-02": 2000.0}}, fail={"GC=F"})
        resolver = make_resolver(source, clock)

        with self.assertLogs("services.pricing.price_resolver", level="WARNING"):
            first = asyncio.run(resolver.historical_close("GC=F", "2024-01-02"))
        self.assertIsNone(first)

        source.fail.clear()
        clock.advance(3600)
        second = asyncio.run(resolver.historical_close("GC=F", "2024-01-02"))
        self.assertEqual(second, 2000.0)
        self.assertEqual(source.count("daily"), 2)

    def test_empty_history_is_negatively_cached(self):
        clock = FakeClock()
        source = FakeQuoteSource()
        resolver = make_resolver(source, clock)

        self.assertIsNone(asyncio.run(resolver.historical_close("GC=F", "2024-01-02")))
        clock.advance(3600)
        self.assertIsNone(asyncio.run(resolver.historical_close("GC=F", "2024-01-02")))
        self.assertEqual(source.count("daily"), 1)

    def test_intraday_close_for_today(self):
        source = FakeQuoteSource(
            daily={"EURUSD=X": {"2024-03-01": 1.05}},
            intraday={"EURUSD=X": [1.08, None, 1.09, None]},
        )
        resolver = make_resolver(source, today="2024-03-01")
        self.assertEqual(asyncio.run(resolver.resolve_price("EURUSD=X", "2024-03-01")), 1.09)
        self.assertEqual(source.count("daily"), 0)

    def test_intraday_skipped_for_past_dates(self):
        source = FakeQuoteSource(daily={"EURUSD=X": {"2024-01-02": 1.10}})
        resolver = make_resolver(source)
        asyncio.run(resolver.resolve_price("EURUSD=X", "2024-01-02"))
        self.assertEqual(source.count("intraday"), 0)

    def test_resolve_many_dedupes_dates(self):
        source = FakeQuoteSource(daily={"SI=F": {"2024-01-02": 23.0, "2024-01-09": 24.0}})
        resolver = make_resolver(source)
        prices = asyncio.run(resolver.resolve_many("SI=F", ["2024-01-09", "2024-01-02", "2024-01-09"]))
        self.assertEqual(prices, {"2024-01-02": 23.0, "2024-01-09": 24.0})
        self.assertEqual(source.count("daily"), 2)

    def test_spec_prices_apply_inversion(self):
        source = FakeQuoteSource(daily={"JPY=X": {"2024-01-02": 125.0}})
        resolver = make_resolver(source)
        yen = ContractSpec(12_500_000, YahooPrice("JPY=X", invert=True))
        self.assertAlmostEqual(asyncio.run(resolver.resolve_spec_price(yen, "2024-01-02")), 0.008)
        self.assertEqual(asyncio.run(resolver.resolve_spec_price(ContractSpec(1, FixedUSD()), "2024-01-02")), 1.0)

    def test_explain_reports_each_strategy(self):
        source = FakeQuoteSource(daily={"GBP=X": {"2024-01-02": 0.8}}, spot={"GBPUSD=X": 1.3})
        resolver = make_resolver(source)
        out = asyncio.run(resolver.explain("GBPUSD=X", "2024-01-02"))
        self.assertEqual(out["alt_symbol"], "GBP=X")
        self.assertIsNone(out["results"]["intraday_last"])
        self.assertIsNone(out["results"]["historical_close"])
        self.assertAlmostEqual(out["results"]["inverse_alt_close"], 1.25)
        self.assertEqual(out["results"]["spot"], 1.3)
        self.assertEqual(out["chosen_by"], "inverse_alt_close")


class PriceHelperTests(unittest.TestCase):
    def test_inverse_alt_ticker(self):
        self.assertEqual(inverse_alt_ticker("GBPUSD=X"), "GBP=X")
        self.assertEqual(inverse_alt_ticker("audusd=x"), "AUD=X")
        self.assertIsNone(inverse_alt_ticker("JPY=X"))
        self.assertIsNone(inverse_alt_ticker("GC=F"))

    def test_nearest_close_skips_missing_values(self):
        self.assertEqual(nearest_close([(0, None), (100, 5.0), (300, 7.0)], 0), 5.0)
        self.assertIsNone(nearest_close([], 0))


if __name__ == "__main__":
    unittest.main()
