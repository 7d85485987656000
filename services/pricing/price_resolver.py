# services/pricing/price_resolver.py
"""
Reference price for (ticker, report date), used for USD notional.

Ordered fallback chain; the first strategy returning a price wins:

  1. intraday_last     only when the date is today (UTC); 30s cache
  2. historical_close  daily close nearest the date within -7/+3 days;
                       30 day cache, misses are cached as None too
  3. inverse_alt_close "XXXUSD=X" failed -> "XXX=X" close, inverted
  4. spot              live quote for the original ticker; 60s cache.
                       A stale approximation for past dates, accepted so
                       a notional can still be shown.

resolve_price never raises. A failed lookup is None for that call only
and is retried next time; an empty result is cached as None.
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from config.settings import (
    PRICE_MAX_CONCURRENCY,
    TTL_PRICE_HISTORICAL_SEC,
    TTL_PRICE_INTRADAY_SEC,
    TTL_PRICE_SPOT_SEC,
)
from services.cache.cache_backend import MISS, CacheBackend, get_price_cache
from services.cot.contracts import ContractSpec, FixedUSD
from services.cot.notional import invert, usd_price
from services.pricing.yahoo_quotes import ClosePoint, YahooQuoteSource

logger = logging.getLogger(__name__)

Number = Optional[float]
PriceStrategy = Callable[[str, str], Awaitable[Number]]

WINDOW_BEFORE_DAYS = 7
WINDOW_AFTER_DAYS = 3
INTRADAY_INTERVAL = "5m"

_USD_PAIR = re.compile(r"^([A-Z]{3})USD=([A-Z]+)$", re.IGNORECASE)


class QuoteSource(Protocol):
    async def daily_closes(self, symbol: str, start: date, end: date) -> List[ClosePoint]: ...

    async def intraday_closes(self, symbol: str, interval: str = INTRADAY_INTERVAL) -> List[ClosePoint]: ...

    async def spot(self, symbol: str) -> Number: ...


def _utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def parse_ymd(ymd: str) -> date:
    return date.fromisoformat((ymd or "")[:10])


def _epoch(d: date) -> int:
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp())


def nearest_close(points: Iterable[ClosePoint], target_epoch: int) -> Number:
    """Close whose timestamp is nearest the target; earliest wins ties."""
    best: Number = None
    best_diff: Optional[int] = None
    for ts, close in points:
        if close is None:
            continue
        diff = abs(ts - target_epoch)
        if best_diff is None or diff < best_diff:
            best, best_diff = close, diff
    return best


def last_close(points: Iterable[ClosePoint]) -> Number:
    out: Number = None
    for _, close in points:
        if close is not None:
            out = close
    return out


def inverse_alt_ticker(ticker: str) -> Optional[str]:
    """'GBPUSD=X' -> 'GBP=X' (USD per unit -> units per USD)."""
    m = _USD_PAIR.match((ticker or "").strip())
    if not m:
        return None
    return f"{m.group(1).upper()}={m.group(2).upper()}"


class PriceResolver:
    def __init__(
        self,
        source: Optional[QuoteSource] = None,
        cache: Optional[CacheBackend] = None,
        *,
        today: Callable[[], str] = _utc_today,
        historical_ttl: float = TTL_PRICE_HISTORICAL_SEC,
        spot_ttl: float = TTL_PRICE_SPOT_SEC,
        intraday_ttl: float = TTL_PRICE_INTRADAY_SEC,
        max_concurrency: int = PRICE_MAX_CONCURRENCY,
    ):
        self.source = source or YahooQuoteSource()
        self.cache = cache if cache is not None else get_price_cache()
        self._today = today
        self.historical_ttl = historical_ttl
        self.spot_ttl = spot_ttl
        self.intraday_ttl = intraday_ttl
        self.max_concurrency = max(1, max_concurrency)

    async def _cached(self, key: str, ttl: float, fetch: Callable[[], Awaitable[Number]]) -> Number:
        hit = self.cache.get(key)
        if hit is not MISS:
            return hit
        try:
            value = await fetch()
        except Exception as e:
            # failures are not cached; an empty result is
            logger.warning("price_fetch_failed key=%s error=%r", key, e)
            return None
        self.cache.set(key, value, ttl)
        return value

    # ---- strategies
    async def intraday_last(self, ticker: str, ymd: str) -> Number:
        if ymd[:10] != self._today():
            return None
        sym = ticker.upper()

        async def fetch() -> Number:
            return last_close(await self.source.intraday_closes(sym, INTRADAY_INTERVAL))

        return await self._cached(f"intraday:{sym}:{INTRADAY_INTERVAL}", self.intraday_ttl, fetch)

    async def historical_close(self, ticker: str, ymd: str) -> Number:
        sym = ticker.upper()
        day = parse_ymd(ymd)

        async def fetch() -> Number:
            start = day - timedelta(days=WINDOW_BEFORE_DAYS)
            end = day + timedelta(days=WINDOW_AFTER_DAYS)
            points = await self.source.daily_closes(sym, start, end)
            return nearest_close(points, _epoch(day))

        return await self._cached(f"close:{sym}:{day.isoformat()}", self.historical_ttl, fetch)

    async def inverse_alt_close(self, ticker: str, ymd: str) -> Number:
        alt = inverse_alt_ticker(ticker)
        if alt is None:
            return None
        return invert(await self.historical_close(alt, ymd))

    async def spot(self, ticker: str, ymd: str) -> Number:
        sym = ticker.upper()

        async def fetch() -> Number:
            return await self.source.spot(sym)

        return await self._cached(f"spot:{sym}", self.spot_ttl, fetch)

    def strategies(self) -> List[Tuple[str, PriceStrategy]]:
        return [
            ("intraday_last", self.intraday_last),
            ("historical_close", self.historical_close),
            ("inverse_alt_close", self.inverse_alt_close),
            ("spot", self.spot),
        ]

    async def resolve_price(self, ticker: str, ymd: str) -> Number:
        if not ticker or not ymd:
            return None
        for name, strategy in self.strategies():
            try:
                price = await strategy(ticker, ymd)
            except Exception as e:
                logger.warning(
                    "price_strategy_failed strategy=%s ticker=%s date=%s error=%r",
                    name, ticker, ymd, e,
                )
                continue
            if price is not None:
                if name == "spot":
                    logger.debug("price_spot_fallback ticker=%s date=%s", ticker, ymd)
                return price
        return None

    async def resolve_many(self, ticker: str, dates: Iterable[str]) -> Dict[str, Number]:
        """Fan out one lookup per distinct date, bounded by max_concurrency."""
        uniq = sorted(set(dates))
        sem = asyncio.Semaphore(self.max_concurrency)

        async def one(d: str) -> Number:
            async with sem:
                return await self.resolve_price(ticker, d)

        prices = await asyncio.gather(*(one(d) for d in uniq))
        return dict(zip(uniq, prices))

    async def resolve_spec_price(self, spec: ContractSpec, ymd: str) -> Number:
        """USD price per unit for a contract on a report date."""
        if isinstance(spec.price, FixedUSD):
            return 1.0
        return usd_price(await self.resolve_price(spec.price.symbol, ymd), spec)

    async def resolve_spec_prices(self, spec: ContractSpec, dates: Iterable[str]) -> Dict[str, Number]:
        dates = list(dates)
        if isinstance(spec.price, FixedUSD):
            return {d: 1.0 for d in dates}
        raw = await self.resolve_many(spec.price.symbol, dates)
        return {d: usd_price(raw.get(d), spec) for d in dates}

    async def explain(self, ticker: str, ymd: str) -> Dict[str, Any]:
        """Run every strategy independently and report each result."""
        results: Dict[str, Number] = {}
        chosen: Number = None
        chosen_by: Optional[str] = None
        for name, strategy in self.strategies():
            try:
                results[name] = await strategy(ticker, ymd)
            except Exception as e:
                logger.warning("price_strategy_failed strategy=%s ticker=%s error=%r", name, ticker, e)
                results[name] = None
            if chosen is None and results[name] is not None:
                chosen, chosen_by = results[name], name
        return {
            "input": {"symbol": ticker, "ymd": ymd},
            "alt_symbol": inverse_alt_ticker(ticker),
            "results": results,
            "chosen": chosen,
            "chosen_by": chosen_by,
        }


_default_resolver: Optional[PriceResolver] = None


def get_price_resolver() -> PriceResolver:
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = PriceResolver()
    return _default_resolver
