# services/cot/series_service.py
"""
Time series for one market over a date range.

Positions and USD points are cached separately: the points need one price
lookup per report date and are far more expensive than the positions.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from config.settings import TTL_COT_RESPONSE_SEC
from services.cache.cache_backend import MISS, CacheBackend, get_series_cache
from services.cot.aggregation import (
    AggregatedPositionRow,
    aggregate_positions,
    recent_view,
    warn_multiple_contracts,
)
from services.cot.cftc_client import CftcClient, SocrataQuery
from services.cot.contracts import get_contract_spec
from services.cot.errors import MarketNotFoundError, NoCotDataError
from services.cot.markets import MarketInfo, resolve_market
from services.cot.name_filters import build_name_filter
from services.cot.notional import spec_notional
from services.cot.ranges import DateRange, resolve_range
from services.cot.soql import all_of
from services.pricing.price_resolver import PriceResolver, get_price_resolver
from utils.common_helpers import utc_now_iso

logger = logging.getLogger(__name__)

POINTS_CACHE_VERSION = "v2"


class CotSeriesService:
    def __init__(
        self,
        client: Optional[CftcClient] = None,
        resolver: Optional[PriceResolver] = None,
        cache: Optional[CacheBackend] = None,
        *,
        ttl: float = TTL_COT_RESPONSE_SEC,
    ):
        self.client = client or CftcClient()
        self.resolver = resolver or get_price_resolver()
        self.cache = cache if cache is not None else get_series_cache()
        self.ttl = ttl

    async def positions(self, market: MarketInfo, rng: DateRange) -> List[AggregatedPositionRow]:
        key = f"cot:positions:{market.key}:{rng.start}:{rng.end}"
        hit = self.cache.get(key)
        if hit is not MISS:
            return hit

        name_filter = build_name_filter(market)
        where = all_of(rng.predicate(), name_filter.predicate)
        rows = await self.client.query_all(SocrataQuery(where=where))
        if not rows:
            logger.warning(
                "cot_series_no_rows market=%s tier=%s candidates=%s",
                market.key, name_filter.tier, name_filter.describe_candidates(),
            )
            raise NoCotDataError(market.key, name_filter.candidates)

        aggregated = aggregate_positions(rows)
        logger.info(
            "cot_series_fetched market=%s tier=%s rows=%s dates=%s",
            market.key, name_filter.tier, len(rows), len(aggregated),
        )
        self.cache.set(key, aggregated, self.ttl)
        return aggregated

    async def usd_points(
        self, market: MarketInfo, aggregated: List[AggregatedPositionRow], rng: DateRange
    ) -> List[Dict[str, Any]]:
        key = f"cot:points:{market.key}:{rng.start}:{rng.end}:usd:{POINTS_CACHE_VERSION}"
        hit = self.cache.get(key)
        if hit is not MISS:
            return hit

        spec = get_contract_spec(market.key)
        if spec is None:
            points = [{"date": a.date, "netNotionalUSD": None} for a in aggregated]
        else:
            prices = await self.resolver.resolve_spec_prices(spec, [a.date for a in aggregated])
            points = [
                {"date": a.date, "netNotionalUSD": spec_notional(a.large_net, spec, prices.get(a.date))}
                for a in aggregated
            ]
            missing = sum(1 for p in points if p["netNotionalUSD"] is None)
            if missing:
                logger.info("cot_points_missing_prices market=%s missing=%s total=%s", market.key, missing, len(points))

        self.cache.set(key, points, self.ttl)
        return points

    async def build(
        self,
        market_key: str,
        *,
        range_: Optional[str] = None,
        years: Optional[str] = None,
        basis: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        market = resolve_market(market_key)
        if market is None:
            raise MarketNotFoundError(market_key)

        rng = resolve_range(range_, years=years, today=today)
        aggregated = await self.positions(market, rng)
        multi = warn_multiple_contracts(market.key, aggregated)
        spec = get_contract_spec(market.key)

        payload: Dict[str, Any] = {
            "market": market.to_dict(),
            "dates": [a.date for a in aggregated],
            "large": [a.large_net for a in aggregated],
            "small": [a.small_net for a in aggregated],
            "comm": [a.comm_net for a in aggregated],
            "ls_large": [a.ls_large for a in aggregated],
            "ls_small": [a.ls_small for a in aggregated],
            "ls_comm": [a.ls_comm for a in aggregated],
            "open_interest": [a.open_interest for a in aggregated],
            "recent": recent_view(aggregated),
            "updated": utc_now_iso(),
            "range": rng.to_dict(),
            "matched_contracts": {d: list(names) for d, names in multi.items()},
            "quote": spec.quote if spec else None,
        }

        if (basis or "").strip().lower() == "usd":
            payload["points"] = await self.usd_points(market, aggregated, rng)
        return payload
