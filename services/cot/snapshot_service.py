# services/cot/snapshot_service.py
"""
Cross-sectional snapshot: every registry market, latest and previous
report date, large-speculator split and USD notional.

One market failing never aborts the snapshot; its row carries a `reason`
and zeroed/null figures. Each notional is priced on its own report date.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.settings import SNAPSHOT_MAX_CONCURRENCY
from services.cot.aggregation import AggregatedPositionRow, aggregate_positions, warn_multiple_contracts
from services.cot.cftc_client import CftcClient, SocrataQuery
from services.cot.contracts import CONTRACT_SPECS, ContractSpec
from services.cot.markets import MARKETS, MarketInfo
from services.cot.name_filters import DATE_FIELD, build_name_filter
from services.cot.notional import spec_notional
from services.cot.soql import Compare, all_of
from services.pricing.price_resolver import PriceResolver, get_price_resolver
from utils.common_helpers import utc_now_iso

logger = logging.getLogger(__name__)


def base_row(market: MarketInfo, spec: Optional[ContractSpec]) -> Dict[str, Any]:
    return {
        "key": market.key,
        "code": market.code,
        "name": market.name,
        "group": market.group,
        "date": None,
        "prevDate": None,
        "longPct": 0.0,
        "shortPct": 0.0,
        "prevLongPct": 0.0,
        "prevShortPct": 0.0,
        "net": 0,
        "prevNet": 0,
        "openInterest": None,
        "price": None,
        "prevPrice": None,
        "contractSize": spec.contract_size if spec else None,
        "priceMultiplier": spec.price_multiplier if spec else 1,
        "usdNotional": None,
        "prevUsdNotional": None,
    }


def empty_row(market: MarketInfo, spec: Optional[ContractSpec], reason: str) -> Dict[str, Any]:
    row = base_row(market, spec)
    row["reason"] = reason
    return row


class CotSnapshotService:
    def __init__(
        self,
        client: Optional[CftcClient] = None,
        resolver: Optional[PriceResolver] = None,
        *,
        markets: Sequence[MarketInfo] = MARKETS,
        specs: Mapping[str, ContractSpec] = CONTRACT_SPECS,
        max_concurrency: int = SNAPSHOT_MAX_CONCURRENCY,
    ):
        self.client = client or CftcClient()
        self.resolver = resolver or get_price_resolver()
        self.markets = tuple(markets)
        self.specs = specs
        self.max_concurrency = max(1, max_concurrency)

    async def latest_two(self, market: MarketInfo) -> List[AggregatedPositionRow]:
        """
        Latest and previous aggregated rows, newest first.

        The two most recent distinct dates are looked up first so that
        several matched rows on one date cannot push the previous week out
        of a plain row limit.
        """
        name_filter = build_name_filter(market)
        dates = await self.client.latest_report_dates(name_filter.predicate, 2)
        if not dates:
            return []
        wanted = {d[:10] for d in dates}
        where = all_of(Compare(DATE_FIELD, ">=", min(dates)), name_filter.predicate)
        rows = await self.client.query_all(SocrataQuery(where=where))
        aggregated = [a for a in aggregate_positions(rows) if a.date in wanted]
        warn_multiple_contracts(market.key, aggregated)
        return list(reversed(aggregated[-2:]))

    async def build_row(self, market: MarketInfo) -> Dict[str, Any]:
        spec = self.specs.get(market.key)
        try:
            pair = await self.latest_two(market)
        except Exception as e:
            logger.warning("cot_snapshot_market_failed market=%s error=%r", market.key, e)
            return empty_row(market, spec, str(e) or "cftc_fetch_error")

        if not pair:
            logger.info("cot_snapshot_no_rows market=%s", market.key)
            return empty_row(market, spec, "no_latest_row")

        latest = pair[0]
        prev = pair[1] if len(pair) > 1 else None
        long_pct, short_pct = latest.large_pct
        prev_long_pct, prev_short_pct = prev.large_pct if prev else (0.0, 0.0)

        row = base_row(market, spec)
        row.update(
            date=latest.date,
            prevDate=prev.date if prev else None,
            longPct=long_pct,
            shortPct=short_pct,
            prevLongPct=prev_long_pct,
            prevShortPct=prev_short_pct,
            net=latest.large_net,
            prevNet=prev.large_net if prev else 0,
            openInterest=latest.open_interest,
        )

        if spec is not None:
            price = await self.resolver.resolve_spec_price(spec, latest.date)
            row["price"] = price
            row["usdNotional"] = spec_notional(latest.large_net, spec, price)
            if prev is not None:
                prev_price = await self.resolver.resolve_spec_price(spec, prev.date)
                row["prevPrice"] = prev_price
                row["prevUsdNotional"] = spec_notional(prev.large_net, spec, prev_price)
        return row

    async def build(self) -> Dict[str, Any]:
        sem = asyncio.Semaphore(self.max_concurrency)

        async def one(m: MarketInfo) -> Dict[str, Any]:
            async with sem:
                return await self.build_row(m)

        rows = await asyncio.gather(*(one(m) for m in self.markets))
        failed = sum(1 for r in rows if r.get("reason"))
        logger.info("cot_snapshot_built markets=%s failed=%s", len(rows), failed)
        return {"updated": utc_now_iso(), "rows": list(rows)}
