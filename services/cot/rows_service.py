# services/cot/rows_service.py
"""
Raw legacy COT rows for a whole registry group, newest first, optionally
with a latest-per-contract distribution of large speculator positions.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from config.settings import TTL_COT_ROWS_SEC
from services.cache.cache_backend import MISS, CacheBackend, get_series_cache
from services.cot.aggregation import LARGE_LONG, LARGE_SHORT, to_count, to_number
from services.cot.cftc_client import CftcClient, SocrataQuery
from services.cot.markets import MARKET_GROUPS, list_markets
from services.cot.name_filters import DATE_FIELD, LONG_NAME_FIELD, SHORT_NAME_FIELD
from services.cot.ranges import resolve_range
from services.cot.soql import In, all_of
from utils.common_helpers import utc_now_iso

logger = logging.getLogger(__name__)

ROWS_MAX_YEARS = 15
ROW_FORMATS = ("rows", "distribution")

ROW_FIELDS = (
    DATE_FIELD,
    "report_date_long",
    LONG_NAME_FIELD,
    SHORT_NAME_FIELD,
    LARGE_LONG,
    LARGE_SHORT,
    "noncomm_positions_spread_all",
    "change_in_noncomm_long_all",
    "change_in_noncomm_short_all",
    "pct_of_oi_noncomm_long_all",
    "pct_of_oi_noncomm_short_all",
)


def distribution(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """First row seen per short name; rows must already be newest first."""
    seen = set()
    out: List[Dict[str, Any]] = []
    for row in rows:
        market = (row.get(SHORT_NAME_FIELD) or "").strip()
        d = row.get(DATE_FIELD)
        if not market or not d or market in seen:
            continue
        seen.add(market)
        long = to_count(row.get(LARGE_LONG))
        short = to_count(row.get(LARGE_SHORT))
        out.append(
            {
                "market": market,
                "date": str(d)[:10],
                "long": long,
                "short": short,
                "net": long - short,
                "pctLong": to_number(row.get("pct_of_oi_noncomm_long_all")),
                "pctShort": to_number(row.get("pct_of_oi_noncomm_short_all")),
            }
        )
    return out


class CotRowsService:
    def __init__(
        self,
        client: Optional[CftcClient] = None,
        cache: Optional[CacheBackend] = None,
        *,
        ttl: float = TTL_COT_ROWS_SEC,
    ):
        self.client = client or CftcClient()
        self.cache = cache if cache is not None else get_series_cache()
        self.ttl = ttl

    async def build(
        self,
        *,
        group: Optional[str] = None,
        format_: str = "rows",
        range_: Optional[str] = None,
        years: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        refresh: bool = False,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        fmt = (format_ or "rows").strip().lower()
        if fmt not in ROW_FORMATS:
            raise ValueError(f"Unknown format: {format_}")
        grp = (group or "").strip().upper() or None
        if grp is not None and grp not in MARKET_GROUPS:
            raise ValueError(f"Unknown group: {group}")

        rng = resolve_range(range_, years=years, start=start, end=end, today=today, max_years=ROWS_MAX_YEARS)
        key = f"cot:rows:v3:{rng.start}:{rng.end}:{grp or ''}:{fmt}"
        if not refresh:
            hit = self.cache.get(key)
            if hit is not MISS:
                return hit

        rows: List[Dict[str, Any]] = []
        names = [m.cftc_name for m in list_markets(grp)] if grp else []
        if grp is None or names:
            where = rng.predicate()
            if names:
                where = all_of(where, In(LONG_NAME_FIELD, tuple(names)))
            rows = await self.client.query_all(
                SocrataQuery(
                    where=where,
                    select=ROW_FIELDS,
                    order=f"{DATE_FIELD} DESC, {SHORT_NAME_FIELD} ASC",
                )
            )

        payload: Dict[str, Any] = {
            "updated": utc_now_iso(),
            "range": {"start": rng.start, "end": rng.end, "years": rng.years, "label": rng.label},
            "count": len(rows),
            "rows": rows,
        }
        if fmt == "distribution":
            payload["distribution"] = distribution(rows)

        logger.info("cot_rows_built group=%s format=%s rows=%s label=%s", grp, fmt, len(rows), rng.label)
        self.cache.set(key, payload, self.ttl)
        return payload
