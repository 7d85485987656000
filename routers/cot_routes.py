# routers/cot_routes.py
"""
COT positioning endpoints. Thin layer: domain errors map to HTTP status
codes here, everything else lives in services/cot.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from config.settings import COT_CACHE_CONTROL, TTL_COT_RESPONSE_SEC, TTL_COT_ROWS_SEC
from middleware.rate_limit import limiter
from schemas.cot import CotRowsResponse, MarketListResponse, MarketSeriesResponse, SnapshotResponse
from services.cache.cache_backend import MISS, CacheBackend, get_response_cache
from services.cot.cftc_client import CftcClientError
from services.cot.contracts import CONTRACT_SPECS
from services.cot.errors import MarketNotFoundError, NoCotDataError
from services.cot.markets import MARKET_GROUPS, list_markets
from services.cot.rows_service import CotRowsService
from services.cot.series_service import CotSeriesService
from services.cot.snapshot_service import CotSnapshotService

logger = logging.getLogger(__name__)

router = APIRouter()

SNAPSHOT_CACHE_KEY = "cot:snapshot:v1"


def get_snapshot_service() -> CotSnapshotService:
    return CotSnapshotService()


def get_series_service() -> CotSeriesService:
    return CotSeriesService()


def get_rows_service() -> CotRowsService:
    return CotRowsService()


def get_cot_response_cache() -> CacheBackend:
    return get_response_cache()


@router.get("/snapshot", response_model=SnapshotResponse)
@limiter.limit("30/minute")
async def get_snapshot(
    request: Request,
    response: Response,
    service: CotSnapshotService = Depends(get_snapshot_service),
    cache: CacheBackend = Depends(get_cot_response_cache),
):
    response.headers["Cache-Control"] = COT_CACHE_CONTROL

    cached = cache.get(SNAPSHOT_CACHE_KEY)
    if cached is not MISS and isinstance(cached, dict):
        logger.info("cot_snapshot_cache_hit")
        return cached

    payload = await service.build()
    rows = payload.get("rows") or []
    if rows and all(r.get("reason") for r in rows):
        logger.warning("cot_snapshot_all_failed markets=%s", len(rows))
    else:
        cache.set(SNAPSHOT_CACHE_KEY, payload, TTL_COT_RESPONSE_SEC)
    return payload


@router.get("/markets", response_model=MarketListResponse)
def get_markets(group: Optional[str] = Query(None, description="FX, METALS, ENERGY, ...")):
    grp = (group or "").strip().upper() or None
    if grp is not None and grp not in MARKET_GROUPS:
        raise HTTPException(status_code=400, detail=f"Unknown group: {group}")

    markets = [
        {
            **m.to_dict(),
            "group": m.group,
            "cftc_name": m.cftc_name,
            "has_contract_spec": m.key in CONTRACT_SPECS,
        }
        for m in list_markets(grp)
    ]
    return {"group": grp, "markets": markets}


@router.get(
    "/market/{market_key}",
    response_model=MarketSeriesResponse,
    response_model_exclude_unset=True,
)
@limiter.limit("60/minute")
async def get_market_series(
    request: Request,
    response: Response,
    market_key: str,
    range_: Optional[str] = Query(None, alias="range", description="ytd | 1y | 3y | 5y | max"),
    years: Optional[str] = Query(None, description="Explicit years count (1-20)"),
    basis: Optional[str] = Query(None, description="usd to include notional points"),
    service: CotSeriesService = Depends(get_series_service),
):
    try:
        payload = await service.build(market_key, range_=range_, years=years, basis=basis)
    except MarketNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NoCotDataError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CftcClientError as e:
        logger.warning("cot_series_upstream_failed market=%s error=%s", market_key, e)
        raise HTTPException(status_code=502, detail=str(e))

    response.headers["Cache-Control"] = COT_CACHE_CONTROL
    return payload


@router.get("", response_model=CotRowsResponse, response_model_exclude_unset=True)
@limiter.limit("30/minute")
async def get_cot_rows(
    request: Request,
    response: Response,
    group: Optional[str] = Query(None),
    format_: str = Query("rows", alias="format", description="rows | distribution"),
    range_: Optional[str] = Query(None, alias="range"),
    years: Optional[str] = Query(None),
    start: Optional[str] = Query(None, description="YYYY-MM-DD"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD"),
    refresh: Optional[str] = Query(None),
    service: CotRowsService = Depends(get_rows_service),
):
    try:
        payload = await service.build(
            group=group,
            format_=format_,
            range_=range_,
            years=years,
            start=start,
            end=end,
            refresh=refresh == "1",
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CftcClientError as e:
        logger.warning("cot_rows_upstream_failed group=%s error=%s", group, e)
        raise HTTPException(status_code=502, detail=str(e))

    response.headers["Cache-Control"] = f"public, max-age={TTL_COT_ROWS_SEC}"
    return payload
