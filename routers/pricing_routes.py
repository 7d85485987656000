# routers/pricing_routes.py
import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from schemas.cot import PriceExplainResponse
from services.pricing.price_resolver import PriceResolver, get_price_resolver

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/close", response_model=PriceExplainResponse)
async def get_close(
    response: Response,
    symbol: str = Query(..., min_length=1, description="Quote symbol, e.g. GBPUSD=X"),
    ymd: str = Query(..., description="YYYY-MM-DD"),
    resolver: PriceResolver = Depends(get_price_resolver),
):
    """Every price strategy's result for (symbol, date) plus the chosen price."""
    try:
        date.fromisoformat(ymd)
    except ValueError:
        raise HTTPException(status_code=400, detail="ymd must be YYYY-MM-DD")

    result = await resolver.explain(symbol.strip().upper(), ymd)
    logger.info(
        "price_explain symbol=%s ymd=%s chosen_by=%s",
        result["input"]["symbol"], ymd, result["chosen_by"],
    )
    response.headers["Cache-Control"] = "no-store"
    return result
