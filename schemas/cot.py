from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MarketRef(BaseModel):
    key: str
    code: str
    name: str


class MarketListItem(MarketRef):
    group: str
    cftc_name: str
    has_contract_spec: bool = False


class MarketListResponse(BaseModel):
    group: Optional[str] = None
    markets: List[MarketListItem] = Field(default_factory=list)


class SnapshotRow(BaseModel):
    key: str
    code: str
    name: str
    group: str
    date: Optional[str] = None
    prevDate: Optional[str] = None
    longPct: float = 0.0
    shortPct: float = 0.0
    prevLongPct: float = 0.0
    prevShortPct: float = 0.0
    net: float = 0
    prevNet: float = 0
    openInterest: Optional[float] = None
    price: Optional[float] = None
    prevPrice: Optional[float] = None
    contractSize: Optional[float] = None
    priceMultiplier: float = 1
    usdNotional: Optional[int] = None
    prevUsdNotional: Optional[int] = None
    reason: Optional[str] = None


class SnapshotResponse(BaseModel):
    updated: str
    rows: List[SnapshotRow] = Field(default_factory=list)


class RecentRow(BaseModel):
    date: str
    large_spec_net: float
    small_traders_net: float
    commercials_net: float
    open_interest: Optional[float] = None
    large_spec_long: float
    large_spec_short: float
    d_large: Optional[float] = None
    d_small: Optional[float] = None
    d_comm: Optional[float] = None
    d_oi: Optional[float] = None


class RangeInfo(BaseModel):
    model_config = {"populate_by_name": True}

    from_: Optional[str] = Field(None, alias="from")
    to: str
    label: str


class NotionalPoint(BaseModel):
    date: str
    netNotionalUSD: Optional[int] = None


class MarketSeriesResponse(BaseModel):
    market: MarketRef
    dates: List[str]
    large: List[float]
    small: List[float]
    comm: List[float]
    ls_large: List[Optional[float]]
    ls_small: List[Optional[float]]
    ls_comm: List[Optional[float]]
    open_interest: List[Optional[float]]
    recent: List[RecentRow]
    updated: str
    range: RangeInfo
    matched_contracts: Dict[str, List[str]] = Field(default_factory=dict)
    quote: Optional[str] = None
    points: Optional[List[NotionalPoint]] = None


class RowsRange(BaseModel):
    start: Optional[str] = None
    end: str
    years: Optional[int] = None
    label: str


class DistributionRow(BaseModel):
    market: str
    date: str
    long: float
    short: float
    net: float
    pctLong: Optional[float] = None
    pctShort: Optional[float] = None


class CotRowsResponse(BaseModel):
    updated: str
    range: RowsRange
    count: int
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    distribution: Optional[List[DistributionRow]] = None


class PriceExplainResponse(BaseModel):
    input: Dict[str, str]
    alt_symbol: Optional[str] = None
    results: Dict[str, Optional[float]]
    chosen: Optional[float] = None
    chosen_by: Optional[str] = None
