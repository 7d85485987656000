# services/pricing/yahoo_quotes.py
"""
Quote source backed by Yahoo Finance through yahooquery.

yahooquery is synchronous, so every call runs in the threadpool and is
bounded by `asyncio.wait_for`. Methods raise on transport problems; the
price resolver decides what a failure means.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import pandas as pd
from starlette.concurrency import run_in_threadpool
from yahooquery import Ticker

from config.settings import YAHOO_TIMEOUT_SEC
from utils.common_helpers import finite_float

logger = logging.getLogger(__name__)

ClosePoint = Tuple[int, float]  # (epoch seconds UTC, close)


def retry(
    fn: Callable[[], Any],
    *,
    attempts: int = 2,
    delay: float = 0.4,
    backoff: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Any:
    """
    Retry a function up to `attempts` times with exponential backoff.
    Raises RuntimeError (chained) if all attempts fail.
    """
    attempts = max(1, attempts)
    err: BaseException | None = None

    for i in range(attempts):
        try:
            return fn()
        except exceptions as e:
            err = e
            if i < attempts - 1:
                time.sleep(delay * (backoff ** i))

    raise RuntimeError(f"retry failed after {attempts} attempts") from err


def _ensure_symbol_dict(obj: Any, sym: str) -> Dict[str, Any]:
    """
    yahooquery can return strings, lists, or dicts not keyed by symbol.
    Normalize to a dict (or {}) for the symbol.
    """
    if isinstance(obj, dict):
        if sym in obj and isinstance(obj[sym], dict):
            return obj[sym]
        return obj
    return {}


def to_epoch_utc(x: Any) -> int | None:
    """Coerce pandas Timestamp / datetime / date / ISO string to epoch seconds (UTC)."""
    if x is None:
        return None
    if isinstance(x, pd.Timestamp):
        x = x.tz_localize("UTC") if x.tzinfo is None else x.tz_convert("UTC")
        return int(x.timestamp())
    if isinstance(x, datetime):
        x = x.astimezone(timezone.utc) if x.tzinfo else x.replace(tzinfo=timezone.utc)
        return int(x.timestamp())
    if isinstance(x, date):
        return int(datetime(x.year, x.month, x.day, tzinfo=timezone.utc).timestamp())
    if isinstance(x, str):
        ts = pd.to_datetime(x, utc=True, errors="coerce")
        if pd.isna(ts):
            return None
        return int(ts.timestamp())
    return None


def history_frame_to_points(df: Any, sym: str) -> List[ClosePoint]:
    """
    Normalize a yahooquery history frame to [(epoch, close)] sorted by time.
    Rows with a missing or non-finite close are dropped.
    """
    if df is None or not isinstance(df, (pd.DataFrame, pd.Series)):
        return []
    if isinstance(df, pd.Series):
        df = df.to_frame().T
    if df.empty or "close" not in df.columns:
        return []

    df = df.reset_index()
    if "symbol" in df.columns:
        df = df[df["symbol"].astype(str).str.upper() == sym.upper()]
    if "date" not in df.columns:
        if "index" in df.columns:
            df = df.rename(columns={"index": "date"})
        else:
            return []

    points: List[ClosePoint] = []
    for d, c in zip(df["date"], df["close"]):
        t = to_epoch_utc(d)
        close = finite_float(c)
        if t is None or close is None:
            continue
        points.append((t, close))
    points.sort(key=lambda p: p[0])
    return points


class YahooQuoteSource:
    def __init__(self, timeout: float = YAHOO_TIMEOUT_SEC):
        self.timeout = timeout

    def _ticker(self, sym: str) -> Ticker:
        return Ticker(sym, asynchronous=False, formatted=False, validate=False, timeout=self.timeout)

    async def _run(self, fn: Callable[[], Any]) -> Any:
        return await asyncio.wait_for(run_in_threadpool(fn), timeout=self.timeout + 1)

    # ---- sync bodies (threadpool)
    def _daily_closes_sync(self, sym: str, start: date, end: date) -> List[ClosePoint]:
        tq = self._ticker(sym)
        df = tq.history(start=start.isoformat(), end=end.isoformat(), interval="1d")
        return history_frame_to_points(df, sym)

    def _intraday_closes_sync(self, sym: str, interval: str) -> List[ClosePoint]:
        tq = self._ticker(sym)
        df = tq.history(period="1d", interval=interval)
        return history_frame_to_points(df, sym)

    def _spot_sync(self, sym: str) -> Optional[float]:
        tq = self._ticker(sym)
        price_raw = retry(lambda: tq.price)
        price = _ensure_symbol_dict(price_raw, sym)
        return finite_float(price.get("regularMarketPrice"))

    # ---- async API
    async def daily_closes(self, symbol: str, start: date, end: date) -> List[ClosePoint]:
        sym = (symbol or "").strip().upper()
        return await self._run(lambda: self._daily_closes_sync(sym, start, end))

    async def intraday_closes(self, symbol: str, interval: str = "5m") -> List[ClosePoint]:
        sym = (symbol or "").strip().upper()
        return await self._run(lambda: self._intraday_closes_sync(sym, interval))

    async def spot(self, symbol: str) -> Optional[float]:
        sym = (symbol or "").strip().upper()
        return await self._run(lambda: self._spot_sync(sym))
