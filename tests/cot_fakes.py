"""Small in-memory stand-ins for the upstream dataset and the quote source."""
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from services.cot.cftc_client import CftcClient, CftcClientError, SocrataQuery
from services.cot.name_filters import DATE_FIELD, LONG_NAME_FIELD, SHORT_NAME_FIELD


def cot_row(
    day: str,
    long_name: str,
    short_name: Optional[str] = None,
    *,
    large=(0, 0),
    comm=(0, 0),
    small=(0, 0),
    oi=None,
) -> Dict[str, object]:
    """Upstream-shaped row; numbers arrive as strings like the real API."""
    row = {
        DATE_FIELD: f"{day}T00:00:00.000",
        LONG_NAME_FIELD: long_name,
        "noncomm_positions_long_all": str(large[0]),
        "noncomm_positions_short_all": str(large[1]),
        "comm_positions_long_all": str(comm[0]),
        "comm_positions_short_all": str(comm[1]),
        "nonrept_positions_long_all": str(small[0]),
        "nonrept_positions_short_all": str(small[1]),
    }
    if short_name is not None:
        row[SHORT_NAME_FIELD] = short_name
    if oi is not None:
        row["open_interest_all"] = str(oi)
    return row


class FakeCftcClient(CftcClient):
    """
    Evaluates each query's predicate against in-memory rows. Paging and
    latest-date lookups run through the real client code on top of query().
    """

    def __init__(self, rows: Iterable[dict] = (), *, fail_when: Iterable[str] = (), page_size: int = 1000):
        super().__init__(base_url="http://cftc.invalid/resource.json", page_size=page_size, max_retries=0)
        self.rows = list(rows)
        self.fail_when = tuple(fail_when)
        self.calls: List[SocrataQuery] = []

    async def query(self, q: SocrataQuery) -> List[dict]:
        self.calls.append(q)
        rendered = q.where.render() if q.where is not None else ""
        for needle in self.fail_when:
            if needle in rendered:
                raise CftcClientError(f"CFTC 500: boom for {needle}")

        rows = [r for r in self.rows if q.where is None or q.where.matches(r)]
        desc = "DESC" in (q.order or "").upper().split(",")[0]
        rows.sort(key=lambda r: str(r.get(DATE_FIELD, "")), reverse=desc)

        if q.group == DATE_FIELD:
            seen: List[str] = []
            for r in rows:
                if r[DATE_FIELD] not in seen:
                    seen.append(r[DATE_FIELD])
            rows = [{DATE_FIELD: d} for d in seen]

        rows = rows[q.offset:]
        if q.limit is not None:
            rows = rows[: q.limit]
        return [dict(r) for r in rows]


def _epoch(ymd: str) -> int:
    d = date.fromisoformat(ymd)
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp())


class FakeQuoteSource:
    """Daily closes keyed by symbol then YYYY-MM-DD; counts every call."""

    def __init__(self, daily=None, intraday=None, spot=None, fail: Iterable[str] = ()):
        self.daily: Dict[str, Dict[str, float]] = daily or {}
        self.intraday: Dict[str, List[float]] = intraday or {}
        self.spots: Dict[str, float] = spot or {}
        self.fail = set(fail)
        self.calls: List[tuple] = []

    def count(self, kind: str, symbol: Optional[str] = None) -> int:
        return sum(1 for c in self.calls if c[0] == kind and (symbol is None or c[1] == symbol))

    async def daily_closes(self, symbol, start, end):
        self.calls.append(("daily", symbol))
        if symbol in self.fail:
            raise RuntimeError(f"quote source down for {symbol}")
        closes = self.daily.get(symbol, {})
        return [
            (_epoch(d), c)
            for d, c in sorted(closes.items())
            if start <= date.fromisoformat(d) <= end
        ]

    async def intraday_closes(self, symbol, interval="5m"):
        self.calls.append(("intraday", symbol))
        if symbol in self.fail:
            raise RuntimeError(f"quote source down for {symbol}")
        return [(i * 300, c) for i, c in enumerate(self.intraday.get(symbol, []))]

    async def spot(self, symbol):
        self.calls.append(("spot", symbol))
        if symbol in self.fail:
            raise RuntimeError(f"quote source down for {symbol}")
        return self.spots.get(symbol)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
