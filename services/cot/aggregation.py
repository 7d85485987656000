# services/cot/aggregation.py
"""
Position aggregation: collapse matched upstream rows into one record per
report date.

A broad name filter can match several rows for the same date (renamed or
split contracts), so rows are summed per date, never taken individually.
Counts that are missing or non-numeric count as 0; open interest stays
None for a date where no row carried a finite value.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from services.cot.name_filters import DATE_FIELD, SHORT_NAME_FIELD
from utils.common_helpers import finite_float, safe_div

logger = logging.getLogger(__name__)

Number = Optional[float]

LARGE_LONG = "noncomm_positions_long_all"
LARGE_SHORT = "noncomm_positions_short_all"
COMM_LONG = "comm_positions_long_all"
COMM_SHORT = "comm_positions_short_all"
SMALL_LONG = "nonrept_positions_long_all"
SMALL_SHORT = "nonrept_positions_short_all"
OPEN_INTEREST = "open_interest_all"

_COUNT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("large_long", LARGE_LONG),
    ("large_short", LARGE_SHORT),
    ("comm_long", COMM_LONG),
    ("comm_short", COMM_SHORT),
    ("small_long", SMALL_LONG),
    ("small_short", SMALL_SHORT),
)


def _clean(n: float) -> float:
    return int(n) if float(n).is_integer() else n


def to_number(v: Any) -> Number:
    return finite_float(v)


def to_count(v: Any) -> float:
    n = to_number(v)
    return 0 if n is None else _clean(n)


def report_date(row: Mapping[str, Any]) -> str:
    """'2024-01-02T00:00:00.000' -> '2024-01-02'."""
    return str(row.get(DATE_FIELD) or "")[:10]


def long_short_ratio(long: float, short: float) -> Number:
    return safe_div(long, short)


def pct_split(long: float, short: float) -> Tuple[float, float]:
    """Long / short share of (long + short), in percent."""
    total = long + short
    if not total:
        return 0.0, 0.0
    return long / total * 100.0, short / total * 100.0


@dataclass(frozen=True)
class AggregatedPositionRow:
    date: str
    large_long: float = 0
    large_short: float = 0
    comm_long: float = 0
    comm_short: float = 0
    small_long: float = 0
    small_short: float = 0
    open_interest: Number = None
    contracts: Tuple[str, ...] = ()
    source_rows: int = 0

    @property
    def large_net(self) -> float:
        return self.large_long - self.large_short

    @property
    def comm_net(self) -> float:
        return self.comm_long - self.comm_short

    @property
    def small_net(self) -> float:
        return self.small_long - self.small_short

    @property
    def ls_large(self) -> Number:
        return long_short_ratio(self.large_long, self.large_short)

    @property
    def ls_comm(self) -> Number:
        return long_short_ratio(self.comm_long, self.comm_short)

    @property
    def ls_small(self) -> Number:
        return long_short_ratio(self.small_long, self.small_short)

    @property
    def large_pct(self) -> Tuple[float, float]:
        return pct_split(self.large_long, self.large_short)


@dataclass
class _Accumulator:
    counts: Dict[str, float] = field(default_factory=lambda: {k: 0 for k, _ in _COUNT_FIELDS})
    open_interest: Number = None
    contracts: List[str] = field(default_factory=list)
    rows: int = 0

    def add(self, row: Mapping[str, Any]) -> None:
        for attr, src in _COUNT_FIELDS:
            self.counts[attr] += to_count(row.get(src))
        oi = to_number(row.get(OPEN_INTEREST))
        if oi is not None:
            self.open_interest = (self.open_interest or 0) + oi
        name = (row.get(SHORT_NAME_FIELD) or "").strip()
        if name and name not in self.contracts:
            self.contracts.append(name)
        self.rows += 1

    def freeze(self, date: str) -> AggregatedPositionRow:
        oi = self.open_interest
        return AggregatedPositionRow(
            date=date,
            open_interest=None if oi is None else _clean(oi),
            contracts=tuple(self.contracts),
            source_rows=self.rows,
            **{k: _clean(v) for k, v in self.counts.items()},
        )


def aggregate_positions(rows: Iterable[Mapping[str, Any]]) -> List[AggregatedPositionRow]:
    """One row per distinct report date, ascending by date."""
    by_date: Dict[str, _Accumulator] = {}
    for r in rows:
        d = report_date(r)
        if not d:
            continue
        by_date.setdefault(d, _Accumulator()).add(r)
    return [by_date[d].freeze(d) for d in sorted(by_date)]


def _delta(cur: Number, prev: Number) -> Number:
    if cur is None or prev is None:
        return None
    return cur - prev


def recent_view(aggregated: List[AggregatedPositionRow]) -> List[Dict[str, Any]]:
    """
    Most recent first. Deltas compare against the chronologically preceding
    row and are None for the oldest row. d_oi compares against the last
    known open interest, so one week without it does not blank the next.
    """
    out: List[Dict[str, Any]] = []
    prev: Optional[AggregatedPositionRow] = None
    last_oi: Number = None
    for a in aggregated:
        out.append(
            {
                "date": a.date,
                "large_spec_net": a.large_net,
                "small_traders_net": a.small_net,
                "commercials_net": a.comm_net,
                "open_interest": a.open_interest,
                "large_spec_long": a.large_long,
                "large_spec_short": a.large_short,
                "d_large": None if prev is None else a.large_net - prev.large_net,
                "d_small": None if prev is None else a.small_net - prev.small_net,
                "d_comm": None if prev is None else a.comm_net - prev.comm_net,
                "d_oi": None if prev is None else _delta(a.open_interest, last_oi),
            }
        )
        prev = a
        if a.open_interest is not None:
            last_oi = a.open_interest
    out.reverse()
    return out


def dates_with_multiple_contracts(aggregated: Iterable[AggregatedPositionRow]) -> Dict[str, Tuple[str, ...]]:
    return {a.date: a.contracts for a in aggregated if len(a.contracts) > 1}


def warn_multiple_contracts(market_key: str, aggregated: Iterable[AggregatedPositionRow]) -> Dict[str, Tuple[str, ...]]:
    """Log every date where more than one distinct contract name was summed."""
    multi = dates_with_multiple_contracts(aggregated)
    for d, names in multi.items():
        logger.warning(
            "cot_multiple_contracts_matched market=%s date=%s contracts=%s",
            market_key, d, " | ".join(names),
        )
    return multi
