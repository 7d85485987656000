# services/cot/ranges.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Optional

from services.cot.name_filters import DATE_FIELD
from services.cot.soql import Compare, Predicate, all_of

DEFAULT_YEARS = 5
MAX_YEARS = 20
RANGE_PRESETS = ("ytd", "1y", "3y", "5y", "max")


@dataclass(frozen=True)
class DateRange:
    start: Optional[str]  # None -> no lower bound ("max")
    end: str
    label: str
    years: Optional[int] = None

    def predicate(self) -> Predicate:
        """Report-date bounds as floating timestamps, inclusive on both ends."""
        upper = Compare(DATE_FIELD, "<=", f"{self.end}T00:00:00.000")
        if self.start is None:
            return upper
        return all_of(Compare(DATE_FIELD, ">=", f"{self.start}T00:00:00.000"), upper)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"from": self.start, "to": self.end, "label": self.label}


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def years_ago(today: date, years: int) -> date:
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return today.replace(year=today.year - years, day=28)


def _clamp(n: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, n))


def _ymd(value: str, name: str) -> str:
    try:
        return date.fromisoformat(value.strip()[:10]).isoformat()
    except ValueError:
        raise ValueError(f"{name} must be YYYY-MM-DD") from None


def resolve_range(
    range_: Optional[str] = None,
    *,
    years: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    today: Optional[date] = None,
    max_years: int = MAX_YEARS,
) -> DateRange:
    """
    Precedence: explicit start/end, then a years count (clamped to
    1..max_years), then a named preset. Unknown presets and non-numeric
    or non-finite years fall back to 5y. Malformed explicit dates raise
    ValueError.
    """
    today = today or utc_today()
    to = today.isoformat()

    if start or end:
        return DateRange(
            start=_ymd(start, "start") if start else years_ago(today, DEFAULT_YEARS).isoformat(),
            end=_ymd(end, "end") if end else to,
            label="custom",
        )

    if years:
        try:
            y = int(float(years))
        except (ValueError, OverflowError):
            y = DEFAULT_YEARS
        y = _clamp(y or DEFAULT_YEARS, 1, max_years)
        return DateRange(start=years_ago(today, y).isoformat(), end=to, label=f"{y}y", years=y)

    r = (range_ or "5y").strip().lower()
    if r == "ytd":
        return DateRange(start=date(today.year, 1, 1).isoformat(), end=to, label="ytd")
    if r == "max":
        return DateRange(start=None, end=to, label="max")
    if r in ("1y", "3y"):
        y = int(r[0])
        return DateRange(start=years_ago(today, y).isoformat(), end=to, label=r, years=y)
    return DateRange(
        start=years_ago(today, DEFAULT_YEARS).isoformat(), end=to, label="5y", years=DEFAULT_YEARS
    )
