# services/cot/name_filters.py
"""
Name resolution: turn a registry dataset name into a row predicate.

The same logical contract shows up under several spellings in the CFTC
data, and some (Euro FX, NZ Dollar) sit next to E-mini / E-micro / cross
rate look-alikes. Two tiers:

  strict  fixed allow-list; exact long name (or alias), short name absent
          or one of a known set, exclusion globs on both name fields.
  broad   everything else; short name equals / starts with a derived
          candidate, or long name starts with the full dataset name.
          FX names also get the exclusion globs.

The alias tables below are versioned data. Each new alias needs a
regression test pinning the exact matched and excluded name strings
(see tests/test_name_filters.py).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple, Union

from services.cot.markets import MarketInfo
from services.cot.soql import Eq, IsNull, Like, Predicate, all_of, any_of, not_like

DATE_FIELD = "report_date_as_yyyy_mm_dd"
LONG_NAME_FIELD = "market_and_exchange_names"
SHORT_NAME_FIELD = "contract_market_name"

# Mini / micro contracts and cross rates ("EURO FX/BRITISH POUND XRATE")
EXCLUSION_GLOBS: Tuple[str, ...] = ("%E-MINI%", "%E MICRO%", "%E-MICRO%", "%/%")


@dataclass(frozen=True)
class StrictSpec:
    long_names: Tuple[str, ...]
    short_names: Tuple[str, ...]
    exclude_globs: Tuple[str, ...] = EXCLUSION_GLOBS


STRICT_LIST: Tuple[StrictSpec, ...] = (
    StrictSpec(
        long_names=("EURO FX - CHICAGO MERCANTILE EXCHANGE",),
        short_names=("EURO FX",),
    ),
    StrictSpec(
        long_names=(
            "NZ DOLLAR - CHICAGO MERCANTILE EXCHANGE",
            "NEW ZEALAND DOLLAR - CHICAGO MERCANTILE EXCHANGE",
        ),
        short_names=("NZ DOLLAR", "NEW ZEALAND DOLLAR"),
    ),
)

# Suffixes dropped from the short-name prefix ("BRITISH POUND STERLING" -> "BRITISH POUND")
SHORT_NAME_SUFFIXES: Tuple[Pattern[str], ...] = (
    re.compile(r"\s+STERLING\b", re.IGNORECASE),
    re.compile(r"\s+LAST DAY\b", re.IGNORECASE),
)

# Contracts the exchange renamed over the years
SHORT_NAME_ALIASES: Tuple[Tuple[Pattern[str], Tuple[str, ...]], ...] = (
    (re.compile(r"BRENT", re.IGNORECASE), ("CRUDE OIL, BRENT", "BRENT CRUDE OIL", "BRENT")),
    (re.compile(r"ULSD|HEATING OIL", re.IGNORECASE), ("HEATING OIL", "NEW YORK HARBOR ULSD")),
)

FX_KEYWORDS: Pattern[str] = re.compile(
    r"EURO FX|BRITISH POUND|AUSTRALIAN DOLLAR|NEW ZEALAND DOLLAR|NZ DOLLAR|"
    r"CANADIAN DOLLAR|SWISS FRANC|JAPANESE YEN|MEXICAN PESO",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class NameFilter:
    tier: str
    predicate: Predicate
    candidates: Tuple[str, ...]

    def describe_candidates(self) -> str:
        return " / ".join(self.candidates)


def _norm(name: str) -> str:
    return " ".join((name or "").split()).upper()


def find_strict_spec(cftc_name: str) -> Optional[StrictSpec]:
    target = _norm(cftc_name)
    for spec in STRICT_LIST:
        if any(_norm(ln) == target for ln in spec.long_names):
            return spec
    return None


def is_fx_name(cftc_name: str) -> bool:
    return FX_KEYWORDS.search(cftc_name or "") is not None


def exclusion_predicate(globs: Tuple[str, ...] = EXCLUSION_GLOBS) -> Predicate:
    return all_of(
        *[not_like(field, g) for g in globs for field in (SHORT_NAME_FIELD, LONG_NAME_FIELD)]
    )


def strict_filter(spec: StrictSpec) -> NameFilter:
    long_clause = any_of(*[Eq(LONG_NAME_FIELD, ln, case_insensitive=True) for ln in spec.long_names])
    short_clause = any_of(
        IsNull(SHORT_NAME_FIELD),
        *[Eq(SHORT_NAME_FIELD, sn, case_insensitive=True) for sn in spec.short_names],
    )
    predicate = all_of(long_clause, short_clause, exclusion_predicate(spec.exclude_globs))
    return NameFilter(tier="strict", predicate=predicate, candidates=spec.short_names)


def short_name_candidates(cftc_name: str) -> Tuple[str, ...]:
    """Base short name (text before the first " - "), suffix variants and aliases."""
    base = (cftc_name or "").split(" - ")[0].strip()
    out: List[str] = [base]
    for pat in SHORT_NAME_SUFFIXES:
        out.append(pat.sub("", base).strip())
    for pat, aliases in SHORT_NAME_ALIASES:
        if pat.search(base):
            out.extend(aliases)

    seen: set[str] = set()
    uniq: List[str] = []
    for c in out:
        if c and c not in seen:
            seen.add(c)
            uniq.append(c)
    return tuple(uniq)


def broad_filter(cftc_name: str) -> NameFilter:
    long_name = (cftc_name or "").strip()
    candidates = short_name_candidates(long_name)

    clauses: List[Predicate] = []
    for c in candidates:
        clauses.append(Eq(SHORT_NAME_FIELD, c))
        clauses.append(Like(SHORT_NAME_FIELD, f"{c}%"))
    clauses.append(Like(LONG_NAME_FIELD, f"{long_name}%"))
    predicate = any_of(*clauses)

    if is_fx_name(long_name):
        predicate = all_of(predicate, exclusion_predicate())
    return NameFilter(tier="broad", predicate=predicate, candidates=candidates)


def build_name_filter(market: Union[MarketInfo, str]) -> NameFilter:
    cftc_name = market.cftc_name if isinstance(market, MarketInfo) else market
    spec = find_strict_spec(cftc_name)
    if spec is not None:
        return strict_filter(spec)
    return broad_filter(cftc_name)
