# services/cot/markets.py
"""
Market registry: the single source of truth for COT market metadata.

`cftc_name` must match the dataset's `market_and_exchange_names` value
exactly; it is the join key against the upstream data. Widening coverage
means adding an entry here (and a ContractSpec if USD notional is wanted).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Tuple, Union

from config.settings import IS_PRODUCTION

logger = logging.getLogger(__name__)

MarketGroup = Literal["FX", "INDEX", "RATES", "ENERGY", "METALS", "AGRI", "CRYPTO", "OTHER"]
MARKET_GROUPS: Tuple[str, ...] = ("FX", "INDEX", "RATES", "ENERGY", "METALS", "AGRI", "CRYPTO", "OTHER")


@dataclass(frozen=True)
class MarketInfo:
    key: str
    code: str
    name: str
    cftc_name: str
    group: str

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "code": self.code, "name": self.name}


REGISTRY: Tuple[MarketInfo, ...] = (
    # ---- FX (majors)
    MarketInfo("eur", "EUR", "Euro FX", "EURO FX - CHICAGO MERCANTILE EXCHANGE", "FX"),
    MarketInfo("jpy", "JPY", "Japanese Yen", "JAPANESE YEN - CHICAGO MERCANTILE EXCHANGE", "FX"),
    MarketInfo("gbp", "GBP", "British Pound", "BRITISH POUND STERLING - CHICAGO MERCANTILE EXCHANGE", "FX"),
    MarketInfo("aud", "AUD", "Australian Dollar", "AUSTRALIAN DOLLAR - CHICAGO MERCANTILE EXCHANGE", "FX"),
    MarketInfo("nzd", "NZD", "New Zealand Dollar", "NEW ZEALAND DOLLAR - CHICAGO MERCANTILE EXCHANGE", "FX"),
    MarketInfo("cad", "CAD", "Canadian Dollar", "CANADIAN DOLLAR - CHICAGO MERCANTILE EXCHANGE", "FX"),
    MarketInfo("chf", "CHF", "Swiss Franc", "SWISS FRANC - CHICAGO MERCANTILE EXCHANGE", "FX"),
    MarketInfo("mxn", "MXN", "Mexican Peso", "MEXICAN PESO - CHICAGO MERCANTILE EXCHANGE", "FX"),

    # ---- Metals
    MarketInfo("gold", "XAU", "Gold", "GOLD - COMMODITY EXCHANGE INC.", "METALS"),
    MarketInfo("silver", "XAG", "Silver", "SILVER - COMMODITY EXCHANGE INC.", "METALS"),
    MarketInfo("copper", "HG", "Copper", "COPPER-GRADE #1 - COMMODITY EXCHANGE INC.", "METALS"),

    # ---- Energy
    MarketInfo("wti", "CL", "WTI Crude Oil", "CRUDE OIL, LIGHT SWEET - NEW YORK MERCANTILE EXCHANGE", "ENERGY"),
    MarketInfo("brent", "BRN", "Brent Crude Oil", "BRENT CRUDE OIL LAST DAY - NEW YORK MERCANTILE EXCHANGE", "ENERGY"),
    MarketInfo("rbob", "RB", "RBOB Gasoline", "GASOLINE BLENDSTOCK (RBOB) - NEW YORK MERCANTILE EXCHANGE", "ENERGY"),
    MarketInfo("ng", "NG", "Natural Gas", "NAT GAS ICE LD1 - ICE FUTURES ENERGY DIV", "ENERGY"),

    # ---- Agricultural / livestock / softs
    MarketInfo("corn", "ZC", "Corn", "CORN - CHICAGO BOARD OF TRADE", "AGRI"),
    MarketInfo("wheat", "ZW", "Wheat (SRW)", "WHEAT-SRW - CHICAGO BOARD OF TRADE", "AGRI"),
    MarketInfo("soy", "ZS", "Soybeans", "SOYBEANS - CHICAGO BOARD OF TRADE", "AGRI"),
    MarketInfo("sugar11", "SB", "Sugar #11", "SUGAR NO. 11 - ICE FUTURES U.S.", "AGRI"),
    MarketInfo("coffee", "KC", "Coffee", "COFFEE C - ICE FUTURES U.S.", "AGRI"),
    MarketInfo("cocoa", "CC", "Cocoa", "COCOA - ICE FUTURES U.S.", "AGRI"),
    MarketInfo("lc", "LE", "Live Cattle", "LIVE CATTLE - CHICAGO MERCANTILE EXCHANGE", "AGRI"),
    MarketInfo("lh", "HE", "Lean Hogs", "LEAN HOGS - CHICAGO MERCANTILE EXCHANGE", "AGRI"),

    # ---- Index / crypto
    # Full-size consolidated contracts, so E-mini rows never collide
    MarketInfo("spx", "SPX", "S&P 500 (Consolidated)", "S&P 500 Consolidated - CHICAGO MERCANTILE EXCHANGE", "INDEX"),
    MarketInfo("ndx", "NDX", "NASDAQ-100 (Consolidated)", "NASDAQ-100 Consolidated - CHICAGO MERCANTILE EXCHANGE", "INDEX"),
    MarketInfo("djia", "DJI", "DJIA (Consolidated)", "DJIA Consolidated - CHICAGO BOARD OF TRADE", "INDEX"),
    MarketInfo("btc", "BTC", "Bitcoin CME Futures", "BITCOIN - CHICAGO MERCANTILE EXCHANGE", "CRYPTO"),
)

MARKETS: Tuple[MarketInfo, ...] = REGISTRY
MARKET_KEYS: List[str] = [m.key for m in REGISTRY]

# First declaration wins on duplicates; validate_registry() reports them.
MARKET_BY_KEY: Dict[str, MarketInfo] = {}
MARKET_BY_CODE: Dict[str, MarketInfo] = {}
MARKET_BY_CFTC: Dict[str, MarketInfo] = {}
for _m in REGISTRY:
    MARKET_BY_KEY.setdefault(_m.key.lower(), _m)
    MARKET_BY_CODE.setdefault(_m.code.upper(), _m)
    MARKET_BY_CFTC.setdefault(_m.cftc_name, _m)


def resolve_market(q: Union[str, MarketInfo, None]) -> Optional[MarketInfo]:
    """
    Resolve a key (case-insensitive), a short code (case-insensitive) or an
    exact dataset name to a registry entry. Unknown input returns None.
    """
    if q is None:
        return None
    if isinstance(q, MarketInfo):
        return q
    if not isinstance(q, str):
        return None

    raw = q.strip()
    if not raw:
        return None

    by_key = MARKET_BY_KEY.get(raw.lower())
    if by_key:
        return by_key

    by_code = MARKET_BY_CODE.get(raw.upper())
    if by_code:
        return by_code

    # Dataset name must agree byte-for-byte with what the filter requests
    return MARKET_BY_CFTC.get(q)


def list_markets(group: Optional[str] = None) -> List[MarketInfo]:
    """All entries in declaration order, optionally restricted to one group."""
    if group:
        return [m for m in REGISTRY if m.group == group]
    return list(REGISTRY)


def validate_registry(registry: Tuple[MarketInfo, ...] = REGISTRY) -> List[str]:
    """Return (and log) duplicate keys / dataset names."""
    problems: List[str] = []
    seen_key: set[str] = set()
    seen_cftc: set[str] = set()
    for m in registry:
        k = m.key.lower()
        if k in seen_key:
            problems.append(f"duplicate key: {m.key}")
        if m.cftc_name in seen_cftc:
            problems.append(f"duplicate cftc_name: {m.cftc_name}")
        seen_key.add(k)
        seen_cftc.add(m.cftc_name)

    for p in problems:
        logger.warning("cot_registry_invalid %s", p)
    return problems


if not IS_PRODUCTION:
    validate_registry()
