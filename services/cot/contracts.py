# services/cot/contracts.py
"""
Contract specs: translate net contracts into USD notional.

Inversion is declared per ticker here (data, not inference): quotes of the
form "XXX=X" are units of currency per USD and must be inverted to get
USD per unit before multiplying.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Union


@dataclass(frozen=True)
class YahooPrice:
    """Fetch the price from the quote source using `symbol`."""
    symbol: str
    invert: bool = False
    kind: str = "yahoo"


@dataclass(frozen=True)
class FixedUSD:
    """Contract already denominated in USD; price is always 1."""
    kind: str = "fixedUSD"


PriceSource = Union[YahooPrice, FixedUSD]


@dataclass(frozen=True)
class ContractSpec:
    contract_size: float
    price: PriceSource
    price_multiplier: float = 1.0
    quote: Optional[str] = None


CONTRACT_SPECS: Dict[str, ContractSpec] = {
    # ---------- FX (CME) ----------
    "eur": ContractSpec(125_000, YahooPrice("EURUSD=X"), quote="USD per EUR"),
    "gbp": ContractSpec(62_500, YahooPrice("GBPUSD=X"), quote="USD per GBP"),
    "jpy": ContractSpec(12_500_000, YahooPrice("JPY=X", invert=True), quote="JPY per USD (inverted)"),
    "aud": ContractSpec(100_000, YahooPrice("AUDUSD=X"), quote="USD per AUD"),
    "nzd": ContractSpec(100_000, YahooPrice("NZDUSD=X"), quote="USD per NZD"),
    "cad": ContractSpec(100_000, YahooPrice("CAD=X", invert=True), quote="CAD per USD (inverted)"),
    "chf": ContractSpec(125_000, YahooPrice("CHFUSD=X"), quote="USD per CHF"),
    "mxn": ContractSpec(500_000, YahooPrice("MXN=X", invert=True), quote="MXN per USD (inverted)"),

    # ---------- Metals (COMEX) ----------
    "gold": ContractSpec(100, YahooPrice("GC=F"), quote="USD per troy oz"),
    "silver": ContractSpec(5_000, YahooPrice("SI=F"), quote="USD per troy oz"),
    "copper": ContractSpec(25_000, YahooPrice("HG=F"), quote="USD per lb"),

    # ---------- Energy ----------
    "wti": ContractSpec(1_000, YahooPrice("CL=F"), quote="USD per barrel"),
    "brent": ContractSpec(1_000, YahooPrice("BZ=F"), quote="USD per barrel"),
    "rbob": ContractSpec(42_000, YahooPrice("RB=F"), quote="USD per gallon"),
    "ng": ContractSpec(10_000, YahooPrice("NG=F"), quote="USD per MMBtu"),

    # ---------- Ags / livestock / softs ----------
    "corn": ContractSpec(5_000, YahooPrice("ZC=F"), quote="USD per bushel"),
    "wheat": ContractSpec(5_000, YahooPrice("ZW=F"), quote="USD per bushel"),
    "soy": ContractSpec(5_000, YahooPrice("ZS=F"), quote="USD per bushel"),
    "sugar11": ContractSpec(112_000, YahooPrice("SB=F"), quote="USD cents/lb"),
    "coffee": ContractSpec(37_500, YahooPrice("KC=F"), quote="USD cents/lb"),
    "cocoa": ContractSpec(10, YahooPrice("CC=F"), quote="USD per metric ton"),
    "lc": ContractSpec(40_000, YahooPrice("LE=F"), quote="USD per lb (Live Cattle)"),
    "lh": ContractSpec(40_000, YahooPrice("HE=F"), quote="USD per lb (Lean Hogs)"),

    # ---------- Indices (quoted in points) ----------
    "spx": ContractSpec(1, YahooPrice("^GSPC"), price_multiplier=250, quote="Index * $250"),
    "ndx": ContractSpec(1, YahooPrice("^NDX"), price_multiplier=100, quote="Index * $100"),
    "djia": ContractSpec(1, YahooPrice("^DJI"), price_multiplier=10, quote="Index * $10"),

    # ---------- Crypto ----------
    "btc": ContractSpec(5, YahooPrice("BTC-USD"), quote="USD per BTC"),
}


def get_contract_spec(market_key: str) -> Optional[ContractSpec]:
    return CONTRACT_SPECS.get((market_key or "").strip().lower())
