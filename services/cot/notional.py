# services/cot/notional.py
from __future__ import annotations

import math
from typing import Optional

from services.cot.contracts import ContractSpec, FixedUSD, YahooPrice

Number = Optional[float]


def invert(x: Number) -> Number:
    """Reciprocal for unit-per-USD quotes; None for 0, None or non-finite input."""
    if x is None:
        return None
    try:
        x = float(x)
    except (TypeError, ValueError):
        return None
    if x == 0 or not math.isfinite(x):
        return None
    return 1.0 / x


def usd_price(raw: Number, spec: ContractSpec) -> Number:
    """Apply the contract's price convention to a raw quote."""
    if isinstance(spec.price, FixedUSD):
        return 1.0
    if raw is None:
        return None
    if isinstance(spec.price, YahooPrice) and spec.price.invert:
        return invert(raw)
    return float(raw) if math.isfinite(float(raw)) else None


def notional(
    net_contracts: float,
    contract_size: float,
    price_multiplier: float,
    price: Number,
) -> Optional[int]:
    """net x size x multiplier x price, rounded to whole USD."""
    if price is None:
        return None
    value = net_contracts * contract_size * (price_multiplier or 1) * price
    if not math.isfinite(value):
        return None
    return int(round(value))


def spec_notional(net_contracts: float, spec: ContractSpec, price: Number) -> Optional[int]:
    return notional(net_contracts, spec.contract_size, spec.price_multiplier, price)
