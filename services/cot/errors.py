# services/cot/errors.py
from typing import Sequence


class MarketNotFoundError(LookupError):
    """Requested market key has no registry entry."""

    def __init__(self, market: str):
        self.market = market
        super().__init__(f"Unknown market: {market}")


class NoCotDataError(LookupError):
    """The name filter matched zero upstream rows for the requested range."""

    def __init__(self, market: str, candidates: Sequence[str]):
        self.market = market
        self.candidates = tuple(candidates)
        super().__init__(f"No data for {' / '.join(self.candidates)}")
