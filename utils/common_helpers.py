import math
from datetime import datetime, timezone
from typing import Any, Optional


def finite_float(x: Any) -> Optional[float]:
    """Number or numeric string -> float; None for missing, non-numeric or non-finite."""
    if x is None or isinstance(x, bool):
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def safe_div(n: Optional[float], d: Optional[float]) -> Optional[float]:
    if n is None or not d:
        return None
    return n / d


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
