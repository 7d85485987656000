# middleware/rate_limit.py
"""
Rate limiting configuration using slowapi.

Usage in route files:
    from middleware.rate_limit import limiter

    @router.get("/snapshot")
    @limiter.limit("30/minute")
    async def snapshot(request: Request):
        ...
"""
import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from config.settings import RATE_LIMIT_DEFAULT, REDIS_URL

logger = logging.getLogger(__name__)


def _get_rate_limit_key(request: Request) -> str:
    """
    Identify the caller for rate-limiting.

    Behind an edge proxy the first X-Forwarded-For hop is the real client;
    otherwise fall back to the socket address.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first
    return get_remote_address(request)


limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=[RATE_LIMIT_DEFAULT],
    storage_uri=REDIS_URL or "memory://",
    strategy="fixed-window",
)
