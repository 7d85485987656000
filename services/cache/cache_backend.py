# services/cache/cache_backend.py
"""
Small TTL cache capability used by the price resolver, the series builder
and the route-level response cache.

    get(key) -> value | MISS
    set(key, value, ttl_seconds)

`None` is a legitimate cached value (negative cache), so a miss is reported
with the MISS sentinel rather than None. Expiry is checked lazily on read;
there is no background sweep.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis

from config.settings import REDIS_PREFIX, REDIS_URL

logger = logging.getLogger(__name__)


class _Miss:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Any = _Miss()

Clock = Callable[[], float]


class CacheBackend(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...


class MemoryCache:
    """
    Process-local cache. Entries are (expires_at, value) tuples replaced
    whole on write, so concurrent readers never see a half-written entry.
    """

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Any:
        hit = self._store.get(key)
        if hit is None:
            return MISS
        expires_at, value = hit
        if self._clock() < expires_at:
            return value
        self._store.pop(key, None)
        return MISS

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        self._store[key] = (self._clock() + ttl_seconds, value)

    def __len__(self) -> int:
        return len(self._store)


class RedisCache:
    """
    Shared JSON cache for response payloads. Redis errors never fail the
    request: reads degrade to MISS, writes are dropped.
    """

    def __init__(self, client: "redis.Redis", prefix: str = REDIS_PREFIX):
        self._client = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Any:
        try:
            raw = self._client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning("redis_get_failed key=%s error=%s", key, e)
            return MISS
        if raw is None:
            return MISS
        try:
            return json.loads(raw)
        except ValueError:
            return MISS

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ttl = int(ttl_seconds)
        if ttl <= 0:
            return
        try:
            self._client.setex(self._key(key), ttl, json.dumps(value, separators=(",", ":")))
        except (redis.RedisError, TypeError) as e:
            logger.warning("redis_set_failed key=%s error=%s", key, e)


# -------------------------
# Process-global instances
# -------------------------
_price_cache: Optional[MemoryCache] = None
_series_cache: Optional[MemoryCache] = None
_response_cache: Optional[CacheBackend] = None


def get_price_cache() -> MemoryCache:
    global _price_cache
    if _price_cache is None:
        _price_cache = MemoryCache()
    return _price_cache


def get_series_cache() -> MemoryCache:
    global _series_cache
    if _series_cache is None:
        _series_cache = MemoryCache()
    return _series_cache


def get_response_cache() -> CacheBackend:
    """Redis when REDIS_URL is configured, else an in-process cache."""
    global _response_cache
    if _response_cache is not None:
        return _response_cache

    if REDIS_URL:
        client = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_timeout=2,
            socket_connect_timeout=2,
        )
        _response_cache = RedisCache(client)
    else:
        _response_cache = MemoryCache()
    return _response_cache
