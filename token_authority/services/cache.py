"""TTL cache used to keep the signing secret close.

Two implementations behind one Protocol, picked at import time the same
way the database layer is: Redis when REDIS_URL is configured (shared by
every API instance), a per-process dict otherwise.

The cache is an optimisation only.  A miss, an expired entry or a Redis
error all fall through to the secret provider, so a rotated secret is
picked up at most ``SECRET_CACHE_TTL_SECONDS`` later.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from token_authority.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """Per-process cache with monotonic-clock expiry."""

    def __init__(self) -> None:
        # key -> (value, expires_at on the monotonic clock)
        self._store: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, time.monotonic() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisCacheService:
    """Redis-backed cache shared across all API instances."""

    # Key prefix keeps these entries apart from anything else in the instance
    _PREFIX = "token-authority:cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        # SETEX writes the value and its TTL atomically
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
