"""Signing secret lookup.

The secret lives with the platform's config service; this module only
asks for it.  A provider failure is raised as the provider's own
UpstreamFailure so callers relay it unchanged.
"""

from __future__ import annotations

import logging

from token_authority.core.metrics import SECRET_CACHE_OPERATIONS
from token_authority.services.cache import CacheService
from token_authority.services.upstream import SecretProvider

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = "JWT_SECRET"


class SecretResolver:
    """Resolve a named secret, optionally through a short-lived cache.

    ``ttl_seconds=0`` (the default) disables caching: every call reaches
    the provider.
    """

    _CACHE_PREFIX = "secret:"

    def __init__(
        self,
        provider: SecretProvider,
        *,
        cache: CacheService | None = None,
        ttl_seconds: int = 0,
    ) -> None:
        self._provider = provider
        self._cache = cache if ttl_seconds > 0 else None
        self._ttl_seconds = ttl_seconds

    async def resolve(self, key: str = JWT_SECRET_KEY) -> str:
        if self._cache is None:
            return await self._provider.get(key)

        cache_key = f"{self._CACHE_PREFIX}{key}"
        try:
            cached = await self._cache.get(cache_key)
        except Exception:
            logger.warning("Secret cache read failed key=%s", key, exc_info=True)
            cached = None

        if cached is not None:
            SECRET_CACHE_OPERATIONS.labels(operation="hit").inc()
            return cached
        SECRET_CACHE_OPERATIONS.labels(operation="miss").inc()

        secret = await self._provider.get(key)
        try:
            await self._cache.set(cache_key, secret, self._ttl_seconds)
        except Exception:
            logger.warning("Secret cache write failed key=%s", key, exc_info=True)
        return secret

    async def invalidate(self, key: str = JWT_SECRET_KEY) -> None:
        if self._cache is not None:
            await self._cache.delete(f"{self._CACHE_PREFIX}{key}")
