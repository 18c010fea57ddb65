"""
Redis counter store shared by login rate limiting.

Provides:
- Connection lifecycle
- Key namespacing
- Counters with a fixed expiry window
"""

import logging

import redis.asyncio as aioredis

from koban.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Redis-based counter manager.

    Handles:
    - Connection lifecycle
    - Key namespacing
    - TTL management
    """

    def __init__(self) -> None:
        self._client: aioredis.Redis | None = None

    async def init(self, redis_url: str | None = None) -> None:
        """Initialize Redis connection pool."""
        logger.info("Initializing Redis connection...")

        self._client = aioredis.from_url(
            redis_url or str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )

        # Test connection
        await self._client.ping()
        logger.info("Redis connection initialized")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client."""
        if not self._client:
            raise RuntimeError("Cache not initialized. Call init() first.")
        return self._client

    def _build_key(self, namespace: str, key: str) -> str:
        """
        Build namespaced cache key.

        Format: koban:{namespace}:{key}
        Example: koban:admin_login:203.0.113.7
        """
        return f"koban:{namespace}:{key}"

    async def increment(
        self,
        namespace: str,
        key: str,
        ttl: int | None = None,
    ) -> int:
        """
        Increment a counter.

        With a ttl, the counter and its expiry are created together in one
        MULTI/EXEC, so a counter never exists without a TTL. The expiry is
        set only on creation, so the window is fixed from the first hit.

        Returns:
            New counter value
        """
        cache_key = self._build_key(namespace, key)

        try:
            if not ttl:
                return await self.client.incr(cache_key)

            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(cache_key, 0, ex=ttl, nx=True)
                pipe.incr(cache_key)
                _, count = await pipe.execute()
            return count

        except Exception as e:
            logger.error(f"Cache increment error: {cache_key} - {e}")
            raise

    async def get_count(self, namespace: str, key: str) -> int:
        """Current counter value, 0 when absent."""
        cache_key = self._build_key(namespace, key)
        value = await self.client.get(cache_key)
        return int(value) if value is not None else 0

    async def get_ttl(self, namespace: str, key: str) -> int:
        """Get remaining TTL for a key in seconds."""
        cache_key = self._build_key(namespace, key)

        try:
            return await self.client.ttl(cache_key)
        except Exception as e:
            logger.warning(f"Cache TTL error: {cache_key} - {e}")
            return -1

    async def delete(self, namespace: str, key: str) -> bool:
        """Delete specific cache entry."""
        cache_key = self._build_key(namespace, key)

        try:
            result = await self.client.delete(cache_key)
            return result > 0

        except Exception as e:
            logger.warning(f"Cache delete error: {cache_key} - {e}")
            return False


# Global instance
cache_manager = CacheManager()
