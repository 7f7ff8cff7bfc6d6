"""Redis client wrapper for short-lived single-use keys."""

import logging

import redis.asyncio as aioredis

from app.settings import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client wrapper for async operations.

    When Redis is disabled or unreachable every operation degrades to a
    no-op that reports success, so single-use checks become best effort.
    """

    def __init__(self) -> None:
        """Initialize Redis client."""
        self._client: aioredis.Redis | None = None
        self._enabled: bool = settings.redis_enabled

    @property
    def is_available(self) -> bool:
        return self._enabled and self._client is not None

    async def connect(self) -> None:
        """Connect to Redis."""
        if not self._enabled:
            logger.info("Redis disabled - skipping connection")
            return
        if self._client is None:
            try:
                self._client = aioredis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._client.ping()
                logger.info("Redis connected successfully")
            except (aioredis.RedisError, OSError) as e:
                logger.warning(f"Redis connection failed: {e}. Continuing without Redis.")
                self._client = None
                self._enabled = False

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def remember(self, key: str, ttl: int) -> bool:
        """Store a marker key that expires after ``ttl`` seconds.

        Returns:
            True if stored (or Redis unavailable)
        """
        if not self.is_available:
            return True
        return bool(await self._client.set(key, "1", ex=ttl))

    async def consume(self, key: str) -> bool:
        """Delete a marker key, reporting whether it was still present.

        Returns:
            True the first time a remembered key is consumed (or Redis
            unavailable), False once it has been used or expired
        """
        if not self.is_available:
            return True
        return await self._client.delete(key) > 0


# Global Redis client instance
redis_client = RedisClient()
