from typing import Any, Optional
import json
import logging

import redis.asyncio as redis

from lessonquiz.core.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """Best-effort JSON cache. Every failure is logged and reported as a miss."""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    async def connect(self, url: Optional[str] = None):
        """Initialize Redis connection pool."""
        self.redis = redis.from_url(
            url or settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.REDIS_POOL_SIZE,
        )

    async def disconnect(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def get(self, key: str, default: Any = None) -> Any:
        if not self.enabled:
            return default
        try:
            value = await self.redis.get(key)
            if value is None:
                return default
            return json.loads(value)
        except (redis.RedisError, json.JSONDecodeError, TypeError) as e:
            logger.error(f"Cache get error for {key}: {e}")
            return default

    async def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(await self.redis.set(key, json.dumps(value), ex=expire or settings.CACHE_TTL))
        except (redis.RedisError, TypeError) as e:
            logger.error(f"Cache set error for {key}: {e}")
            return False

    async def delete(self, *keys: str) -> int:
        if not self.enabled:
            return 0
        try:
            return await self.redis.delete(*keys)
        except redis.RedisError as e:
            logger.error(f"Cache delete error: {e}")
            return 0


# Global cache instance
cache = RedisCache()


def get_cache() -> RedisCache:
    return cache
