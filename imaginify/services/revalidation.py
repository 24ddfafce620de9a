"""Public page cache invalidation via Redis: drop the cached render and notify the frontend."""

from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from imaginify.core.logging import get_logger

log = get_logger(__name__)

KEY_PREFIX = "page-cache"
CHANNEL = "revalidate"


def _key(path: str) -> str:
    return f"{KEY_PREFIX}:{path}"


class Revalidator(Protocol):
    async def revalidate_path(self, path: str) -> None: ...


class RedisRevalidator:
    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: aioredis.Redis | None = None

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    async def revalidate_path(self, path: str) -> None:
        """Delete the cached page and publish its path.

        A failure here is logged, not raised: the record change it follows has
        already been committed.
        """
        redis = self._client()
        try:
            await redis.delete(_key(path))
            await redis.publish(CHANNEL, path)
        except RedisError as e:
            log.warning("revalidate_failed", path=path, error=str(e))
            return
        log.info("revalidated", path=path)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
