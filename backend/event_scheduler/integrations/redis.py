from __future__ import annotations

import logging
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def create_redis(redis_url: str) -> Redis:
    return Redis.from_url(redis_url, encoding="utf-8", decode_responses=True)


class RedisEventLease:
    """Per-event lock shared by every scheduler instance pointed at the same Redis."""

    key_prefix = "sched:event:lock:"

    def __init__(self, redis: Redis, ttl_sec: int) -> None:
        self.redis = redis
        self.ttl_sec = ttl_sec

    def _key(self, event_id: UUID) -> str:
        return f"{self.key_prefix}{event_id}"

    async def acquire(self, event_id: UUID) -> bool:
        try:
            return bool(await self.redis.set(self._key(event_id), "1", ex=self.ttl_sec, nx=True))
        except RedisError:
            logger.warning("Event lease unavailable", extra={"event_id": str(event_id)}, exc_info=True)
            return False

    async def release(self, event_id: UUID) -> None:
        try:
            await self.redis.delete(self._key(event_id))
        except RedisError:
            logger.warning("Event lease release failed", extra={"event_id": str(event_id)}, exc_info=True)
