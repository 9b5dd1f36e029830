from __future__ import annotations

import json
import logging
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class PushGateway(Protocol):
    async def notify_user(self, user_id: str) -> None: ...


class RedisPushGateway:
    """Tells a user's connected clients to refetch. Fire-and-forget: errors are logged, never raised."""

    def __init__(self, redis: Redis, channel_prefix: str = "realtime:user:") -> None:
        self.redis = redis
        self.channel_prefix = channel_prefix

    async def notify_user(self, user_id: str) -> None:
        payload = json.dumps({"type": "refresh", "user_id": user_id}, separators=(",", ":"))
        try:
            await self.redis.publish(f"{self.channel_prefix}{user_id}", payload)
        except RedisError:
            logger.warning("Realtime push failed", extra={"user_id": user_id}, exc_info=True)
