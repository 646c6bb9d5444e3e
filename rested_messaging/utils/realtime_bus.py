import json
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis


logger = logging.getLogger(__name__)


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def publish_counters(self, user_id: str, payload: Dict[str, Any]) -> None:
        return

    async def close(self) -> None:
        return


class RedisBus:
    """Fans counter changes out to live clients on ``user:{user_id}``."""

    enabled = True

    def __init__(self, client: "redis.Redis") -> None:
        self._redis = client

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def publish_counters(self, user_id: str, payload: Dict[str, Any]) -> None:
        message = json.dumps({"type": "unread_counters", "userId": user_id, **payload}, default=str)
        try:
            await self.publish(f"user:{user_id}", message)
        except Exception:
            logger.warning("Failed to publish counter update for user %s", user_id, exc_info=True)

    async def close(self) -> None:
        await self._redis.aclose()


def build_bus(url: Optional[str]):
    if not url:
        return NoopBus()
    return RedisBus(redis.from_url(url))
