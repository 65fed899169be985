"""Realtime event publishing over Redis Pub/Sub.

Channels:
- `post:{post_id}`: comment:new, comment:destroy, post:destroy
- `timeline:{feed_id}`: post:new, post:destroy
- `user:{user_id}`: group:membership

Publishing is best effort. A failed publish is logged and never fails the
request that produced the event.
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

import orjson
import redis.asyncio as redis

from pepyatka.core.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


logger = get_logger(__name__)


def post_channel(post_id: UUID) -> str:
    return f"post:{post_id}"


def timeline_channel(feed_id: UUID) -> str:
    return f"timeline:{feed_id}"


def user_channel(user_id: UUID) -> str:
    return f"user:{user_id}"


class RealtimePublisher:
    """Publish JSON events to the realtime channels."""

    def __init__(self, redis_getter: "Callable[[], redis.Redis | None]") -> None:
        self._redis_getter = redis_getter

    async def publish(self, channel: str, event: str, data: dict[str, Any]) -> None:
        client = self._redis_getter()
        if client is None:
            return
        payload = orjson.dumps({"event": event, "data": data}, default=str)
        try:
            await client.publish(channel, payload)
        except redis.RedisError as e:
            logger.warning(
                "realtime_publish_failed", channel=channel, event=event, error=str(e)
            )

    async def publish_many(
        self, channels: "Iterable[str]", event: str, data: dict[str, Any]
    ) -> None:
        for channel in channels:
            await self.publish(channel, event, data)
