# ruff: noqa: PLW0603
"""Redis client lifecycle.

Redis backs realtime event fan-out and comment rate limiting. It is optional:
when it is disabled or unreachable the API keeps serving and those features
degrade to no-ops.
"""

import redis.asyncio as redis

from pepyatka.config import get_settings
from pepyatka.core.logging import get_logger


logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


async def init_redis() -> redis.Redis:
    """Create the shared client and check it with a PING."""
    global _redis_client

    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await client.ping()
    except redis.ConnectionError as e:
        logger.warning("redis_connection_failed", error=str(e))
        await client.aclose()
        raise

    _redis_client = client
    logger.info("redis_connected", url=settings.redis_url)
    return client


async def shutdown_redis() -> None:
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis_disconnected")
        _redis_client = None


def get_redis() -> redis.Redis | None:
    """Return the shared client, or None when Redis is not connected."""
    return _redis_client
