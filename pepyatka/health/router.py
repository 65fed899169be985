"""Health check endpoints."""

from fastapi import APIRouter

from pepyatka.config import get_settings
from pepyatka.core.database import AsyncCassandraConnection
from pepyatka.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - the process is up."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness() -> dict[str, str | bool]:
    """Readiness probe with the state of the backing stores.

    Redis is optional, so its absence does not make the API unready.
    """
    settings = get_settings()
    return {
        "status": "ready",
        "environment": settings.environment,
        "debug": settings.debug,
        "cassandra": AsyncCassandraConnection.is_connected(),
        "redis": get_redis() is not None,
    }


@router.get("")
async def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
