"""Health check endpoints."""

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pokedex.core.config import settings
from pokedex.core.deps import get_db, get_redis
from pokedex.schemas.common import HealthResponse
from pokedex.services.embedding_service import get_embedding_service

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> HealthResponse:
    """
    Health check endpoint.

    Reports database and cache connectivity and whether vector search is
    available. A missing embedding key does not make the service unhealthy.
    """
    checks: dict[str, str] = {}
    healthy = True

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        healthy = False
        checks["database"] = f"unhealthy: {str(e)}"

    try:
        await redis.ping()
        checks["redis"] = "healthy"
    except Exception as e:
        healthy = False
        checks["redis"] = f"unhealthy: {str(e)}"

    checks["embeddings"] = "enabled" if get_embedding_service().is_enabled else "disabled"

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.version,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness probe: the process is up."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Readiness probe: the catalog database answers."""
    await db.execute(text("SELECT 1"))
    return {"status": "ready"}
