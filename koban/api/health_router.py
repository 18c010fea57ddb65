"""
Health check endpoints for monitoring and orchestration.

Provides:
- Liveness probe: Is the app running?
- Readiness probe: Can the app serve traffic?
- Detailed health check: Status of all dependencies
"""

import time
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from koban.config import settings
from koban.core.cache import cache_manager
from koban.core.database import get_db, store_call

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])


async def check_database(db: AsyncSession) -> dict[str, Any]:
    start = time.perf_counter()
    try:
        await store_call(db.execute(text("SELECT 1")))
    except Exception as e:
        logger.warning("health_check_failed", dependency="database", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
    return {
        "status": "healthy",
        "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
    }


async def check_redis() -> dict[str, Any] | None:
    """Redis only matters when it backs the login limiter."""
    if settings.login_rate_limit_backend != "redis":
        return None

    start = time.perf_counter()
    try:
        await cache_manager.client.ping()
    except Exception as e:
        logger.warning("health_check_failed", dependency="redis", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
    return {
        "status": "healthy",
        "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
    }


async def collect_checks(db: AsyncSession) -> tuple[dict[str, Any], bool]:
    checks = {"database": await check_database(db)}
    redis_check = await check_redis()
    if redis_check is not None:
        checks["redis"] = redis_check

    healthy = all(check["status"] == "healthy" for check in checks.values())
    return checks, healthy


@router.get("/health/live")
async def liveness() -> dict:
    """
    Liveness probe.

    Returns:
        200: Application is running
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(db: Annotated[AsyncSession, Depends(get_db)]) -> JSONResponse:
    """
    Readiness probe.

    Returns:
        200: Ready to serve traffic
        503: Not ready (store unavailable)
    """
    checks, is_ready = await collect_checks(db)

    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if is_ready else "not_ready",
            "checks": checks,
        },
    )


@router.get("/health")
async def health(db: Annotated[AsyncSession, Depends(get_db)]) -> dict:
    """Detailed health check with dependency status and version information."""
    checks, healthy = await collect_checks(db)

    return {
        "status": "healthy" if healthy else "degraded",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks,
    }
