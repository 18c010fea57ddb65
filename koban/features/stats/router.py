"""
Key statistics endpoint for the admin dashboard.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koban.config import settings
from koban.core.database import get_db
from koban.features.admin.dependencies import CurrentAdmin
from koban.features.stats.schemas import StatsResponse
from koban.features.stats.service import StatsService, get_stats_service

router = APIRouter(prefix="/admin/api", tags=["Admin"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    stats_service: Annotated[StatsService, Depends(get_stats_service)],
) -> StatsResponse:
    """Key counts at call time, plus process uptime."""
    return StatsResponse(
        stats=await stats_service.get_stats(db),
        uptime_seconds=stats_service.uptime_seconds,
        environment=settings.environment,
    )
