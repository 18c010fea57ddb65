"""
Read-side statistics over access keys. Never cached.
"""

import time
from datetime import timedelta

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from koban.config import Settings, settings
from koban.core.database import store_call
from koban.features.stats.schemas import KeyStats
from koban.models.access_key import AccessKey, KeyStatus
from koban.utils.datetime import Clock, utcnow


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


class StatsService:
    """Key counts. "Active" uses the same predicate as key validation."""

    def __init__(self, clock: Clock = utcnow, config: Settings = settings) -> None:
        self.clock = clock
        self.config = config
        self.started_at = time.monotonic()

    async def get_stats(self, db: AsyncSession, recent_hours: int | None = None) -> KeyStats:
        now = self.clock()
        recent_hours = recent_hours or self.config.recent_keys_hours
        recent_since = now - timedelta(hours=recent_hours)

        result = await store_call(
            db.execute(
                select(
                    func.count(AccessKey.id).label("total"),
                    _count_where(AccessKey.active_clause(now)).label("active"),
                    _count_where(
                        or_(AccessKey.expires_at <= now, AccessKey.status == KeyStatus.EXPIRED)
                    ).label("expired"),
                    _count_where(AccessKey.status == KeyStatus.REVOKED).label("revoked"),
                    _count_where(AccessKey.created_at >= recent_since).label("recent"),
                )
            )
        )
        row = result.one()

        return KeyStats(
            total=row.total,
            active=row.active,
            expired=row.expired,
            revoked=row.revoked,
            recent=row.recent,
            recent_window_hours=recent_hours,
        )

    @property
    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self.started_at, 3)


# Singleton instance
stats_service = StatsService()


def get_stats_service() -> StatsService:
    """FastAPI dependency returning the stats aggregator."""
    return stats_service
