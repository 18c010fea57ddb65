"""
Key statistics schemas.
"""

from pydantic import Field

from koban.schemas.common import BaseSchema


class KeyStats(BaseSchema):
    """Counts over all stored access keys at call time."""

    total: int
    active: int = Field(..., description="Status ACTIVE and not yet expired")
    expired: int = Field(..., description="Past expiry or marked EXPIRED")
    revoked: int
    recent: int = Field(..., description="Created within the recent window")
    recent_window_hours: int


class StatsResponse(BaseSchema):
    stats: KeyStats
    uptime_seconds: float
    environment: str
