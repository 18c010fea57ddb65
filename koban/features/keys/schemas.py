"""
Access key schemas: request bodies and engine results.
"""

from datetime import datetime

from pydantic import Field

from koban.models.access_key import KeyStatus
from koban.schemas.common import BaseSchema


class KeyCreateRequest(BaseSchema):
    """Create key request. Range checks happen in the key engine."""

    user_id: str | None = Field(None, description="Key owner identifier")
    hours: int | None = Field(None, description="Validity in hours (default from settings)")


class TimeRemaining(BaseSchema):
    """Remaining validity of a key at read time."""

    expired: bool
    remaining_seconds: int = 0
    hours: int = 0
    minutes: int = 0
    formatted: str = "Expired"


class KeyCreated(BaseSchema):
    """Successful create."""

    key_id: str
    user_id: str
    expires_at: datetime
    valid_for_hours: int


class KeyConflict(BaseSchema):
    """Create rejected: the user already holds an active key."""

    key_id: str
    user_id: str
    expires_at: datetime
    time_remaining: TimeRemaining


class KeyState(BaseSchema):
    """Key as seen by validate, info and per-user listings."""

    valid: bool
    code: int = Field(..., description="200 when valid, 410 when expired or inactive")
    key_id: str
    user_id: str
    status: KeyStatus
    created_at: datetime
    expires_at: datetime
    last_accessed_at: datetime | None = None
    time_remaining: TimeRemaining
    usage_count: int
    created_by_id: str | None = None


class KeyListResponse(BaseSchema):
    """All keys ever issued to a user, newest first."""

    user_id: str
    count: int
    keys: list[KeyState]


class KeyDeletedResponse(BaseSchema):
    """Delete confirmation."""

    message: str = "Key deleted successfully"
    key_id: str
