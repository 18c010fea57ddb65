"""
Admin schemas: login, sessions and account management.
"""

from datetime import datetime

from pydantic import Field

from koban.models.admin_user import AdminStatus
from koban.schemas.common import BaseSchema


class LoginRequest(BaseSchema):
    """Admin login. Missing fields are reported by the auth engine as 400."""

    username: str | None = Field(None, description="Admin username (case-insensitive)")
    password: str | None = Field(None, description="Admin password")


class AdminRead(BaseSchema):
    """Admin account as returned to callers. The password hash never leaves the service."""

    id: str
    username: str
    status: AdminStatus
    is_permanent: bool
    expires_at: datetime | None = None
    last_login_at: datetime | None = None
    notes: str | None = None
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime


class AdminCreate(BaseSchema):
    """Create admin request."""

    username: str = Field(..., description="Login name, at least 3 characters")
    password: str = Field(..., description="At least 8 characters with upper, lower and digit")
    status: AdminStatus = AdminStatus.ACTIVE
    is_permanent: bool = False
    expires_at: datetime | None = None
    notes: str | None = None


class AdminUpdate(BaseSchema):
    """
    Partial update. Only fields present in the request body are applied,
    so an explicit null clears expires_at or notes.
    """

    password: str | None = None
    status: AdminStatus | None = None
    is_permanent: bool | None = None
    expires_at: datetime | None = None
    notes: str | None = None


class AdminListResponse(BaseSchema):
    count: int
    admins: list[AdminRead]


class SessionRead(BaseSchema):
    """Admin session metadata. The token itself is never included."""

    id: str
    admin_user_id: str
    username: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime
    last_seen_at: datetime
    expires_at: datetime


class LoginResponse(BaseSchema):
    """Successful login. The raw token is returned here and nowhere else."""

    message: str = "Authentication successful"
    session_token: str
    expires_at: datetime
    admin: AdminRead


class SessionInfoResponse(BaseSchema):
    admin: AdminRead
    session: SessionRead


class SessionListResponse(BaseSchema):
    count: int
    sessions: list[SessionRead]


class SessionsClearedResponse(BaseSchema):
    message: str
    cleared: int


class AdminDeletedResponse(BaseSchema):
    message: str = "Admin deleted successfully"
    id: str
