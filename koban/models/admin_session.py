"""
Admin session model. Only the hash of the bearer token is stored.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from koban.models.base import BaseModel
from koban.utils.datetime import utcnow

if TYPE_CHECKING:
    from koban.models.admin_user import AdminUser


class AdminSession(BaseModel):
    """Server-tracked authenticated context for an admin."""

    __tablename__ = "admin_sessions"

    admin_user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("admin_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning admin"
    )

    session_token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="sha256 hex digest of the bearer token"
    )

    ip_address: Mapped[str | None] = mapped_column(
        String(45),
        nullable=True,
        comment="Client address at login"
    )

    user_agent: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Client user agent at login"
    )

    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment="Last authenticated request"
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        comment="Session expiry"
    )

    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        comment="Revocation timestamp"
    )

    admin_user: Mapped["AdminUser"] = relationship("AdminUser", lazy="joined")

    def is_usable(self, now: datetime) -> bool:
        """Not revoked and not past expiry."""
        return self.revoked_at is None and self.expires_at > now

    @property
    def username(self) -> str | None:
        """Owning admin's username, for session listings."""
        return self.admin_user.username if self.admin_user else None

    def __repr__(self) -> str:
        return f"<AdminSession(id={self.id}, admin_user_id={self.admin_user_id})>"
