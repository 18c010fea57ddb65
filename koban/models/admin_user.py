"""
Admin user model for operator accounts.
"""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from koban.models.base import BaseModel


class AdminStatus(str, enum.Enum):
    """Admin account status."""
    ACTIVE = "active"
    DISABLED = "disabled"


class AdminUser(BaseModel):
    """
    Operator account.

    Usernames are unique regardless of case. A permanent admin (the
    bootstrap root account) stays ACTIVE and keeps its permanent flag.
    """

    __tablename__ = "admin_users"

    username: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Login name (unique, case-insensitive)"
    )

    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Bcrypt hashed password"
    )

    status: Mapped[AdminStatus] = mapped_column(
        Enum(AdminStatus, name="admin_status"),
        default=AdminStatus.ACTIVE,
        nullable=False,
        index=True,
        comment="Account status"
    )

    is_permanent: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Cannot be disabled, deleted or demoted"
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        index=True,
        comment="Account expiry (null = never)"
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        comment="Last successful login"
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Free-form notes (disable reason, provisioning source)"
    )

    # Weak back-reference: deleting the creator nulls this, never cascades
    created_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("admin_users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Admin who created this account"
    )

    def is_expired(self, now: datetime) -> bool:
        """Check if the account has passed its expiry."""
        return self.expires_at is not None and self.expires_at <= now

    def can_login(self, now: datetime) -> bool:
        """Active and not expired."""
        return self.status == AdminStatus.ACTIVE and not self.is_expired(now)

    def __repr__(self) -> str:
        return f"<AdminUser(id={self.id}, username={self.username})>"


# Case-insensitive uniqueness; also the de-duplication backstop for bootstrap
Index("uq_admin_users_username_lower", func.lower(AdminUser.username), unique=True)
