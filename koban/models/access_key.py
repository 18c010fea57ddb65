"""
Access key model: short-lived tokens bound to a user identifier.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    and_,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from koban.models.base import BaseModel


class KeyStatus(str, enum.Enum):
    """Stored key status. Expiry is still computed from expires_at."""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class AccessKey(BaseModel):
    """
    Access key issued to a user.

    At most one row per user_id may carry status ACTIVE. The partial unique
    index below is what enforces it under concurrent creates; rows that are
    ACTIVE but past expires_at are moved to EXPIRED before a new key is
    issued for the same user.
    """

    __tablename__ = "access_keys"

    # Public handle
    key_id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        nullable=False,
        index=True,
        comment="Opaque public key identifier"
    )

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Owner identifier supplied by the caller"
    )

    status: Mapped[KeyStatus] = mapped_column(
        Enum(KeyStatus, name="access_key_status"),
        default=KeyStatus.ACTIVE,
        nullable=False,
        index=True,
        comment="Stored status (ACTIVE, EXPIRED, REVOKED)"
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        index=True,
        comment="Key expiration timestamp"
    )

    # Usage accounting
    usage_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Number of successful validations"
    )

    last_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        comment="Last successful validation"
    )

    # Audit
    ip_address: Mapped[str | None] = mapped_column(
        String(45),
        nullable=True,
        comment="Creator network origin"
    )

    created_by_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("admin_users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Admin who issued the key (null for self-service)"
    )

    __table_args__ = (
        Index(
            "uq_access_keys_user_active",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    def is_active(self, now: datetime) -> bool:
        """Active in the business sense: status ACTIVE and not past expiry."""
        return self.status == KeyStatus.ACTIVE and self.expires_at > now

    @classmethod
    def active_clause(cls, now: datetime):
        """SQL form of is_active(), shared by the key engine and stats."""
        return and_(cls.status == KeyStatus.ACTIVE, cls.expires_at > now)

    def __repr__(self) -> str:
        return f"<AccessKey(key_id={self.key_id}, user_id={self.user_id})>"
