"""
Admin account management.

Permanent admins stay ACTIVE and keep their permanent flag. Nobody can
disable or delete their own account through these operations.
"""

import re
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from koban.core.database import store_call
from koban.core.exceptions import ConflictError, NotFoundError, ValidationError
from koban.core.logging_config import get_logger
from koban.core.security import hash_password
from koban.features.admin.schemas import AdminCreate
from koban.features.admin.service import find_admin_by_username
from koban.models.access_key import AccessKey
from koban.models.admin_session import AdminSession
from koban.models.admin_user import AdminStatus, AdminUser
from koban.utils.datetime import Clock, utcnow

logger = get_logger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 8

UPDATABLE_FIELDS = ("password", "status", "is_permanent", "expires_at", "notes")


def validate_username(username: object) -> str:
    if not isinstance(username, str):
        raise ValidationError("username must be a string")
    username = username.strip()
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValidationError(f"username must have at least {USERNAME_MIN_LENGTH} characters")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"username must have at most {USERNAME_MAX_LENGTH} characters")
    return username


def validate_password(password: object) -> str:
    """At least 8 characters with an uppercase letter, a lowercase letter and a digit."""
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"password must have at least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[A-Z]", password) or not re.search(r"[a-z]", password) or not re.search(r"\d", password):
        raise ValidationError("password must contain uppercase, lowercase and numeric characters")
    return password


class AdminUserService:
    """CRUD over admin accounts with the permanent and self guards."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self.clock = clock

    async def list_admins(self, db: AsyncSession) -> list[AdminUser]:
        """All admins, oldest first."""
        result = await store_call(
            db.execute(
                select(AdminUser)
                .order_by(AdminUser.created_at.asc())
                .execution_options(populate_existing=True)
            )
        )
        return list(result.scalars().all())

    async def get_admin(self, db: AsyncSession, admin_id: str) -> AdminUser:
        """
        Raises:
            NotFoundError: If no admin has this id
        """
        result = await store_call(
            db.execute(
                select(AdminUser)
                .where(AdminUser.id == admin_id)
                .execution_options(populate_existing=True)
            )
        )
        admin = result.scalar_one_or_none()
        if admin is None:
            raise NotFoundError("Admin not found", details={"id": admin_id})
        return admin

    async def create_admin(
        self,
        db: AsyncSession,
        data: AdminCreate,
        created_by_id: str | None = None,
    ) -> AdminUser:
        """
        Create an admin account.

        Raises:
            ValidationError: Username or password fails the policy
            ConflictError: Username already taken (case-insensitive)
        """
        username = validate_username(data.username)
        password = validate_password(data.password)

        if data.is_permanent and data.status != AdminStatus.ACTIVE:
            raise ValidationError("A permanent admin must be active")
        if data.is_permanent and data.expires_at is not None:
            raise ValidationError("A permanent admin cannot have an expiry")

        if await find_admin_by_username(db, username):
            raise ConflictError("Username already exists", details={"username": username})

        now = self.clock()
        admin = AdminUser(
            username=username,
            password_hash=hash_password(password),
            status=data.status,
            is_permanent=data.is_permanent,
            expires_at=data.expires_at,
            notes=data.notes,
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
        )
        db.add(admin)

        try:
            await store_call(db.commit())
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Username already exists", details={"username": username}) from e

        logger.info("admin_created", admin_user_id=admin.id, username=username, created_by_id=created_by_id)
        return admin

    async def update_admin(
        self,
        db: AsyncSession,
        admin_id: str,
        changes: dict[str, Any],
        actor_id: str | None = None,
    ) -> AdminUser:
        """
        Apply a partial update. Nothing is written unless every check passes.

        Args:
            changes: Only the keys present are applied; None clears
                expires_at and notes and is ignored for the other fields

        Raises:
            NotFoundError: Unknown admin
            ValidationError: New password fails the policy
            ConflictError: Change would demote or expire a permanent admin,
                or disable oneself
        """
        admin = await self.get_admin(db, admin_id)
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}

        password = changes.get("password")
        if password is not None:
            password = validate_password(password)

        status = changes.get("status")
        if status is None:
            status = admin.status
        is_permanent = changes.get("is_permanent")
        if is_permanent is None:
            is_permanent = admin.is_permanent
        expires_at = changes["expires_at"] if "expires_at" in changes else admin.expires_at

        if admin.is_permanent and not is_permanent:
            raise ConflictError("The permanent flag cannot be cleared", details={"id": admin_id})
        if is_permanent and status != AdminStatus.ACTIVE:
            raise ConflictError("Permanent admins must remain active", details={"id": admin_id})
        if is_permanent and expires_at is not None:
            raise ConflictError("Permanent admins cannot expire", details={"id": admin_id})
        if status != AdminStatus.ACTIVE and admin_id == actor_id:
            raise ConflictError("You cannot disable your own account")

        if password is not None:
            admin.password_hash = hash_password(password)
        admin.status = status
        admin.is_permanent = is_permanent
        admin.expires_at = expires_at
        if "notes" in changes:
            admin.notes = changes["notes"]
        admin.updated_at = self.clock()

        if admin.status == AdminStatus.DISABLED:
            await self._drop_sessions(db, admin.id)
        await store_call(db.commit())

        logger.info("admin_updated", admin_user_id=admin.id, fields=sorted(changes), actor_id=actor_id)
        return admin

    async def disable_admin(
        self,
        db: AsyncSession,
        admin_id: str,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> AdminUser:
        """
        Soft delete: mark DISABLED and end its sessions.

        Raises:
            NotFoundError: Unknown admin
            ConflictError: Permanent admin or the caller's own account
        """
        admin = await self.get_admin(db, admin_id)
        self._guard_removal(admin, actor_id)

        admin.status = AdminStatus.DISABLED
        admin.updated_at = self.clock()
        if reason and reason.strip():
            admin.notes = reason.strip()

        await self._drop_sessions(db, admin.id)
        await store_call(db.commit())

        logger.warning("admin_disabled", admin_user_id=admin.id, actor_id=actor_id, reason=reason)
        return admin

    async def delete_admin(self, db: AsyncSession, admin_id: str, actor_id: str | None = None) -> None:
        """
        Hard delete. Its sessions go with it; keys and admins it created
        are kept with created_by cleared.

        Raises:
            NotFoundError: Unknown admin
            ConflictError: Permanent admin or the caller's own account
        """
        admin = await self.get_admin(db, admin_id)
        self._guard_removal(admin, actor_id)

        await self._drop_sessions(db, admin.id)
        await store_call(
            db.execute(
                update(AccessKey)
                .where(AccessKey.created_by_id == admin.id)
                .values(created_by_id=None)
                .execution_options(synchronize_session=False)
            )
        )
        await store_call(
            db.execute(
                update(AdminUser)
                .where(AdminUser.created_by_id == admin.id)
                .values(created_by_id=None)
                .execution_options(synchronize_session=False)
            )
        )
        await store_call(db.execute(delete(AdminUser).where(AdminUser.id == admin.id)))
        await store_call(db.commit())

        logger.warning("admin_deleted", admin_user_id=admin_id, username=admin.username, actor_id=actor_id)

    @staticmethod
    def _guard_removal(admin: AdminUser, actor_id: str | None) -> None:
        if admin.is_permanent:
            raise ConflictError("Permanent admins cannot be disabled or deleted", details={"id": admin.id})
        if admin.id == actor_id:
            raise ConflictError("You cannot disable or delete your own account")

    @staticmethod
    async def _drop_sessions(db: AsyncSession, admin_id: str) -> None:
        await store_call(db.execute(delete(AdminSession).where(AdminSession.admin_user_id == admin_id)))


# Singleton instance
admin_user_service = AdminUserService()


def get_admin_user_service() -> AdminUserService:
    """FastAPI dependency returning the admin account service."""
    return admin_user_service
