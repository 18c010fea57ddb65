"""
Key lifecycle business logic.

Creates, validates, inspects and removes access keys. Expiry is never swept
on a schedule: every decision compares expires_at with the engine clock.
"""

from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from koban.config import Settings, settings
from koban.core.database import store_call
from koban.core.exceptions import StoreError
from koban.core.logging_config import get_logger
from koban.core.metrics import key_create_conflicts_total, key_validations_total, keys_created_total
from koban.core.security import generate_key_id
from koban.features.keys.lifecycle import compute_time_remaining, require_user_id, resolve_hours
from koban.features.keys.schemas import KeyConflict, KeyCreated, KeyState
from koban.models.access_key import AccessKey, KeyStatus
from koban.utils.datetime import Clock, utcnow

logger = get_logger(__name__)


class KeyService:
    """Access key lifecycle engine."""

    def __init__(self, clock: Clock = utcnow, config: Settings = settings) -> None:
        self.clock = clock
        self.config = config

    async def create_key(
        self,
        db: AsyncSession,
        user_id: object,
        hours: int | None = None,
        ip_address: str | None = None,
        created_by_id: str | None = None,
    ) -> KeyCreated | KeyConflict:
        """
        Issue a new key unless the user already holds an active one.

        Args:
            db: Database session
            user_id: Owner identifier (sanitized here)
            hours: Requested validity, default from settings
            ip_address: Creator address for audit
            created_by_id: Issuing admin, None for self-service

        Returns:
            KeyCreated, or KeyConflict describing the existing active key

        Raises:
            ValidationError: If user_id or hours are unusable
            StoreError: If the insert fails for any other reason
        """
        user_id = require_user_id(user_id)
        hours = resolve_hours(hours, self.config.default_key_hours, self.config.max_key_hours)
        now = self.clock()

        await self._retire_stale_keys(db, user_id, now)

        existing = await self.get_active_key_for_user(db, user_id, now)
        if existing:
            await store_call(db.commit())
            return self._conflict(existing, now)

        key = AccessKey(
            key_id=generate_key_id(),
            user_id=user_id,
            status=KeyStatus.ACTIVE,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(hours=hours),
            usage_count=0,
            ip_address=ip_address,
            created_by_id=created_by_id,
        )
        db.add(key)

        try:
            await store_call(db.commit())
        except IntegrityError as e:
            await db.rollback()
            # Lost a race against a concurrent create for the same user
            existing = await self.get_active_key_for_user(db, user_id, now)
            if existing:
                return self._conflict(existing, now)
            logger.error("key_insert_failed", user_id=user_id, error=str(e.orig))
            raise StoreError("Failed to create key") from e

        keys_created_total.labels(source="admin" if created_by_id else "self_service").inc()
        logger.info(
            "key_created",
            key_id=key.key_id,
            user_id=user_id,
            hours=hours,
            ip_address=ip_address,
            created_by_id=created_by_id,
        )

        return KeyCreated(
            key_id=key.key_id,
            user_id=key.user_id,
            expires_at=key.expires_at,
            valid_for_hours=hours,
        )

    async def get_active_key_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        now: datetime | None = None,
    ) -> AccessKey | None:
        """Return the user's active key, if any."""
        now = now or self.clock()
        result = await store_call(
            db.execute(
                select(AccessKey)
                .where(AccessKey.user_id == user_id, AccessKey.active_clause(now))
                .order_by(AccessKey.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
        )
        return result.scalar_one_or_none()

    async def get_key(self, db: AsyncSession, key_id: str) -> AccessKey | None:
        """Point lookup by public key id."""
        result = await store_call(
            db.execute(
                select(AccessKey)
                .where(AccessKey.key_id == key_id)
                .execution_options(populate_existing=True)
            )
        )
        return result.scalar_one_or_none()

    async def validate_key(self, db: AsyncSession, key_id: str) -> KeyState | None:
        """
        Check a key and count the use when it is valid.

        The increment is a single guarded UPDATE, so concurrent validations
        never lose counts and a key that expires between read and write is
        not counted.

        Returns:
            KeyState (code 200 or 410), or None if the key doesn't exist
        """
        key = await self.get_key(db, key_id)
        if key is None:
            key_validations_total.labels(result="not_found").inc()
            return None

        now = self.clock()
        if not key.is_active(now):
            key_validations_total.labels(result="inactive").inc()
            logger.info("key_validation_rejected", key_id=key_id, status=key.status.value)
            return self._state(key, now, valid=False)

        result = await store_call(
            db.execute(
                update(AccessKey)
                .where(AccessKey.key_id == key_id, AccessKey.active_clause(now))
                .values(usage_count=AccessKey.usage_count + 1, last_accessed_at=now)
                .returning(AccessKey.usage_count, AccessKey.last_accessed_at)
                .execution_options(synchronize_session=False)
            )
        )
        row = result.one_or_none()
        await store_call(db.commit())

        if row is None:
            key_validations_total.labels(result="inactive").inc()
            return self._state(key, now, valid=False)

        key_validations_total.labels(result="valid").inc()
        return self._state(
            key,
            now,
            valid=True,
            usage_count=row.usage_count,
            last_accessed_at=row.last_accessed_at,
        )

    async def get_key_info(self, db: AsyncSession, key_id: str) -> KeyState | None:
        """Same view as validate_key without touching usage accounting."""
        key = await self.get_key(db, key_id)
        if key is None:
            return None
        now = self.clock()
        return self._state(key, now, valid=key.is_active(now))

    async def list_user_keys(self, db: AsyncSession, user_id: object) -> list[KeyState]:
        """All keys ever issued to a user, newest first."""
        user_id = require_user_id(user_id)
        result = await store_call(
            db.execute(
                select(AccessKey)
                .where(AccessKey.user_id == user_id)
                .order_by(AccessKey.created_at.desc())
                .execution_options(populate_existing=True)
            )
        )
        now = self.clock()
        keys = [self._state(key, now, valid=key.is_active(now)) for key in result.scalars().all()]

        logger.debug("user_keys_listed", user_id=user_id, key_count=len(keys))
        return keys

    async def delete_key(self, db: AsyncSession, key_id: str) -> bool:
        """
        Hard delete a key.

        Returns:
            True if a row was removed, False if the key didn't exist
        """
        result = await store_call(db.execute(delete(AccessKey).where(AccessKey.key_id == key_id)))
        await store_call(db.commit())

        if result.rowcount == 0:
            return False

        logger.info("key_deleted", key_id=key_id)
        return True

    async def revoke_key(self, db: AsyncSession, key_id: str) -> KeyState | None:
        """
        Mark a key REVOKED. The row is kept for audit.

        Returns:
            The revoked key state, or None if the key doesn't exist
        """
        key = await self.get_key(db, key_id)
        if key is None:
            return None

        now = self.clock()
        key.status = KeyStatus.REVOKED
        key.updated_at = now
        await store_call(db.commit())

        logger.warning("key_revoked", key_id=key_id, user_id=key.user_id)
        return self._state(key, now, valid=False)

    async def _retire_stale_keys(self, db: AsyncSession, user_id: str, now: datetime) -> None:
        """Move ACTIVE rows past their expiry to EXPIRED so the active index frees up."""
        result = await store_call(
            db.execute(
                update(AccessKey)
                .where(
                    AccessKey.user_id == user_id,
                    AccessKey.status == KeyStatus.ACTIVE,
                    AccessKey.expires_at <= now,
                )
                .values(status=KeyStatus.EXPIRED, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        )
        if result.rowcount:
            logger.debug("stale_keys_retired", user_id=user_id, count=result.rowcount)

    def _conflict(self, existing: AccessKey, now: datetime) -> KeyConflict:
        key_create_conflicts_total.inc()
        logger.warning(
            "key_conflict",
            user_id=existing.user_id,
            key_id=existing.key_id,
        )
        return KeyConflict(
            key_id=existing.key_id,
            user_id=existing.user_id,
            expires_at=existing.expires_at,
            time_remaining=compute_time_remaining(existing.expires_at, now),
        )

    @staticmethod
    def _state(
        key: AccessKey,
        now: datetime,
        valid: bool,
        usage_count: int | None = None,
        last_accessed_at: datetime | None = None,
    ) -> KeyState:
        return KeyState(
            valid=valid,
            code=200 if valid else 410,
            key_id=key.key_id,
            user_id=key.user_id,
            status=key.status,
            created_at=key.created_at,
            expires_at=key.expires_at,
            last_accessed_at=last_accessed_at or key.last_accessed_at,
            time_remaining=compute_time_remaining(key.expires_at, now),
            usage_count=key.usage_count if usage_count is None else usage_count,
            created_by_id=key.created_by_id,
        )


# Singleton instance
key_service = KeyService()


def get_key_service() -> KeyService:
    """FastAPI dependency returning the key engine."""
    return key_service
