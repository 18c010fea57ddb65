"""
Admin authentication and session business logic.

Sessions are opaque bearer tokens. Only their sha256 digest is stored, so a
token is shown to the caller exactly once, in the login response.
"""

import asyncio
import enum
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from koban.config import Settings, settings
from koban.core.database import store_call
from koban.core.exceptions import StoreError
from koban.core.logging_config import get_logger
from koban.core.metrics import admin_logins_total
from koban.core.rate_limit import LoginRateLimiter, build_login_rate_limiter
from koban.core.security import (
    generate_session_token,
    hash_password,
    hash_session_token,
    verify_password,
)
from koban.models.admin_session import AdminSession
from koban.models.admin_user import AdminStatus, AdminUser
from koban.utils.datetime import Clock, utcnow

logger = get_logger(__name__)

USER_AGENT_MAX_LENGTH = 512


class LoginOutcome(str, enum.Enum):
    SUCCESS = "success"
    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"


@dataclass
class LoginResult:
    """Outcome of one login attempt."""

    outcome: LoginOutcome
    token: str | None = None
    session: AdminSession | None = None
    admin: AdminUser | None = None
    retry_after: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == LoginOutcome.SUCCESS


@dataclass
class AuthContext:
    """Authenticated admin and the session that carried the request."""

    admin: AdminUser
    session: AdminSession


async def find_admin_by_username(db: AsyncSession, username: str) -> AdminUser | None:
    """Case-insensitive username lookup."""
    result = await store_call(
        db.execute(
            select(AdminUser)
            .where(func.lower(AdminUser.username) == username.strip().lower())
            .execution_options(populate_existing=True)
        )
    )
    return result.scalar_one_or_none()


class AdminAuthService:
    """Admin credential and session engine."""

    def __init__(
        self,
        rate_limiter: LoginRateLimiter | None = None,
        clock: Clock = utcnow,
        config: Settings = settings,
    ) -> None:
        self.clock = clock
        self.config = config
        self.rate_limiter = rate_limiter or build_login_rate_limiter(config, clock)
        self._bootstrapped = False
        self._bootstrap_lock = asyncio.Lock()

    async def authenticate(
        self,
        db: AsyncSession,
        username: str | None,
        password: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """
        Check credentials and open a session.

        Order matters: the rate limit is checked before the body, and a
        blocked client is rejected even with correct credentials.

        Returns:
            LoginResult with the raw token on SUCCESS, retry_after on RATE_LIMITED
        """
        identity = ip_address or "unknown"

        retry_after = await self.rate_limiter.check(identity)
        if retry_after is not None:
            admin_logins_total.labels(outcome=LoginOutcome.RATE_LIMITED.value).inc()
            logger.warning("admin_login_rate_limited", ip_address=identity, retry_after=retry_after)
            return LoginResult(outcome=LoginOutcome.RATE_LIMITED, retry_after=retry_after)

        if not isinstance(username, str) or not username.strip() or not isinstance(password, str) or not password:
            admin_logins_total.labels(outcome=LoginOutcome.INVALID_REQUEST.value).inc()
            return LoginResult(outcome=LoginOutcome.INVALID_REQUEST)

        await self.ensure_bootstrap_admin(db)

        admin = await find_admin_by_username(db, username)
        now = self.clock()

        # Same answer for unknown user, inactive account and wrong password
        if admin is None or not admin.can_login(now) or not verify_password(password, admin.password_hash):
            await self.rate_limiter.record_failure(identity)
            admin_logins_total.labels(outcome=LoginOutcome.UNAUTHORIZED.value).inc()
            logger.warning("admin_login_failed", username=username.strip(), ip_address=identity)
            return LoginResult(outcome=LoginOutcome.UNAUTHORIZED)

        token = generate_session_token()
        session = AdminSession(
            admin_user_id=admin.id,
            session_token_hash=hash_session_token(token),
            ip_address=ip_address,
            user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
            created_at=now,
            updated_at=now,
            last_seen_at=now,
            expires_at=now + timedelta(hours=self.config.admin_session_ttl_hours),
        )
        session.admin_user = admin
        admin.last_login_at = now
        db.add(session)
        await store_call(db.commit())

        await self.rate_limiter.reset(identity)

        admin_logins_total.labels(outcome=LoginOutcome.SUCCESS.value).inc()
        logger.info(
            "admin_login_succeeded",
            admin_user_id=admin.id,
            username=admin.username,
            ip_address=identity,
            session_id=session.id,
        )

        return LoginResult(outcome=LoginOutcome.SUCCESS, token=token, session=session, admin=admin)

    async def require_auth(self, db: AsyncSession, token: str | None) -> AuthContext | None:
        """
        Resolve a bearer token to its admin.

        Returns None for a missing, unknown, revoked or expired session.
        Stale rows found here are deleted.
        """
        if not token:
            return None

        result = await store_call(
            db.execute(
                select(AdminSession)
                .where(AdminSession.session_token_hash == hash_session_token(token))
                .execution_options(populate_existing=True)
            )
        )
        session = result.unique().scalar_one_or_none()
        if session is None:
            return None

        now = self.clock()
        if not session.is_usable(now):
            await self._discard_stale_session(db, session.id)
            return None

        admin = session.admin_user
        if admin is None or not admin.can_login(now):
            logger.info("admin_session_rejected", session_id=session.id, admin_user_id=session.admin_user_id)
            return None

        session.last_seen_at = now
        await store_call(db.commit())

        return AuthContext(admin=admin, session=session)

    async def logout(self, db: AsyncSession, token: str | None) -> int:
        """
        Delete every session carrying this token. Always succeeds.

        Returns:
            Number of sessions removed (normally 0 or 1)
        """
        if not token:
            return 0

        result = await store_call(
            db.execute(
                delete(AdminSession).where(AdminSession.session_token_hash == hash_session_token(token))
            )
        )
        await store_call(db.commit())

        if result.rowcount:
            logger.info("admin_logged_out", sessions_removed=result.rowcount)
        return result.rowcount

    async def list_sessions(self, db: AsyncSession) -> list[AdminSession]:
        """All stored sessions, newest first."""
        result = await store_call(
            db.execute(
                select(AdminSession)
                .order_by(AdminSession.created_at.desc())
                .execution_options(populate_existing=True)
            )
        )
        return list(result.unique().scalars().all())

    async def clear_all_sessions(self, db: AsyncSession, actor_id: str | None = None) -> int:
        """
        Delete every session, the caller's own included.

        Returns:
            Number of sessions removed
        """
        result = await store_call(db.execute(delete(AdminSession)))
        await store_call(db.commit())

        logger.warning("admin_sessions_cleared", count=result.rowcount, actor_id=actor_id)
        return result.rowcount

    async def ensure_bootstrap_admin(self, db: AsyncSession) -> None:
        """
        Provision the root admin from configuration once per process.

        Concurrent first requests are serialized by a lock; across processes
        the unique username index is the de-duplication backstop.
        """
        if self._bootstrapped:
            return

        async with self._bootstrap_lock:
            if self._bootstrapped:
                return

            if not self.config.bootstrap_admin_configured:
                self._bootstrapped = True
                return

            username = self.config.admin_username.strip()
            if await find_admin_by_username(db, username) is None:
                now = self.clock()
                db.add(
                    AdminUser(
                        username=username,
                        password_hash=hash_password(self.config.admin_password.get_secret_value()),
                        status=AdminStatus.ACTIVE,
                        is_permanent=True,
                        notes="Provisioned from ADMIN_USERNAME/ADMIN_PASSWORD",
                        created_at=now,
                        updated_at=now,
                    )
                )
                try:
                    await store_call(db.commit())
                except IntegrityError:
                    await db.rollback()
                    logger.info("bootstrap_admin_already_present", username=username)
                else:
                    logger.info("bootstrap_admin_created", username=username)

            self._bootstrapped = True

    async def _discard_stale_session(self, db: AsyncSession, session_id: str) -> None:
        """Best-effort delete. Failures are logged, never raised."""
        try:
            await store_call(db.execute(delete(AdminSession).where(AdminSession.id == session_id)))
            await store_call(db.commit())
        except (SQLAlchemyError, StoreError) as e:
            logger.warning("stale_session_cleanup_failed", session_id=session_id, error=str(e))
            await db.rollback()
        else:
            logger.info("stale_session_removed", session_id=session_id)


# Singleton instance
admin_auth_service = AdminAuthService()


def get_admin_auth_service() -> AdminAuthService:
    """FastAPI dependency returning the admin auth engine."""
    return admin_auth_service
