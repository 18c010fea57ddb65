"""
Admin session dependencies for dependency injection.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from koban.config import settings
from koban.core.context import set_request_context
from koban.core.database import get_db
from koban.core.exceptions import unauthorized
from koban.features.admin.service import AdminAuthService, AuthContext, get_admin_auth_service


def get_session_token(request: Request) -> str | None:
    """Session token from the cookie, falling back to the X-Admin-Session header."""
    return (
        request.cookies.get(settings.admin_session_cookie)
        or request.headers.get(settings.admin_session_header)
        or None
    )


async def get_current_admin(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_service: Annotated[AdminAuthService, Depends(get_admin_auth_service)],
) -> AuthContext:
    """
    Resolve the calling admin from its session token.

    Raises 401 with the same message whether the token is missing,
    unknown or expired.
    """
    context = await auth_service.require_auth(db, get_session_token(request))
    if context is None:
        raise unauthorized("Invalid or expired session")

    request.state.admin_user_id = context.admin.id
    set_request_context(admin_user_id=context.admin.id)

    return context


# Type aliases for cleaner code
CurrentAdmin = Annotated[AuthContext, Depends(get_current_admin)]
