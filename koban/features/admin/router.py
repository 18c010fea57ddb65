"""
Admin endpoints: login, sessions, account management and key administration.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from koban.config import settings
from koban.core.client_ip import get_client_ip
from koban.core.database import get_db
from koban.core.exceptions import bad_request, not_found, too_many_requests, unauthorized
from koban.features.admin.dependencies import CurrentAdmin, get_session_token
from koban.features.admin.schemas import (
    AdminCreate,
    AdminDeletedResponse,
    AdminListResponse,
    AdminRead,
    AdminUpdate,
    LoginRequest,
    LoginResponse,
    SessionInfoResponse,
    SessionListResponse,
    SessionRead,
    SessionsClearedResponse,
)
from koban.features.admin.service import AdminAuthService, LoginOutcome, get_admin_auth_service
from koban.features.admin.user_service import AdminUserService, get_admin_user_service
from koban.features.keys.router import created_or_conflict, require_key_id
from koban.features.keys.schemas import KeyCreated, KeyCreateRequest, KeyState
from koban.features.keys.service import KeyService, get_key_service
from koban.schemas.common import ErrorResponse, MessageResponse

router = APIRouter(prefix="/admin", tags=["Admin"])

AuthServiceDep = Annotated[AdminAuthService, Depends(get_admin_auth_service)]
UserServiceDep = Annotated[AdminUserService, Depends(get_admin_user_service)]


# Authentication

@router.post(
    "/auth/login",
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_service: AuthServiceDep,
) -> LoginResponse:
    """
    Open an admin session.

    The token is set as an httpOnly cookie and returned in the body once.
    """
    result = await auth_service.authenticate(
        db=db,
        username=payload.username,
        password=payload.password,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )

    if result.outcome == LoginOutcome.RATE_LIMITED:
        raise too_many_requests(result.retry_after or 0)
    if result.outcome == LoginOutcome.INVALID_REQUEST:
        raise bad_request("Username and password are required")
    if result.outcome == LoginOutcome.UNAUTHORIZED:
        raise unauthorized("Invalid credentials")

    response.set_cookie(
        key=settings.admin_session_cookie,
        value=result.token,
        max_age=settings.admin_session_ttl_hours * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )

    return LoginResponse(
        session_token=result.token,
        expires_at=result.session.expires_at,
        admin=AdminRead.model_validate(result.admin),
    )


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """End the presented session. Succeeds whether or not it existed."""
    await auth_service.logout(db, get_session_token(request))
    response.delete_cookie(settings.admin_session_cookie)
    return MessageResponse(message="Logged out successfully")


# Sessions

@router.get("/api/session", response_model=SessionInfoResponse)
async def get_session_info(current: CurrentAdmin) -> SessionInfoResponse:
    """The calling admin and its session."""
    return SessionInfoResponse(
        admin=AdminRead.model_validate(current.admin),
        session=SessionRead.model_validate(current.session),
    )


@router.get("/api/sessions", response_model=SessionListResponse)
async def list_sessions(
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_service: AuthServiceDep,
) -> SessionListResponse:
    sessions = await auth_service.list_sessions(db)
    return SessionListResponse(
        count=len(sessions),
        sessions=[SessionRead.model_validate(s) for s in sessions],
    )


@router.delete("/api/sessions", response_model=SessionsClearedResponse)
async def clear_sessions(
    current: CurrentAdmin,
    response: Response,
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_service: AuthServiceDep,
) -> SessionsClearedResponse:
    """Delete every admin session, including the caller's."""
    cleared = await auth_service.clear_all_sessions(db, actor_id=current.admin.id)
    response.delete_cookie(settings.admin_session_cookie)
    return SessionsClearedResponse(message=f"Cleared {cleared} sessions", cleared=cleared)


# Admin accounts

@router.get("/api/admins", response_model=AdminListResponse)
async def list_admins(
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_service: UserServiceDep,
) -> AdminListResponse:
    admins = await user_service.list_admins(db)
    return AdminListResponse(
        count=len(admins),
        admins=[AdminRead.model_validate(a) for a in admins],
    )


@router.post("/api/admins", response_model=AdminRead, status_code=status.HTTP_201_CREATED)
async def create_admin(
    payload: AdminCreate,
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_service: UserServiceDep,
) -> AdminRead:
    """
    Create an admin account.

    Username needs 3+ characters; password needs 8+ with upper, lower and digit.
    """
    admin = await user_service.create_admin(db, payload, created_by_id=current.admin.id)
    return AdminRead.model_validate(admin)


@router.get("/api/admins/{admin_id}", response_model=AdminRead)
async def get_admin(
    admin_id: str,
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_service: UserServiceDep,
) -> AdminRead:
    return AdminRead.model_validate(await user_service.get_admin(db, admin_id))


@router.patch("/api/admins/{admin_id}", response_model=AdminRead)
async def update_admin(
    admin_id: str,
    payload: AdminUpdate,
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_service: UserServiceDep,
) -> AdminRead:
    """Partial update. Fields left out of the body are not touched."""
    admin = await user_service.update_admin(
        db,
        admin_id,
        payload.model_dump(exclude_unset=True),
        actor_id=current.admin.id,
    )
    return AdminRead.model_validate(admin)


@router.delete("/api/admins/{admin_id}")
async def remove_admin(
    admin_id: str,
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    user_service: UserServiceDep,
    hard: bool = Query(False, description="Delete the row instead of disabling"),
    reason: str | None = Query(None, description="Disable reason, stored in notes"),
) -> AdminRead | AdminDeletedResponse:
    """Disable an admin, or delete it with ?hard=true."""
    if hard:
        await user_service.delete_admin(db, admin_id, actor_id=current.admin.id)
        return AdminDeletedResponse(id=admin_id)

    admin = await user_service.disable_admin(db, admin_id, reason=reason, actor_id=current.admin.id)
    return AdminRead.model_validate(admin)


# Key administration

@router.post("/api/keys", response_model=KeyCreated, status_code=status.HTTP_201_CREATED)
async def issue_key(
    payload: KeyCreateRequest,
    request: Request,
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    key_service: Annotated[KeyService, Depends(get_key_service)],
) -> KeyCreated:
    """Issue a key on behalf of a user, recording the issuing admin."""
    result = await key_service.create_key(
        db=db,
        user_id=payload.user_id,
        hours=payload.hours,
        ip_address=get_client_ip(request),
        created_by_id=current.admin.id,
    )
    return created_or_conflict(result)


@router.post("/api/keys/{key_id}/revoke", response_model=KeyState)
async def revoke_key(
    key_id: str,
    current: CurrentAdmin,
    db: Annotated[AsyncSession, Depends(get_db)],
    key_service: Annotated[KeyService, Depends(get_key_service)],
) -> KeyState:
    """Mark a key REVOKED. It stays stored and validates as 410 from now on."""
    state = await key_service.revoke_key(db, require_key_id(key_id))
    if state is None:
        raise not_found("Key not found")
    return state
