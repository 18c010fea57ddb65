"""
Access key endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from koban.core.client_ip import get_client_ip
from koban.core.database import get_db
from koban.core.exceptions import bad_request, conflict, not_found
from koban.core.security import is_valid_key_id
from koban.features.keys.lifecycle import sanitize_user_id
from koban.features.keys.schemas import (
    KeyConflict,
    KeyCreated,
    KeyCreateRequest,
    KeyDeletedResponse,
    KeyListResponse,
    KeyState,
)
from koban.features.keys.service import KeyService, get_key_service

router = APIRouter(prefix="/keys", tags=["Keys"])


def require_key_id(key_id: str) -> str:
    if not is_valid_key_id(key_id):
        raise bad_request("Invalid key_id format")
    return key_id


def created_or_conflict(result: KeyCreated | KeyConflict) -> KeyCreated:
    """Turn a create outcome into the response body or a 409 carrying the existing key."""
    if isinstance(result, KeyConflict):
        raise conflict(
            {
                "error": "User already has an active key",
                "data": result.model_dump(mode="json"),
            }
        )
    return result


@router.post("/create", response_model=KeyCreated, status_code=status.HTTP_201_CREATED)
async def create_key(
    payload: KeyCreateRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    key_service: Annotated[KeyService, Depends(get_key_service)],
) -> KeyCreated:
    """
    Issue an access key for a user.

    Returns 409 with the existing key and its remaining time when the user
    already holds an active key.
    """
    result = await key_service.create_key(
        db=db,
        user_id=payload.user_id,
        hours=payload.hours,
        ip_address=get_client_ip(request),
    )
    return created_or_conflict(result)


@router.get("/validate/{key_id}", response_model=KeyState)
async def validate_key(
    key_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    key_service: Annotated[KeyService, Depends(get_key_service)],
) -> KeyState:
    """
    Validate a key and count the use.

    Expired or revoked keys answer with HTTP 200 and code 410 in the body.
    """
    state = await key_service.validate_key(db, require_key_id(key_id))
    if state is None:
        raise not_found("Key not found")
    return state


@router.get("/info/{key_id}", response_model=KeyState)
async def get_key_info(
    key_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    key_service: Annotated[KeyService, Depends(get_key_service)],
) -> KeyState:
    """Inspect a key without touching its usage count."""
    state = await key_service.get_key_info(db, require_key_id(key_id))
    if state is None:
        raise not_found("Key not found")
    return state


@router.get("/user/{user_id}", response_model=KeyListResponse)
async def list_user_keys(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    key_service: Annotated[KeyService, Depends(get_key_service)],
) -> KeyListResponse:
    """All keys ever issued to a user, newest first."""
    keys = await key_service.list_user_keys(db, user_id)
    return KeyListResponse(
        user_id=sanitize_user_id(user_id),
        count=len(keys),
        keys=keys,
    )


@router.delete("/{key_id}", response_model=KeyDeletedResponse)
async def delete_key(
    key_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    key_service: Annotated[KeyService, Depends(get_key_service)],
) -> KeyDeletedResponse:
    """Hard delete a key. Deleting it again answers 404."""
    if not await key_service.delete_key(db, require_key_id(key_id)):
        raise not_found("Key not found")
    return KeyDeletedResponse(key_id=key_id)
