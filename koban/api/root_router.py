"""
Service information and client address echo.
"""

from fastapi import APIRouter, Request

from koban.config import settings
from koban.core.client_ip import get_client_ip, get_ip_variants

router = APIRouter(tags=["Root"])


@router.get("/")
async def root() -> dict:
    """Service name, version and where to go next."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "docs": "/docs" if settings.is_development else None,
        "health": "/health",
        "endpoints": {
            "create_key": "POST /api/keys/create",
            "validate_key": "GET /api/keys/validate/{key_id}",
            "key_info": "GET /api/keys/info/{key_id}",
            "user_keys": "GET /api/keys/user/{user_id}",
            "delete_key": "DELETE /api/keys/{key_id}",
            "admin_login": "POST /admin/auth/login",
        },
    }


@router.get("/ip")
async def client_ip(request: Request) -> dict:
    """Echo the detected client address and both candidates."""
    return {
        "ip": get_client_ip(request),
        "variants": get_ip_variants(request),
    }
