"""
Custom exception hierarchy for the application.
"""

from typing import Any

from fastapi import HTTPException, status


class KobanException(Exception):
    """Base exception for all application exceptions."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(KobanException):
    """Raised when input validation fails."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(KobanException):
    """Raised when a referenced key, admin or session doesn't exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(KobanException):
    """Raised when a business rule forbids the change (duplicate username, ...)."""
    status_code = status.HTTP_409_CONFLICT


class StoreError(KobanException):
    """Raised when the persistence store fails."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class StoreUnavailableError(StoreError):
    """Store timed out or is unreachable. Safe for the caller to retry."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# HTTP Exception helpers
def unauthorized(detail: str = "Authentication required") -> HTTPException:
    """Return 401 Unauthorized exception."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


def not_found(detail: str = "Resource not found") -> HTTPException:
    """Return 404 Not Found exception."""
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def bad_request(detail: str = "Bad request") -> HTTPException:
    """Return 400 Bad Request exception."""
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def conflict(detail: Any = "Resource already exists") -> HTTPException:
    """Return 409 Conflict exception."""
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    )


def too_many_requests(retry_after: int) -> HTTPException:
    """Return 429 Too Many Requests exception with Retry-After."""
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "error": "Too many attempts, try again later",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )
