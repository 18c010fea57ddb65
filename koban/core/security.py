"""
Security utilities for authentication.

Provides:
- Password hashing and verification (bcrypt)
- Opaque session token generation and hashing
- Access key identifier generation
"""

import hashlib
import logging
import secrets
import uuid

from passlib.context import CryptContext

from koban.config import settings

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 48

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.admin_password_rounds,
)


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hashed password
    """
    if not password:
        raise ValueError("Password must be a non-empty string")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a password against a hash.

    bcrypt comparison runs in constant time with respect to the password.

    Returns:
        True if password matches, False otherwise
    """
    if not hashed_password or not plain_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed or unknown hash format
        logger.warning("Stored password hash could not be parsed")
        return False


def generate_session_token() -> str:
    """Generate a random bearer token for an admin session (96 hex chars)."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


def hash_session_token(token: str) -> str:
    """One-way digest of a session token. Only this value is persisted."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_key_id() -> str:
    """Generate a public access key identifier: 128 random bits in UUID text form."""
    return str(uuid.UUID(bytes=secrets.token_bytes(16)))


def is_valid_key_id(value: str) -> bool:
    """Check that a key id is a well-formed UUID string."""
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return len(value) == 36
