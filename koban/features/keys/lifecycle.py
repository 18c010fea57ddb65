"""
Pure helpers shared by the key engine: input sanitizing and remaining time.
"""

import re
from datetime import datetime

from koban.core.exceptions import ValidationError
from koban.features.keys.schemas import TimeRemaining

USER_ID_MAX_LENGTH = 255

_UNSAFE_CHARS = re.compile(r"[<>\"']")


def sanitize_user_id(value: object) -> str:
    """
    Strip markup characters, trim and cap a caller-supplied user id.

    Returns an empty string for non-string input.
    """
    if not isinstance(value, str):
        return ""
    return _UNSAFE_CHARS.sub("", value).strip()[:USER_ID_MAX_LENGTH]


def require_user_id(value: object) -> str:
    """Sanitize a user id and reject it when nothing usable remains."""
    user_id = sanitize_user_id(value)
    if not user_id:
        raise ValidationError("user_id must be a non-empty string")
    return user_id


def resolve_hours(hours: int | None, default_hours: int, max_hours: int) -> int:
    """
    Apply the configured default and reject values outside 1..max_hours.

    Out-of-range values are rejected rather than clamped so the caller
    always knows the validity it was granted.
    """
    if hours is None:
        return default_hours
    if isinstance(hours, bool) or not isinstance(hours, int):
        raise ValidationError(f"hours must be a positive number between 1 and {max_hours}")
    if hours < 1 or hours > max_hours:
        raise ValidationError(
            f"hours must be a positive number between 1 and {max_hours}",
            details={"hours": hours, "max_hours": max_hours},
        )
    return hours


def compute_time_remaining(expires_at: datetime, now: datetime) -> TimeRemaining:
    """
    Break the time left before expires_at into hours and minutes.

    Pure function of its two arguments.
    """
    delta = (expires_at - now).total_seconds()

    if delta <= 0:
        return TimeRemaining(expired=True)

    remaining = int(delta)
    hours, rest = divmod(remaining, 3600)
    minutes = rest // 60

    return TimeRemaining(
        expired=False,
        remaining_seconds=remaining,
        hours=hours,
        minutes=minutes,
        formatted=f"{hours}h {minutes}m",
    )
