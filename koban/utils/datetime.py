"""Datetime helpers.

All timestamps are stored as naive UTC datetimes. Engines receive a ``Clock``
so tests can move time forward without sleeping.
"""

from datetime import UTC, datetime
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return current UTC time as a naive datetime."""
    return datetime.now(UTC).replace(tzinfo=None)
