"""
Pydantic schemas package.
"""

from koban.schemas.common import BaseSchema, ErrorResponse, MessageResponse

__all__ = [
    "BaseSchema",
    "ErrorResponse",
    "MessageResponse",
]
