"""
Database models package.
"""

from koban.core.database import Base
from koban.models.base import BaseModel
from koban.models.admin_user import AdminStatus, AdminUser
from koban.models.admin_session import AdminSession
from koban.models.access_key import AccessKey, KeyStatus

__all__ = [
    "Base",
    "BaseModel",
    "AdminStatus",
    "AdminUser",
    "AdminSession",
    "AccessKey",
    "KeyStatus",
]
