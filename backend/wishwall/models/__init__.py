"""SQLAlchemy models."""

from .user import User
from .admin import Admin
from .wish import Wish
from .wish_record import WishRecord
from .audit_log import AuditLog

__all__ = [
    "User",
    "Admin",
    "Wish",
    "WishRecord",
    "AuditLog",
]
