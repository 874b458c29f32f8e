"""
Database models.
"""

from .base import Base, TimestampMixin, UUIDMixin
from .user import User
from .audit_log import AuditLog

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "AuditLog",
]
