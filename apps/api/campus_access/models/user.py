"""
User model.

Role and tenant are stored by value: the role is a label from the role
catalog and the tenant is a plain identifier with no foreign key.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, TimestampMixin, UUIDMixin


class User(Base, UUIDMixin, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # Access control
    role: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    tenant: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    role_scope: Mapped[str] = mapped_column(String(20), nullable=False, default="tenant")
    managed_tenants: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    permission_overrides: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Weak reference to the creating user
    created_by: Mapped[Optional[UUID]] = mapped_column(nullable=True, index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
