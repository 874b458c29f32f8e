"""Audit log model for security-relevant events."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from campus_access.models.base import Base, JSONType, UUIDMixin
from campus_access.utils.timezone import utc_now


class AuditLog(Base, UUIDMixin):
    """
    Append-only audit log entry.

    Actor and target are weak references: the id plus display fields
    captured at write time. Deleting a user never touches its entries.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_tenant_timestamp", "tenant", "timestamp"),
        Index("ix_audit_logs_actor_timestamp", "actor_id", "timestamp"),
        Index("ix_audit_logs_action_timestamp", "action", "timestamp"),
        Index("ix_audit_logs_severity_timestamp", "severity", "timestamp"),
    )

    # Who performed the action
    actor_id: Mapped[UUID] = mapped_column(nullable=False)
    actor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    actor_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # What happened
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Who was affected
    target_id: Mapped[Optional[UUID]] = mapped_column(nullable=True, index=True)
    target_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    target_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    tenant: Mapped[str] = mapped_column(String(100), nullable=False)

    # Request context
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 max length
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="low")

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.severity} by {self.actor_id}>"
