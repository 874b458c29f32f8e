"""Audit log schemas."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer
from pydantic.alias_generators import to_camel

from campus_access.utils.timezone import to_iso8601


class AuditAction(str, Enum):
    """Closed set of audited actions."""

    CREATE_USER = "create_user"
    UPDATE_ROLE = "update_role"
    DELETE_USER = "delete_user"
    PERMISSION_DENIED = "permission_denied"
    LOGIN = "login"
    LOGOUT = "logout"
    ROLE_ESCALATION_ATTEMPT = "role_escalation_attempt"
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    PASSWORD_RESET = "password_reset"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    TENANT_ACCESS_VIOLATION = "tenant_access_violation"


class AuditResource(str, Enum):
    USER = "user"
    ROLE = "role"
    TENANT = "tenant"
    PERMISSION = "permission"
    AUTH = "auth"
    SYSTEM = "system"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============================================================
# DETAILS (tagged union, one variant per kind of event)
# ============================================================

class _Details(BaseModel):
    """Details are persisted with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RoleChangeDetails(_Details):
    kind: Literal["role_change"] = "role_change"
    old_role: str
    new_role: str


class UserCreationDetails(_Details):
    kind: Literal["user_creation"] = "user_creation"
    role: str
    tenant: Optional[str] = None


class UserDeletionDetails(_Details):
    kind: Literal["user_deletion"] = "user_deletion"
    role: str


class PermissionDeniedDetails(_Details):
    """
    A failed authorization check.

    ``check`` names the check that denied. ``target_role`` is set by the
    role-assignment guards and drives severity.
    """

    kind: Literal["permission_denied"] = "permission_denied"
    check: str
    reason: str
    denied_resource: Optional[str] = None
    denied_action: Optional[str] = None
    required_role: Optional[str] = None
    target_role: Optional[str] = None
    current_role: Optional[str] = None
    actual_role: Optional[str] = None
    role_scope: Optional[str] = None


class TenantViolationDetails(_Details):
    kind: Literal["tenant_violation"] = "tenant_violation"
    requested_tenant: Optional[str] = None
    home_tenant: Optional[str] = None
    role_scope: Optional[str] = None
    managed_tenants: list[str] = Field(default_factory=list)


class AuthEventDetails(_Details):
    kind: Literal["auth_event"] = "auth_event"
    reason: Optional[str] = None
    failed_attempts: Optional[int] = None
    locked_until: Optional[str] = None


class CustomDetails(_Details):
    """Ad hoc event payload supplied by the caller."""

    kind: Literal["custom"] = "custom"
    data: dict[str, Any] = Field(default_factory=dict)


AuditDetails = Annotated[
    Union[
        RoleChangeDetails,
        UserCreationDetails,
        UserDeletionDetails,
        PermissionDeniedDetails,
        TenantViolationDetails,
        AuthEventDetails,
        CustomDetails,
    ],
    Field(discriminator="kind"),
]

details_adapter: TypeAdapter[AuditDetails] = TypeAdapter(AuditDetails)


def parse_details(raw: dict[str, Any]) -> AuditDetails:
    """Rebuild a details variant from its persisted form."""
    return details_adapter.validate_python(raw)


# ============================================================
# EVENTS
# ============================================================

class AuditSubject(BaseModel):
    """
    Weak reference to a user: id plus display fields captured at
    write time.
    """

    id: UUID
    name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user: Any) -> "AuditSubject":
        return cls(id=user.id, name=user.full_name, email=user.email)


class AuditEvent(BaseModel):
    """What happened. Who and where are supplied at write time."""

    action: AuditAction
    details: AuditDetails
    resource: Optional[AuditResource] = None
    target: Optional[AuditSubject] = None
    severity: Optional[Severity] = None  # honored for custom events only


# ============================================================
# API SCHEMAS
# ============================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""

    id: UUID
    actor_id: UUID
    actor_name: Optional[str]
    actor_email: Optional[str]
    action: str
    resource: Optional[str]
    target_id: Optional[UUID]
    target_name: Optional[str]
    target_email: Optional[str]
    details: dict[str, Any]
    tenant: str
    ip_address: Optional[str]
    user_agent: Optional[str]
    timestamp: datetime
    severity: Severity

    model_config = {"from_attributes": True}

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        return to_iso8601(value)


class AuditLogFilter(BaseModel):
    """Schema for filtering audit logs."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    actor_id: Optional[UUID] = None
    target_id: Optional[UUID] = None
    action: Optional[AuditAction] = None
    resource: Optional[AuditResource] = None
    tenant: Optional[str] = None
    severity: Optional[Severity] = None


class AuditPagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AuditTrailPage(BaseModel):
    entries: list[AuditLogResponse]
    pagination: AuditPagination


class ActorActivity(BaseModel):
    actor_id: UUID
    actor_name: Optional[str]
    actor_email: Optional[str]
    count: int


class AuditStats(BaseModel):
    total_events: int
    events_by_action: dict[str, int]
    events_by_severity: dict[str, int]
    recent_critical: list[AuditLogResponse]
    top_actors: list[ActorActivity]


class CustomEventCreate(BaseModel):
    """Request body for recording an ad hoc event."""

    action: AuditAction
    resource: Optional[AuditResource] = None
    target_id: Optional[UUID] = None
    details: dict[str, Any] = Field(default_factory=dict)
    severity: Severity = Severity.LOW


class CleanupResult(BaseModel):
    deleted_count: int
    older_than_days: int
