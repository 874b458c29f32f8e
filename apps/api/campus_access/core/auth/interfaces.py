"""
Authorization interfaces - Core abstractions.

An access check is an independent predicate over an ``AccessContext``.
It returns a ``PolicyDecision`` and, when it denies, describes the audit
event that records the denial. Route handlers compose exactly the checks
they need; the ``AuthorizationService`` runs them in order and stops at
the first denial.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

from campus_access.core.exceptions import AccessControlError, PermissionDenied
from campus_access.schemas.audit_log import AuditEvent

from .principal import Principal

if TYPE_CHECKING:
    from campus_access.models.user import User


# ============================================================
# POLICY DECISION
# ============================================================

@dataclass
class PolicyDecision:
    """
    Result of a policy evaluation.

    Attributes:
        allowed: Whether the action is permitted
        reason: Human-readable explanation (for errors/logging)
        metadata: Additional data for the denial audit entry
    """
    allowed: bool
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(cls, reason: str | None = None) -> "PolicyDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: str = "Permission denied", **metadata: Any) -> "PolicyDecision":
        return cls(allowed=False, reason=reason, metadata=metadata)


# ============================================================
# CONTEXT
# ============================================================

@dataclass(frozen=True)
class TargetUser:
    """Snapshot of the user a request acts upon."""

    id: UUID
    role: str
    tenant: str
    name: str | None = None
    email: str | None = None

    @classmethod
    def from_user(cls, user: "User") -> "TargetUser":
        return cls(
            id=user.id,
            role=user.role,
            tenant=user.tenant,
            name=user.full_name,
            email=user.email,
        )


@dataclass(frozen=True)
class AccessContext:
    """
    Everything a check may look at.

    Attributes:
        principal: The authenticated caller
        tenant: Effective tenant for the request
        requested_tenant: Tenant explicitly asked for, if any
        target: User being acted upon (role updates, deletions)
        target_role: Role being created or assigned
    """
    principal: Principal
    tenant: str | None = None
    requested_tenant: str | None = None
    target: TargetUser | None = None
    target_role: str | None = None

    @property
    def audit_tenant(self) -> str:
        return self.tenant or self.principal.home_tenant


# ============================================================
# ACCESS CHECK
# ============================================================

class AccessCheck(ABC):
    """
    A single authorization rule.

    Implementations must be deterministic: identical contexts always
    produce identical decisions.
    """

    # Raised by the authorization service when this check denies
    error: type[AccessControlError] = PermissionDenied

    @abstractmethod
    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        """Decide whether the request may proceed."""

    @abstractmethod
    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        """Audit event recorded when ``evaluate`` denies."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"
