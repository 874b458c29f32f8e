"""
Authorization service - Runs access checks for one request.

Usage:
    async def handler(auth: Authorize):
        await auth.require(UserCreationGuard(), target_role=data.role)
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

import structlog

from campus_access.schemas.audit_log import AuditSubject

from .interfaces import AccessCheck, AccessContext, PolicyDecision
from .principal import Principal

if TYPE_CHECKING:
    from campus_access.services.audit import AuditTrail

logger = structlog.get_logger()


@dataclass(frozen=True)
class RequestMeta:
    """Client details copied onto audit entries."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuthorizationService:
    """
    Evaluates checks in order and stops at the first denial.

    A denial is recorded best-effort in the audit trail before the
    check's error is raised, so a failing audit write never changes the
    response the caller sees.
    """

    def __init__(
        self,
        principal: Principal,
        audit: "AuditTrail",
        tenant: Optional[str] = None,
        requested_tenant: Optional[str] = None,
        request_meta: RequestMeta | None = None,
    ):
        self.principal = principal
        self.audit = audit
        self.tenant = tenant
        self.requested_tenant = requested_tenant
        self.request_meta = request_meta or RequestMeta()

    def context(self, **overrides: Any) -> AccessContext:
        values = {
            "principal": self.principal,
            "tenant": self.tenant,
            "requested_tenant": self.requested_tenant,
        }
        values.update(overrides)
        return AccessContext(**values)

    def check(self, check: AccessCheck, **overrides: Any) -> PolicyDecision:
        """Evaluate one check without side effects."""
        return check.evaluate(self.context(**overrides))

    async def require(self, *checks: AccessCheck, **overrides: Any) -> None:
        """
        Require every check to allow.

        Raises:
            The first denying check's ``error`` with the denial reason
        """
        ctx = self.context(**overrides)

        for check in checks:
            decision = check.evaluate(ctx)
            if decision.allowed:
                continue

            logger.warning(
                "Access denied",
                check=type(check).__name__,
                principal_id=str(self.principal.id),
                role=self.principal.role,
                reason=decision.reason,
            )
            await self.audit.record_best_effort(
                check.denial_event(ctx, decision),
                actor=AuditSubject(
                    id=self.principal.id,
                    name=self.principal.name,
                    email=self.principal.email,
                ),
                tenant=ctx.audit_tenant,
                ip_address=self.request_meta.ip_address,
                user_agent=self.request_meta.user_agent,
            )
            raise check.error(decision.reason)

    def can(self, *checks: AccessCheck, **overrides: Any) -> bool:
        """True when every check allows. Nothing is audited."""
        ctx = self.context(**overrides)
        return all(check.evaluate(ctx).allowed for check in checks)
