"""
Access checks.

Each check is a small immutable object. Compose them per route:

    @router.get("/logs", dependencies=[Depends(authorize(
        RequireRole(Role.ADMIN),
        RequireAuditAccess(PermissionScope.TENANT),
    ))])

Checks that need request data the dependency layer cannot see (the role
named in a request body, a target user loaded from the store) are run
from the handler through ``Authorize``:

    await auth.require(UserCreationGuard(), target_role=data.role)
"""

from dataclasses import dataclass

from campus_access.core.exceptions import (
    InsufficientRole,
    PermissionDenied,
    RoleTransitionInvalid,
    TenantAccessDenied,
)
from campus_access.schemas.audit_log import (
    AuditAction,
    AuditEvent,
    AuditResource,
    AuditSubject,
    PermissionDeniedDetails,
    TenantViolationDetails,
)

from ..interfaces import AccessCheck, AccessContext, PolicyDecision
from ..permissions import Action, PermissionScope, Resource
from ..roles import (
    Role,
    RoleHierarchy,
    RoleScope,
    SYSTEM_ROLES,
    parse_role,
    role_hierarchy,
)
from ..tenancy import can_access_tenant, resolve_tenant


def _scope_label(scope: RoleScope | None) -> str | None:
    return scope.value if scope else None


def _denied(
    check: str,
    ctx: AccessContext,
    decision: PolicyDecision,
    resource: AuditResource,
    **fields,
) -> AuditEvent:
    target = None
    if ctx.target is not None:
        target = AuditSubject(id=ctx.target.id, name=ctx.target.name, email=ctx.target.email)

    return AuditEvent(
        action=AuditAction.PERMISSION_DENIED,
        resource=resource,
        target=target,
        details=PermissionDeniedDetails(
            check=check,
            reason=decision.reason or "Permission denied",
            actual_role=ctx.principal.role,
            role_scope=_scope_label(ctx.principal.role_scope),
            **fields,
        ),
    )


# ============================================================
# ROLE LEVEL
# ============================================================

@dataclass(frozen=True)
class RequireRole(AccessCheck):
    """Caller's role level must be at least ``min_role``'s (and scope must match if given)."""

    min_role: Role
    scope: RoleScope | None = None
    hierarchy: RoleHierarchy = role_hierarchy

    error = InsufficientRole

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        principal = ctx.principal
        if self.hierarchy.level_of(principal.role) < self.hierarchy.level_of(self.min_role):
            return PolicyDecision.deny(
                f"Access denied. Required role: {self.min_role.value}, "
                f"current role: {principal.role}"
            )
        if self.scope is not None and principal.role_scope != self.scope:
            return PolicyDecision.deny(
                f"Access denied. Required scope: {self.scope.value}, "
                f"current scope: {_scope_label(principal.role_scope)}"
            )
        return PolicyDecision.allow()

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        return _denied(
            "role_level",
            ctx,
            decision,
            AuditResource.ROLE,
            required_role=self.min_role.value,
        )


@dataclass(frozen=True)
class RequireSystemAdmin(AccessCheck):
    """Caller must be super_admin or manager."""

    error = InsufficientRole

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        if parse_role(ctx.principal.role) in SYSTEM_ROLES:
            return PolicyDecision.allow()
        return PolicyDecision.deny("System administrator access required")

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        return _denied("system_admin", ctx, decision, AuditResource.SYSTEM)


# ============================================================
# RESOURCE PERMISSION
# ============================================================

@dataclass(frozen=True)
class RequirePermission(AccessCheck):
    """
    Caller must hold a grant covering ``action`` on ``resource``.

    A grant on ``system`` covers every resource, ``manage`` covers every
    action, and a ``global`` grant satisfies any requested scope.
    """

    resource: Resource
    action: Action
    scope: PermissionScope | None = None

    error = PermissionDenied

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        if ctx.principal.can(self.resource, self.action, self.scope):
            return PolicyDecision.allow()
        return PolicyDecision.deny(
            f"Missing permission: {self.action.value} on {self.resource.value}"
        )

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        return _denied(
            "resource_permission",
            ctx,
            decision,
            AuditResource.PERMISSION,
            denied_resource=self.resource.value,
            denied_action=self.action.value,
        )


# Who may read audit entries at each breadth
_AUDIT_SCOPE_ROLES = {
    PermissionScope.GLOBAL: frozenset({Role.SUPER_ADMIN}),
    PermissionScope.TENANT: frozenset({
        Role.SUPER_ADMIN, Role.MANAGER, Role.TENANT_ADMIN, Role.ADMIN,
    }),
}


@dataclass(frozen=True)
class RequireAuditAccess(AccessCheck):
    """Caller's role must allow reading audit entries at ``scope`` breadth."""

    scope: PermissionScope = PermissionScope.OWN

    error = PermissionDenied

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        allowed_roles = _AUDIT_SCOPE_ROLES.get(self.scope)
        if allowed_roles is None or parse_role(ctx.principal.role) in allowed_roles:
            return PolicyDecision.allow()
        return PolicyDecision.deny(
            f"Scope {self.scope.value} audit access denied for role {ctx.principal.role}"
        )

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        return _denied(
            "audit_access",
            ctx,
            decision,
            AuditResource.PERMISSION,
            denied_resource=Resource.AUDIT.value,
            denied_action=Action.READ.value,
        )


# ============================================================
# TENANT SCOPE
# ============================================================

@dataclass(frozen=True)
class RequireTenantAccess(AccessCheck):
    """Requested tenant must fall inside the caller's tenant scope."""

    error = TenantAccessDenied

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        resolution = resolve_tenant(ctx.principal, ctx.requested_tenant)
        if resolution.allowed:
            return PolicyDecision.allow()
        return PolicyDecision.deny(resolution.reason or "Access denied to this tenant")

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        principal = ctx.principal
        return AuditEvent(
            action=AuditAction.TENANT_ACCESS_VIOLATION,
            resource=AuditResource.TENANT,
            details=TenantViolationDetails(
                requested_tenant=ctx.requested_tenant,
                home_tenant=principal.home_tenant,
                role_scope=_scope_label(principal.role_scope),
                managed_tenants=list(principal.managed_tenants),
            ),
        )


# ============================================================
# ROLE ASSIGNMENT
# ============================================================

@dataclass(frozen=True)
class UserCreationGuard(AccessCheck):
    """
    Caller may create a user with ``ctx.target_role``.

    Requires ``can_manage(creator, role)``; super_admin and manager
    accounts can only be created by a super_admin. Below super_admin the
    role must also be one of the creator's ``creatable_roles``, so nobody
    creates a peer.
    """

    hierarchy: RoleHierarchy = role_hierarchy

    error = PermissionDenied

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        creator = ctx.principal.role
        target = parse_role(ctx.target_role)

        if target is None:
            return PolicyDecision.deny(f"Unknown role: {ctx.target_role}")

        is_super_admin = parse_role(creator) == Role.SUPER_ADMIN
        if target == Role.SUPER_ADMIN and not is_super_admin:
            return PolicyDecision.deny("Only super_admin can create other super_admins")
        if target == Role.MANAGER and not is_super_admin:
            return PolicyDecision.deny("Only super_admin can create managers")

        if not self.hierarchy.can_manage(creator, target) or (
            not is_super_admin and target not in self.hierarchy.creatable_roles(creator)
        ):
            return PolicyDecision.deny(f"{creator} cannot create users with role {target.value}")

        return PolicyDecision.allow()

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        return _denied(
            "user_creation",
            ctx,
            decision,
            AuditResource.USER,
            denied_resource=Resource.USER.value,
            denied_action=Action.CREATE.value,
            target_role=ctx.target_role,
        )


@dataclass(frozen=True)
class RoleUpdateGuard(AccessCheck):
    """
    Caller may move ``ctx.target`` to ``ctx.target_role``.

    The transition must pass ``validate_transition`` and the target must
    live in a tenant the caller's scope covers.
    """

    hierarchy: RoleHierarchy = role_hierarchy

    error = RoleTransitionInvalid

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        if ctx.target is None or ctx.target_role is None:
            return PolicyDecision.deny("Role update requires a target user and a new role")

        if parse_role(ctx.target_role) is None:
            return PolicyDecision.deny(f"Unknown role: {ctx.target_role}")

        result = self.hierarchy.validate_transition(
            ctx.principal.role,
            ctx.target.role,
            ctx.target_role,
        )
        if not result.valid:
            return PolicyDecision.deny(result.reason or "Role transition not allowed")

        if not can_access_tenant(ctx.principal, ctx.target.tenant):
            return PolicyDecision.deny("Cannot modify users in other tenants")

        return PolicyDecision.allow()

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        return _denied(
            "role_update",
            ctx,
            decision,
            AuditResource.ROLE,
            denied_resource=Resource.USER.value,
            denied_action=Action.UPDATE.value,
            target_role=ctx.target_role,
            current_role=ctx.target.role if ctx.target else None,
        )


@dataclass(frozen=True)
class ManageUserGuard(AccessCheck):
    """
    Caller may perform ``operation`` on ``ctx.target``.

    Used for deletion and unlocking. The caller must be able to manage the
    target's role, only a super_admin may act on system-role accounts, the
    target must live in a tenant the caller's scope covers, and nobody may
    delete themselves.
    """

    operation: str = "user_deletion"
    hierarchy: RoleHierarchy = role_hierarchy

    error = PermissionDenied

    def evaluate(self, ctx: AccessContext) -> PolicyDecision:
        if ctx.target is None:
            return PolicyDecision.deny("A target user is required")

        principal = ctx.principal
        target = ctx.target

        if self.operation == "user_deletion" and target.id == principal.id:
            return PolicyDecision.deny("You cannot delete your own account")

        if not self.hierarchy.can_manage(principal.role, target.role):
            return PolicyDecision.deny(
                f"{principal.role} cannot manage users with role {target.role}"
            )

        if (
            parse_role(target.role) in SYSTEM_ROLES
            and parse_role(principal.role) != Role.SUPER_ADMIN
        ):
            return PolicyDecision.deny(f"Only super_admin can manage {target.role} accounts")

        if not can_access_tenant(principal, target.tenant):
            return PolicyDecision.deny("Cannot modify users in other tenants")

        return PolicyDecision.allow()

    def denial_event(self, ctx: AccessContext, decision: PolicyDecision) -> AuditEvent:
        return _denied(
            self.operation,
            ctx,
            decision,
            AuditResource.USER,
            denied_resource=Resource.USER.value,
            denied_action=Action.DELETE.value
            if self.operation == "user_deletion"
            else Action.UPDATE.value,
            target_role=ctx.target.role if ctx.target else None,
        )
