"""
Tests for access checks and the authorization service.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from campus_access.core.auth.interfaces import AccessContext, TargetUser
from campus_access.core.auth.permissions import Action, PermissionScope, Resource
from campus_access.core.auth.policy.checks import (
    ManageUserGuard,
    RequireAuditAccess,
    RequirePermission,
    RequireRole,
    RequireSystemAdmin,
    RequireTenantAccess,
    RoleUpdateGuard,
    UserCreationGuard,
)
from campus_access.core.auth.roles import Role, RoleScope
from campus_access.core.auth.service import AuthorizationService, RequestMeta
from campus_access.core.exceptions import (
    InsufficientRole,
    PermissionDenied,
    RoleTransitionInvalid,
    TenantAccessDenied,
)
from campus_access.models.audit_log import AuditLog


def target(role: str, tenant: str = "school-A") -> TargetUser:
    return TargetUser(id=uuid4(), role=role, tenant=tenant, name="Target", email="t@example.com")


class TestRequireRole:
    def test_allows_equal_or_higher(self, make_principal):
        ctx = AccessContext(principal=make_principal("tenant_admin"))
        assert RequireRole(Role.ADMIN).evaluate(ctx).allowed

    def test_denies_lower(self, make_principal):
        ctx = AccessContext(principal=make_principal("teacher"))
        decision = RequireRole(Role.ADMIN).evaluate(ctx)
        assert not decision.allowed
        assert decision.reason == "Access denied. Required role: admin, current role: teacher"

    def test_scope_must_match(self, make_principal):
        ctx = AccessContext(principal=make_principal("manager", managed=("t1",)))
        decision = RequireRole(Role.ADMIN, scope=RoleScope.GLOBAL).evaluate(ctx)
        assert not decision.allowed
        assert "Required scope: global" in decision.reason


class TestRequireSystemAdmin:
    @pytest.mark.parametrize("role,allowed", [
        ("super_admin", True),
        ("manager", True),
        ("tenant_admin", False),
    ])
    def test_system_roles_only(self, make_principal, role, allowed):
        ctx = AccessContext(principal=make_principal(role))
        assert RequireSystemAdmin().evaluate(ctx).allowed is allowed


class TestRequirePermission:
    def test_allows_granted_action(self, make_principal):
        ctx = AccessContext(principal=make_principal("admin"))
        assert RequirePermission(Resource.USER, Action.CREATE).evaluate(ctx).allowed

    def test_denies_missing_action(self, make_principal):
        ctx = AccessContext(principal=make_principal("admin"))
        decision = RequirePermission(Resource.USER, Action.DELETE).evaluate(ctx)
        assert not decision.allowed
        assert decision.reason == "Missing permission: delete on user"

    def test_scope_is_respected(self, make_principal):
        ctx = AccessContext(principal=make_principal("teacher"))
        check = RequirePermission(Resource.GRADE, Action.READ, PermissionScope.TENANT)
        assert not check.evaluate(ctx).allowed


class TestRequireAuditAccess:
    def test_tenant_scope_admin_roles(self, make_principal):
        check = RequireAuditAccess(PermissionScope.TENANT)
        assert check.evaluate(AccessContext(principal=make_principal("admin"))).allowed
        assert not check.evaluate(AccessContext(principal=make_principal("teacher"))).allowed

    def test_global_scope_super_admin_only(self, make_principal):
        check = RequireAuditAccess(PermissionScope.GLOBAL)
        assert check.evaluate(AccessContext(principal=make_principal("super_admin"))).allowed
        assert not check.evaluate(AccessContext(principal=make_principal("manager"))).allowed

    def test_own_scope_anyone(self, make_principal):
        check = RequireAuditAccess(PermissionScope.OWN)
        assert check.evaluate(AccessContext(principal=make_principal("student"))).allowed


class TestRequireTenantAccess:
    def test_denial_event(self, make_principal):
        principal = make_principal("manager", tenant="t0", managed=("t1", "t2"))
        ctx = AccessContext(principal=principal, requested_tenant="t3")
        check = RequireTenantAccess()

        decision = check.evaluate(ctx)
        assert not decision.allowed

        event = check.denial_event(ctx, decision)
        assert event.action.value == "tenant_access_violation"
        assert event.details.requested_tenant == "t3"
        assert event.details.managed_tenants == ["t1", "t2"]


class TestUserCreationGuard:
    @pytest.mark.parametrize("creator,role,allowed", [
        ("super_admin", "manager", True),
        ("super_admin", "super_admin", True),
        ("manager", "manager", False),
        ("tenant_admin", "manager", False),
        ("tenant_admin", "super_admin", False),
        ("tenant_admin", "admin", True),
        ("admin", "tenant_admin", False),
        ("admin", "teacher", True),
        ("admin", "admin", False),
        ("tenant_admin", "tenant_admin", False),
        ("manager", "tenant_admin", True),
        ("teacher", "student", True),
    ])
    def test_matrix(self, make_principal, creator, role, allowed):
        ctx = AccessContext(principal=make_principal(creator), target_role=role)
        assert UserCreationGuard().evaluate(ctx).allowed is allowed

    def test_reason_for_manager(self, make_principal):
        ctx = AccessContext(principal=make_principal("tenant_admin"), target_role="manager")
        decision = UserCreationGuard().evaluate(ctx)
        assert decision.reason == "Only super_admin can create managers"

    def test_unknown_role(self, make_principal):
        ctx = AccessContext(principal=make_principal("super_admin"), target_role="janitor")
        assert not UserCreationGuard().evaluate(ctx).allowed


class TestRoleUpdateGuard:
    def test_escalation_denied(self, make_principal):
        ctx = AccessContext(
            principal=make_principal("tenant_admin"),
            target=target("admin"),
            target_role="manager",
        )
        decision = RoleUpdateGuard().evaluate(ctx)
        assert not decision.allowed
        assert decision.reason == "tenant_admin cannot assign role manager"

    def test_other_tenant_denied(self, make_principal):
        ctx = AccessContext(
            principal=make_principal("tenant_admin", tenant="school-A"),
            target=target("teacher", tenant="school-B"),
            target_role="admin",
        )
        decision = RoleUpdateGuard().evaluate(ctx)
        assert decision.reason == "Cannot modify users in other tenants"

    def test_allowed(self, make_principal):
        ctx = AccessContext(
            principal=make_principal("tenant_admin"),
            target=target("teacher"),
            target_role="admin",
        )
        assert RoleUpdateGuard().evaluate(ctx).allowed

    def test_missing_target(self, make_principal):
        ctx = AccessContext(principal=make_principal("super_admin"), target_role="admin")
        assert not RoleUpdateGuard().evaluate(ctx).allowed


class TestManageUserGuard:
    def test_self_deletion_denied(self, make_principal):
        principal = make_principal("tenant_admin")
        me = TargetUser(id=principal.id, role="tenant_admin", tenant="school-A")
        decision = ManageUserGuard().evaluate(AccessContext(principal=principal, target=me))
        assert decision.reason == "You cannot delete your own account"

    def test_self_unlock_allowed(self, make_principal):
        principal = make_principal("tenant_admin")
        me = TargetUser(id=principal.id, role="tenant_admin", tenant="school-A")
        ctx = AccessContext(principal=principal, target=me)
        assert ManageUserGuard("account_unlock").evaluate(ctx).allowed

    def test_system_role_needs_super_admin(self, make_principal):
        ctx = AccessContext(
            principal=make_principal("manager", managed=("school-A",)),
            target=target("manager"),
        )
        decision = ManageUserGuard().evaluate(ctx)
        assert decision.reason == "Only super_admin can manage manager accounts"

    def test_higher_target_denied(self, make_principal):
        ctx = AccessContext(principal=make_principal("admin"), target=target("tenant_admin"))
        decision = ManageUserGuard().evaluate(ctx)
        assert decision.reason == "admin cannot manage users with role tenant_admin"

    def test_denial_event_carries_operation(self, make_principal):
        ctx = AccessContext(principal=make_principal("admin"), target=target("tenant_admin"))
        guard = ManageUserGuard("account_unlock")
        event = guard.denial_event(ctx, guard.evaluate(ctx))
        assert event.details.check == "account_unlock"
        assert event.details.target_role == "tenant_admin"
        assert event.target is not None


class TestAuthorizationService:
    """Running checks through the service audits denials."""

    @pytest.mark.asyncio
    async def test_require_passes(self, make_principal, audit):
        service = AuthorizationService(make_principal("admin"), audit, tenant="school-A")
        await service.require(RequireRole(Role.ADMIN), RequirePermission(Resource.USER, Action.READ))

    @pytest.mark.asyncio
    async def test_first_denial_raises_its_error(self, make_principal, audit):
        service = AuthorizationService(make_principal("teacher"), audit, tenant="school-A")

        with pytest.raises(InsufficientRole) as exc_info:
            await service.require(
                RequireRole(Role.ADMIN),
                RequirePermission(Resource.USER, Action.DELETE),
            )

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "insufficient_role"

    @pytest.mark.asyncio
    async def test_denial_is_audited(self, make_principal, audit, db):
        principal = make_principal("tenant_admin", tenant="school-A")
        service = AuthorizationService(
            principal,
            audit,
            tenant="school-A",
            request_meta=RequestMeta(ip_address="10.0.0.1", user_agent="pytest"),
        )

        with pytest.raises(PermissionDenied):
            await service.require(UserCreationGuard(), target_role="manager")

        entry = (await db.execute(select(AuditLog))).scalar_one()
        assert entry.action == "permission_denied"
        assert entry.severity == "critical"
        assert entry.tenant == "school-A"
        assert entry.actor_id == principal.id
        assert entry.ip_address == "10.0.0.1"
        assert entry.details["check"] == "user_creation"
        assert entry.details["targetRole"] == "manager"

    @pytest.mark.asyncio
    async def test_role_transition_error(self, make_principal, audit):
        service = AuthorizationService(make_principal("admin"), audit, tenant="school-A")
        with pytest.raises(RoleTransitionInvalid):
            await service.require(
                RoleUpdateGuard(),
                target=target("teacher"),
                target_role="tenant_admin",
            )

    @pytest.mark.asyncio
    async def test_tenant_violation(self, make_principal, audit, db):
        principal = make_principal("admin", tenant="school-A")
        service = AuthorizationService(
            principal,
            audit,
            tenant=None,
            requested_tenant="school-B",
        )

        with pytest.raises(TenantAccessDenied):
            await service.require(RequireTenantAccess())

        entry = (await db.execute(select(AuditLog))).scalar_one()
        assert entry.action == "tenant_access_violation"
        assert entry.severity == "critical"
        assert entry.tenant == "school-A"

    @pytest.mark.asyncio
    async def test_can_does_not_audit(self, make_principal, audit, db):
        service = AuthorizationService(make_principal("teacher"), audit)
        assert not service.can(RequireRole(Role.ADMIN))
        assert (await db.execute(select(AuditLog))).first() is None

    def test_check_uses_overrides(self, make_principal, audit):
        service = AuthorizationService(make_principal("admin"), audit)
        assert service.check(UserCreationGuard(), target_role="teacher").allowed
        assert not service.check(UserCreationGuard(), target_role="tenant_admin").allowed
