"""
Tenant scope resolution.

Decides which tenant a request acts on, given the tenant the caller asked
for (header, query parameter or body field) and the caller's scope:

    global / super_admin  any tenant; defaults to the home tenant
    limited               managed tenants plus the home tenant;
                          defaults to the first managed tenant
    tenant                the home tenant only
"""

from dataclasses import dataclass

from campus_access.core.exceptions import TenantAccessDenied

from .principal import Principal
from .roles import Role, RoleScope


@dataclass(frozen=True)
class TenantResolution:
    allowed: bool
    tenant: str | None = None
    reason: str | None = None


def permitted_tenants(principal: Principal) -> frozenset[str] | None:
    """Tenants the principal may act on, or None when unrestricted."""
    if principal.role == Role.SUPER_ADMIN.value or principal.role_scope == RoleScope.GLOBAL:
        return None
    if principal.role_scope == RoleScope.LIMITED:
        return frozenset(principal.managed_tenants) | {principal.home_tenant}
    if principal.role_scope == RoleScope.TENANT:
        return frozenset({principal.home_tenant})
    return frozenset()


def default_tenant(principal: Principal) -> str:
    if principal.role_scope == RoleScope.LIMITED and principal.managed_tenants:
        return principal.managed_tenants[0]
    return principal.home_tenant


def resolve_tenant(principal: Principal, requested: str | None) -> TenantResolution:
    """Resolve the effective tenant for ``principal`` asking for ``requested``."""
    requested = requested or None
    allowed = permitted_tenants(principal)

    if allowed is None:
        return TenantResolution(True, requested or principal.home_tenant)

    if not allowed:
        return TenantResolution(
            False,
            reason="Role scope is missing or unrecognized and grants no tenant access",
        )

    if requested is None:
        return TenantResolution(True, default_tenant(principal))

    if requested in allowed:
        return TenantResolution(True, requested)

    return TenantResolution(False, reason=f"Access denied to tenant {requested}")


def can_access_tenant(principal: Principal, tenant: str | None) -> bool:
    if tenant is None:
        return True
    return resolve_tenant(principal, tenant).allowed


def first_requested(*candidates: str | None) -> str | None:
    """First non-empty tenant identifier among the request sources."""
    return next((c for c in candidates if c), None)


def narrow_tenant_filter(principal: Principal, requested: str | None) -> str | None:
    """
    Tenant filter a read query must use for ``principal``.

    Unrestricted callers keep whatever they asked for (None means all
    tenants). Everyone else gets the requested tenant when their scope
    covers it, or their default tenant when they named none.

    Raises:
        TenantAccessDenied: ``requested`` is outside the caller's scope.
            Routes resolve the effective tenant first, which records the
            violation, so this only fires for direct callers.
    """
    resolution = resolve_tenant(principal, requested)
    if not resolution.allowed:
        raise TenantAccessDenied(resolution.reason)
    if permitted_tenants(principal) is None:
        return requested
    return resolution.tenant
