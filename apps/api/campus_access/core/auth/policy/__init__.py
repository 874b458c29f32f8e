"""
Composable access checks.

- RequireRole: minimum role level (and optional role scope)
- RequireSystemAdmin: super_admin or manager
- RequirePermission: resource/action/scope grant
- RequireAuditAccess: breadth of audit entries the caller may read
- RequireTenantAccess: requested tenant within the caller's scope
- UserCreationGuard / RoleUpdateGuard / ManageUserGuard: role assignment
  and account management
"""

from .checks import (
    ManageUserGuard,
    RequireAuditAccess,
    RequirePermission,
    RequireRole,
    RequireSystemAdmin,
    RequireTenantAccess,
    RoleUpdateGuard,
    UserCreationGuard,
)

__all__ = [
    "ManageUserGuard",
    "RequireAuditAccess",
    "RequirePermission",
    "RequireRole",
    "RequireSystemAdmin",
    "RequireTenantAccess",
    "RoleUpdateGuard",
    "UserCreationGuard",
]
