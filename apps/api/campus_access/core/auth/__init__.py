"""
Access-control core.

    roles        role hierarchy (levels, management and transition rules)
    permissions  resource/action/scope grants and the default catalog
    principal    the authenticated caller for one request
    tenancy      tenant scope resolution
    policy       composable access checks
    service      runs checks and audits denials
    dependencies FastAPI wiring (authentication gate, ``authorize``)

``dependencies`` and ``service`` are imported directly by the API layer;
they are not re-exported here so the pure modules stay free of database
imports.
"""

from .interfaces import AccessCheck, AccessContext, PolicyDecision, TargetUser
from .permissions import (
    AccessCatalog,
    Action,
    Permission,
    PermissionScope,
    Resource,
    default_catalog,
    has_permission,
)
from .principal import Principal
from .roles import Role, RoleHierarchy, RoleScope, SYSTEM_ROLES, role_hierarchy
from .tenancy import TenantResolution, can_access_tenant, resolve_tenant

__all__ = [
    "AccessCheck",
    "AccessContext",
    "PolicyDecision",
    "TargetUser",
    "AccessCatalog",
    "Action",
    "Permission",
    "PermissionScope",
    "Resource",
    "default_catalog",
    "has_permission",
    "Principal",
    "Role",
    "RoleHierarchy",
    "RoleScope",
    "SYSTEM_ROLES",
    "role_hierarchy",
    "TenantResolution",
    "can_access_tenant",
    "resolve_tenant",
]
