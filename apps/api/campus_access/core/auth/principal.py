"""
Identity principal: the authenticated caller for one request.

Built fresh from the stored user record on every request and never
persisted.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from .permissions import (
    AccessCatalog,
    Action,
    Permission,
    PermissionScope,
    Resource,
    default_catalog,
    has_permission,
)
from .roles import RoleScope

if TYPE_CHECKING:
    from campus_access.models.user import User


def _parse_scope(value: str | None) -> RoleScope | None:
    try:
        return RoleScope(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Principal:
    id: UUID
    role: str
    role_level: int
    home_tenant: str
    role_scope: RoleScope | None
    managed_tenants: tuple[str, ...] = ()
    permissions: tuple[Permission, ...] = ()
    email: str | None = None
    name: str | None = field(default=None, compare=False)

    @classmethod
    def from_user(
        cls,
        user: "User",
        catalog: AccessCatalog = default_catalog,
    ) -> "Principal":
        """
        Materialize a principal from a user record.

        An unrecognized stored role scope becomes None, which tenant
        resolution treats as no access.
        """
        return cls(
            id=user.id,
            role=user.role,
            role_level=catalog.hierarchy.level_of(user.role),
            home_tenant=user.tenant,
            role_scope=_parse_scope(user.role_scope),
            managed_tenants=tuple(user.managed_tenants or ()),
            permissions=catalog.resolve(user.role, user.permission_overrides),
            email=user.email,
            name=user.full_name,
        )

    def can(
        self,
        resource: Resource,
        action: Action,
        scope: PermissionScope | None = None,
    ) -> bool:
        return has_permission(self.permissions, resource, action, scope)
