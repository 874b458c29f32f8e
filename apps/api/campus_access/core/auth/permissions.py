"""
Permission model and the default per-role catalog.

A permission grants a set of actions on one resource at one scope.
``manage`` subsumes every other action on its resource, and a grant on
the ``system`` resource applies to every resource.

The catalog is an immutable value built once at startup and injected
where needed (see ``get_access_catalog`` in dependencies).
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, field_validator

from .roles import Role, RoleHierarchy, parse_role, role_hierarchy


class Resource(str, Enum):
    USER = "user"
    STUDENT = "student"
    TEACHER = "teacher"
    CLASS = "class"
    SUBJECT = "subject"
    ATTENDANCE = "attendance"
    EXAM = "exam"
    GRADE = "grade"
    TIMETABLE = "timetable"
    FEE = "fee"
    TENANT = "tenant"
    DASHBOARD = "dashboard"
    REPORT = "report"
    AUDIT = "audit"
    SYSTEM = "system"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"
    VIEW = "view"
    EXPORT = "export"


class PermissionScope(str, Enum):
    GLOBAL = "global"
    TENANT = "tenant"
    OWN = "own"


class Permission(BaseModel):
    """A single grant: resource x actions x scope (+ optional conditions)."""

    model_config = ConfigDict(frozen=True)

    resource: Resource
    actions: frozenset[Action]
    scope: PermissionScope
    conditions: dict[str, Any] | None = None

    @field_validator("actions")
    @classmethod
    def validate_actions(cls, v: frozenset[Action]) -> frozenset[Action]:
        if not v:
            raise ValueError("actions must not be empty")
        return v

    def __hash__(self) -> int:
        return hash((self.resource, self.actions, self.scope))

    def grants(
        self,
        resource: Resource,
        action: Action,
        scope: PermissionScope | None = None,
    ) -> bool:
        """Whether this grant covers ``action`` on ``resource`` at ``scope``."""
        resource_ok = self.resource in (resource, Resource.SYSTEM)
        action_ok = action in self.actions or Action.MANAGE in self.actions
        scope_ok = scope is None or self.scope in (scope, PermissionScope.GLOBAL)
        return resource_ok and action_ok and scope_ok

    def to_dict(self) -> dict[str, Any]:
        data = {
            "resource": self.resource.value,
            "actions": sorted(a.value for a in self.actions),
            "scope": self.scope.value,
        }
        if self.conditions:
            data["conditions"] = dict(self.conditions)
        return data


def has_permission(
    permissions: Iterable[Permission],
    resource: Resource,
    action: Action,
    scope: PermissionScope | None = None,
) -> bool:
    return any(p.grants(resource, action, scope) for p in permissions)


def _grant(resource: Resource, actions: str, scope: PermissionScope) -> Permission:
    return Permission(
        resource=resource,
        actions=frozenset(Action(a) for a in actions.split(",")),
        scope=scope,
    )


_G, _T, _O = PermissionScope.GLOBAL, PermissionScope.TENANT, PermissionScope.OWN
_CRUD = "create,read,update,delete"

DEFAULT_PERMISSIONS: Mapping[Role, tuple[Permission, ...]] = MappingProxyType({
    Role.SUPER_ADMIN: (
        _grant(Resource.SYSTEM, _CRUD + ",manage", _G),
        _grant(Resource.USER, _CRUD, _G),
        _grant(Resource.TENANT, _CRUD, _G),
        _grant(Resource.AUDIT, "read,export", _G),
    ),
    Role.MANAGER: (
        _grant(Resource.TENANT, "read,update", _T),
        _grant(Resource.USER, _CRUD, _T),
        _grant(Resource.REPORT, "read,export", _T),
        _grant(Resource.AUDIT, "read", _T),
    ),
    Role.TENANT_ADMIN: (
        _grant(Resource.USER, "create,read,update", _T),
        _grant(Resource.STUDENT, _CRUD, _T),
        _grant(Resource.TEACHER, _CRUD, _T),
        _grant(Resource.CLASS, _CRUD, _T),
        _grant(Resource.SUBJECT, _CRUD, _T),
        _grant(Resource.REPORT, "read,export", _T),
        _grant(Resource.FEE, _CRUD, _T),
    ),
    Role.ADMIN: (
        _grant(Resource.USER, "create,read,update", _T),
        _grant(Resource.STUDENT, _CRUD, _T),
        _grant(Resource.TEACHER, "create,read,update", _T),
        _grant(Resource.CLASS, _CRUD, _T),
        _grant(Resource.REPORT, "read,export", _T),
    ),
    Role.TEACHER: (
        _grant(Resource.CLASS, "read", _O),
        _grant(Resource.ATTENDANCE, "create,read,update", _O),
        _grant(Resource.GRADE, "create,read,update", _O),
        _grant(Resource.STUDENT, "read", _O),
        _grant(Resource.EXAM, "create,read,update", _O),
    ),
    Role.STUDENT: (
        _grant(Resource.USER, "read,update", _O),
        _grant(Resource.GRADE, "read", _O),
        _grant(Resource.ATTENDANCE, "read", _O),
        _grant(Resource.TIMETABLE, "read", _O),
        _grant(Resource.FEE, "read", _O),
    ),
    Role.PARENT: (
        _grant(Resource.STUDENT, "read", _O),
        _grant(Resource.GRADE, "read", _O),
        _grant(Resource.ATTENDANCE, "read", _O),
        _grant(Resource.FEE, "read", _O),
    ),
})


@dataclass(frozen=True)
class AccessCatalog:
    """
    Role levels plus default grants, loaded once per process.

    Nothing mutates a catalog after construction; tests build their own
    instances when they need a different table.
    """

    hierarchy: RoleHierarchy = field(default_factory=lambda: role_hierarchy)
    defaults: Mapping[Role, tuple[Permission, ...]] = field(
        default_factory=lambda: DEFAULT_PERMISSIONS,
    )

    def defaults_for(self, role: Role | str) -> tuple[Permission, ...]:
        parsed = parse_role(role)
        if parsed is None:
            return ()
        return self.defaults.get(parsed, ())

    def resolve(
        self,
        role: Role | str,
        overrides: Sequence[Mapping[str, Any]] | None = None,
    ) -> tuple[Permission, ...]:
        """
        Permissions for a principal: role defaults followed by any
        per-user grants stored on the user record.
        """
        resolved = list(self.defaults_for(role))
        for raw in overrides or ():
            grant = Permission.model_validate(raw)
            if grant not in resolved:
                resolved.append(grant)
        return tuple(resolved)


default_catalog = AccessCatalog()
