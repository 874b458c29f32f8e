"""
Role hierarchy.

Roles are a fixed catalog ordered by integer level. Levels may tie
(student and parent are both 0). ``can_manage`` is the single comparison
rule used wherever two roles are weighed against each other; the only
stricter rules are the hard blocks on creating or assigning the two
system tiers (super_admin, manager).

Usage:
    from campus_access.core.auth.roles import Role, role_hierarchy

    role_hierarchy.can_manage(Role.ADMIN, Role.TEACHER)  # True
    role_hierarchy.validate_transition("admin", "teacher", "manager")
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Role(str, Enum):
    """Role labels."""

    STUDENT = "student"
    PARENT = "parent"
    TEACHER = "teacher"
    ADMIN = "admin"
    TENANT_ADMIN = "tenant_admin"
    MANAGER = "manager"
    SUPER_ADMIN = "super_admin"


class RoleScope(str, Enum):
    """Breadth of tenants a principal may act on."""

    GLOBAL = "global"
    LIMITED = "limited"
    TENANT = "tenant"


class RoleComparison(str, Enum):
    HIGHER = "higher"
    LOWER = "lower"
    EQUAL = "equal"


DEFAULT_ROLE_LEVELS: Mapping[Role, int] = MappingProxyType({
    Role.STUDENT: 0,
    Role.PARENT: 0,
    Role.TEACHER: 1,
    Role.ADMIN: 2,
    Role.TENANT_ADMIN: 3,
    Role.MANAGER: 4,
    Role.SUPER_ADMIN: 5,
})

# Roles only a super_admin may create or assign
SYSTEM_ROLES = frozenset({Role.SUPER_ADMIN, Role.MANAGER})

ROLE_DISPLAY_NAMES: Mapping[Role, str] = MappingProxyType({
    Role.SUPER_ADMIN: "Super Administrator",
    Role.MANAGER: "Manager",
    Role.TENANT_ADMIN: "Tenant Administrator",
    Role.ADMIN: "Administrator",
    Role.TEACHER: "Teacher",
    Role.STUDENT: "Student",
    Role.PARENT: "Parent",
})

ROLE_DESCRIPTIONS: Mapping[Role, str] = MappingProxyType({
    Role.SUPER_ADMIN: "Full system access across all tenants",
    Role.MANAGER: "Manages a set of assigned tenants",
    Role.TENANT_ADMIN: "Full administrative access within one tenant",
    Role.ADMIN: "Administrative access within one tenant",
    Role.TEACHER: "Manages classes, attendance, grades and exams",
    Role.STUDENT: "Access to own records",
    Role.PARENT: "Access to children's records",
})


def parse_role(role: "Role | str | None") -> Role | None:
    """Coerce a label to ``Role``. Unknown labels return None."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


@dataclass(frozen=True)
class TransitionResult:
    valid: bool
    reason: str | None = None


@dataclass(frozen=True)
class RoleHierarchy:
    """
    Pure functions over the role levels table.

    Unknown role labels are treated as level 0 rather than raising, so a
    corrupt or stale role string always falls to the lowest privilege.
    """

    levels: Mapping[Role, int] = field(default_factory=lambda: DEFAULT_ROLE_LEVELS)

    def level_of(self, role: Role | str | None) -> int:
        parsed = parse_role(role)
        if parsed is None:
            return 0
        return self.levels.get(parsed, 0)

    def compare(self, a: Role | str, b: Role | str) -> RoleComparison:
        level_a = self.level_of(a)
        level_b = self.level_of(b)
        if level_a > level_b:
            return RoleComparison.HIGHER
        if level_a < level_b:
            return RoleComparison.LOWER
        return RoleComparison.EQUAL

    def can_manage(self, manager_role: Role | str, target_role: Role | str) -> bool:
        return self.level_of(manager_role) >= self.level_of(target_role)

    def lower_roles(self, role: Role | str) -> list[Role]:
        """Roles strictly below ``role``."""
        level = self.level_of(role)
        return [r for r in self.levels if self.levels[r] < level]

    def higher_roles(self, role: Role | str) -> list[Role]:
        """Roles strictly above ``role``."""
        level = self.level_of(role)
        return [r for r in self.levels if self.levels[r] > level]

    def max_creatable_level(self, creator_role: Role | str) -> int:
        creator = parse_role(creator_role)
        if creator == Role.SUPER_ADMIN:
            return self.level_of(Role.MANAGER)
        if creator == Role.MANAGER:
            return self.level_of(Role.TENANT_ADMIN)
        return max(0, self.level_of(creator_role) - 1)

    def creatable_roles(self, creator_role: Role | str) -> list[Role]:
        """
        Roles ``creator_role`` may create, highest level first.

        A super_admin never creates another super_admin through this path,
        and a manager never creates another manager.
        """
        creator = parse_role(creator_role)
        ceiling = self.max_creatable_level(creator_role)
        roles = [
            role for role, level in self.levels.items()
            if level <= ceiling and not (role in SYSTEM_ROLES and role == creator)
        ]
        return sorted(roles, key=lambda r: self.levels[r], reverse=True)

    def validate_transition(
        self,
        updater_role: Role | str,
        current_role: Role | str,
        new_role: Role | str,
    ) -> TransitionResult:
        """Check whether ``updater_role`` may move a user from ``current_role`` to ``new_role``."""
        updater = _label(updater_role)

        if not self.can_manage(updater_role, current_role):
            return TransitionResult(
                False,
                f"{updater} cannot manage users with role {_label(current_role)}",
            )

        if not self.can_manage(updater_role, new_role):
            return TransitionResult(False, f"{updater} cannot assign role {_label(new_role)}")

        new = parse_role(new_role)
        if new == Role.SUPER_ADMIN and parse_role(updater_role) != Role.SUPER_ADMIN:
            return TransitionResult(False, "Only super_admin can create other super_admins")

        if new == Role.MANAGER and parse_role(updater_role) != Role.SUPER_ADMIN:
            return TransitionResult(False, "Only super_admin can create managers")

        return TransitionResult(True)

    def is_administrative(self, role: Role | str) -> bool:
        return self.level_of(role) >= self.level_of(Role.ADMIN)

    def is_system_role(self, role: Role | str) -> bool:
        return parse_role(role) in SYSTEM_ROLES

    def scope_for_role(self, role: Role | str) -> RoleScope:
        """Default tenant scope granted to a role."""
        parsed = parse_role(role)
        if parsed == Role.SUPER_ADMIN:
            return RoleScope.GLOBAL
        if parsed == Role.MANAGER:
            return RoleScope.LIMITED
        return RoleScope.TENANT


def display_name(role: Role | str) -> str:
    parsed = parse_role(role)
    return ROLE_DISPLAY_NAMES[parsed] if parsed else str(role)


def description(role: Role | str) -> str:
    parsed = parse_role(role)
    return ROLE_DESCRIPTIONS[parsed] if parsed else "Unknown role"


def _label(role: Role | str | None) -> str:
    return role.value if isinstance(role, Role) else str(role)


role_hierarchy = RoleHierarchy()
