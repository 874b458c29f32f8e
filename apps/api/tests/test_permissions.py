"""
Tests for permissions and the default catalog.
"""

import pytest
from pydantic import ValidationError

from campus_access.core.auth.permissions import (
    AccessCatalog,
    Action,
    Permission,
    PermissionScope,
    Resource,
    default_catalog,
    has_permission,
)
from campus_access.core.auth.roles import Role


def grant(resource, actions, scope=PermissionScope.TENANT):
    return Permission(resource=resource, actions=frozenset(actions), scope=scope)


class TestPermission:
    def test_exact_match(self):
        p = grant(Resource.USER, {Action.READ})
        assert p.grants(Resource.USER, Action.READ)
        assert not p.grants(Resource.USER, Action.DELETE)
        assert not p.grants(Resource.CLASS, Action.READ)

    def test_manage_covers_every_action(self):
        p = grant(Resource.FEE, {Action.MANAGE})
        assert p.grants(Resource.FEE, Action.DELETE)
        assert p.grants(Resource.FEE, Action.EXPORT)

    def test_system_resource_covers_every_resource(self):
        p = grant(Resource.SYSTEM, {Action.READ})
        assert p.grants(Resource.GRADE, Action.READ)
        assert not p.grants(Resource.GRADE, Action.UPDATE)

    def test_global_scope_satisfies_narrower(self):
        p = grant(Resource.USER, {Action.READ}, PermissionScope.GLOBAL)
        assert p.grants(Resource.USER, Action.READ, PermissionScope.TENANT)
        assert p.grants(Resource.USER, Action.READ, PermissionScope.OWN)

    def test_narrow_scope_does_not_satisfy_global(self):
        p = grant(Resource.USER, {Action.READ}, PermissionScope.OWN)
        assert p.grants(Resource.USER, Action.READ)
        assert not p.grants(Resource.USER, Action.READ, PermissionScope.GLOBAL)

    def test_empty_actions_rejected(self):
        with pytest.raises(ValidationError):
            Permission(resource=Resource.USER, actions=frozenset(), scope=PermissionScope.OWN)

    def test_to_dict(self):
        p = grant(Resource.AUDIT, {Action.EXPORT, Action.READ}, PermissionScope.GLOBAL)
        assert p.to_dict() == {
            "resource": "audit",
            "actions": ["export", "read"],
            "scope": "global",
        }


class TestDefaultCatalog:
    def test_super_admin_reaches_everything(self):
        perms = default_catalog.defaults_for(Role.SUPER_ADMIN)
        assert has_permission(perms, Resource.GRADE, Action.DELETE, PermissionScope.GLOBAL)

    def test_admin_cannot_delete_users(self):
        perms = default_catalog.defaults_for("admin")
        assert has_permission(perms, Resource.USER, Action.CREATE)
        assert not has_permission(perms, Resource.USER, Action.DELETE)

    def test_teacher_grants_are_own_scope(self):
        perms = default_catalog.defaults_for("teacher")
        assert has_permission(perms, Resource.GRADE, Action.UPDATE, PermissionScope.OWN)
        assert not has_permission(perms, Resource.GRADE, Action.UPDATE, PermissionScope.TENANT)

    def test_unknown_role_has_nothing(self):
        assert default_catalog.defaults_for("janitor") == ()

    def test_every_role_has_defaults(self):
        for role in Role:
            assert default_catalog.defaults_for(role)

    def test_resolve_appends_overrides(self):
        overrides = [{"resource": "report", "actions": ["read"], "scope": "own"}]
        perms = default_catalog.resolve("teacher", overrides)
        assert has_permission(perms, Resource.REPORT, Action.READ)
        assert len(perms) == len(default_catalog.defaults_for("teacher")) + 1

    def test_resolve_skips_duplicate_override(self):
        overrides = [{"resource": "class", "actions": ["read"], "scope": "own"}]
        perms = default_catalog.resolve("teacher", overrides)
        assert perms == default_catalog.defaults_for("teacher")

    def test_custom_catalog(self):
        catalog = AccessCatalog(defaults={Role.STUDENT: (grant(Resource.EXAM, {Action.VIEW}),)})
        assert has_permission(catalog.resolve("student"), Resource.EXAM, Action.VIEW)
        assert catalog.resolve("teacher") == ()
