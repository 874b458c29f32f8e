"""
User and role management routes.
"""

from fastapi import APIRouter, Depends, status

from campus_access.api.dependencies.services import UserServiceDep
from campus_access.core.auth.dependencies import (
    Authorize,
    EffectiveTenant,
    authorize,
    get_effective_tenant,
    get_request_meta,
)
from campus_access.core.auth.interfaces import TargetUser
from campus_access.core.auth.permissions import Action, Resource
from campus_access.core.auth.policy.checks import (
    ManageUserGuard,
    RequirePermission,
    RequireRole,
    RequireTenantAccess,
    RoleUpdateGuard,
    UserCreationGuard,
)
from campus_access.core.auth.roles import (
    Role,
    RoleScope,
    description,
    display_name,
    role_hierarchy,
)
from campus_access.core.auth.service import RequestMeta
from campus_access.core.exceptions import InvalidRequest
from campus_access.schemas.user import (
    RoleHierarchyResponse,
    RoleInfo,
    RoleUpdate,
    UserCreate,
    UserResponse,
)
from campus_access.services.auth import hash_password

router = APIRouter()

require_admin = authorize(RequireRole(Role.ADMIN))


def _role_info(role: Role) -> RoleInfo:
    return RoleInfo(
        role=role,
        level=role_hierarchy.level_of(role),
        display_name=display_name(role),
        description=description(role),
        scope=role_hierarchy.scope_for_role(role).value,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    auth: Authorize,
    tenant: EffectiveTenant,
    user_service: UserServiceDep,
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Create a user with a role.

    A global super_admin must name the tenant. Everyone else defaults to
    the request's effective tenant and may only place users in tenants
    their scope covers.
    """
    principal = auth.principal
    await auth.require(
        RequireRole(Role.ADMIN),
        UserCreationGuard(),
        RequirePermission(Resource.USER, Action.CREATE),
        target_role=data.role.value,
    )

    assigned = data.tenant
    if not assigned:
        if principal.role == Role.SUPER_ADMIN.value and principal.role_scope == RoleScope.GLOBAL:
            raise InvalidRequest("Tenant must be specified for user creation")
        assigned = tenant

    await auth.require(RequireTenantAccess(), requested_tenant=assigned)

    user = await user_service.create_user(
        data,
        hash_password(data.password),
        creator=principal,
        tenant=assigned,
        meta=meta,
    )
    return UserResponse.model_validate(user)


@router.patch(
    "/{user_id}/role",
    response_model=UserResponse,
    dependencies=[Depends(require_admin), Depends(get_effective_tenant)],
)
async def update_user_role(
    user_id: str,
    data: RoleUpdate,
    auth: Authorize,
    user_service: UserServiceDep,
    meta: RequestMeta = Depends(get_request_meta),
):
    """Change a user's role. Escalation to manager or super_admin needs a super_admin."""
    target = await user_service.get_target(user_id)

    await auth.require(
        RoleUpdateGuard(),
        target=TargetUser.from_user(target),
        target_role=data.role.value,
    )

    user = await user_service.update_role(
        target,
        data.role.value,
        updater=auth.principal,
        tenant=target.tenant,
        meta=meta,
    )
    return UserResponse.model_validate(user)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin), Depends(get_effective_tenant)],
)
async def delete_user(
    user_id: str,
    auth: Authorize,
    user_service: UserServiceDep,
    meta: RequestMeta = Depends(get_request_meta),
):
    """Delete a user. Past audit entries keep referring to it."""
    target = await user_service.get_target(user_id)

    await auth.require(
        ManageUserGuard("user_deletion"),
        RequirePermission(Resource.USER, Action.DELETE),
        target=TargetUser.from_user(target),
    )

    await user_service.delete_user(
        target,
        actor=auth.principal,
        tenant=target.tenant,
        meta=meta,
    )


@router.post(
    "/{user_id}/unlock",
    response_model=UserResponse,
    dependencies=[Depends(require_admin), Depends(get_effective_tenant)],
)
async def unlock_user(
    user_id: str,
    auth: Authorize,
    user_service: UserServiceDep,
    meta: RequestMeta = Depends(get_request_meta),
):
    """Clear a login lockout."""
    target = await user_service.get_target(user_id)

    await auth.require(
        ManageUserGuard("account_unlock"),
        target=TargetUser.from_user(target),
    )

    user = await user_service.unlock_account(
        target,
        actor=auth.principal,
        tenant=target.tenant,
        meta=meta,
    )
    return UserResponse.model_validate(user)


@router.get(
    "/roles/creatable",
    response_model=list[RoleInfo],
    dependencies=[Depends(require_admin)],
)
async def list_creatable_roles(auth: Authorize):
    """Roles the caller may create, highest first."""
    return [
        _role_info(role)
        for role in role_hierarchy.creatable_roles(auth.principal.role)
        if auth.can(UserCreationGuard(), target_role=role.value)
    ]


@router.get("/roles", response_model=RoleHierarchyResponse)
async def get_role_hierarchy(auth: Authorize):
    """The full role catalog, highest level first."""
    roles = sorted(Role, key=role_hierarchy.level_of, reverse=True)
    return RoleHierarchyResponse(
        roles=[_role_info(role) for role in roles],
        current_role=auth.principal.role,
        current_level=auth.principal.role_level,
    )


@router.get(
    "/created-by-me",
    response_model=list[UserResponse],
    dependencies=[Depends(require_admin)],
)
async def list_created_users(auth: Authorize, user_service: UserServiceDep):
    """Users the caller created."""
    users = await user_service.list_created_by(auth.principal.id)
    return [UserResponse.model_validate(u) for u in users]
