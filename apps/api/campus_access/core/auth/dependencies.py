"""
FastAPI dependencies for authentication and authorization.

Usage:
    from campus_access.core.auth.dependencies import Authorize, CurrentPrincipal, authorize

    @router.get("/me")
    async def handler(principal: CurrentPrincipal):
        ...

    @router.get("/logs", dependencies=[Depends(authorize(RequireRole(Role.ADMIN)))])
    async def handler(...):
        ...

    @router.post("/users")
    async def handler(data: UserCreate, auth: Authorize):
        await auth.require(UserCreationGuard(), target_role=data.role)
"""

import asyncio
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, Query, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_access.api.dependencies.database import get_db
from campus_access.core.exceptions import ServiceUnavailable, Unauthenticated
from campus_access.models.database import async_session_factory
from campus_access.services.audit import AuditTrail
from campus_access.services.user import UserService
from campus_access.utils.context import set_context_principal

from .interfaces import AccessCheck
from .permissions import AccessCatalog, default_catalog
from .policy.checks import RequireTenantAccess
from .principal import Principal
from .service import AuthorizationService, RequestMeta
from .tenancy import first_requested, resolve_tenant
from .tokens import TokenExpired, TokenInvalid, decode_access_token, password_changed_after


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ============================================================
# COMPONENT FACTORIES
# ============================================================

@lru_cache
def get_access_catalog() -> AccessCatalog:
    """Role levels and default grants, loaded once per process."""
    return default_catalog


def get_audit_session_factory() -> async_sessionmaker:
    """Session factory for best-effort audit writes."""
    return async_session_factory


async def get_audit_trail(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_audit_session_factory),
) -> AuditTrail:
    return AuditTrail(db, session_factory=session_factory)


def get_request_meta(request: Request) -> RequestMeta:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return RequestMeta(
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )


# ============================================================
# AUTHENTICATION GATE
# ============================================================

async def get_current_principal(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    catalog: AccessCatalog = Depends(get_access_catalog),
) -> Principal:
    """
    Verify the bearer token and build the caller's principal.

    The user record is re-read on every request so deactivation, role
    changes and password changes take effect immediately.

    Raises:
        Unauthenticated 401: Missing, invalid, expired or stale token,
            or the user is gone or deactivated
        ServiceUnavailable 503: The user store timed out or is unreachable
    """
    if not token:
        raise Unauthenticated()

    try:
        claims = decode_access_token(token)
    except TokenExpired:
        raise Unauthenticated("Your token has expired! Please log in again.")
    except TokenInvalid:
        raise Unauthenticated("Invalid token. Please log in again!")

    try:
        user = await UserService(db).get_by_id(claims.user_id)
    except (OperationalError, asyncio.TimeoutError) as exc:
        raise ServiceUnavailable() from exc

    if not user:
        raise Unauthenticated("The user belonging to this token does no longer exist.")

    if not user.is_active:
        raise Unauthenticated("Your account has been deactivated.")

    if password_changed_after(user.password_changed_at, claims):
        raise Unauthenticated("User recently changed password! Please log in again.")

    principal = Principal.from_user(user, catalog)
    request.state.principal = principal
    set_context_principal(str(principal.id), principal.home_tenant)
    return principal


def get_requested_tenant(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
    tenant: Optional[str] = Query(None, description="Tenant to act on"),
) -> Optional[str]:
    """Tenant named by the request: header first, then query parameter."""
    return first_requested(x_tenant_id, tenant)


async def get_authorization_service(
    principal: Principal = Depends(get_current_principal),
    requested_tenant: Optional[str] = Depends(get_requested_tenant),
    audit: AuditTrail = Depends(get_audit_trail),
    meta: RequestMeta = Depends(get_request_meta),
) -> AuthorizationService:
    resolution = resolve_tenant(principal, requested_tenant)
    return AuthorizationService(
        principal=principal,
        audit=audit,
        tenant=resolution.tenant,
        requested_tenant=requested_tenant,
        request_meta=meta,
    )


async def get_effective_tenant(
    request: Request,
    auth: AuthorizationService = Depends(get_authorization_service),
) -> str:
    """
    Tenant the request acts on.

    Raises TenantAccessDenied (and records a tenant_access_violation)
    when the requested tenant falls outside the caller's scope.
    """
    await auth.require(RequireTenantAccess())
    request.state.tenant = auth.tenant
    set_context_principal(str(auth.principal.id), auth.tenant)
    return auth.tenant


def authorize(*checks: AccessCheck):
    """
    Dependency factory running ``checks`` in order.

    Usage:
        @router.delete("/cleanup", dependencies=[Depends(authorize(RequireSystemAdmin()))])
    """
    async def dependency(
        auth: AuthorizationService = Depends(get_authorization_service),
    ) -> AuthorizationService:
        await auth.require(*checks)
        return auth

    return dependency


# ============================================================
# TYPE ALIASES (for cleaner route signatures)
# ============================================================

CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
EffectiveTenant = Annotated[str, Depends(get_effective_tenant)]
Authorize = Annotated[AuthorizationService, Depends(get_authorization_service)]
AuditTrailDep = Annotated[AuditTrail, Depends(get_audit_trail)]
