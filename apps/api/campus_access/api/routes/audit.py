"""
Audit trail API routes.

Every handler narrows the tenant filter from the caller's scope before
touching the trail: tenant-scoped callers only ever see their home
tenant, limited callers their managed tenants, and a super_admin sees
everything unless it names a tenant.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from campus_access.api.dependencies.services import UserServiceDep
from campus_access.core.auth.dependencies import (
    AuditTrailDep,
    Authorize,
    EffectiveTenant,
    authorize,
    get_effective_tenant,
    get_request_meta,
    get_requested_tenant,
)
from campus_access.core.auth.permissions import PermissionScope
from campus_access.core.auth.policy.checks import (
    RequireAuditAccess,
    RequireRole,
    RequireSystemAdmin,
)
from campus_access.core.auth.roles import Role
from campus_access.core.auth.service import RequestMeta
from campus_access.core.auth.tenancy import narrow_tenant_filter
from campus_access.core.config import settings
from campus_access.schemas.audit_log import (
    AuditAction,
    AuditEvent,
    AuditLogFilter,
    AuditLogResponse,
    AuditResource,
    AuditStats,
    AuditSubject,
    AuditTrailPage,
    CleanupResult,
    CustomDetails,
    CustomEventCreate,
    Severity,
)
from campus_access.services.audit import to_response_dict
from campus_access.utils.timezone import utc_now

router = APIRouter()

tenant_audit_reader = authorize(
    RequireRole(Role.ADMIN),
    RequireAuditAccess(PermissionScope.TENANT),
)


def get_audit_filters(
    auth: Authorize,
    requested_tenant: Optional[str] = Depends(get_requested_tenant),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    actor_id: Optional[UUID] = Query(None, alias="actor"),
    target_id: Optional[UUID] = Query(None, alias="target"),
    action: Optional[AuditAction] = Query(None),
    resource: Optional[AuditResource] = Query(None),
    severity: Optional[Severity] = Query(None),
) -> AuditLogFilter:
    """Query-string filters with the tenant narrowed to the caller's scope."""
    return AuditLogFilter(
        start_date=start_date,
        end_date=end_date,
        actor_id=actor_id,
        target_id=target_id,
        action=action,
        resource=resource,
        tenant=narrow_tenant_filter(auth.principal, requested_tenant),
        severity=severity,
    )


@router.get(
    "/logs",
    response_model=AuditTrailPage,
    dependencies=[Depends(tenant_audit_reader), Depends(get_effective_tenant)],
)
async def get_audit_logs(
    audit: AuditTrailDep,
    filters: AuditLogFilter = Depends(get_audit_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(
        settings.audit.default_page_size,
        ge=1,
        le=settings.audit.max_page_size,
    ),
):
    """Filtered audit entries, newest first."""
    result = await audit.query(filters, page=page, limit=limit)
    return to_response_dict(result)


@router.get(
    "/stats",
    response_model=AuditStats,
    dependencies=[Depends(tenant_audit_reader), Depends(get_effective_tenant)],
)
async def get_audit_stats(
    audit: AuditTrailDep,
    filters: AuditLogFilter = Depends(get_audit_filters),
):
    """Totals by action and severity, recent critical events and top actors."""
    return await audit.stats(filters)


@router.get(
    "/export",
    dependencies=[
        Depends(authorize(
            RequireRole(Role.MANAGER),
            RequireAuditAccess(PermissionScope.GLOBAL),
        )),
        Depends(get_effective_tenant),
    ],
)
async def export_audit_logs(
    audit: AuditTrailDep,
    filters: AuditLogFilter = Depends(get_audit_filters),
) -> Response:
    """CSV download of the filtered entries, newest first."""
    content = await audit.export_csv(filters)
    filename = f"audit-logs-{utc_now().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/critical",
    response_model=list[AuditLogResponse],
    dependencies=[Depends(tenant_audit_reader), Depends(get_effective_tenant)],
)
async def get_critical_events(
    audit: AuditTrailDep,
    filters: AuditLogFilter = Depends(get_audit_filters),
    limit: int = Query(10, ge=1, le=50),
):
    """Most recent critical entries."""
    critical = filters.model_copy(update={"severity": Severity.CRITICAL})
    result = await audit.query(critical, page=1, limit=limit)
    return [AuditLogResponse.model_validate(log) for log in result.items]


@router.get(
    "/user-activity/{user_id}",
    response_model=list[AuditLogResponse],
    dependencies=[Depends(tenant_audit_reader), Depends(get_effective_tenant)],
)
async def get_user_activity(
    user_id: UUID,
    audit: AuditTrailDep,
    filters: AuditLogFilter = Depends(get_audit_filters),
    days: int = Query(settings.audit.user_activity_days, ge=1, le=3650),
):
    """Recent entries where the user acted or was acted upon."""
    logs = await audit.user_activity(user_id, tenant=filters.tenant, days=days)
    return [AuditLogResponse.model_validate(log) for log in logs]


@router.post(
    "/log",
    response_model=AuditLogResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(authorize(RequireRole(Role.ADMIN)))],
)
async def log_custom_event(
    data: CustomEventCreate,
    auth: Authorize,
    tenant: EffectiveTenant,
    audit: AuditTrailDep,
    user_service: UserServiceDep,
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Record an ad hoc event.

    The caller picks the severity (default low) but cannot go below the
    floor of the named action.
    """
    target = None
    if data.target_id:
        user = await user_service.get_by_id(data.target_id)
        target = AuditSubject.from_user(user) if user else AuditSubject(id=data.target_id)

    principal = auth.principal
    entry = await audit.record(
        AuditEvent(
            action=data.action,
            resource=data.resource,
            target=target,
            details=CustomDetails(data=data.details),
            severity=data.severity,
        ),
        actor=AuditSubject(id=principal.id, name=principal.name, email=principal.email),
        tenant=tenant,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    return AuditLogResponse.model_validate(entry)


@router.delete(
    "/cleanup",
    response_model=CleanupResult,
    dependencies=[Depends(authorize(RequireSystemAdmin()))],
)
async def cleanup_audit_logs(
    audit: AuditTrailDep,
    days: int = Query(settings.audit.retention_days, ge=30),
):
    """Delete low and medium entries older than ``days``. High and critical stay."""
    deleted = await audit.cleanup(days)
    return CleanupResult(deleted_count=deleted, older_than_days=days)
