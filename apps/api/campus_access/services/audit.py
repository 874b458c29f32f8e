"""Audit trail service for security-relevant events."""

import csv
import io
import json
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_access.core.config import AuditSettings, settings as app_settings
from campus_access.core.exceptions import AuditWriteError
from campus_access.models.audit_log import AuditLog
from campus_access.schemas.audit_log import (
    ActorActivity,
    AuditAction,
    AuditDetails,
    AuditEvent,
    AuditLogFilter,
    AuditLogResponse,
    AuditStats,
    AuditSubject,
    CustomDetails,
    PermissionDeniedDetails,
    RoleChangeDetails,
    Severity,
    UserCreationDetails,
    UserDeletionDetails,
)
from campus_access.utils.pagination import OffsetPage, Paginator
from campus_access.utils.timezone import days_ago, to_iso8601, to_utc

logger = structlog.get_logger()


# ============================================================
# SEVERITY
# ============================================================

_SYSTEM_ROLES = frozenset({"super_admin", "manager"})
_ADMIN_ROLES = frozenset({"admin", "tenant_admin"})

_ALWAYS_CRITICAL = frozenset({
    AuditAction.ROLE_ESCALATION_ATTEMPT,
    AuditAction.UNAUTHORIZED_ACCESS,
    AuditAction.TENANT_ACCESS_VIOLATION,
})
_ROUTINE_MEDIUM = frozenset({
    AuditAction.LOGIN,
    AuditAction.ACCOUNT_LOCKED,
    AuditAction.PASSWORD_RESET,
})

# Account-management actions recorded by hand never fall below high
_MANAGEMENT_ACTIONS = frozenset({
    AuditAction.CREATE_USER,
    AuditAction.UPDATE_ROLE,
    AuditAction.DELETE_USER,
    AuditAction.PERMISSION_DENIED,
    AuditAction.ACCOUNT_UNLOCKED,
})

_SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)

# Denials from these checks concern managing other accounts
_ROLE_ASSIGNMENT_CHECKS = frozenset({
    "user_creation", "role_update", "user_deletion", "account_unlock",
})


def _role_sensitivity(*roles: Optional[str]) -> Optional[Severity]:
    if any(r in _SYSTEM_ROLES for r in roles):
        return Severity.CRITICAL
    if any(r in _ADMIN_ROLES for r in roles):
        return Severity.HIGH
    return None


def determine_severity(action: AuditAction, details: AuditDetails) -> Severity:
    """
    Severity for a standard event.

    Touching a system role (super_admin, manager) is always critical and
    touching an admin-tier role is high. Denied role assignments are at
    least high.
    """
    if action in _ALWAYS_CRITICAL:
        return Severity.CRITICAL

    if isinstance(details, RoleChangeDetails):
        return _role_sensitivity(details.old_role, details.new_role) or Severity.MEDIUM

    if isinstance(details, UserCreationDetails):
        return _role_sensitivity(details.role) or Severity.MEDIUM

    if isinstance(details, UserDeletionDetails):
        return _role_sensitivity(details.role) or Severity.MEDIUM

    if isinstance(details, PermissionDeniedDetails):
        if details.check in _ROLE_ASSIGNMENT_CHECKS:
            if _role_sensitivity(details.target_role, details.current_role) == Severity.CRITICAL:
                return Severity.CRITICAL
            return Severity.HIGH
        return Severity.MEDIUM

    if action in _ROUTINE_MEDIUM:
        return Severity.MEDIUM

    return Severity.LOW


def custom_event_severity(action: AuditAction, requested: Optional[Severity]) -> Severity:
    """
    Severity for an ad hoc event.

    The caller may raise the severity but never below the floor of the
    action it names, so security events stay out of retention cleanup.
    """
    if action in _ALWAYS_CRITICAL:
        floor = Severity.CRITICAL
    elif action in _MANAGEMENT_ACTIONS:
        floor = Severity.HIGH
    elif action in _ROUTINE_MEDIUM:
        floor = Severity.MEDIUM
    else:
        floor = Severity.LOW
    return max(requested or Severity.LOW, floor, key=_SEVERITY_ORDER.index)


# ============================================================
# CSV EXPORT
# ============================================================

CSV_HEADERS = [
    "Timestamp",
    "Actor",
    "Action",
    "Target",
    "Resource",
    "Severity",
    "Details",
    "Tenant",
    "IP Address",
]


def _display(name: Optional[str], email: Optional[str]) -> str:
    if not name and not email:
        return "N/A"
    if name and email:
        return f"{name} ({email})"
    return name or email


def serialize_csv_row(log: AuditLog) -> list[str]:
    """One export row, in ``CSV_HEADERS`` order."""
    return [
        to_iso8601(log.timestamp),
        _display(log.actor_name, log.actor_email),
        log.action,
        _display(log.target_name, log.target_email),
        log.resource or "",
        log.severity,
        json.dumps(log.details or {}, sort_keys=True, default=str),
        log.tenant,
        log.ip_address or "",
    ]


# ============================================================
# SERVICE
# ============================================================

class AuditTrail:
    """
    Append-only security log.

    Two write paths:
    - ``record``: must succeed. The entry is committed together with any
      pending changes on the request session; failure raises
      ``AuditWriteError`` (500) and nothing from the session persists.
    - ``record_best_effort``: written through its own session so it
      survives a request that is about to fail. Errors are logged and
      absorbed.
    """

    def __init__(
        self,
        db: AsyncSession,
        session_factory: async_sessionmaker | None = None,
        config: AuditSettings | None = None,
    ):
        self.db = db
        self.session_factory = session_factory
        self.config = config or app_settings.audit

    def _build_entry(
        self,
        event: AuditEvent,
        actor: AuditSubject,
        tenant: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> AuditLog:
        if isinstance(event.details, CustomDetails):
            severity = custom_event_severity(event.action, event.severity)
        else:
            severity = determine_severity(event.action, event.details)

        target = event.target
        return AuditLog(
            actor_id=actor.id,
            actor_name=actor.name,
            actor_email=actor.email,
            action=event.action.value,
            resource=event.resource.value if event.resource else None,
            target_id=target.id if target else None,
            target_name=target.name if target else None,
            target_email=target.email if target else None,
            details=event.details.to_record(),
            tenant=tenant,
            ip_address=ip_address,
            user_agent=user_agent,
            severity=severity.value,
        )

    async def record(
        self,
        event: AuditEvent,
        *,
        actor: AuditSubject,
        tenant: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Write an entry that must not be lost."""
        entry = self._build_entry(event, actor, tenant, ip_address, user_agent)

        try:
            self.db.add(entry)
            await self.db.commit()
            await self.db.refresh(entry)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(
                "Audit write failed",
                action=event.action.value,
                actor_id=str(actor.id),
                tenant=tenant,
                error=str(exc),
            )
            raise AuditWriteError() from exc

        logger.info(
            "Audit log recorded",
            action=entry.action,
            severity=entry.severity,
            actor_id=str(actor.id),
            tenant=tenant,
        )
        return entry

    async def record_best_effort(
        self,
        event: AuditEvent,
        *,
        actor: AuditSubject,
        tenant: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Write an entry whose loss must never fail the caller."""
        entry = self._build_entry(event, actor, tenant, ip_address, user_agent)

        try:
            if self.session_factory is None:
                self.db.add(entry)
                await self.db.commit()
            else:
                async with self.session_factory() as session:
                    session.add(entry)
                    await session.commit()
        except Exception:
            logger.exception(
                "Best-effort audit write dropped",
                action=event.action.value,
                actor_id=str(actor.id),
                tenant=tenant,
            )
            return None

        logger.info(
            "Audit log recorded",
            action=entry.action,
            severity=entry.severity,
            actor_id=str(actor.id),
            tenant=tenant,
        )
        return entry

    # --- Reads ---

    @staticmethod
    def build_query(filters: AuditLogFilter | None = None) -> Select:
        """Base query with filters applied. Tenant scope is the caller's job."""
        query = select(AuditLog)
        if filters is None:
            return query

        if filters.start_date:
            query = query.where(AuditLog.timestamp >= to_utc(filters.start_date))
        if filters.end_date:
            query = query.where(AuditLog.timestamp <= to_utc(filters.end_date))
        if filters.actor_id:
            query = query.where(AuditLog.actor_id == filters.actor_id)
        if filters.target_id:
            query = query.where(AuditLog.target_id == filters.target_id)
        if filters.action:
            query = query.where(AuditLog.action == filters.action.value)
        if filters.resource:
            query = query.where(AuditLog.resource == filters.resource.value)
        if filters.tenant:
            query = query.where(AuditLog.tenant == filters.tenant)
        if filters.severity:
            query = query.where(AuditLog.severity == filters.severity.value)

        return query

    @staticmethod
    def _newest_first(query: Select) -> Select:
        return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())

    async def query(
        self,
        filters: AuditLogFilter | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> OffsetPage:
        """Filtered entries, newest first, one page at a time."""
        limit = min(limit or self.config.default_page_size, self.config.max_page_size)
        paginator = Paginator(self.db)
        return await paginator.paginate_offset(
            self._newest_first(self.build_query(filters)),
            page=max(page, 1),
            per_page=limit,
        )

    async def user_activity(
        self,
        user_id: UUID,
        *,
        tenant: Optional[str] = None,
        days: int | None = None,
        limit: int | None = None,
    ) -> list[AuditLog]:
        """Recent entries where ``user_id`` is the actor or the target."""
        since = days_ago(days or self.config.user_activity_days)
        query = (
            self.build_query(AuditLogFilter(start_date=since, tenant=tenant))
            .where(or_(AuditLog.actor_id == user_id, AuditLog.target_id == user_id))
        )
        query = self._newest_first(query).limit(limit or self.config.user_activity_limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def stats(self, filters: AuditLogFilter | None = None) -> AuditStats:
        """Aggregate counts over the filtered entries."""
        base = self.build_query(filters).subquery()
        top_n = self.config.stats_top_n

        total = await self.db.scalar(select(func.count()).select_from(base)) or 0

        by_action = await self.db.execute(
            select(base.c.action, func.count()).group_by(base.c.action)
        )
        by_severity = await self.db.execute(
            select(base.c.severity, func.count()).group_by(base.c.severity)
        )

        critical_filters = (filters or AuditLogFilter()).model_copy(
            update={"severity": Severity.CRITICAL}
        )
        recent_critical = await self.db.execute(
            self._newest_first(self.build_query(critical_filters)).limit(top_n)
        )

        actor_count = func.count().label("count")
        top_actors = await self.db.execute(
            select(
                base.c.actor_id,
                func.max(base.c.actor_name),
                func.max(base.c.actor_email),
                actor_count,
            )
            .group_by(base.c.actor_id)
            .order_by(actor_count.desc())
            .limit(top_n)
        )

        return AuditStats(
            total_events=total,
            events_by_action={action: count for action, count in by_action.all()},
            events_by_severity={severity: count for severity, count in by_severity.all()},
            recent_critical=[
                AuditLogResponse.model_validate(log)
                for log in recent_critical.scalars().all()
            ],
            top_actors=[
                ActorActivity(actor_id=actor_id, actor_name=name, actor_email=email, count=count)
                for actor_id, name, email, count in top_actors.all()
            ],
        )

    async def export_csv(self, filters: AuditLogFilter | None = None) -> str:
        """
        Filtered entries as CSV text, newest first.

        Capped at ``export_row_limit`` rows.
        """
        query = self._newest_first(self.build_query(filters)).limit(self.config.export_row_limit)
        result = await self.db.execute(query)

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for log in result.scalars():
            writer.writerow(serialize_csv_row(log))

        return buffer.getvalue()

    # --- Retention ---

    async def cleanup(self, older_than_days: int | None = None) -> int:
        """
        Delete low and medium entries older than the cutoff.

        High and critical entries are never removed here.
        """
        days = self.config.retention_days if older_than_days is None else older_than_days
        cutoff = days_ago(days)

        result = await self.db.execute(
            delete(AuditLog)
            .where(AuditLog.timestamp < cutoff)
            .where(AuditLog.severity.in_([Severity.LOW.value, Severity.MEDIUM.value]))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        deleted = result.rowcount or 0
        logger.info("Audit retention cleanup", older_than_days=days, deleted=deleted)
        return deleted


def to_response_dict(page: OffsetPage) -> dict[str, Any]:
    """Shape an audit page as ``{entries, pagination}``."""
    return {
        "entries": [AuditLogResponse.model_validate(log) for log in page.items],
        "pagination": {
            "page": page.page,
            "limit": page.per_page,
            "total": page.total,
            "pages": page.pages,
        },
    }
