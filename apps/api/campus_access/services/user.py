"""
User service.

Account persistence for the role-management endpoints. Authorization is
decided before these methods run; each mutation here is committed
together with its audit entry, so a failed audit write leaves nothing
behind.
"""

from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_access.core.auth.permissions import AccessCatalog, default_catalog
from campus_access.core.auth.principal import Principal
from campus_access.core.auth.service import RequestMeta
from campus_access.core.exceptions import InvalidRequest, TargetNotFound
from campus_access.models.user import User
from campus_access.schemas.audit_log import (
    AuditAction,
    AuditEvent,
    AuditResource,
    AuditSubject,
    AuthEventDetails,
    RoleChangeDetails,
    UserCreationDetails,
    UserDeletionDetails,
)
from campus_access.schemas.user import UserCreate

logger = structlog.get_logger()


def _actor(principal: Principal) -> AuditSubject:
    return AuditSubject(id=principal.id, name=principal.name, email=principal.email)


class UserService:
    """User management service."""

    def __init__(
        self,
        db: AsyncSession,
        audit=None,
        catalog: AccessCatalog = default_catalog,
    ):
        self.db = db
        self.audit = audit
        self.catalog = catalog

    async def get_by_id(self, user_id: UUID | str) -> User | None:
        """Get user by ID. Malformed ids find nothing."""
        if isinstance(user_id, str):
            try:
                user_id = UUID(user_id)
            except ValueError:
                return None
        stmt = select(User).where(User.id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get user by email."""
        stmt = select(User).where(User.email == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_target(self, user_id: UUID | str) -> User:
        """Load the user a request acts on, or raise 404."""
        user = await self.get_by_id(user_id)
        if not user:
            raise TargetNotFound()
        return user

    async def list_created_by(self, creator_id: UUID) -> list[User]:
        stmt = (
            select(User)
            .where(User.created_by == creator_id)
            .order_by(User.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # --- Mutations ---

    async def create_user(
        self,
        data: UserCreate,
        password_hash: str,
        *,
        creator: Principal,
        tenant: str,
        meta: RequestMeta | None = None,
    ) -> User:
        """Create a user in ``tenant``. The role was already cleared by the creation guard."""
        if await self.get_by_email(data.email):
            raise InvalidRequest("Email already registered")

        role_scope = self.catalog.hierarchy.scope_for_role(data.role)
        user = User(
            email=data.email.lower(),
            password_hash=password_hash,
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role.value,
            tenant=tenant,
            role_scope=role_scope.value,
            managed_tenants=list(data.managed_tenants),
            permission_overrides=[],
            created_by=creator.id,
        )
        self.db.add(user)
        await self.db.flush()

        meta = meta or RequestMeta()
        await self.audit.record(
            AuditEvent(
                action=AuditAction.CREATE_USER,
                resource=AuditResource.USER,
                target=AuditSubject.from_user(user),
                details=UserCreationDetails(role=user.role, tenant=tenant),
            ),
            actor=_actor(creator),
            tenant=tenant,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

        logger.info(
            "User created",
            user_id=str(user.id),
            role=user.role,
            tenant=tenant,
            created_by=str(creator.id),
        )
        return user

    async def update_role(
        self,
        user: User,
        new_role: str,
        *,
        updater: Principal,
        tenant: str,
        meta: RequestMeta | None = None,
    ) -> User:
        """
        Move ``user`` to ``new_role``.

        Role scope follows the new role and per-user grant overrides are
        dropped, so the user falls back to the new role's defaults.
        """
        old_role = user.role
        user.role = new_role
        user.role_scope = self.catalog.hierarchy.scope_for_role(new_role).value
        user.permission_overrides = []
        await self.db.flush()

        meta = meta or RequestMeta()
        await self.audit.record(
            AuditEvent(
                action=AuditAction.UPDATE_ROLE,
                resource=AuditResource.ROLE,
                target=AuditSubject.from_user(user),
                details=RoleChangeDetails(old_role=old_role, new_role=new_role),
            ),
            actor=_actor(updater),
            tenant=tenant,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

        logger.info(
            "User role updated",
            user_id=str(user.id),
            old_role=old_role,
            new_role=new_role,
            updated_by=str(updater.id),
        )
        return user

    async def delete_user(
        self,
        user: User,
        *,
        actor: Principal,
        tenant: str,
        meta: RequestMeta | None = None,
    ) -> None:
        """Delete ``user``. Audit entries keep the id and cached display fields."""
        target = AuditSubject.from_user(user)
        role = user.role

        await self.db.delete(user)
        await self.db.flush()

        meta = meta or RequestMeta()
        await self.audit.record(
            AuditEvent(
                action=AuditAction.DELETE_USER,
                resource=AuditResource.USER,
                target=target,
                details=UserDeletionDetails(role=role),
            ),
            actor=_actor(actor),
            tenant=tenant,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

        logger.info("User deleted", user_id=str(target.id), deleted_by=str(actor.id))

    async def unlock_account(
        self,
        user: User,
        *,
        actor: Principal,
        tenant: str,
        meta: RequestMeta | None = None,
    ) -> User:
        """Clear failed-login counters and any active lock."""
        previous_attempts = user.login_attempts
        user.login_attempts = 0
        user.locked_until = None
        await self.db.flush()

        meta = meta or RequestMeta()
        await self.audit.record(
            AuditEvent(
                action=AuditAction.ACCOUNT_UNLOCKED,
                resource=AuditResource.AUTH,
                target=AuditSubject.from_user(user),
                details=AuthEventDetails(
                    reason="Unlocked by administrator",
                    failed_attempts=previous_attempts,
                ),
            ),
            actor=_actor(actor),
            tenant=tenant,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )
        return user
