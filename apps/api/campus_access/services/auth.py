"""
Authentication service.
"""

from datetime import timedelta
from typing import Optional

import structlog
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_access.core.auth.principal import Principal
from campus_access.core.auth.service import RequestMeta
from campus_access.core.auth.tokens import create_access_token
from campus_access.core.config import AuthSettings, settings
from campus_access.core.exceptions import AccountLocked, InvalidRequest, Unauthenticated
from campus_access.models.user import User
from campus_access.schemas.audit_log import (
    AuditAction,
    AuditEvent,
    AuditResource,
    AuditSubject,
    AuthEventDetails,
)
from campus_access.services.audit import AuditTrail
from campus_access.utils.timezone import to_iso8601, to_utc, utc_now

logger = structlog.get_logger()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain, hashed)


def is_locked(user: User) -> bool:
    return user.locked_until is not None and to_utc(user.locked_until) > utc_now()


class AuthService:
    """
    Login, logout and password changes.

    Login and logout entries are best-effort: an audit outage never blocks
    someone from signing in. A password change is a security event and
    its entry must be written.
    """

    def __init__(
        self,
        db: AsyncSession,
        audit: AuditTrail,
        config: AuthSettings | None = None,
    ):
        self.db = db
        self.audit = audit
        self.config = config or settings.auth

    async def _get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def login(
        self,
        email: str,
        password: str,
        meta: RequestMeta | None = None,
    ) -> tuple[User, str]:
        """
        Authenticate and issue an access token.

        Raises:
            Unauthenticated: Unknown email, wrong password or deactivated account
            AccountLocked: Too many failed attempts; locked until the lockout expires
        """
        meta = meta or RequestMeta()
        user = await self._get_by_email(email)

        if not user:
            raise Unauthenticated("Invalid email or password")

        if not user.is_active:
            raise Unauthenticated("Your account has been deactivated")

        if is_locked(user):
            raise AccountLocked()

        if not verify_password(password, user.password_hash):
            await self._register_failure(user, meta)
            raise Unauthenticated("Invalid email or password")

        user.login_attempts = 0
        user.locked_until = None
        user.last_login_at = utc_now()
        await self.db.commit()

        await self.audit.record_best_effort(
            AuditEvent(
                action=AuditAction.LOGIN,
                resource=AuditResource.AUTH,
                details=AuthEventDetails(),
            ),
            actor=AuditSubject.from_user(user),
            tenant=user.tenant,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

        logger.info("User logged in", user_id=str(user.id), tenant=user.tenant)
        return user, create_access_token(
            user.id, config=self.config, password_changed_at=user.password_changed_at
        )

    async def _register_failure(self, user: User, meta: RequestMeta) -> None:
        """Count a failed attempt and lock the account once the limit is hit."""
        if user.locked_until is not None:
            # Previous lock has expired
            user.login_attempts = 1
            user.locked_until = None
        else:
            user.login_attempts += 1

        just_locked = user.login_attempts >= self.config.max_login_attempts
        if just_locked:
            user.locked_until = utc_now() + timedelta(minutes=self.config.lockout_minutes)

        await self.db.commit()

        logger.warning(
            "Failed login attempt",
            user_id=str(user.id),
            attempts=user.login_attempts,
            locked=just_locked,
        )

        if just_locked:
            await self.audit.record_best_effort(
                AuditEvent(
                    action=AuditAction.ACCOUNT_LOCKED,
                    resource=AuditResource.AUTH,
                    target=AuditSubject.from_user(user),
                    details=AuthEventDetails(
                        reason="Too many failed login attempts",
                        failed_attempts=user.login_attempts,
                        locked_until=to_iso8601(user.locked_until),
                    ),
                ),
                actor=AuditSubject.from_user(user),
                tenant=user.tenant,
                ip_address=meta.ip_address,
                user_agent=meta.user_agent,
            )

    async def logout(self, principal: Principal, meta: RequestMeta | None = None) -> None:
        """
        Record a logout.

        Tokens are stateless; the client discards its token and it stays
        valid until expiry or the next password change.
        """
        meta = meta or RequestMeta()
        await self.audit.record_best_effort(
            AuditEvent(
                action=AuditAction.LOGOUT,
                resource=AuditResource.AUTH,
                details=AuthEventDetails(),
            ),
            actor=AuditSubject(id=principal.id, name=principal.name, email=principal.email),
            tenant=principal.home_tenant,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

    async def change_password(
        self,
        user: User,
        current_password: str,
        new_password: str,
        meta: RequestMeta | None = None,
    ) -> str:
        """
        Change the password and return a fresh token.

        Tokens issued before the change stop working.
        """
        if not verify_password(current_password, user.password_hash):
            raise InvalidRequest("Current password is incorrect")

        if len(new_password) < self.config.password_min_length:
            raise InvalidRequest(
                f"Password must be at least {self.config.password_min_length} characters"
            )

        user.password_hash = hash_password(new_password)
        user.password_changed_at = utc_now()
        await self.db.flush()

        meta = meta or RequestMeta()
        subject = AuditSubject.from_user(user)
        await self.audit.record(
            AuditEvent(
                action=AuditAction.PASSWORD_RESET,
                resource=AuditResource.AUTH,
                target=subject,
                details=AuthEventDetails(reason="Password changed by user"),
            ),
            actor=subject,
            tenant=user.tenant,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
        )

        logger.info("Password changed", user_id=str(user.id))
        return create_access_token(
            user.id, config=self.config, password_changed_at=user.password_changed_at
        )

    async def get_user(self, principal: Principal) -> Optional[User]:
        stmt = select(User).where(User.id == principal.id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
