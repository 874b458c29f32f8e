"""
Service dependencies.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campus_access.core.auth.dependencies import get_audit_trail
from campus_access.services.audit import AuditTrail
from campus_access.services.auth import AuthService
from campus_access.services.user import UserService

from .database import get_db


async def get_user_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> UserService:
    """Get user service instance."""
    return UserService(db, audit)


async def get_auth_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> AuthService:
    """Get auth service instance (login, logout, password changes)."""
    return AuthService(db, audit)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
