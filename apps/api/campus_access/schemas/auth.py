"""
Authentication schemas.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .user import UserResponse


class TokenResponse(BaseModel):
    """Access token response."""
    access_token: str
    token_type: str = "bearer"


class LoginResponse(TokenResponse):
    """Login response with the authenticated user."""
    user: UserResponse


class PasswordChange(BaseModel):
    """Password change request."""
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)


class PermissionResponse(BaseModel):
    resource: str
    actions: list[str]
    scope: str
    conditions: Optional[dict] = None


class PrincipalResponse(BaseModel):
    """The authenticated caller as the access-control core sees it."""
    id: UUID
    email: Optional[str]
    name: Optional[str]
    role: str
    role_level: int
    tenant: str
    role_scope: Optional[str]
    managed_tenants: list[str]
    permissions: list[PermissionResponse]

    @classmethod
    def from_principal(cls, principal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            email=principal.email,
            name=principal.name,
            role=principal.role,
            role_level=principal.role_level,
            tenant=principal.home_tenant,
            role_scope=principal.role_scope.value if principal.role_scope else None,
            managed_tenants=list(principal.managed_tenants),
            permissions=[PermissionResponse(**p.to_dict()) for p in principal.permissions],
        )
