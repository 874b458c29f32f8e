"""
User schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, ConfigDict

from campus_access.core.auth.roles import Role


class UserCreate(BaseModel):
    """User creation by an administrator."""
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    role: Role
    tenant: Optional[str] = Field(None, min_length=1, max_length=100)
    managed_tenants: list[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """Role change for an existing user."""
    role: Role


class UserResponse(BaseModel):
    """User response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    tenant: str
    role_scope: str
    managed_tenants: list[str]
    is_active: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None


class RoleInfo(BaseModel):
    """One entry of the role catalog."""
    role: Role
    level: int
    display_name: str
    description: str
    scope: str


class RoleHierarchyResponse(BaseModel):
    roles: list[RoleInfo]
    current_role: str
    current_level: int
