"""
Authentication routes.
"""

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm

from campus_access.api.dependencies.services import AuthServiceDep
from campus_access.core.auth.dependencies import CurrentPrincipal, get_request_meta
from campus_access.core.auth.service import RequestMeta
from campus_access.core.exceptions import Unauthenticated
from campus_access.schemas.auth import (
    LoginResponse,
    PasswordChange,
    PrincipalResponse,
    TokenResponse,
)
from campus_access.schemas.user import UserResponse

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    auth_service: AuthServiceDep,
    form_data: OAuth2PasswordRequestForm = Depends(),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Login with email (as ``username``) and password."""
    user, token = await auth_service.login(
        email=form_data.username,
        password=form_data.password,
        meta=meta,
    )
    return LoginResponse(
        access_token=token,
        token_type="bearer",
        user=UserResponse.model_validate(user),
    )


@router.post("/logout")
async def logout(
    principal: CurrentPrincipal,
    auth_service: AuthServiceDep,
    meta: RequestMeta = Depends(get_request_meta),
):
    """Logout current user."""
    await auth_service.logout(principal, meta)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=PrincipalResponse)
async def get_me(principal: CurrentPrincipal):
    """The authenticated caller: role, level, tenant scope and permissions."""
    return PrincipalResponse.from_principal(principal)


@router.post("/change-password", response_model=TokenResponse)
async def change_password(
    data: PasswordChange,
    principal: CurrentPrincipal,
    auth_service: AuthServiceDep,
    meta: RequestMeta = Depends(get_request_meta),
):
    """Change password. Tokens issued before the change stop working."""
    user = await auth_service.get_user(principal)
    if not user:
        raise Unauthenticated("The user belonging to this token does no longer exist.")

    token = await auth_service.change_password(
        user,
        current_password=data.current_password,
        new_password=data.new_password,
        meta=meta,
    )
    return TokenResponse(access_token=token, token_type="bearer")
