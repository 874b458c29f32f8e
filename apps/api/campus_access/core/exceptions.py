"""
Access-control error taxonomy.

Every error is an ``HTTPException`` so FastAPI renders it with the right
status code. ``code`` is a stable machine-readable identifier returned
alongside ``detail``.

    Unauthenticated        401
    InsufficientRole       403
    PermissionDenied       403
    TenantAccessDenied     403
    RoleTransitionInvalid  403
    TargetNotFound         404
    AccountLocked          423
    InvalidRequest         400
    AuditWriteError        500
    ServiceUnavailable     503
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class AccessControlError(HTTPException):
    """Base class for access-control failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "access_control_error"
    default_detail: str = "Access control failure"

    def __init__(
        self,
        detail: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class Unauthenticated(AccessControlError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_detail = "You are not logged in. Please log in to get access."

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class InsufficientRole(AccessControlError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "insufficient_role"
    default_detail = "Insufficient role level"


class PermissionDenied(AccessControlError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"
    default_detail = "Permission denied"


class TenantAccessDenied(AccessControlError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "tenant_access_denied"
    default_detail = "Access denied to this tenant"


class RoleTransitionInvalid(AccessControlError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "role_transition_invalid"
    default_detail = "Role transition not allowed"


class TargetNotFound(AccessControlError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "target_not_found"
    default_detail = "User not found"


class AccountLocked(AccessControlError):
    status_code = status.HTTP_423_LOCKED
    code = "account_locked"
    default_detail = "Account temporarily locked due to too many failed login attempts"


class InvalidRequest(AccessControlError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"
    default_detail = "Invalid request"


class AuditWriteError(AccessControlError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "audit_write_failed"
    default_detail = "Failed to record audit entry"


class ServiceUnavailable(AccessControlError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "service_unavailable"
    default_detail = "Service temporarily unavailable, please retry"


async def access_control_error_handler(
    request: Request,
    exc: AccessControlError,
) -> JSONResponse:
    """Render access-control errors as ``{"detail", "code"}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
        headers=exc.headers,
    )
