"""
Request Context Utilities.

Request-scoped identifiers used for log correlation:
- request_id: set by RequestIdMiddleware
- principal_id / tenant: set by the authentication gate once the
  caller is known

Usage:
    from campus_access.utils.context import get_request_id

    logger.info("Processing", request_id=get_request_id())
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Any, Optional


# Request-scoped context using contextvars (async-safe)
_request_id: ContextVar[str] = ContextVar("request_id", default="")
_principal_id: ContextVar[Optional[str]] = ContextVar("principal_id", default=None)
_tenant: ContextVar[Optional[str]] = ContextVar("tenant", default=None)


def get_request_id() -> str:
    """Get current request ID from context."""
    return _request_id.get()


def set_request_id(request_id: str):
    """Set the request ID. Returns the token for ``reset_request_id``."""
    return _request_id.set(request_id)


def reset_request_id(token) -> None:
    _request_id.reset(token)


def set_context_principal(principal_id: str, tenant: Optional[str] = None) -> None:
    """
    Record the authenticated caller for log correlation.

    Called by the authentication gate after the principal is built.
    """
    _principal_id.set(principal_id)
    _tenant.set(tenant)


def add_request_context(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor that adds request context to all logs."""
    request_id = _request_id.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)

    principal_id = _principal_id.get()
    if principal_id:
        event_dict.setdefault("principal_id", principal_id)

    tenant = _tenant.get()
    if tenant:
        event_dict.setdefault("tenant", tenant)

    return event_dict
