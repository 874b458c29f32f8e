"""Middleware package."""

from campus_access.api.middleware.logging import LoggingMiddleware
from campus_access.api.middleware.request_id import RequestIdMiddleware

__all__ = [
    "LoggingMiddleware",
    "RequestIdMiddleware",
]
