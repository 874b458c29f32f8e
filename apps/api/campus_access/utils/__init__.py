"""Utility functions."""

from campus_access.utils.pagination import OffsetPage, Paginator
from campus_access.utils.timezone import UTC, days_ago, to_iso8601, to_utc, utc_now

__all__ = [
    "OffsetPage",
    "Paginator",
    "UTC",
    "days_ago",
    "to_iso8601",
    "to_utc",
    "utc_now",
]
