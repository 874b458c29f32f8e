"""
Timezone Utilities.

Rules:
1. Database: always store UTC
2. API: return ISO 8601 (UTC)

Some backends (SQLite) hand back naive datetimes even for
``DateTime(timezone=True)`` columns; ``to_utc`` treats those as UTC.
"""

from datetime import datetime, timedelta, timezone

# UTC constant
UTC = timezone.utc


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-aware).

    Always use this instead of datetime.utcnow() which returns
    naive datetime.
    """
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC, treating naive values as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime) -> str:
    """
    Format as ISO 8601 with Z suffix.

    Usage:
        iso = to_iso8601(entry.timestamp)
        # "2024-01-15T14:30:00.123456Z"
    """
    return to_utc(dt).isoformat().replace("+00:00", "Z")


def days_ago(days: int) -> datetime:
    """UTC instant ``days`` days before now."""
    return utc_now() - timedelta(days=days)
