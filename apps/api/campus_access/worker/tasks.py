"""
Scheduled audit maintenance.
"""

import asyncio
import logging

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker

from campus_access.core.config import settings
from campus_access.services.audit import AuditTrail

logger = logging.getLogger(__name__)


async def run_retention_cleanup(session_factory: async_sessionmaker, days: int) -> int:
    """Apply the retention window once. Returns the number of entries deleted."""
    async with session_factory() as session:
        return await AuditTrail(session).cleanup(days)


@shared_task(bind=True, max_retries=3)
def audit_retention_cleanup(self, days: int | None = None):
    """
    Delete low and medium audit entries past the retention window.

    High and critical entries are kept regardless of age.
    """
    from campus_access.models.database import async_session_factory, engine

    days = days or settings.audit.retention_days

    async def _run() -> int:
        try:
            return await run_retention_cleanup(async_session_factory, days)
        finally:
            # Pooled connections are bound to this loop
            await engine.dispose()

    try:
        deleted = asyncio.run(_run())
    except Exception as exc:
        logger.error(f"Audit retention cleanup failed: {exc}")
        raise self.retry(exc=exc)

    logger.info(f"Audit retention cleanup deleted {deleted} entries older than {days} days")
    return {"deleted": deleted, "older_than_days": days}
