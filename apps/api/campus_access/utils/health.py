"""Health checks for the audit store and the retention-job broker."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import redis.asyncio as aioredis
import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None


@dataclass
class SystemHealth:
    status: HealthStatus
    version: str
    environment: str
    components: list[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "components": {
                c.name: {
                    "status": c.status.value,
                    "latency_ms": c.latency_ms,
                    "message": c.message,
                }
                for c in self.components
            },
        }


async def check_database(db: AsyncSession) -> ComponentHealth:
    """
    Check database connectivity and latency.

    Authentication re-reads the user on every request, so a slow store
    is reported as degraded.
    """
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return ComponentHealth("database", HealthStatus.UNHEALTHY, message=str(e)[:100])

    latency = (time.perf_counter() - start) * 1000
    return ComponentHealth(
        "database",
        HealthStatus.HEALTHY if latency < 100 else HealthStatus.DEGRADED,
        latency_ms=round(latency, 2),
        message="Connected" if latency < 100 else "Slow response",
    )


async def check_broker(broker_url: str) -> ComponentHealth:
    """Check the redis broker the retention job is scheduled through."""
    start = time.perf_counter()
    client = aioredis.from_url(broker_url)
    try:
        await client.ping()
    except Exception as e:
        logger.error("Broker health check failed", error=str(e))
        return ComponentHealth("broker", HealthStatus.UNHEALTHY, message=str(e)[:100])
    finally:
        await client.aclose()

    latency = (time.perf_counter() - start) * 1000
    # The broker only carries the daily retention job; slowness is not fatal
    return ComponentHealth(
        "broker",
        HealthStatus.HEALTHY if latency < 50 else HealthStatus.DEGRADED,
        latency_ms=round(latency, 2),
    )


class HealthChecker:
    """
    Runs registered checks concurrently.

    Usage:
        checker = HealthChecker(version="1.0.0", environment="production")
        checker.add_check("database", lambda: check_database(db))
        health = await checker.run()
    """

    def __init__(self, version: str, environment: str):
        self.version = version
        self.environment = environment
        self.checks: dict[str, Callable[[], Awaitable[ComponentHealth]]] = {}

    def add_check(self, name: str, check_fn: Callable[[], Awaitable[ComponentHealth]]) -> None:
        self.checks[name] = check_fn

    async def run(self) -> SystemHealth:
        results = await asyncio.gather(
            *[check() for check in self.checks.values()],
            return_exceptions=True,
        )

        components = []
        for name, result in zip(self.checks.keys(), results):
            if isinstance(result, Exception):
                components.append(
                    ComponentHealth(name, HealthStatus.UNHEALTHY, message=str(result)[:100])
                )
            else:
                components.append(result)

        statuses = {c.status for c in components}
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return SystemHealth(overall, self.version, self.environment, components)
