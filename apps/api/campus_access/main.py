"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campus_access.core.config import settings
from campus_access.core.exceptions import AccessControlError, access_control_error_handler
from campus_access.core.logging import configure_logging
from campus_access.api.routes import router as api_router
from campus_access.api.middleware.logging import LoggingMiddleware
from campus_access.api.middleware.request_id import RequestIdMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    from campus_access.models.database import close_db, init_db

    logger.info("Starting", app=settings.app_name, environment=settings.environment)
    # Production schemas come from alembic
    if settings.is_development:
        await init_db()

    yield

    await close_db()
    logger.info("Stopped", app=settings.app_name)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # Middleware (order matters - last added is outermost)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(api_router, prefix="/api")

    # Exception handlers
    app.add_exception_handler(AccessControlError, access_control_error_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": str(exc) if settings.debug else "An error occurred",
            },
        )

    # Health checks
    @app.get("/health")
    async def health_check():
        """Quick health check endpoint (for load balancers)."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/health/detailed")
    async def health_check_detailed():
        """Database and broker status."""
        from campus_access.utils.health import HealthChecker, check_broker, check_database
        from campus_access.models.database import async_session_factory

        checker = HealthChecker(
            version=settings.app_version,
            environment=settings.environment,
        )

        async def db_check():
            async with async_session_factory() as session:
                return await check_database(session)

        checker.add_check("database", db_check)
        checker.add_check("broker", lambda: check_broker(settings.queue.broker_url))

        health = await checker.run()
        status_code = 200 if health.status.value == "healthy" else 503
        return JSONResponse(content=health.to_dict(), status_code=status_code)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "campus_access.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=settings.workers,
    )
