"""FastAPI application factory."""

import time
from contextlib import asynccontextmanager
from datetime import timezone as dt_timezone

import structlog
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from docanchor.api.errors import register_exception_handlers
from docanchor.api.middleware import (
    RateLimitMiddleware,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from docanchor.api.routes import pinning, uploads
from docanchor.core.config import Settings, configure_logging
from docanchor.core.database import (
    connect_with_retry,
    create_engine,
    create_session_factory,
    create_tables,
    ping,
)
from docanchor.core.timezone import utcnow
from docanchor.services.ipfs.gateway import PinningGateway
from docanchor.uow import create_uow_factory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: configure logging, wait for the database (bounded retries), create
      tables for SQLite databases, warn about missing pinning credentials
    - Shutdown: dispose of the connection pool

    An unreachable database aborts startup (the process refuses to serve).
    """
    settings: Settings = app.state.settings
    configure_logging(settings)

    await connect_with_retry(
        app.state.engine,
        max_attempts=settings.db_connect_max_attempts,
        delay_seconds=settings.db_connect_retry_delay_seconds,
    )
    if app.state.engine.dialect.name == "sqlite":
        # No migrations for local SQLite files; Postgres schema is managed by Alembic
        await create_tables(app.state.engine)

    if not settings.pinata_configured:
        logger.warning(
            "startup.pinata_credentials_missing",
            message="POST /api/upload/ipfs will answer 500 until PINATA_JWT or "
            "PINATA_API_KEY/PINATA_SECRET_KEY is set",
        )

    app.state.started_at = time.monotonic()
    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        environment=settings.app_env,
    )

    yield

    logger.info("application.shutdown")
    await app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Explicit settings (tests); loaded from the environment when omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="docanchor API",
        description="Document pinning and on-chain anchoring index",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store collaborators in app.state for access in routes
    engine = create_engine(settings.database_url, settings.db_pool_size)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.uow_factory = create_uow_factory(app.state.session_factory)
    app.state.pinning_gateway = PinningGateway.from_settings(settings)
    app.state.started_at = time.monotonic()

    # Middleware: the last one added is the outermost
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(app)

    # Register API routers
    app.include_router(pinning.router)
    app.include_router(uploads.router)

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "ok", "database": "connected", ...}
            503: {"status": "degraded", "database": "disconnected", ...}
        """
        try:
            await ping(app.state.engine)
            database = "connected"
        except Exception as e:
            logger.error("health_check.failed", error=str(e), error_type=type(e).__name__)
            database = "disconnected"
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

        return {
            "status": "ok" if database == "connected" else "degraded",
            "timestamp": utcnow().replace(tzinfo=dt_timezone.utc).isoformat(),
            "database": database,
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "environment": settings.app_env,
        }

    return app
