from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from overwatch.app.api.internal import router as internal_router
from overwatch.app.core.best_effort import drain_background_tasks
from overwatch.app.core.config import settings
from overwatch.app.core.http_client import init_http_client
from overwatch.app.core.logging import get_logger, setup_logging
from overwatch.app.db.async_session import (
    close_async_engine,
    get_async_session_maker,
    init_async_db,
)
from overwatch.app.exceptions import (
    InvalidCredentialError,
    PrcApiError,
    RateLimitedError,
    UnauthorizedError,
)
from overwatch.app.providers.alerts import RateLimitAlerter
from overwatch.app.providers.prc import PrcClient
from overwatch.app.providers.rate_limit import RateLimitRegistry
from overwatch.app.services.collaborators import (
    AutomationEngine,
    Entitlements,
    LoggingAutomationEngine,
    RaidDetector,
    SettingsEntitlements,
)
from overwatch.app.services.game_commands import GameCommandDispatcher
from overwatch.app.services.log_sync import LogSyncService
from overwatch.app.services.raid_filter import RaidFilter


def create_app(
    session_factory: Optional[Any] = None,
    automation: Optional[AutomationEngine] = None,
    raid_detector: Optional[RaidDetector] = None,
    entitlements: Optional[Entitlements] = None,
    client_factory: Optional[Any] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_factory: Session maker to use instead of the configured database
        automation: Automation engine (defaults to a logging stand-in)
        raid_detector: Raid detector; raid alerts are off without one
        entitlements: Feature flag and plan lookups
        client_factory: Builds a PrcClient from a server key

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Owns the shared HTTP pool, the database and the rate-limit registry."""
        async with AsyncExitStack() as stack:
            http_client = await stack.enter_async_context(init_http_client())

            factory = session_factory
            if factory is None:
                await init_async_db()
                factory = get_async_session_maker()

            registry = RateLimitRegistry()
            alerter = RateLimitAlerter(http_client=http_client)
            engine = automation or LoggingAutomationEngine()

            def build_client(server_key: str) -> PrcClient:
                return PrcClient(server_key, registry, http_client=http_client, alerter=alerter)

            app.state.session_factory = factory
            app.state.registry = registry
            app.state.log_sync = LogSyncService(
                session_factory=factory,
                registry=registry,
                automation=engine,
                dispatcher=GameCommandDispatcher(factory, engine),
                raid_filter=RaidFilter(
                    factory,
                    raid_detector,
                    entitlements or SettingsEntitlements(factory),
                ),
                http_client=http_client,
                client_factory=client_factory or build_client,
            )

            logger.info(
                "Application startup complete",
                extra={
                    "raid_detector": type(raid_detector).__name__ if raid_detector else None,
                    "debug_mode": settings.debug,
                },
            )
            yield

            await drain_background_tasks()

        if session_factory is None:
            await close_async_engine()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Project Overwatch Core",
        description="PRC log ingestion, in-game staff commands and raid alerting",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(internal_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"error": "unauthorized", "message": exc.message},
        )

    @app.exception_handler(RateLimitedError)
    async def rate_limited_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
        """Upstream budget exhausted after retries."""
        return JSONResponse(
            status_code=429,
            content={"error": "rate_limited", "message": exc.message, "retry_after": exc.retry_after},
        )

    @app.exception_handler(PrcApiError)
    async def prc_error_handler(request: Request, exc: PrcApiError) -> JSONResponse:
        # A rejected server key is an upstream problem from our callers' view
        status_code = 502 if isinstance(exc, InvalidCredentialError) else exc.status_code
        return JSONResponse(
            status_code=status_code,
            content={"error": "upstream_error", "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log unhandled errors server-side; never return a traceback."""
        logger.exception(
            "Unhandled exception",
            extra={"exception_type": type(exc).__name__, "path": request.url.path},
        )
        if settings.debug:
            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "message": str(exc),
                    "exception_type": type(exc).__name__,
                },
            )
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "An internal error occurred"},
        )

    return app


app = create_app()
