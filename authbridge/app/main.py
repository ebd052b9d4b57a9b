"""authbridge application factory.

Run with ``uvicorn authbridge.app.main:create_app --factory``.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from authbridge.app.api.auth_proxy import build_auth_router
from authbridge.app.core.config import Settings, get_settings
from authbridge.app.core.http_client import init_http_client
from authbridge.app.core.logging import get_logger, setup_logging
from authbridge.app.db.async_session import create_engine_from_settings, dispose_engine
from authbridge.app.exceptions import AuthBridgeException, RateLimitExceededError
from authbridge.app.middleware.rate_limit import BetterAuthRateLimitMiddleware
from authbridge.app.middleware.request_id import RequestIdMiddleware
from authbridge.app.services.container import AuthComponents


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings (defaults to ``get_settings()``)
        engine: Database engine for challenge mappings; created from
            ``settings.database_url`` when omitted
        http_client: Upstream client, e.g. one with a mock transport

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    setup_logging(settings)
    logger = get_logger(__name__)

    owns_engine = engine is None
    if engine is None:
        engine = create_engine_from_settings(settings)

    components = AuthComponents.from_settings(settings, engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[dict, None]:
        """Application lifespan context manager.

        Initializes the upstream HTTP client, the challenge store and the
        cleanup scheduler on startup and releases them on shutdown.
        """
        async with init_http_client(settings, http_client) as client:
            await components.start()
            logger.info(
                "Application startup complete",
                extra={
                    "better_auth_enabled": settings.better_auth_enabled,
                    "rate_limit": components.better_auth_rate_limiter.is_enabled(),
                    "legacy_rate_limit": components.legacy_rate_limiter.is_enabled(),
                    "challenge_storage": components.challenge_store.is_enabled(),
                },
            )
            try:
                yield {"http_client": client}
            finally:
                await components.stop()

        if owns_engine:
            await dispose_engine(engine)
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="authbridge",
        description="Authentication bridge with rate limiting, session cookie translation and passkey challenge storage",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.auth = components
    app.state.settings = settings

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        BetterAuthRateLimitMiddleware,
        limiter=components.better_auth_rate_limiter,
        base_path=settings.better_auth_base_path,
        enabled=settings.better_auth_enabled,
        trust_proxy_headers=settings.trust_proxy_headers,
    )

    # Request ID middleware (outermost so rate limit logs carry the request id)
    app.add_middleware(RequestIdMiddleware, trust_proxy_headers=settings.trust_proxy_headers)

    if settings.better_auth_enabled:
        app.include_router(build_auth_router(settings.better_auth_base_path))

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with component status."""
        return {
            "status": "ok",
            "components": {
                "better_auth": {"enabled": settings.better_auth_enabled},
                "rate_limit": components.better_auth_rate_limiter.get_stats(),
                "legacy_rate_limit": components.legacy_rate_limiter.get_stats(),
                "challenge_storage": {"enabled": components.challenge_store.is_enabled()},
                "cleanup": {"running": components.scheduler.is_running},
            },
        }

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle rate limit rejections from guards."""
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)

    @app.exception_handler(AuthBridgeException)
    async def authbridge_exception_handler(request: Request, exc: AuthBridgeException) -> JSONResponse:
        """Handle all other authbridge errors.

        Server errors in production answer with the generic error title;
        the message only goes to the log.
        """
        content = exc.to_response()
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}")
            if settings.is_production:
                content["message"] = exc.error
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        The traceback is logged server-side and never returned; debug mode
        returns the exception message.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={"exception_type": type(exc).__name__},
        )
        message = f"{type(exc).__name__}: {exc}" if settings.debug else "Internal server error"
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": message,
                "statusCode": 500,
                "request_id": request_id,
            },
        )

    return app
