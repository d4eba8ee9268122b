"""FastAPI application for the webhook subscription service.

This module provides:
- Application factory with store lifecycle management
- Domain error to HTTP status mapping
- Health check endpoint
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from webhook_subscriptions.config import Settings, settings as default_settings
from webhook_subscriptions.errors import WebhookSubscriptionError
from webhook_subscriptions.logging_config import configure_logging
from webhook_subscriptions.subscriptions.service import (
    SubscriptionService,
    create_store,
    get_subscription_service,
    has_subscription_service,
    set_subscription_service,
)

logger = structlog.get_logger(__name__)


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error message")
    error_type: str | None = Field(default=None, description="Error class name")
    details: dict[str, Any] = Field(default_factory=dict, description="Error details")


def create_app(
    app_settings: Settings | None = None,
    *,
    service: SubscriptionService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use (module settings if not provided).
        service: Pre-built subscription service. When omitted, one is
            built on startup from the configured store.

    Returns:
        Configured FastAPI application.
    """
    app_settings = app_settings or default_settings

    if service is not None:
        set_subscription_service(service)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # noqa: ARG001
        """Application lifespan handler."""
        configure_logging(app_settings.LOG_LEVEL, json_output=app_settings.LOG_JSON)
        logger.info("application_starting", store=app_settings.SUBSCRIPTION_STORE)

        if not has_subscription_service():
            store = create_store(app_settings)
            set_subscription_service(
                SubscriptionService(
                    store,
                    history_limit=app_settings.SUBSCRIPTION_HISTORY_LIMIT,
                )
            )

        active = get_subscription_service()
        await active.store.initialize()

        yield

        logger.info("application_shutting_down")
        await active.store.close()

    app = FastAPI(
        title="Webhook Subscriptions API",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.exception_handler(WebhookSubscriptionError)
    async def subscription_error_handler(
        request: Request, exc: WebhookSubscriptionError  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.message,
                error_type=exc.__class__.__name__,
                details=exc.details,
            ).model_dump(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception  # noqa: ARG001
    ) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )

    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all routes on the application.

    Args:
        app: FastAPI application.
    """
    from webhook_subscriptions.api.subscriptions import router as subscriptions_router

    app.include_router(subscriptions_router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, Any]:
        """Basic liveness check."""
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


# Create default app instance
app = create_app()
