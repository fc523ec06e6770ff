"""FastAPI application entry point.

Creates the FastAPI application instance with exception handlers,
middleware configuration and the notification relay.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from exchange.api.v1.router import api_router
from exchange.core.config import get_settings
from exchange.core.exceptions import AppException
from exchange.core.logging import configure_logging
from exchange.db.session import dispose_engine
from exchange.services.notifications import NotificationRelay


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("USDT/JOD exchange API starting")
    yield
    await dispose_engine()
    logger.info("USDT/JOD exchange API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="USDT/JOD Exchange",
        description="Custodial USDT (TRC20) / JOD exchange with admin-reviewed deposits and withdrawals",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # One relay per application instance; subscribers live as long as the app
    app.state.relay = NotificationRelay(max_queue_size=settings.NOTIFICATION_QUEUE_SIZE)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CLIENT_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Register API routers
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


def error_body(exc: AppException) -> dict:
    return {
        "error": {
            "type": exc.__class__.__name__,
            "message": exc.message,
            "status_code": exc.status_code,
            "retryable": exc.retryable,
        }
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers for the application."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request,
        exc: AppException,
    ) -> JSONResponse:
        """Handle all custom application exceptions.

        Returns a consistent JSON error response format.
        """
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(
                f"{request.method} {request.url.path} -> {exc.status_code} "
                f"{exc.__class__.__name__}: {exc.message}"
            )
        return JSONResponse(status_code=exc.status_code, content=error_body(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content=error_body(AppException("Internal server error")),
        )


# Create the application instance
app = create_app()
