"""
Dashhub API Server

Entry point for the FastAPI application.
"""

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from app.core.accesscontrol import AccessControl
from app.core.config import Settings, get_settings
from app.core.database import dispose_engine
from app.core.events import EventPublisher
from app.core.logging import configure_logging
from app.core.metrics import MetricsCollector
from app.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware
from app.core.redis import close_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router
from app.services.notifications import EmailService
from app.services.search import SearchService, SQLSearchService

log = structlog.get_logger()


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), not 422."""
    return JSONResponse(
        status_code=400,
        content={"detail": "bad request data", "errors": jsonable_encoder(exc.errors())},
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    search: Optional[SearchService] = None,
    email: Optional[EmailService] = None,
    access_control: Optional[AccessControl] = None,
    events: Optional[EventPublisher] = None,
    metrics: Optional[MetricsCollector] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the production implementations; tests pass their own.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Dashhub",
        description="Dashboard search and organization invites.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.search = search or SQLSearchService(settings)
    app.state.email = email or EmailService(settings)
    app.state.access_control = access_control or AccessControl()
    app.state.events = events or EventPublisher()
    app.state.metrics = metrics or MetricsCollector()

    # Middleware (outermost first)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-CSRF-Token"],
    )

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Auth routes
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.get("/metrics", tags=["System"], response_class=PlainTextResponse)
    async def metrics_endpoint():
        """Prometheus text exposition of the app's counters."""
        return app.state.metrics.to_prometheus()

    @app.on_event("startup")
    async def on_startup():
        log.info("Dashhub starting", app_url=settings.app_url, search_enabled=settings.search_enabled)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Dashhub shutting down")
        await close_redis()
        await dispose_engine()

    return app


app = create_app()
