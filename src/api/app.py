"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.dependencies import cleanup_dependencies
from src.api.routes import credits, feeds, health, users
from src.config.settings import get_settings
from src.engagement.errors import (
    ConflictError,
    EngagementError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Most specific first; the first isinstance match wins
_ERROR_STATUS: list[tuple[type[EngagementError], int, str]] = [
    (ValidationError, 422, "validation"),
    (NotFoundError, 404, "not_found"),
    (ConflictError, 409, "conflict"),
    (ForbiddenError, 403, "forbidden"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Creator feed API starting up")
    yield
    logger.info("Creator feed API shutting down")
    await cleanup_dependencies()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "feeds", "description": "Aggregated feed, saves and reports"},
        {"name": "credits", "description": "Credit balance, awards and admin grants"},
        {"name": "users", "description": "Saved feeds, profile bonus and activity"},
    ]

    app = FastAPI(
        title="Creator Feed API",
        description="""
Aggregated creator-economy feed from Twitter and Reddit, with saves,
reports and an engagement credits ledger.

## Authentication

Requires `X-API-KEY` header (when API keys are configured) and an
`X-User-ID` header identifying the acting user for all requests except
`/health`.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Add CORS middleware (origins from CORS_ORIGINS env var, comma-separated)
    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging and correlation ID middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        # Correlation ID: use incoming header or generate a new one
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )

        # Bind to structlog contextvars for automatic log correlation
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            # Add correlation ID to response headers
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(EngagementError)
    async def engagement_exception_handler(request: Request, exc: EngagementError):
        for error_cls, status_code, error_type in _ERROR_STATUS:
            if isinstance(exc, error_cls):
                break
        else:
            status_code, error_type = 400, "error"

        logger.info(
            "Request rejected",
            path=request.url.path,
            error_type=error_type,
            detail=str(exc),
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error_type": error_type},
        )

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(feeds.router, tags=["feeds"])
    app.include_router(credits.router, tags=["credits"])
    app.include_router(users.router, tags=["users"])

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Creator Feed API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app
