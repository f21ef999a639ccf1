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

from src.api.dependencies import (
    cleanup_dependencies,
    get_database,
    get_job_runner,
    get_jobs_config,
    get_redis_client,
    get_status_broadcaster,
)
from src.api.middleware.timeout import TimeoutMiddleware
from src.api.routes import events, health, jobs, scoring
from src.config.settings import get_settings
from src.jobs.repository import JobRepository
from src.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging()
    logger.info("Call coach API starting up", environment=settings.environment)

    try:
        database = await get_database()
        await JobRepository(database).create_table()
    except Exception as e:
        # Requests fail fast through the database breaker until it recovers
        logger.error("Database unavailable at startup", error=str(e))
    else:
        if get_jobs_config().resume_on_startup:
            try:
                runner = await get_job_runner()
                await runner.resume_unfinished()
            except Exception as e:
                logger.error("Failed to resume unfinished jobs", error=str(e))

    if settings.status_relay_enabled:
        await get_status_broadcaster().start(get_redis_client())

    yield

    logger.info("Call coach API shutting down")
    await cleanup_dependencies()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health and circuit breaker state"},
        {"name": "jobs", "description": "Call recording upload and job lifecycle"},
        {"name": "events", "description": "Server-sent job status stream"},
        {"name": "scoring", "description": "Transcript scoring playground"},
    ]

    app = FastAPI(
        title="Call Coach API",
        description="""
API for analyzing recorded sales practice calls.

## Workflow

1. `POST /jobs` with an audio file. The job starts **pending**.
2. The recording is transcribed, then scored against a six-dimension rubric.
3. Follow progress with `GET /jobs/{id}/events` (server-sent events) or poll
   `GET /jobs/{id}/status`.
4. `GET /jobs/{id}` returns the transcript and analysis once **completed**.

## Authentication

Requires `X-API-KEY` header for all requests except `/health`.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request timeout middleware (must be added before logging middleware
    # so timeout wraps the entire request lifecycle)
    if settings.request_timeout_seconds > 0:
        app.add_middleware(
            TimeoutMiddleware,
            timeout_seconds=settings.request_timeout_seconds,
        )

    # Request logging and correlation ID middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
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

    if settings.rate_limit_enabled:
        from slowapi import _rate_limit_exceeded_handler
        from slowapi.errors import RateLimitExceeded

        from src.api.rate_limit import limiter

        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(jobs.router, tags=["jobs"])
    app.include_router(events.router, tags=["events"])
    app.include_router(scoring.router, tags=["scoring"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Call Coach API",
            "version": "0.1.0",
            "docs": "/docs",
        }

    return app
