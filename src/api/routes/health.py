"""
Health check endpoints with infrastructure and circuit breaker state.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from src.api.auth import verify_api_key
from src.api.dependencies import (
    get_breaker_registry,
    get_database_if_available,
    get_redis_client,
    get_started_job_runner,
    get_status_broadcaster,
)
from src.api.models import (
    BreakerStatsItem,
    BreakerStatsResponse,
    ComponentHealth,
    HealthResponse,
)
from src.breaker import BreakerRegistry, CircuitState
from src.config.settings import get_settings
from src.jobs.runner import JobRunner
from src.status.broadcaster import StatusBroadcaster
from src.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database | None) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    if db is None:
        return ComponentHealth(status="unhealthy", details={"error": "not connected"})
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


async def _check_redis(redis_client) -> ComponentHealth:
    """Check Redis connectivity and measure latency."""
    start = time.perf_counter()
    try:
        await redis_client.ping()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service, its dependencies and its circuit breakers.",
)
async def health_check(
    db: Database | None = Depends(get_database_if_available),
    breakers: BreakerRegistry = Depends(get_breaker_registry),
    broadcaster: StatusBroadcaster = Depends(get_status_broadcaster),
    runner: JobRunner | None = Depends(get_started_job_runner),
) -> HealthResponse:
    """
    Status logic:
    - unhealthy: database is down
    - degraded: a breaker is open, or the Redis relay is enabled but unreachable
    - healthy: all components operational
    """
    components: dict[str, ComponentHealth] = {}

    db_health = await _check_database(db)
    components["database"] = db_health

    redis_health: ComponentHealth | None = None
    if get_settings().status_relay_enabled:
        redis_health = await _check_redis(get_redis_client())
        components["redis"] = redis_health

    breaker_states = {name: s.state.value for name, s in breakers.all_stats().items()}

    if db_health.status == "unhealthy":
        status = "unhealthy"
    elif (
        (redis_health is not None and redis_health.status == "unhealthy")
        or any(s != CircuitState.CLOSED.value for s in breaker_states.values())
    ):
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        components=components,
        breakers=breaker_states,
        active_jobs=len(runner.active_jobs) if runner is not None else 0,
        status_subscribers=broadcaster.subscriber_count(),
        version="0.1.0",
    )


@router.get(
    "/health/breakers",
    response_model=BreakerStatsResponse,
    summary="Circuit breaker statistics",
    description="Per-dependency breaker state and failure counters.",
)
async def breaker_stats(
    api_key: str = Depends(verify_api_key),
    breakers: BreakerRegistry = Depends(get_breaker_registry),
) -> BreakerStatsResponse:
    return BreakerStatsResponse(
        breakers=[
            BreakerStatsItem(**stats.to_dict())
            for stats in breakers.all_stats().values()
        ]
    )
