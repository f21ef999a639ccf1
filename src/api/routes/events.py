"""
Server-sent event stream of a job's status changes.

The stream subscribes before reading the job, so a transition that lands
between the read and the subscription is still delivered. The first frame
is always the current status; the stream ends after a terminal status.
Idle periods are filled with comment frames so proxies keep the
connection open.
"""

import asyncio
from collections.abc import AsyncIterator

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from src.api.auth import verify_api_key
from src.api.dependencies import get_orchestrator, get_status_broadcaster
from src.api.models import ErrorResponse
from src.breaker import CircuitOpenError
from src.jobs.errors import DependencyError, JobNotFoundError
from src.jobs.orchestrator import JobOrchestrator
from src.status.broadcaster import StatusBroadcaster, Subscription
from src.status.config import StatusConfig
from src.status.events import SSE_HEARTBEAT, StatusEvent

logger = structlog.get_logger(__name__)
router = APIRouter()

_config = StatusConfig()


async def _event_stream(
    request: Request,
    broadcaster: StatusBroadcaster,
    sub: Subscription,
    current: StatusEvent,
) -> AsyncIterator[str]:
    try:
        yield current.to_sse()
        if current.is_terminal:
            return

        while True:
            if await request.is_disconnected():
                logger.debug("Event stream client disconnected", job_id=sub.job_id)
                return
            try:
                async with asyncio.timeout(_config.heartbeat_seconds):
                    event = await sub.get()
            except TimeoutError:
                yield SSE_HEARTBEAT
                continue

            # Stale or duplicate of what this stream already sent
            if event.status.rank <= current.status.rank:
                continue

            current = event
            yield event.to_sse()
            if event.is_terminal:
                return
    finally:
        broadcaster.unsubscribe(sub)


@router.get(
    "/jobs/{job_id}/events",
    responses={
        200: {"content": {"text/event-stream": {}}, "description": "Status event stream"},
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Job not found"},
        429: {"model": ErrorResponse, "description": "Too many listeners for this job"},
        503: {"model": ErrorResponse, "description": "Database unavailable"},
    },
    summary="Stream job status",
    description=(
        "Server-sent events with one `status` event per transition. "
        "Closes after the job completes or fails."
    ),
)
async def stream_job_events(
    job_id: str,
    request: Request,
    api_key: str = Depends(verify_api_key),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    broadcaster: StatusBroadcaster = Depends(get_status_broadcaster),
) -> StreamingResponse:
    try:
        sub = broadcaster.subscribe(job_id)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e))

    try:
        job = await orchestrator.get_job(job_id, api_key)
    except JobNotFoundError:
        broadcaster.unsubscribe(sub)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id!r} not found",
        )
    except (CircuitOpenError, DependencyError, TimeoutError) as e:
        broadcaster.unsubscribe(sub)
        logger.warning("Event stream unavailable", job_id=job_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable. Try again in a few minutes.",
        )
    except Exception:
        broadcaster.unsubscribe(sub)
        raise

    logger.info("Event stream opened", job_id=job_id, status=job.status.value)
    return StreamingResponse(
        _event_stream(request, broadcaster, sub, StatusEvent.from_job(job)),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
