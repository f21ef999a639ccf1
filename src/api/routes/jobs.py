"""Call analysis job endpoints: upload, lookup, listing, deletion, resubmission."""

import time

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status

from src.api.auth import verify_api_key
from src.api.dependencies import get_job_runner, get_jobs_config, get_orchestrator
from src.api.models import (
    ErrorResponse,
    JobCreatedResponse,
    JobDetail,
    JobListResponse,
    JobSummary,
)
from src.api.rate_limit import UPLOAD_LIMIT, limiter
from src.breaker import CircuitOpenError
from src.jobs.config import JobsConfig
from src.jobs.errors import (
    DependencyError,
    InvalidTransitionError,
    JobNotFoundError,
    ValidationError,
)
from src.jobs.orchestrator import JobOrchestrator
from src.jobs.runner import JobRunner
from src.jobs.schemas import JobStatus
from src.observability.metrics import get_metrics
from src.status.events import StatusEvent

logger = structlog.get_logger(__name__)
router = APIRouter()

_UNAVAILABLE = (CircuitOpenError, DependencyError, TimeoutError)


def _unavailable(e: Exception) -> HTTPException:
    logger.warning("Dependency unavailable", error_type=type(e).__name__, error=str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Service temporarily unavailable. Try again in a few minutes.",
    )


def _not_found(job_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Job {job_id!r} not found",
    )


def _links(job_id: str) -> tuple[str, str]:
    return f"/jobs/{job_id}/status", f"/jobs/{job_id}/events"


@router.post(
    "/jobs",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported or empty upload"},
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        413: {"model": ErrorResponse, "description": "Upload too large"},
        503: {"model": ErrorResponse, "description": "Storage or database unavailable"},
    },
    summary="Upload a call recording",
    description=(
        "Upload an audio recording for transcription and scoring. "
        "Returns immediately with a pending job; follow progress via "
        "the status endpoint or the event stream."
    ),
)
@limiter.limit(UPLOAD_LIMIT)
async def create_job(
    request: Request,
    file: UploadFile = File(..., description="Audio recording"),
    scenario_type: str | None = Form(default=None, max_length=64),
    api_key: str = Depends(verify_api_key),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    runner: JobRunner = Depends(get_job_runner),
    config: JobsConfig = Depends(get_jobs_config),
) -> JobCreatedResponse:
    start_time = time.perf_counter()
    metrics = get_metrics()

    # One byte past the limit is enough to know the upload is too large
    data = await file.read(config.max_upload_bytes + 1)

    try:
        job = await orchestrator.create_job(
            owner_id=api_key,
            filename=file.filename,
            content_type=file.content_type,
            data=data,
            scenario_type=scenario_type,
        )
    except ValidationError as e:
        metrics.record_api_request("create_job", "rejected", time.perf_counter() - start_time)
        raise HTTPException(
            status_code=(
                status.HTTP_413_REQUEST_ENTITY_TOO_LARGE if e.too_large
                else status.HTTP_400_BAD_REQUEST
            ),
            detail=str(e),
        )
    except _UNAVAILABLE as e:
        metrics.record_api_request("create_job", "unavailable", time.perf_counter() - start_time)
        raise _unavailable(e)

    runner.submit(job.job_id)

    latency_ms = (time.perf_counter() - start_time) * 1000
    metrics.record_api_request("create_job", "accepted", latency_ms / 1000)
    logger.info(
        "Job accepted",
        job_id=job.job_id,
        size_bytes=job.file_size_bytes,
        latency_ms=round(latency_ms, 2),
    )

    status_url, events_url = _links(job.job_id)
    return JobCreatedResponse(
        job=JobSummary.from_job(job),
        status_url=status_url,
        events_url=events_url,
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/jobs",
    response_model=JobListResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        503: {"model": ErrorResponse, "description": "Database unavailable"},
    },
    summary="List jobs",
    description="List the caller's jobs, newest first, optionally filtered by status.",
)
async def list_jobs(
    status_filter: JobStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    api_key: str = Depends(verify_api_key),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> JobListResponse:
    start_time = time.perf_counter()
    try:
        jobs = await orchestrator.list_jobs(
            api_key, status=status_filter, limit=limit, offset=offset,
        )
    except _UNAVAILABLE as e:
        raise _unavailable(e)

    latency_ms = (time.perf_counter() - start_time) * 1000
    return JobListResponse(
        jobs=[JobSummary.from_job(j) for j in jobs],
        total=len(jobs),
        limit=limit,
        offset=offset,
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/jobs/{job_id}",
    response_model=JobDetail,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Job not found"},
        503: {"model": ErrorResponse, "description": "Database unavailable"},
    },
    summary="Get job",
    description="Full job record including transcript and analysis once available.",
)
async def get_job(
    job_id: str,
    api_key: str = Depends(verify_api_key),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> JobDetail:
    try:
        job = await orchestrator.get_job(job_id, api_key)
    except JobNotFoundError:
        raise _not_found(job_id)
    except _UNAVAILABLE as e:
        raise _unavailable(e)
    return JobDetail.from_job(job)


@router.get(
    "/jobs/{job_id}/status",
    response_model=StatusEvent,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Job not found"},
        503: {"model": ErrorResponse, "description": "Database unavailable"},
    },
    summary="Get job status",
    description=(
        "Point-in-time status with progress and message. Same shape as the "
        "events pushed over the event stream; used by polling clients."
    ),
)
async def get_job_status(
    job_id: str,
    api_key: str = Depends(verify_api_key),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> StatusEvent:
    try:
        job = await orchestrator.get_job(job_id, api_key)
    except JobNotFoundError:
        raise _not_found(job_id)
    except _UNAVAILABLE as e:
        raise _unavailable(e)
    return StatusEvent.from_job(job)


@router.delete(
    "/jobs/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Job not found"},
        503: {"model": ErrorResponse, "description": "Database unavailable"},
    },
    summary="Delete job",
    description="Soft-delete a job. It disappears from lookups and listings.",
)
async def delete_job(
    job_id: str,
    api_key: str = Depends(verify_api_key),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> None:
    try:
        await orchestrator.delete_job(job_id, api_key)
    except JobNotFoundError:
        raise _not_found(job_id)
    except _UNAVAILABLE as e:
        raise _unavailable(e)


@router.post(
    "/jobs/{job_id}/resubmit",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Job has not failed"},
        503: {"model": ErrorResponse, "description": "Database unavailable"},
    },
    summary="Resubmit a failed job",
    description=(
        "Create a new pending job from a failed job's recording. "
        "The failed job is left untouched."
    ),
)
async def resubmit_job(
    job_id: str,
    api_key: str = Depends(verify_api_key),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    runner: JobRunner = Depends(get_job_runner),
) -> JobCreatedResponse:
    start_time = time.perf_counter()
    try:
        job = await orchestrator.resubmit(job_id, api_key)
    except JobNotFoundError:
        raise _not_found(job_id)
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Only failed jobs can be resubmitted (job is {e.current})",
        )
    except _UNAVAILABLE as e:
        raise _unavailable(e)

    runner.submit(job.job_id)
    latency_ms = (time.perf_counter() - start_time) * 1000

    status_url, events_url = _links(job.job_id)
    return JobCreatedResponse(
        job=JobSummary.from_job(job),
        status_url=status_url,
        events_url=events_url,
        latency_ms=round(latency_ms, 2),
    )
