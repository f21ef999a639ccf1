"""Scoring playground: score a transcript without uploading audio."""

import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.api.auth import verify_api_key
from src.api.dependencies import get_jobs_config
from src.api.models import AnalyzeRequest, AnalyzeResponse, ErrorResponse
from src.api.rate_limit import limiter
from src.config.settings import get_settings
from src.jobs.config import JobsConfig
from src.jobs.errors import ErrorCode, user_message
from src.scoring import RubricConfig, analyze, get_rubric

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/scoring/analyze",
    response_model=AnalyzeResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Invalid or too short transcript"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="Score a transcript",
    description=(
        "Run the rule-based scorer on an already-transcribed call. "
        "Deterministic: the same transcript and duration always score the same. "
        "Transcripts too short to score honestly are rejected, not scored."
    ),
)
@limiter.limit(lambda: get_settings().rate_limit_default)
async def analyze_transcript(
    request: Request,
    body: AnalyzeRequest,
    api_key: str = Depends(verify_api_key),
    rubric: RubricConfig = Depends(get_rubric),
    jobs_config: JobsConfig = Depends(get_jobs_config),
) -> AnalyzeResponse:
    start_time = time.perf_counter()

    if len(body.transcript) < jobs_config.min_transcript_entries:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=user_message(ErrorCode.INSUFFICIENT_DATA),
        )

    try:
        result = analyze(
            body.transcript,
            body.duration_seconds,
            scenario_type=body.scenario_type,
            rubric=rubric,
        )
    except Exception as e:
        logger.error("analyze_transcript_failed", error=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze transcript",
        )

    latency_ms = (time.perf_counter() - start_time) * 1000
    logger.info(
        "Transcript scored",
        entries=len(body.transcript),
        overall_score=result.overall_score,
        latency_ms=round(latency_ms, 2),
    )
    return AnalyzeResponse(result=result, latency_ms=round(latency_ms, 2))
