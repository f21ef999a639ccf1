"""
Pydantic models for API requests and responses.
"""

from typing import Any

from pydantic import BaseModel, Field

from src.jobs.schemas import Job
from src.scoring.schemas import ScoringResult, TranscriptEntry


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(..., description="Error message")
    error_type: str = Field(default="error", description="Error type")


# Job models


class JobSummary(BaseModel):
    """Job fields suitable for listings (no transcript or analysis)."""

    job_id: str
    original_filename: str
    content_type: str
    file_size_bytes: int
    scenario_type: str
    status: str
    duration_seconds: float | None = None
    overall_score: float | None = None
    error_message: str | None = None
    error_code: str | None = None
    created_at: str
    updated_at: str

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        data = job.to_dict(include_transcript=False)
        data.pop("owner_id")
        return cls(**data)


class JobDetail(JobSummary):
    """Full job including transcript and analysis when present."""

    transcript: list[TranscriptEntry] | None = None
    analysis: ScoringResult | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobDetail":
        summary = JobSummary.from_job(job)
        return cls(
            **summary.model_dump(),
            transcript=list(job.transcript) if job.transcript is not None else None,
            analysis=job.analysis,
        )


class JobCreatedResponse(BaseModel):
    job: JobSummary
    status_url: str = Field(..., description="Point-in-time status lookup")
    events_url: str = Field(..., description="Server-sent event stream of status changes")
    latency_ms: float


class JobListResponse(BaseModel):
    jobs: list[JobSummary]
    total: int = Field(..., description="Jobs in this page")
    limit: int
    offset: int
    latency_ms: float


# Scoring playground


class AnalyzeRequest(BaseModel):
    """Score an already-transcribed call."""

    transcript: list[TranscriptEntry] = Field(..., max_length=2000)
    duration_seconds: float = Field(..., ge=0.0, le=6 * 3600)
    scenario_type: str = Field(default="cold_call", max_length=64)


class AnalyzeResponse(BaseModel):
    result: ScoringResult
    latency_ms: float


# Health


class ComponentHealth(BaseModel):
    """Health status of an individual infrastructure component."""

    status: str = Field(..., description="Component status: healthy or unhealthy")
    latency_ms: float | None = Field(default=None)
    details: dict[str, Any] | None = Field(default=None)


class HealthResponse(BaseModel):
    status: str = Field(..., description="Overall service status: healthy, degraded, or unhealthy")
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    breakers: dict[str, str] = Field(
        default_factory=dict, description="Circuit breaker state per dependency",
    )
    active_jobs: int = 0
    status_subscribers: int = 0
    version: str = "0.1.0"


class BreakerStatsItem(BaseModel):
    name: str
    state: str
    failures: int
    successes: int
    last_failure: str | None = None
    last_success: str | None = None
    total_requests: int
    total_failures: int


class BreakerStatsResponse(BaseModel):
    breakers: list[BreakerStatsItem]
