"""Job status events shared by the push stream and the status lookup."""

import json

from pydantic import BaseModel, Field

from src.jobs.schemas import Job, JobStatus


class StatusEvent(BaseModel):
    """A point-in-time view of a job's progress.

    The same shape is pushed over the event stream and returned by
    ``GET /jobs/{id}/status``.
    """

    job_id: str
    status: JobStatus
    error: str | None = None
    error_code: str | None = None
    overall_score: float | None = None
    progress: int = Field(ge=0, le=100)
    message: str

    @classmethod
    def from_job(cls, job: Job) -> "StatusEvent":
        return cls(
            job_id=job.job_id,
            status=job.status,
            error=job.error_message,
            error_code=job.error_code.value if job.error_code else None,
            overall_score=job.overall_score,
            progress=job.status.progress,
            message=job.status.message,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_sse(self) -> str:
        """Format as one server-sent event frame."""
        return f"event: status\ndata: {self.model_dump_json()}\n\n"


SSE_HEARTBEAT = ": heartbeat\n\n"


def parse_sse_data(line: str) -> StatusEvent | None:
    """Parse a ``data:`` line of the stream; other lines yield None."""
    if not line.startswith("data:"):
        return None
    return StatusEvent.model_validate(json.loads(line[5:].strip()))
