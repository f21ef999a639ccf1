"""Schema definitions for call analysis jobs.

Maps 1:1 to the ``call_jobs`` database table. Status-dependent fields are
checked by ``Job.validate()``, which runs on every construction, so a
row read back from storage is re-validated before anyone can use it.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.jobs.errors import ErrorCode, JobInvariantError
from src.scoring.schemas import ScoringResult, TranscriptEntry


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    SCORING = "scoring"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def rank(self) -> int:
        """Pipeline position; both terminal states share the highest rank."""
        return _RANKS[self]

    @property
    def progress(self) -> int:
        return STATUS_PROGRESS[self]

    @property
    def message(self) -> str:
        return STATUS_MESSAGES[self]


_RANKS = {
    JobStatus.PENDING: 0,
    JobStatus.TRANSCRIBING: 1,
    JobStatus.SCORING: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
}

STATUS_PROGRESS: dict[JobStatus, int] = {
    JobStatus.PENDING: 10,
    JobStatus.TRANSCRIBING: 40,
    JobStatus.SCORING: 70,
    JobStatus.COMPLETED: 100,
    JobStatus.FAILED: 0,
}

STATUS_MESSAGES: dict[JobStatus, str] = {
    JobStatus.PENDING: "Preparing to process...",
    JobStatus.TRANSCRIBING: "Transcribing audio with Whisper...",
    JobStatus.SCORING: "Analyzing call performance...",
    JobStatus.COMPLETED: "Analysis complete!",
    JobStatus.FAILED: "Processing failed",
}

# Statuses in which a transcript must / may be attached
_TRANSCRIPT_REQUIRED = frozenset({JobStatus.SCORING, JobStatus.COMPLETED})
_TRANSCRIPT_ALLOWED = _TRANSCRIPT_REQUIRED | {JobStatus.FAILED}


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex}"


@dataclass
class Job:
    """A call recording moving through the analysis pipeline.

    Attributes:
        owner_id: Identifier of the uploading user (the API key).
        original_filename: Filename as uploaded.
        content_type: Validated media type.
        file_size_bytes: Size of the stored audio.
        audio_ref: Opaque reference into the audio store.
        scenario_type: Practice scenario the call is scored as.
        status: Current pipeline status.
        duration_seconds: Call length, known after transcription.
        transcript: Speaker turns; required in scoring/completed, kept on
            jobs that failed after transcription.
        analysis: Scoring result; only on completed jobs.
        overall_score: Copy of ``analysis.overall_score`` for listing.
        error_message: Sanitized user-facing message; only on failed jobs.
        error_code: Machine-readable failure code; only on failed jobs.
        deleted_at: Soft-delete marker.
    """

    owner_id: str
    original_filename: str
    content_type: str
    file_size_bytes: int
    audio_ref: str
    scenario_type: str = "cold_call"
    job_id: str = field(default_factory=new_job_id)
    status: JobStatus = JobStatus.PENDING
    duration_seconds: float | None = None
    transcript: tuple[TranscriptEntry, ...] | None = None
    analysis: ScoringResult | None = None
    overall_score: float | None = None
    error_message: str | None = None
    error_code: ErrorCode | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        self.status = JobStatus(self.status)
        if self.error_code is not None:
            self.error_code = ErrorCode(self.error_code)
        if self.transcript is not None:
            self.transcript = tuple(self.transcript)
        self.validate()

    def validate(self) -> None:
        """Raise JobInvariantError if any field disagrees with the status."""
        s = self.status

        if self.file_size_bytes < 0:
            raise JobInvariantError(f"{self.job_id}: negative file size")
        if self.duration_seconds is not None and self.duration_seconds < 0:
            raise JobInvariantError(f"{self.job_id}: negative duration")

        if s in _TRANSCRIPT_REQUIRED and self.transcript is None:
            raise JobInvariantError(f"{self.job_id}: {s.value} job has no transcript")
        if s not in _TRANSCRIPT_ALLOWED and self.transcript is not None:
            raise JobInvariantError(f"{self.job_id}: {s.value} job has a transcript")

        if s == JobStatus.COMPLETED:
            if self.analysis is None or self.overall_score is None:
                raise JobInvariantError(f"{self.job_id}: completed job has no analysis")
            if self.overall_score != self.analysis.overall_score:
                raise JobInvariantError(f"{self.job_id}: overall_score disagrees with analysis")
        elif self.analysis is not None or self.overall_score is not None:
            raise JobInvariantError(f"{self.job_id}: {s.value} job has an analysis")

        if s == JobStatus.FAILED:
            if not self.error_message or self.error_code is None:
                raise JobInvariantError(f"{self.job_id}: failed job has no error")
        elif self.error_message is not None or self.error_code is not None:
            raise JobInvariantError(f"{self.job_id}: {s.value} job has an error")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self, include_transcript: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "job_id": self.job_id,
            "owner_id": self.owner_id,
            "original_filename": self.original_filename,
            "content_type": self.content_type,
            "file_size_bytes": self.file_size_bytes,
            "scenario_type": self.scenario_type,
            "status": self.status.value,
            "duration_seconds": self.duration_seconds,
            "overall_score": self.overall_score,
            "error_message": self.error_message,
            "error_code": self.error_code.value if self.error_code else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_transcript:
            data["transcript"] = (
                [t.model_dump() for t in self.transcript]
                if self.transcript is not None else None
            )
            data["analysis"] = self.analysis.model_dump() if self.analysis else None
        return data
