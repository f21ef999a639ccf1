"""Job pipeline error taxonomy and the user-facing failure messages.

Raw exception text is logged, never shown to users: a failed job stores
one of the sanitized messages below, keyed by its error code.
"""

import enum


class ErrorCode(str, enum.Enum):
    """Failure codes stored on failed jobs and reported in status events."""

    SERVICE_UNAVAILABLE = "service_unavailable"
    TRANSCRIPTION_FAILED = "transcription_failed"
    SCORING_FAILED = "scoring_failed"
    INSUFFICIENT_DATA = "insufficient_data"
    PROCESSING_TIMEOUT = "processing_timeout"
    INTERNAL_ERROR = "internal_error"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.SERVICE_UNAVAILABLE: (
        "Service temporarily unavailable. Try again in a few minutes."
    ),
    ErrorCode.TRANSCRIPTION_FAILED: "Failed to transcribe audio. Try a clearer recording.",
    ErrorCode.SCORING_FAILED: "Failed to analyze call. Please try again.",
    ErrorCode.INSUFFICIENT_DATA: (
        "Call was too short to analyze. Record a longer conversation and try again."
    ),
    ErrorCode.PROCESSING_TIMEOUT: "Processing took too long. Please try again.",
    ErrorCode.INTERNAL_ERROR: "Something went wrong. Please try again.",
}


def user_message(code: ErrorCode) -> str:
    return ERROR_MESSAGES[code]


class JobError(Exception):
    """Base class for job pipeline errors."""


class ValidationError(JobError):
    """Upload rejected before any job record exists."""

    def __init__(self, message: str, field: str = "file", too_large: bool = False) -> None:
        self.field = field
        self.too_large = too_large
        super().__init__(message)


class DependencyError(JobError):
    """A dependency call failed while its circuit was admissible."""

    def __init__(self, dependency: str, cause: BaseException) -> None:
        self.dependency = dependency
        self.cause = cause
        super().__init__(f"{dependency} call failed: {type(cause).__name__}: {cause}")


class InsufficientDataError(JobError):
    """Transcript too short to score honestly."""

    def __init__(self, entries: int, required: int) -> None:
        self.entries = entries
        self.required = required
        super().__init__(f"Transcript has {entries} entries, need at least {required}")


class InvalidTransitionError(JobError):
    """A status change that the state machine does not allow."""

    def __init__(self, job_id: str, current: str | None, target: str) -> None:
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id}: cannot transition {current} -> {target}")


class JobNotFoundError(JobError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class JobInvariantError(JobError):
    """A Job's fields are inconsistent with its status."""
