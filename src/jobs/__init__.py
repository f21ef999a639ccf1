"""Call analysis jobs: model, state machine, persistence and orchestration.

The package root exports only the job model and its errors so that
status events can depend on it. Import the orchestrator and runner from
their modules:

    from src.jobs.orchestrator import JobOrchestrator
    from src.jobs.runner import JobRunner
"""

from src.jobs.config import JobsConfig
from src.jobs.errors import (
    DependencyError,
    ErrorCode,
    InsufficientDataError,
    InvalidTransitionError,
    JobError,
    JobInvariantError,
    JobNotFoundError,
    ValidationError,
)
from src.jobs.schemas import Job, JobStatus

__all__ = [
    "DependencyError",
    "ErrorCode",
    "InsufficientDataError",
    "InvalidTransitionError",
    "Job",
    "JobError",
    "JobInvariantError",
    "JobNotFoundError",
    "JobStatus",
    "JobsConfig",
    "ValidationError",
]
