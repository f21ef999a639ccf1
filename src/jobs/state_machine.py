"""Job status state machine.

pending → transcribing → scoring → completed, with failed reachable from
every non-terminal state. Terminal states never transition again.
"""

from src.jobs.schemas import JobStatus

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.TRANSCRIBING, JobStatus.FAILED}),
    JobStatus.TRANSCRIBING: frozenset({JobStatus.SCORING, JobStatus.FAILED}),
    JobStatus.SCORING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def predecessors(target: JobStatus) -> list[JobStatus]:
    """Statuses from which ``target`` may be entered, in pipeline order."""
    return [s for s in JobStatus if target in ALLOWED_TRANSITIONS[s]]
