"""Job repository backed by the ``call_jobs`` table.

Status updates are guarded in SQL: the UPDATE only matches while the row
is in a legal predecessor status, so two writers racing on one job can
never move it backwards or out of a terminal state.
"""

import json
from typing import Any

from src.jobs.errors import InvalidTransitionError, JobNotFoundError
from src.jobs.schemas import Job, JobStatus
from src.jobs.state_machine import predecessors
from src.observability.logging import get_logger
from src.scoring.schemas import ScoringResult, TranscriptEntry
from src.storage.database import Database

logger = get_logger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS call_jobs (
    job_id            TEXT PRIMARY KEY,
    owner_id          TEXT NOT NULL,
    original_filename TEXT NOT NULL,
    content_type      TEXT NOT NULL,
    file_size_bytes   BIGINT NOT NULL,
    audio_ref         TEXT NOT NULL,
    scenario_type     TEXT NOT NULL DEFAULT 'cold_call',
    status            TEXT NOT NULL DEFAULT 'pending',
    duration_seconds  DOUBLE PRECISION,
    transcript        JSONB,
    analysis          JSONB,
    overall_score     DOUBLE PRECISION,
    error_message     TEXT,
    error_code        TEXT,
    created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    deleted_at        TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_call_jobs_owner_created
    ON call_jobs(owner_id, created_at DESC) WHERE deleted_at IS NULL;
CREATE INDEX IF NOT EXISTS idx_call_jobs_unfinished
    ON call_jobs(status) WHERE status IN ('pending', 'transcribing', 'scoring');
"""

_INSERT_SQL = """
INSERT INTO call_jobs (
    job_id, owner_id, original_filename, content_type, file_size_bytes,
    audio_ref, scenario_type, status, created_at, updated_at
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
RETURNING *
"""

_UPDATE_STATUS_SQL = """
UPDATE call_jobs SET
    status = $2,
    transcript = COALESCE($3::jsonb, transcript),
    duration_seconds = COALESCE($4, duration_seconds),
    analysis = $5::jsonb,
    overall_score = $6,
    error_message = $7,
    error_code = $8,
    updated_at = NOW()
WHERE job_id = $1 AND status = ANY($9::text[])
RETURNING *
"""

_UNFINISHED = [JobStatus.PENDING.value, JobStatus.TRANSCRIBING.value, JobStatus.SCORING.value]


def _load_json(value: Any) -> Any:
    """asyncpg returns JSONB as text unless a codec is registered."""
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_job(row: Any) -> Job:
    """Convert an asyncpg Record to a Job (validated on construction)."""
    transcript = _load_json(row["transcript"])
    analysis = _load_json(row["analysis"])
    return Job(
        job_id=row["job_id"],
        owner_id=row["owner_id"],
        original_filename=row["original_filename"],
        content_type=row["content_type"],
        file_size_bytes=row["file_size_bytes"],
        audio_ref=row["audio_ref"],
        scenario_type=row["scenario_type"],
        status=JobStatus(row["status"]),
        duration_seconds=row["duration_seconds"],
        transcript=(
            tuple(TranscriptEntry.model_validate(t) for t in transcript)
            if transcript is not None else None
        ),
        analysis=ScoringResult.model_validate(analysis) if analysis is not None else None,
        overall_score=row["overall_score"],
        error_message=row["error_message"],
        error_code=row["error_code"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"],
    )


class JobRepository:
    """Persistence for call analysis jobs."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the call_jobs table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("call_jobs table ensured")

    async def create(self, job: Job) -> Job:
        row = await self._db.fetchrow(
            _INSERT_SQL,
            job.job_id,
            job.owner_id,
            job.original_filename,
            job.content_type,
            job.file_size_bytes,
            job.audio_ref,
            job.scenario_type,
            job.status.value,
            job.created_at,
            job.updated_at,
        )
        return _row_to_job(row)

    async def get_by_id(
        self,
        job_id: str,
        owner_id: str | None = None,
        *,
        include_deleted: bool = False,
    ) -> Job | None:
        """
        Fetch a job, optionally scoped to its owner.

        Soft-deleted jobs are invisible unless ``include_deleted`` is set.
        """
        conditions = ["job_id = $1"]
        params: list[Any] = [job_id]
        if owner_id is not None:
            params.append(owner_id)
            conditions.append(f"owner_id = ${len(params)}")
        if not include_deleted:
            conditions.append("deleted_at IS NULL")

        sql = f"SELECT * FROM call_jobs WHERE {' AND '.join(conditions)}"
        row = await self._db.fetchrow(sql, *params)
        return _row_to_job(row) if row else None

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        transcript: tuple[TranscriptEntry, ...] | None = None,
        duration_seconds: float | None = None,
        analysis: ScoringResult | None = None,
        error_message: str | None = None,
        error_code: str | None = None,
    ) -> Job:
        """
        Move a job to ``status`` if its current status allows it.

        Transcript and duration are only ever added, never cleared.

        Raises:
            JobNotFoundError: No such job.
            InvalidTransitionError: The job is not in a predecessor status.
        """
        row = await self._db.fetchrow(
            _UPDATE_STATUS_SQL,
            job_id,
            status.value,
            json.dumps([t.model_dump() for t in transcript]) if transcript is not None else None,
            duration_seconds,
            analysis.model_dump_json() if analysis is not None else None,
            analysis.overall_score if analysis is not None else None,
            error_message,
            error_code,
            [s.value for s in predecessors(status)],
        )
        if row is None:
            current = await self._db.fetchval(
                "SELECT status FROM call_jobs WHERE job_id = $1", job_id
            )
            if current is None:
                raise JobNotFoundError(job_id)
            raise InvalidTransitionError(job_id, current, status.value)
        return _row_to_job(row)

    async def list_by_owner(
        self,
        owner_id: str,
        *,
        status: JobStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Job]:
        """List an owner's visible jobs, newest first."""
        params: list[Any] = [owner_id]
        status_clause = ""
        if status is not None:
            params.append(status.value)
            status_clause = f"AND status = ${len(params)}"
        params.extend([limit, offset])

        sql = f"""
            SELECT * FROM call_jobs
            WHERE owner_id = $1 AND deleted_at IS NULL {status_clause}
            ORDER BY created_at DESC
            LIMIT ${len(params) - 1} OFFSET ${len(params)}
        """
        rows = await self._db.fetch(sql, *params)
        return [_row_to_job(row) for row in rows]

    async def list_unfinished(self, limit: int = 500) -> list[Job]:
        """Non-terminal jobs, oldest first (used to resume after restart)."""
        sql = """
            SELECT * FROM call_jobs
            WHERE status = ANY($1::text[]) AND deleted_at IS NULL
            ORDER BY created_at ASC
            LIMIT $2
        """
        rows = await self._db.fetch(sql, _UNFINISHED, limit)
        return [_row_to_job(row) for row in rows]

    async def soft_delete(self, job_id: str, owner_id: str) -> bool:
        """Mark a job deleted. Returns False if it was missing or already deleted."""
        sql = """
            UPDATE call_jobs SET deleted_at = NOW(), updated_at = NOW()
            WHERE job_id = $1 AND owner_id = $2 AND deleted_at IS NULL
            RETURNING job_id
        """
        result = await self._db.fetchval(sql, job_id, owner_id)
        return result is not None
