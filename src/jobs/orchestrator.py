"""Drives call analysis jobs through the pipeline.

pending → transcribing → scoring → completed, or failed from any stage.

Each ``advance`` performs exactly one transition. Calls that leave the
process (transcription, database, audio storage) go through that
dependency's circuit breaker and under a timeout; scoring runs in-process.
Every transition is persisted before its status event is published, so a
subscriber never sees a status that a concurrent lookup would not return.

All stage failures end at this boundary: the job is marked failed with an
error code and a sanitized message, and the raw cause goes to the log.
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any

from src.breaker import DATABASE, STORAGE, TRANSCRIPTION, BreakerRegistry, CircuitOpenError
from src.jobs.config import JobsConfig
from src.jobs.errors import (
    DependencyError,
    ErrorCode,
    InsufficientDataError,
    InvalidTransitionError,
    JobError,
    JobNotFoundError,
    user_message,
)
from src.jobs.repository import JobRepository
from src.jobs.schemas import Job, JobStatus
from src.jobs.state_machine import can_transition
from src.jobs.validation import validate_upload
from src.observability.logging import get_logger, job_log_context
from src.observability.metrics import get_metrics
from src.scoring import RubricConfig, ScoringResult, TranscriptEntry, analyze
from src.status.broadcaster import StatusBroadcaster
from src.status.events import StatusEvent
from src.storage.audio import LocalAudioStore
from src.transcription.base import Transcriber

logger = get_logger(__name__)

Scorer = Callable[[Sequence[TranscriptEntry], float, str, RubricConfig | None], ScoringResult]

# Upper bound on advance() calls per process(); the pipeline has three steps.
_MAX_STEPS = 8


class JobOrchestrator:
    """Creates jobs and advances them through the state machine.

    Args:
        repository: Job persistence.
        transcriber: Speech-to-text collaborator.
        audio_store: Where uploaded recordings live.
        breakers: Registry providing one breaker per dependency.
        broadcaster: Status fan-out; publishing never fails a job.
        config: Upload limits and stage timeouts.
        rubric: Rubric override for the scorer (process default when None).
        scorer: Scoring function, ``analyze`` unless replaced.
    """

    def __init__(
        self,
        repository: JobRepository,
        transcriber: Transcriber,
        audio_store: LocalAudioStore,
        breakers: BreakerRegistry,
        broadcaster: StatusBroadcaster,
        config: JobsConfig | None = None,
        rubric: RubricConfig | None = None,
        scorer: Scorer = analyze,
    ) -> None:
        self._repo = repository
        self._transcriber = transcriber
        self._audio = audio_store
        self._breakers = breakers
        self._broadcaster = broadcaster
        self._config = config or JobsConfig()
        self._rubric = rubric
        self._scorer = scorer

    @property
    def config(self) -> JobsConfig:
        return self._config

    # ── Intake ─────────────────────────────────────────────

    async def create_job(
        self,
        owner_id: str,
        filename: str | None,
        content_type: str | None,
        data: bytes,
        scenario_type: str | None = None,
    ) -> Job:
        """
        Validate an upload, store the audio and persist a pending job.

        Raises:
            ValidationError: Bad type or size; nothing is stored.
            CircuitOpenError: Storage or database currently unavailable.
            DependencyError: Storage or database call failed.
        """
        normalized_type = validate_upload(content_type, filename, len(data), self._config)

        audio_ref = await self._call(
            STORAGE, self._config.storage_timeout_seconds,
            self._audio.save, owner_id, filename, data,
        )
        job = Job(
            owner_id=owner_id,
            original_filename=filename,
            content_type=normalized_type,
            file_size_bytes=len(data),
            audio_ref=audio_ref,
            scenario_type=scenario_type or self._config.default_scenario_type,
        )
        try:
            job = await self._persist(self._repo.create, job)
        except Exception:
            await self._discard_audio(audio_ref)
            raise

        get_metrics().record_job_created()
        logger.info(
            "Job created",
            job_id=job.job_id,
            owner_id=owner_id,
            content_type=normalized_type,
            size_bytes=len(data),
        )
        self._publish(job)
        return job

    async def resubmit(self, job_id: str, owner_id: str) -> Job:
        """
        Start a fresh pending job from a failed job's stored audio.

        Failed jobs stay failed; this is the only way to reprocess one.

        Raises:
            JobNotFoundError: No such job for this owner.
            InvalidTransitionError: The job has not failed.
        """
        previous = await self.get_job(job_id, owner_id)
        if previous.status != JobStatus.FAILED:
            raise InvalidTransitionError(job_id, previous.status.value, "resubmit")

        job = Job(
            owner_id=owner_id,
            original_filename=previous.original_filename,
            content_type=previous.content_type,
            file_size_bytes=previous.file_size_bytes,
            audio_ref=previous.audio_ref,
            scenario_type=previous.scenario_type,
        )
        job = await self._persist(self._repo.create, job)
        get_metrics().record_job_created()
        logger.info("Job resubmitted", job_id=job.job_id, previous_job_id=job_id)
        self._publish(job)
        return job

    # ── Queries ────────────────────────────────────────────

    async def get_job(self, job_id: str, owner_id: str | None = None) -> Job:
        job = await self._persist(self._repo.get_by_id, job_id, owner_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def list_jobs(
        self,
        owner_id: str,
        status: JobStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Job]:
        return await self._persist(
            self._repo.list_by_owner, owner_id, status=status, limit=limit, offset=offset,
        )

    async def delete_job(self, job_id: str, owner_id: str) -> None:
        """
        Soft-delete a job.

        An in-flight job stops at its next step: ``advance`` no longer finds
        it, so the stage already running finishes and nothing after it runs.
        """
        deleted = await self._persist(self._repo.soft_delete, job_id, owner_id)
        if not deleted:
            raise JobNotFoundError(job_id)
        logger.info("Job deleted", job_id=job_id, owner_id=owner_id)

    async def list_unfinished(self) -> list[Job]:
        return await self._persist(self._repo.list_unfinished)

    # ── Processing ─────────────────────────────────────────

    async def process(self, job_id: str) -> Job:
        """Advance a job until it reaches a terminal status."""
        job = await self.get_job(job_id)
        for _ in range(_MAX_STEPS):
            if job.is_terminal:
                return job
            job = await self.advance(job_id)
        raise RuntimeError(f"Job {job_id} did not terminate after {_MAX_STEPS} steps")

    async def advance(self, job_id: str) -> Job:
        """
        Perform one stage step for a job.

        Terminal jobs are returned unchanged. Stage failures mark the job
        failed and return it; only concurrent-modification errors and an
        unpersistable failure propagate.
        """
        job = await self.get_job(job_id)
        if job.is_terminal:
            return job

        stage = job.status
        with job_log_context(job_id, stage=stage.value):
            started = time.monotonic()
            try:
                if stage == JobStatus.PENDING:
                    job = await self._transition(job, JobStatus.TRANSCRIBING)
                elif stage == JobStatus.TRANSCRIBING:
                    job = await self._transcribe(job)
                else:
                    job = await self._score(job)
            except (InvalidTransitionError, JobNotFoundError):
                raise
            except Exception as e:
                job = await self._fail(job, self._classify(stage, e), e)
            finally:
                get_metrics().record_stage_latency(stage.value, time.monotonic() - started)
        return job

    async def _transcribe(self, job: Job) -> Job:
        audio = await self._call(
            STORAGE, self._config.storage_timeout_seconds, self._audio.read, job.audio_ref,
        )
        result = await self._call(
            TRANSCRIPTION,
            self._config.transcription_timeout_seconds,
            self._transcriber.transcribe,
            audio,
            job.original_filename,
            job.content_type,
        )
        logger.info(
            "Transcription finished",
            entries=len(result.entries),
            duration_seconds=result.duration_seconds,
        )
        return await self._transition(
            job,
            JobStatus.SCORING,
            transcript=tuple(result.entries),
            duration_seconds=result.duration_seconds,
        )

    async def _score(self, job: Job) -> Job:
        transcript = job.transcript or ()
        if len(transcript) < self._config.min_transcript_entries:
            raise InsufficientDataError(len(transcript), self._config.min_transcript_entries)

        analysis = self._scorer(
            transcript, job.duration_seconds or 0.0, job.scenario_type, self._rubric,
        )
        get_metrics().record_score(analysis.overall_score)
        return await self._transition(job, JobStatus.COMPLETED, analysis=analysis)

    async def _fail(self, job: Job, code: ErrorCode, error: Exception) -> Job:
        logger.warning(
            "Job stage failed",
            error_code=code.value,
            error_type=type(error).__name__,
            error=str(error),
        )
        try:
            return await self._transition(
                job,
                JobStatus.FAILED,
                error_message=user_message(code),
                error_code=code.value,
            )
        except (InvalidTransitionError, JobNotFoundError):
            raise
        except Exception as e:
            # Job stays non-terminal and is picked up again on resume
            logger.error(
                "Could not persist job failure",
                error_code=code.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

    @staticmethod
    def _classify(stage: JobStatus, error: Exception) -> ErrorCode:
        if isinstance(error, CircuitOpenError):
            return ErrorCode.SERVICE_UNAVAILABLE
        if isinstance(error, TimeoutError):
            return ErrorCode.PROCESSING_TIMEOUT
        if isinstance(error, InsufficientDataError):
            return ErrorCode.INSUFFICIENT_DATA
        if isinstance(error, DependencyError) and error.dependency == TRANSCRIPTION:
            return ErrorCode.TRANSCRIPTION_FAILED
        if stage == JobStatus.SCORING and not isinstance(error, DependencyError):
            return ErrorCode.SCORING_FAILED
        return ErrorCode.INTERNAL_ERROR

    # ── Plumbing ───────────────────────────────────────────

    async def _transition(self, job: Job, target: JobStatus, **fields: Any) -> Job:
        if not can_transition(job.status, target):
            raise InvalidTransitionError(job.job_id, job.status.value, target.value)

        updated = await self._persist(self._repo.update_status, job.job_id, target, **fields)
        get_metrics().record_transition(target.value, fields.get("error_code"))
        logger.info(
            "Job status changed",
            from_status=job.status.value,
            to_status=target.value,
        )
        self._publish(updated)
        return updated

    def _publish(self, job: Job) -> None:
        self._broadcaster.publish(StatusEvent.from_job(job))

    async def _persist(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await self._call(
            DATABASE, self._config.persistence_timeout_seconds, fn, *args, **kwargs,
        )

    async def _call(
        self,
        dependency: str,
        timeout: float,
        fn: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """
        Run ``fn`` through the dependency's breaker under a timeout.

        The timeout sits inside the breaker so an expiry counts as a failure.
        JobErrors (not found, illegal transition) pass through unchanged;
        other failures surface as DependencyError.
        """
        breaker = self._breakers.get(dependency)

        async def bounded() -> Any:
            async with asyncio.timeout(timeout):
                return await fn(*args, **kwargs)

        try:
            return await breaker.call(bounded)
        except (CircuitOpenError, TimeoutError, JobError):
            raise
        except Exception as e:
            raise DependencyError(dependency, e) from e

    async def _discard_audio(self, audio_ref: str) -> None:
        try:
            await self._audio.delete(audio_ref)
        except Exception as e:
            logger.warning("Failed to discard orphaned audio", audio_ref=audio_ref, error=str(e))
