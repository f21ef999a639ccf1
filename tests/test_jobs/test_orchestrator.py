"""Tests for JobOrchestrator with in-memory collaborators."""

import pytest

from src.breaker import CircuitState
from src.jobs.config import JobsConfig
from src.jobs.errors import (
    ERROR_MESSAGES,
    ErrorCode,
    InvalidTransitionError,
    JobNotFoundError,
    ValidationError,
)
from src.jobs.orchestrator import JobOrchestrator
from src.jobs.schemas import JobStatus
from src.scoring import analyze
from src.scoring.schemas import TranscriptEntry

OWNER = "key-owner"
AUDIO = b"ID3" + b"\x00" * 1024


async def _new_job(orchestrator, owner=OWNER, data=AUDIO):
    return await orchestrator.create_job(owner, "call.mp3", "audio/mpeg", data)


async def _trip_transcription(breakers) -> None:
    async def down():
        raise ConnectionError("whisper unreachable")

    breaker = breakers.get("transcription")
    while breaker.state != CircuitState.OPEN:
        with pytest.raises(ConnectionError):
            await breaker.call(down)


# ── Intake ───────────────────────────────────────────────


class TestCreateJob:
    async def test_creates_pending_job(self, orchestrator, fake_repo, fake_audio) -> None:
        job = await _new_job(orchestrator)

        assert job.status == JobStatus.PENDING
        assert job.job_id.startswith("job_")
        assert job.owner_id == OWNER
        assert job.file_size_bytes == len(AUDIO)
        assert job.scenario_type == "cold_call"
        assert job.transcript is None
        assert fake_audio.files[job.audio_ref] == AUDIO
        assert fake_repo.jobs[job.job_id] is job

    async def test_publishes_pending_event(self, orchestrator, broadcaster) -> None:
        job = await _new_job(orchestrator)
        assert [e.status for e in broadcaster.published] == [JobStatus.PENDING]
        assert broadcaster.published[0].job_id == job.job_id

    async def test_content_type_normalized(self, orchestrator) -> None:
        job = await orchestrator.create_job(OWNER, "call.wav", "Audio/WAV; codecs=1", AUDIO)
        assert job.content_type == "audio/wav"

    async def test_scenario_type_passed_through(self, orchestrator) -> None:
        job = await orchestrator.create_job(
            OWNER, "call.mp3", "audio/mpeg", AUDIO, scenario_type="renewal",
        )
        assert job.scenario_type == "renewal"

    async def test_oversized_upload_rejected_before_storage(
        self, fake_repo, fake_transcriber, fake_audio, breakers, broadcaster,
    ) -> None:
        orchestrator = JobOrchestrator(
            repository=fake_repo,
            transcriber=fake_transcriber,
            audio_store=fake_audio,
            breakers=breakers,
            broadcaster=broadcaster,
            config=JobsConfig(max_upload_bytes=1024),
        )

        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.create_job(OWNER, "big.mp3", "audio/mpeg", b"\x00" * 1025)

        assert exc_info.value.too_large
        assert fake_repo.jobs == {}
        assert fake_audio.files == {}
        assert broadcaster.published == []

    async def test_unsupported_type_rejected(self, orchestrator, fake_repo, fake_audio) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.create_job(OWNER, "notes.pdf", "application/pdf", AUDIO)

        assert exc_info.value.field == "content_type"
        assert not exc_info.value.too_large
        assert fake_repo.jobs == {}
        assert fake_audio.files == {}

    async def test_empty_upload_rejected(self, orchestrator) -> None:
        with pytest.raises(ValidationError, match="empty"):
            await orchestrator.create_job(OWNER, "call.mp3", "audio/mpeg", b"")

    async def test_audio_discarded_when_job_not_persisted(
        self, orchestrator, fake_repo, fake_audio,
    ) -> None:
        async def broken_create(job):
            raise ConnectionError("db down")

        fake_repo.create = broken_create

        with pytest.raises(Exception):
            await _new_job(orchestrator)
        assert fake_audio.files == {}


# ── Processing ───────────────────────────────────────────


class TestProcess:
    async def test_happy_path_completes(self, orchestrator, strong_call) -> None:
        job = await _new_job(orchestrator)
        final = await orchestrator.process(job.job_id)

        assert final.status == JobStatus.COMPLETED
        assert final.transcript == tuple(strong_call)
        assert final.duration_seconds == 60.0
        assert final.analysis is not None
        assert final.overall_score == final.analysis.overall_score == 95.0
        assert final.error_code is None

    async def test_every_transition_persisted_in_order(self, orchestrator, fake_repo) -> None:
        job = await _new_job(orchestrator)
        await orchestrator.process(job.job_id)

        assert [status for _, status in fake_repo.writes] == [
            "pending", "transcribing", "scoring", "completed",
        ]

    async def test_events_follow_persisted_writes(
        self, orchestrator, fake_repo, broadcaster,
    ) -> None:
        job = await _new_job(orchestrator)
        await orchestrator.process(job.job_id)

        published = [e.status.value for e in broadcaster.published]
        assert published == [status for _, status in fake_repo.writes]
        assert [e.progress for e in broadcaster.published] == [10, 40, 70, 100]
        assert broadcaster.published[-1].overall_score == 95.0

    async def test_advance_performs_one_step(self, orchestrator) -> None:
        job = await _new_job(orchestrator)

        job = await orchestrator.advance(job.job_id)
        assert job.status == JobStatus.TRANSCRIBING
        job = await orchestrator.advance(job.job_id)
        assert job.status == JobStatus.SCORING
        assert job.transcript is not None

    async def test_terminal_job_returned_unchanged(self, orchestrator, fake_repo) -> None:
        job = await _new_job(orchestrator)
        completed = await orchestrator.process(job.job_id)
        writes_before = list(fake_repo.writes)

        again = await orchestrator.advance(job.job_id)

        assert again == completed
        assert fake_repo.writes == writes_before

    async def test_processing_unknown_job(self, orchestrator) -> None:
        with pytest.raises(JobNotFoundError):
            await orchestrator.process("job_missing")

    async def test_custom_scorer(
        self, fake_repo, fake_transcriber, fake_audio, breakers, broadcaster, jobs_config,
    ) -> None:
        seen = {}

        def scorer(transcript, duration, scenario, rubric):
            seen["scenario"] = scenario
            return analyze(transcript, duration, scenario, rubric)

        orchestrator = JobOrchestrator(
            fake_repo, fake_transcriber, fake_audio, breakers, broadcaster,
            config=jobs_config, scorer=scorer,
        )
        job = await orchestrator.create_job(
            OWNER, "call.mp3", "audio/mpeg", AUDIO, scenario_type="discovery_call",
        )
        final = await orchestrator.process(job.job_id)

        assert seen["scenario"] == "discovery_call"
        assert final.analysis.scenario_type == "discovery_call"


# ── Failures ─────────────────────────────────────────────


class TestFailureClassification:
    async def test_transcriber_error(self, orchestrator, fake_transcriber) -> None:
        fake_transcriber.error = RuntimeError("HTTP 500 from api.internal:9000 token=abc")
        job = await _new_job(orchestrator)

        final = await orchestrator.process(job.job_id)

        assert final.status == JobStatus.FAILED
        assert final.error_code == ErrorCode.TRANSCRIPTION_FAILED
        assert final.error_message == ERROR_MESSAGES[ErrorCode.TRANSCRIPTION_FAILED]
        assert "token" not in final.error_message
        assert final.transcript is None

    async def test_open_circuit_is_service_unavailable(
        self, orchestrator, fake_transcriber, breakers,
    ) -> None:
        await _trip_transcription(breakers)
        job = await _new_job(orchestrator)

        final = await orchestrator.process(job.job_id)

        assert final.error_code == ErrorCode.SERVICE_UNAVAILABLE
        assert fake_transcriber.calls == []

    async def test_timeout(self, orchestrator, fake_transcriber, breakers) -> None:
        fake_transcriber.error = TimeoutError()
        job = await _new_job(orchestrator)

        final = await orchestrator.process(job.job_id)

        assert final.error_code == ErrorCode.PROCESSING_TIMEOUT
        assert breakers.get("transcription").stats().failures == 1

    async def test_short_transcript_is_insufficient_data(
        self, orchestrator, fake_transcriber,
    ) -> None:
        fake_transcriber.entries = [TranscriptEntry(role="user", content="Hello?")]
        job = await _new_job(orchestrator)

        final = await orchestrator.process(job.job_id)

        assert final.error_code == ErrorCode.INSUFFICIENT_DATA
        # Transcript is kept on jobs that fail after transcription
        assert final.transcript is not None
        assert len(final.transcript) == 1

    async def test_scorer_error(
        self, fake_repo, fake_transcriber, fake_audio, breakers, broadcaster, jobs_config,
    ) -> None:
        def broken_scorer(*args):
            raise ZeroDivisionError("division by zero")

        orchestrator = JobOrchestrator(
            fake_repo, fake_transcriber, fake_audio, breakers, broadcaster,
            config=jobs_config, scorer=broken_scorer,
        )
        job = await _new_job(orchestrator)

        final = await orchestrator.process(job.job_id)

        assert final.error_code == ErrorCode.SCORING_FAILED
        assert final.error_message == "Failed to analyze call. Please try again."
        assert final.analysis is None
        assert final.overall_score is None

    async def test_missing_audio_is_internal_error(self, orchestrator, fake_audio) -> None:
        fake_audio.read_error = FileNotFoundError("/var/data/audio/xyz.mp3")
        job = await _new_job(orchestrator)

        final = await orchestrator.process(job.job_id)

        assert final.error_code == ErrorCode.INTERNAL_ERROR
        assert "/var/data" not in final.error_message

    async def test_failure_event_published(self, orchestrator, fake_transcriber, broadcaster) -> None:
        fake_transcriber.error = RuntimeError("boom")
        job = await _new_job(orchestrator)
        await orchestrator.process(job.job_id)

        last = broadcaster.published[-1]
        assert last.status == JobStatus.FAILED
        assert last.error_code == "transcription_failed"
        assert last.progress == 0
        assert last.message == "Processing failed"

    async def test_unpersistable_failure_leaves_job_resumable(
        self, orchestrator, fake_repo,
    ) -> None:
        job = await _new_job(orchestrator)
        await orchestrator.advance(job.job_id)

        async def db_down(*args, **kwargs):
            raise ConnectionError("db down")

        fake_repo.update_status = db_down

        with pytest.raises(Exception):
            await orchestrator.advance(job.job_id)

        assert fake_repo.jobs[job.job_id].status == JobStatus.TRANSCRIBING
        assert [j.job_id for j in await orchestrator.list_unfinished()] == [job.job_id]


class TestMonotonicity:
    async def test_repository_refuses_to_leave_terminal(self, orchestrator, fake_repo) -> None:
        job = await _new_job(orchestrator)
        await orchestrator.process(job.job_id)

        with pytest.raises(InvalidTransitionError):
            await fake_repo.update_status(
                job.job_id, JobStatus.FAILED,
                error_message="late", error_code="internal_error",
            )
        assert fake_repo.jobs[job.job_id].status == JobStatus.COMPLETED

    async def test_concurrent_writer_error_propagates(self, orchestrator, fake_repo) -> None:
        job = await _new_job(orchestrator)
        # Another worker already moved the job on
        await fake_repo.update_status(job.job_id, JobStatus.TRANSCRIBING)
        stale = fake_repo.jobs[job.job_id]

        # advance() re-reads, so it sees the real status and continues from it
        advanced = await orchestrator.advance(stale.job_id)
        assert advanced.status == JobStatus.SCORING

        with pytest.raises(InvalidTransitionError):
            await orchestrator._transition(stale, JobStatus.SCORING)


# ── Queries and lifecycle ────────────────────────────────


class TestQueries:
    async def test_get_job_scoped_to_owner(self, orchestrator) -> None:
        job = await _new_job(orchestrator)
        assert (await orchestrator.get_job(job.job_id, OWNER)).job_id == job.job_id
        with pytest.raises(JobNotFoundError):
            await orchestrator.get_job(job.job_id, "someone-else")

    async def test_list_jobs_filters(self, orchestrator) -> None:
        first = await _new_job(orchestrator)
        await _new_job(orchestrator)
        await _new_job(orchestrator, owner="other")
        await orchestrator.process(first.job_id)

        assert len(await orchestrator.list_jobs(OWNER)) == 2
        completed = await orchestrator.list_jobs(OWNER, status=JobStatus.COMPLETED)
        assert [j.job_id for j in completed] == [first.job_id]

    async def test_delete_hides_job(self, orchestrator) -> None:
        job = await _new_job(orchestrator)
        await orchestrator.delete_job(job.job_id, OWNER)

        with pytest.raises(JobNotFoundError):
            await orchestrator.get_job(job.job_id, OWNER)
        with pytest.raises(JobNotFoundError):
            await orchestrator.delete_job(job.job_id, OWNER)

    async def test_delete_stops_in_flight_processing(
        self, orchestrator, fake_repo, fake_transcriber,
    ) -> None:
        job = await _new_job(orchestrator)
        await orchestrator.advance(job.job_id)

        await orchestrator.delete_job(job.job_id, OWNER)

        with pytest.raises(JobNotFoundError):
            await orchestrator.advance(job.job_id)
        assert fake_transcriber.calls == []
        assert fake_repo.jobs[job.job_id].status == JobStatus.TRANSCRIBING

    async def test_delete_other_owner_not_found(self, orchestrator) -> None:
        job = await _new_job(orchestrator)
        with pytest.raises(JobNotFoundError):
            await orchestrator.delete_job(job.job_id, "someone-else")


class TestResubmit:
    async def test_failed_job_gets_fresh_job(self, orchestrator, fake_transcriber) -> None:
        fake_transcriber.error = RuntimeError("boom")
        failed = await orchestrator.process((await _new_job(orchestrator)).job_id)

        fake_transcriber.error = None
        fresh = await orchestrator.resubmit(failed.job_id, OWNER)

        assert fresh.job_id != failed.job_id
        assert fresh.status == JobStatus.PENDING
        assert fresh.audio_ref == failed.audio_ref
        assert (await orchestrator.get_job(failed.job_id)).status == JobStatus.FAILED

        final = await orchestrator.process(fresh.job_id)
        assert final.status == JobStatus.COMPLETED

    async def test_only_failed_jobs_resubmittable(self, orchestrator) -> None:
        job = await _new_job(orchestrator)
        with pytest.raises(InvalidTransitionError):
            await orchestrator.resubmit(job.job_id, OWNER)
