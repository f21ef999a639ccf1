"""Tests for the /jobs endpoints."""

import asyncio

import pytest

from src.jobs.errors import DependencyError
from tests.test_api.conftest import API_KEY, MAX_UPLOAD

AUDIO = b"ID3" + b"\x00" * 512


def _upload(client, data=AUDIO, filename="call.mp3", content_type="audio/mpeg", **form):
    return client.post(
        "/jobs",
        files={"file": (filename, data, content_type)},
        data=form or None,
    )


def _run(coro):
    return asyncio.run(coro)


class TestCreateJob:
    def test_accepted(self, client, fake_repo, mock_runner) -> None:
        response = _upload(client)

        assert response.status_code == 202
        data = response.json()
        job_id = data["job"]["job_id"]
        assert data["job"]["status"] == "pending"
        assert data["job"]["original_filename"] == "call.mp3"
        assert data["status_url"] == f"/jobs/{job_id}/status"
        assert data["events_url"] == f"/jobs/{job_id}/events"
        assert "latency_ms" in data
        assert "owner_id" not in data["job"]

        assert fake_repo.jobs[job_id].owner_id == API_KEY
        mock_runner.submit.assert_called_once_with(job_id)

    def test_scenario_type_form_field(self, client, fake_repo) -> None:
        response = _upload(client, scenario_type="renewal")
        job_id = response.json()["job"]["job_id"]
        assert fake_repo.jobs[job_id].scenario_type == "renewal"

    def test_too_large_is_413(self, client, fake_repo, fake_audio, mock_runner) -> None:
        response = _upload(client, data=b"\x00" * (MAX_UPLOAD + 1))

        assert response.status_code == 413
        assert "too large" in response.json()["detail"]
        assert fake_repo.jobs == {}
        assert fake_audio.files == {}
        mock_runner.submit.assert_not_called()

    def test_unsupported_type_is_400(self, client, fake_repo) -> None:
        response = _upload(client, filename="slides.pdf", content_type="application/pdf")

        assert response.status_code == 400
        assert "Invalid file type" in response.json()["detail"]
        assert fake_repo.jobs == {}

    def test_empty_file_is_400(self, client) -> None:
        assert _upload(client, data=b"").status_code == 400

    def test_missing_file_is_422(self, client) -> None:
        assert client.post("/jobs").status_code == 422

    def test_storage_outage_is_503(self, client, fake_audio) -> None:
        async def disk_full(*args):
            raise OSError("No space left on device")

        fake_audio.save = disk_full
        response = _upload(client)

        assert response.status_code == 503
        assert "No space" not in response.json()["detail"]

    def test_open_database_circuit_is_503(self, client, breakers) -> None:
        async def down():
            raise ConnectionError("db down")

        breaker = breakers.get("database")
        for _ in range(5):
            with pytest.raises(ConnectionError):
                _run(breaker.call(down))

        assert _upload(client).status_code == 503


class TestGetJob:
    def test_returns_detail(self, client, orchestrator) -> None:
        job_id = _upload(client).json()["job"]["job_id"]
        _run(orchestrator.process(job_id))

        response = client.get(f"/jobs/{job_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["overall_score"] == 95.0
        assert data["analysis"]["overall_score"] == 95.0
        assert len(data["transcript"]) == 8
        assert set(data["analysis"]["dimensions"]) >= {"opener", "communication"}

    def test_not_found(self, client) -> None:
        response = client.get("/jobs/job_missing")
        assert response.status_code == 404
        assert "not found" in response.json()["detail"]

    def test_other_owners_job_not_found(self, client, orchestrator) -> None:
        job = _run(orchestrator.create_job("someone-else", "call.mp3", "audio/mpeg", AUDIO))
        assert client.get(f"/jobs/{job.job_id}").status_code == 404


class TestJobStatus:
    def test_pending_status(self, client) -> None:
        job_id = _upload(client).json()["job"]["job_id"]

        response = client.get(f"/jobs/{job_id}/status")

        assert response.status_code == 200
        assert response.json() == {
            "job_id": job_id,
            "status": "pending",
            "error": None,
            "error_code": None,
            "overall_score": None,
            "progress": 10,
            "message": "Preparing to process...",
        }

    def test_failed_status_carries_sanitized_error(
        self, client, orchestrator, fake_transcriber,
    ) -> None:
        fake_transcriber.error = RuntimeError("stack trace with secrets")
        job_id = _upload(client).json()["job"]["job_id"]
        _run(orchestrator.process(job_id))

        data = client.get(f"/jobs/{job_id}/status").json()

        assert data["status"] == "failed"
        assert data["error_code"] == "transcription_failed"
        assert data["error"] == "Failed to transcribe audio. Try a clearer recording."
        assert data["progress"] == 0


class TestListJobs:
    def test_lists_own_jobs(self, client, orchestrator) -> None:
        _upload(client)
        _upload(client)
        _run(orchestrator.create_job("someone-else", "call.mp3", "audio/mpeg", AUDIO))

        data = client.get("/jobs").json()

        assert data["total"] == 2
        assert data["limit"] == 50
        assert data["offset"] == 0

    def test_status_filter(self, client, orchestrator) -> None:
        first = _upload(client).json()["job"]["job_id"]
        _upload(client)
        _run(orchestrator.process(first))

        data = client.get("/jobs", params={"status": "completed"}).json()

        assert [j["job_id"] for j in data["jobs"]] == [first]

    def test_invalid_status_filter(self, client) -> None:
        assert client.get("/jobs", params={"status": "done"}).status_code == 422

    def test_limit_bounds(self, client) -> None:
        assert client.get("/jobs", params={"limit": 0}).status_code == 422
        assert client.get("/jobs", params={"limit": 201}).status_code == 422

    def test_database_error_is_503(self, client, fake_repo) -> None:
        async def broken(*args, **kwargs):
            raise DependencyError("database", ConnectionError("down"))

        fake_repo.list_by_owner = broken
        assert client.get("/jobs").status_code == 503


class TestDeleteJob:
    def test_delete(self, client) -> None:
        job_id = _upload(client).json()["job"]["job_id"]

        assert client.delete(f"/jobs/{job_id}").status_code == 204
        assert client.get(f"/jobs/{job_id}").status_code == 404
        assert client.delete(f"/jobs/{job_id}").status_code == 404


class TestResubmit:
    def test_failed_job_resubmitted(
        self, client, orchestrator, fake_transcriber, mock_runner,
    ) -> None:
        fake_transcriber.error = RuntimeError("boom")
        job_id = _upload(client).json()["job"]["job_id"]
        _run(orchestrator.process(job_id))
        mock_runner.submit.reset_mock()

        response = client.post(f"/jobs/{job_id}/resubmit")

        assert response.status_code == 202
        new_id = response.json()["job"]["job_id"]
        assert new_id != job_id
        mock_runner.submit.assert_called_once_with(new_id)
        assert client.get(f"/jobs/{job_id}/status").json()["status"] == "failed"

    def test_pending_job_conflict(self, client) -> None:
        job_id = _upload(client).json()["job"]["job_id"]

        response = client.post(f"/jobs/{job_id}/resubmit")

        assert response.status_code == 409
        assert "pending" in response.json()["detail"]

    def test_missing_job(self, client) -> None:
        assert client.post("/jobs/job_missing/resubmit").status_code == 404

