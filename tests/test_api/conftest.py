"""Shared fixtures for API tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import (
    get_breaker_registry,
    get_database_if_available,
    get_job_runner,
    get_jobs_config,
    get_orchestrator,
    get_started_job_runner,
    get_status_broadcaster,
)
from src.api.rate_limit import limiter
from src.jobs.config import JobsConfig
from src.jobs.runner import JobRunner

API_KEY = "test-key"

# Small ceiling so oversize uploads are cheap to build
MAX_UPLOAD = 4096


@pytest.fixture
def jobs_config() -> JobsConfig:
    return JobsConfig(
        max_upload_bytes=MAX_UPLOAD,
        transcription_timeout_seconds=5.0,
        persistence_timeout_seconds=5.0,
        storage_timeout_seconds=5.0,
    )


@pytest.fixture(autouse=True)
def no_rate_limit():
    """Disable slowapi for every API test; rate-limit tests opt back in."""
    limiter.enabled = False
    limiter.reset()
    yield
    limiter.enabled = True
    limiter.reset()


@pytest.fixture
def mock_db():
    """Mock Database used by the lifespan and /health."""
    db = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def mock_runner():
    """Runner that records submissions instead of processing."""
    runner = MagicMock(spec=JobRunner)
    runner.submit.return_value = True
    runner.active_jobs = []
    runner.resume_unfinished = AsyncMock(return_value=0)
    return runner


@pytest.fixture
def app(orchestrator, breakers, broadcaster, mock_db, mock_runner, jobs_config):
    """App with collaborators replaced by in-memory fakes."""
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: API_KEY
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_job_runner] = lambda: mock_runner
    app.dependency_overrides[get_jobs_config] = lambda: jobs_config
    app.dependency_overrides[get_breaker_registry] = lambda: breakers
    app.dependency_overrides[get_status_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_database_if_available] = lambda: mock_db
    app.dependency_overrides[get_started_job_runner] = lambda: mock_runner

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(app, mock_db, mock_runner):
    """FastAPI TestClient with dependency overrides and a patched lifespan."""
    with (
        patch("src.api.app.get_database", AsyncMock(return_value=mock_db)),
        patch("src.api.app.get_job_runner", AsyncMock(return_value=mock_runner)),
        patch("src.api.app.cleanup_dependencies", AsyncMock()),
    ):
        with TestClient(app) as c:
            yield c
