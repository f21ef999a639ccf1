"""
Dependency injection for FastAPI endpoints.

Process-wide collaborators are created lazily on first use and shared.
The breaker registry is built exactly once here and handed to every
component that calls an external dependency.
"""

import redis.asyncio as redis

from src.breaker import BreakerConfig, BreakerRegistry
from src.config.settings import get_settings
from src.jobs.config import JobsConfig
from src.jobs.errors import JobError
from src.jobs.orchestrator import JobOrchestrator
from src.jobs.repository import JobRepository
from src.jobs.runner import JobRunner
from src.scoring.rubric import get_rubric
from src.status.broadcaster import StatusBroadcaster
from src.status.config import StatusConfig
from src.storage.audio import LocalAudioStore
from src.storage.database import Database
from src.transcription.whisper import WhisperTranscriber

# Global instances (initialized on first request)
_database: Database | None = None
_redis_client: redis.Redis | None = None
_breakers: BreakerRegistry | None = None
_broadcaster: StatusBroadcaster | None = None
_orchestrator: JobOrchestrator | None = None
_runner: JobRunner | None = None
_jobs_config: JobsConfig | None = None


def get_jobs_config() -> JobsConfig:
    global _jobs_config
    if _jobs_config is None:
        _jobs_config = JobsConfig()
    return _jobs_config


def get_breaker_registry() -> BreakerRegistry:
    """Get the process-wide breaker registry."""
    global _breakers
    if _breakers is None:
        # Not-found and illegal-transition errors are answers, not outages
        _breakers = BreakerRegistry.from_config(BreakerConfig(), excluded=(JobError,))
    return _breakers


def get_status_broadcaster() -> StatusBroadcaster:
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = StatusBroadcaster(StatusConfig())
    return _broadcaster


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            str(get_settings().redis_url),
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def get_database() -> Database:
    """Get the connected database, connecting on first use."""
    global _database
    if _database is None:
        database = Database()
        await database.connect()
        _database = database
    return _database


async def get_orchestrator() -> JobOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        config = get_jobs_config()
        database = await get_database()
        _orchestrator = JobOrchestrator(
            repository=JobRepository(database),
            transcriber=WhisperTranscriber(),
            audio_store=LocalAudioStore(config.audio_dir),
            breakers=get_breaker_registry(),
            broadcaster=get_status_broadcaster(),
            config=config,
            rubric=get_rubric(),
        )
    return _orchestrator


async def get_job_runner() -> JobRunner:
    global _runner
    if _runner is None:
        _runner = JobRunner(await get_orchestrator())
    return _runner


async def get_database_if_available() -> Database | None:
    """The connected database, or None when it cannot be reached."""
    try:
        return await get_database()
    except Exception:
        # connect() has already logged the failure
        return None


def get_started_job_runner() -> JobRunner | None:
    """The job runner if one exists, without creating it."""
    return _runner


async def cleanup_dependencies() -> None:
    """Stop background work and close connections on shutdown."""
    global _database, _redis_client, _breakers, _broadcaster, _orchestrator, _runner

    if _runner is not None:
        await _runner.stop()
        _runner = None

    if _broadcaster is not None:
        await _broadcaster.stop()
        _broadcaster = None

    _orchestrator = None
    _breakers = None

    if _database is not None:
        await _database.close()
        _database = None

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
