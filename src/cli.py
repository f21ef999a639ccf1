"""
Command-line interface for call-coach.

Provides commands to run the API server, initialize the database,
process or watch individual jobs, and score transcripts offline.

Usage:
    call-coach serve              # Run the API server
    call-coach init-db            # Initialize database
    call-coach process JOB_ID     # Drive one job to completion in-process
    call-coach score FILE.json    # Score a transcript without the server
    call-coach watch JOB_ID       # Follow a job's status via the API
    call-coach health             # Check dependency health
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Call Coach - Sales call transcription and scoring."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(
    host: str | None,
    port: int | None,
    reload: bool,
    metrics: bool,
    metrics_port: int | None,
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    if metrics:
        metrics_port = metrics_port or settings.metrics_port
        get_metrics().start_server(port=metrics_port)
        click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from src.jobs.repository import JobRepository
    from src.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            await JobRepository(db).create_table()
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
@click.argument("job_id")
def process(job_id: str) -> None:
    """Drive one job to a terminal status in this process."""
    from src.breaker import BreakerRegistry
    from src.jobs.errors import JobError, JobNotFoundError
    from src.jobs.orchestrator import JobOrchestrator
    from src.jobs.config import JobsConfig
    from src.jobs.repository import JobRepository
    from src.scoring import get_rubric
    from src.status.broadcaster import StatusBroadcaster
    from src.storage.audio import LocalAudioStore
    from src.storage.database import Database
    from src.transcription.whisper import WhisperTranscriber

    async def run() -> int:
        config = JobsConfig()
        db = Database()
        await db.connect()
        try:
            orchestrator = JobOrchestrator(
                repository=JobRepository(db),
                transcriber=WhisperTranscriber(),
                audio_store=LocalAudioStore(config.audio_dir),
                breakers=BreakerRegistry.from_config(excluded=(JobError,)),
                broadcaster=StatusBroadcaster(),
                config=config,
                rubric=get_rubric(),
            )
            try:
                job = await orchestrator.process(job_id)
            except JobNotFoundError:
                click.echo(click.style(f"Job {job_id} not found", fg="red"))
                return 1
        finally:
            await db.close()

        if job.error_code is not None:
            click.echo(click.style(
                f"Job {job_id} failed [{job.error_code.value}]: {job.error_message}", fg="red",
            ))
            return 1

        click.echo(click.style(
            f"Job {job_id} completed: overall score {job.overall_score}", fg="green",
        ))
        return 0

    sys.exit(asyncio.run(run()))


@main.command()
@click.argument("transcript_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--duration", type=float, default=None, help="Call duration in seconds")
@click.option("--scenario", default="cold_call", help="Scenario type")
@click.option("--rubric", "rubric_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Rubric JSON file (default: built-in)")
@click.option("--json-output", is_flag=True, help="Print the full result as JSON")
def score(
    transcript_file: Path,
    duration: float | None,
    scenario: str,
    rubric_path: str | None,
    json_output: bool,
) -> None:
    """
    Score a transcript file.

    TRANSCRIPT_FILE is either a JSON list of entries or an object with
    ``transcript`` and ``duration_seconds`` keys.
    """
    from pydantic import TypeAdapter, ValidationError

    from src.jobs.config import JobsConfig
    from src.jobs.errors import ErrorCode, user_message
    from src.scoring import TranscriptEntry, analyze, get_rubric, load_rubric

    payload = json.loads(transcript_file.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        entries = payload.get("transcript", [])
        duration = duration if duration is not None else payload.get("duration_seconds")
    else:
        entries = payload

    try:
        transcript = TypeAdapter(list[TranscriptEntry]).validate_python(entries)
    except ValidationError as e:
        raise click.ClickException(f"Invalid transcript: {e}")

    if len(transcript) < JobsConfig().min_transcript_entries:
        raise click.ClickException(user_message(ErrorCode.INSUFFICIENT_DATA))

    if duration is None:
        # Fall back to the last timestamp
        duration = transcript[-1].timestamp / 1000

    rubric = load_rubric(rubric_path) if rubric_path else get_rubric()
    result = analyze(transcript, duration, scenario_type=scenario, rubric=rubric)

    if json_output:
        click.echo(result.model_dump_json(indent=2))
        return

    click.echo(f"\nOverall score: {result.overall_score}")
    click.echo("-" * 40)
    for dimension_id, dim in result.dimensions.items():
        label = rubric.dimension(dimension_id).label
        click.echo(f"  {label:<20} {dim.score:>2}/10")
    click.echo("-" * 40)
    click.echo(result.summary)
    if result.strengths:
        click.echo(click.style("\nStrengths:", fg="green"))
        for note in result.strengths:
            click.echo(f"  + {note}")
    if result.improvements:
        click.echo(click.style("\nImprovements:", fg="yellow"))
        for note in result.improvements:
            click.echo(f"  - {note}")


@main.command()
@click.argument("job_id")
@click.option("--base-url", default=None, help="API base URL")
@click.option("--api-key", default=None, help="API key")
def watch(job_id: str, base_url: str | None, api_key: str | None) -> None:
    """Follow a job's status until it completes or fails."""
    from src.client import ClientTimeoutError, CoachingClient, build_watcher

    def show(event) -> None:
        click.echo(f"[{event.progress:>3}%] {event.status.value}: {event.message}")

    async def run() -> int:
        client = CoachingClient(base_url=base_url, api_key=api_key)
        watcher = build_watcher(client, job_id, on_update=show)
        try:
            final = await watcher.run()
        except ClientTimeoutError as e:
            click.echo(click.style(str(e), fg="red"))
            return 2

        if final.error is not None:
            click.echo(click.style(f"Failed: {final.error}", fg="red"))
            return 1
        click.echo(click.style(f"Completed: overall score {final.overall_score}", fg="green"))
        return 0

    sys.exit(asyncio.run(run()))


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}
        settings = get_settings()

        try:
            import redis.asyncio as aioredis
            client = aioredis.from_url(str(settings.redis_url))
            results["redis"] = bool(await client.ping())
            await client.aclose()
        except Exception as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        try:
            from src.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        from src.transcription.config import TranscriptionConfig
        results["transcription_configured"] = TranscriptionConfig().api_key is not None

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        # Redis is only required when the status relay is on
        required = {"postgres"} | ({"redis"} if settings.status_relay_enabled else set())
        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in required and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
