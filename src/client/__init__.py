"""Client for the call-coach API with resilient job status watching.

Usage:
    client = CoachingClient("http://localhost:8000", api_key="...")
    watcher = build_watcher(client, job_id, on_update=print)
    final = await watcher.run()
"""

from collections.abc import Callable

from src.client.api_client import CoachingClient
from src.client.backoff import ExponentialBackoff
from src.client.config import WatcherConfig
from src.client.errors import ClientError, ClientTimeoutError
from src.client.strategies import PollStrategy, PushStrategy, StatusStrategy
from src.client.watcher import JobStatusWatcher
from src.status.events import StatusEvent


def build_watcher(
    client: CoachingClient,
    job_id: str,
    config: WatcherConfig | None = None,
    on_update: Callable[[StatusEvent], None] | None = None,
) -> JobStatusWatcher:
    """Wire a push-then-poll watcher from configuration."""
    config = config or WatcherConfig()

    def backoff() -> ExponentialBackoff:
        return ExponentialBackoff(
            base_delay=config.poll_base_delay,
            max_delay=config.poll_max_delay,
            multiplier=config.poll_multiplier,
            max_attempts=config.poll_max_attempts,
        )

    return JobStatusWatcher(
        job_id,
        push=PushStrategy(client),
        poll=PollStrategy(client, backoff_factory=backoff),
        idle_timeout=config.idle_timeout,
        on_update=on_update,
    )


__all__ = [
    "ClientError",
    "ClientTimeoutError",
    "CoachingClient",
    "ExponentialBackoff",
    "JobStatusWatcher",
    "PollStrategy",
    "PushStrategy",
    "StatusStrategy",
    "WatcherConfig",
    "build_watcher",
]
