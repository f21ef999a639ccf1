"""Interchangeable ways of receiving job status updates.

Both strategies expose the same async-iterator interface, so the watcher
can swap one for the other without knowing anything about transports.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import aclosing
from collections.abc import AsyncIterator, Awaitable, Callable

import httpx

from src.client.api_client import CoachingClient
from src.client.backoff import ExponentialBackoff
from src.client.errors import ClientError, ClientTimeoutError
from src.observability.logging import get_logger
from src.status.events import StatusEvent, parse_sse_data

logger = get_logger(__name__)


class StatusStrategy(ABC):
    """Source of status events for one job."""

    name: str = "strategy"

    @abstractmethod
    def updates(self, job_id: str) -> AsyncIterator[StatusEvent]:
        """Yield status events until the source is exhausted or fails."""


class PushStrategy(StatusStrategy):
    """Server-sent events from ``GET /jobs/{id}/events``.

    Comment lines (heartbeats) are skipped and do not count as events.
    Closing the iterator closes the HTTP stream.
    """

    name = "push"

    def __init__(self, client: CoachingClient) -> None:
        self._client = client

    async def updates(self, job_id: str) -> AsyncIterator[StatusEvent]:
        async with aclosing(self._client.stream_events(job_id)) as lines:
            async for line in lines:
                event = parse_sse_data(line)
                if event is not None:
                    yield event


class PollStrategy(StatusStrategy):
    """Point-in-time lookups of ``GET /jobs/{id}/status`` with exponential backoff.

    Each attempt waits, then fetches. A fetch that fails or returns a
    non-terminal status uses up one attempt; when the budget runs out
    ClientTimeoutError is raised.
    """

    name = "poll"

    def __init__(
        self,
        client: CoachingClient,
        backoff_factory: Callable[[], ExponentialBackoff] = ExponentialBackoff,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._backoff_factory = backoff_factory
        self._sleep = sleep

    async def updates(self, job_id: str) -> AsyncIterator[StatusEvent]:
        backoff = self._backoff_factory()
        last_status: str | None = None

        while not backoff.exhausted:
            await self._sleep(backoff.next_delay())
            try:
                event = await self._client.get_status(job_id)
            except (ClientError, httpx.HTTPError) as e:
                logger.warning(
                    "Status poll failed",
                    job_id=job_id,
                    attempt=backoff.attempt,
                    error=str(e),
                )
                continue

            last_status = event.status.value
            yield event
            if event.is_terminal:
                return

        raise ClientTimeoutError(job_id, backoff.attempt, last_status)
