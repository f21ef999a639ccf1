"""In-process fan-out of job status events, with optional Redis relay.

Every subscriber of a job gets its own bounded queue. ``publish`` is
synchronous and never raises or blocks: events for jobs with no
subscribers are dropped, and a full queue loses its oldest event.

With a Redis client passed to ``start()``, events are relayed through the
``call_jobs:status`` pub/sub channel so subscribers connected to any API
process receive transitions made by workers in another.

Lifecycle:
    1. ``start(redis_client)`` (optional) - subscribe and spawn listener
    2. ``subscribe(job_id)`` / ``unsubscribe(sub)`` - manage listeners
    3. ``stop()`` - cancel the listener, close pub/sub
"""

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from src.observability.logging import get_logger
from src.observability.metrics import get_metrics
from src.status.config import StatusConfig
from src.status.events import StatusEvent

logger = get_logger(__name__)


@dataclass(eq=False)
class Subscription:
    """One listener's queue of events for a single job."""

    job_id: str
    queue: asyncio.Queue = field(repr=False)
    dropped: int = 0

    async def get(self) -> StatusEvent:
        return await self.queue.get()


class StatusBroadcaster:
    """Fans job status events out to per-job subscribers."""

    def __init__(self, config: StatusConfig | None = None) -> None:
        self._config = config or StatusConfig()
        self._subscribers: dict[str, set[Subscription]] = {}
        self._pubsub: Any | None = None
        self._redis: Any | None = None
        self._listener_task: asyncio.Task | None = None
        self._relay_tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def relay_active(self) -> bool:
        return self._running

    def subscriber_count(self, job_id: str | None = None) -> int:
        if job_id is not None:
            return len(self._subscribers.get(job_id, ()))
        return sum(len(s) for s in self._subscribers.values())

    def subscribe(self, job_id: str) -> Subscription:
        """
        Register a listener for one job.

        Raises:
            RuntimeError: If the job already has the maximum number of listeners.
        """
        subs = self._subscribers.setdefault(job_id, set())
        if len(subs) >= self._config.max_subscribers_per_job:
            raise RuntimeError(f"Too many status subscribers for job {job_id}")
        sub = Subscription(job_id, asyncio.Queue(maxsize=self._config.subscriber_queue_size))
        subs.add(sub)
        get_metrics().status_subscribers.inc()
        logger.debug("Status subscriber added", job_id=job_id, total=len(subs))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.job_id)
        if subs is None or sub not in subs:
            return
        subs.discard(sub)
        get_metrics().status_subscribers.dec()
        if not subs:
            del self._subscribers[sub.job_id]

    @contextmanager
    def subscription(self, job_id: str) -> Iterator[Subscription]:
        sub = self.subscribe(job_id)
        try:
            yield sub
        finally:
            self.unsubscribe(sub)

    def publish(self, event: StatusEvent) -> None:
        """Deliver an event to every subscriber of its job. Never raises."""
        try:
            get_metrics().status_events_published.labels(status=event.status.value).inc()
            if self._running and self._redis is not None:
                task = asyncio.get_running_loop().create_task(self._relay(event))
                self._relay_tasks.add(task)
                task.add_done_callback(self._relay_tasks.discard)
            else:
                self._deliver(event)
        except Exception as e:
            logger.warning(
                "Status publish failed",
                job_id=event.job_id,
                status=event.status.value,
                error=str(e),
            )

    def _deliver(self, event: StatusEvent) -> None:
        for sub in list(self._subscribers.get(event.job_id, ())):
            if sub.queue.full():
                sub.queue.get_nowait()
                sub.dropped += 1
            sub.queue.put_nowait(event)

    async def start(self, redis_client: Any) -> None:
        """Relay events through Redis pub/sub. Falls back to local-only on error."""
        if self._running:
            return
        try:
            self._pubsub = redis_client.pubsub()
            await self._pubsub.subscribe(self._config.redis_channel)
            self._redis = redis_client
            self._running = True
            self._listener_task = asyncio.create_task(
                self._listen(), name="status-broadcaster-listener",
            )
            logger.info("Status relay started", channel=self._config.redis_channel)
        except Exception as e:
            self._running = False
            self._redis = None
            logger.error("Failed to start status relay", error=str(e))

    async def stop(self) -> None:
        self._running = False

        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

        for task in list(self._relay_tasks):
            task.cancel()
        self._relay_tasks.clear()

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self._config.redis_channel)
                await self._pubsub.close()
            except Exception as e:
                logger.warning("Error closing status pub/sub", error=str(e))
            self._pubsub = None
        self._redis = None
        logger.info("Status relay stopped")

    async def _relay(self, event: StatusEvent) -> None:
        try:
            await self._redis.publish(self._config.redis_channel, event.model_dump_json())
        except Exception as e:
            logger.warning("Status relay publish failed, delivering locally", error=str(e))
            self._deliver(event)

    async def _listen(self) -> None:
        try:
            while self._running:
                try:
                    message = await self._pubsub.get_message(
                        ignore_subscribe_messages=True, timeout=1.0,
                    )
                    if message is not None and message["type"] == "message":
                        self._dispatch_message(message["data"])
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning("Error reading status pub/sub message", error=str(e))
                    await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            pass

    def _dispatch_message(self, raw_data: str | bytes) -> None:
        try:
            event = StatusEvent.model_validate_json(raw_data)
        except ValueError as e:
            logger.warning("Invalid status relay message", error=str(e))
            return
        self._deliver(event)
