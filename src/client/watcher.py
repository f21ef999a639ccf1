"""Supervisor that watches a job until it reaches a terminal status.

Starts with the push strategy. Every push event restarts an idle timer;
if the timer expires, the stream errors, or the stream ends early, the
push iterator is closed and the watcher switches to the poll strategy.

Status is monotonic, so any event at or below the stage already seen
is ignored (duplicates and out-of-order delivery are harmless).

``cancel()`` is idempotent. It cancels the watch task, which closes the
push stream or interrupts the pending poll sleep; nothing keeps running
in the background afterwards.
"""

import asyncio
from collections.abc import Callable
from contextlib import aclosing

from src.client.strategies import StatusStrategy
from src.observability.logging import get_logger
from src.status.events import StatusEvent

logger = get_logger(__name__)


class JobStatusWatcher:
    """Follow one job's status over push, falling back to poll.

    Args:
        job_id: Job to watch.
        push: Preferred strategy.
        poll: Fallback strategy; raises ClientTimeoutError when it gives up.
        idle_timeout: Seconds to wait for each push event.
        on_update: Called with every accepted (newer) event.
    """

    def __init__(
        self,
        job_id: str,
        push: StatusStrategy,
        poll: StatusStrategy,
        idle_timeout: float = 45.0,
        on_update: Callable[[StatusEvent], None] | None = None,
    ) -> None:
        self.job_id = job_id
        self._push = push
        self._poll = poll
        self._idle_timeout = idle_timeout
        self._on_update = on_update
        self._current: StatusEvent | None = None
        self._mode: str = push.name
        self._task: asyncio.Task | None = None
        self._cancelled = False

    @property
    def current(self) -> StatusEvent | None:
        """Latest accepted event."""
        return self._current

    @property
    def mode(self) -> str:
        """Name of the active strategy."""
        return self._mode

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> asyncio.Task:
        """Run the watch in a background task (idempotent).

        After cancel() the returned task is already cancelled and never
        opens a strategy.
        """
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"watch-{self.job_id}")
            if self._cancelled:
                self._task.cancel()
        return self._task

    async def wait(self) -> StatusEvent | None:
        """
        Wait for the background watch to finish.

        Returns:
            The terminal event, or None if the watch was cancelled.

        Raises:
            ClientTimeoutError: Polling gave up.
        """
        task = self.start()
        await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug("Status watch cancelled", job_id=self.job_id, mode=self._mode)

    async def run(self) -> StatusEvent:
        """
        Watch until a terminal status arrives.

        Raises:
            ClientTimeoutError: The poll fallback exhausted its attempts.
        """
        if self._cancelled:
            raise asyncio.CancelledError()

        try:
            final = await self._watch_push()
        except asyncio.CancelledError:
            raise
        except TimeoutError:
            logger.info(
                "Push idle, falling back to polling",
                job_id=self.job_id,
                idle_timeout=self._idle_timeout,
            )
            final = None
        except Exception as e:
            logger.warning(
                "Push failed, falling back to polling",
                job_id=self.job_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            final = None

        if final is not None:
            return final

        self._mode = self._poll.name
        async with aclosing(self._poll.updates(self.job_id)) as updates:
            async for event in updates:
                if self._accept(event) and event.is_terminal:
                    return event
        # Poll ended without raising; treat like push ending early
        raise RuntimeError(f"{self._poll.name} strategy ended without a terminal status")

    async def _watch_push(self) -> StatusEvent | None:
        async with aclosing(self._push.updates(self.job_id)) as updates:
            while True:
                try:
                    async with asyncio.timeout(self._idle_timeout):
                        event = await anext(updates)
                except StopAsyncIteration:
                    logger.info("Push stream ended early", job_id=self.job_id)
                    return None
                if self._accept(event) and event.is_terminal:
                    return event

    def _accept(self, event: StatusEvent) -> bool:
        if self._current is not None and event.status.rank <= self._current.status.rank:
            return False
        self._current = event
        if self._on_update is not None:
            self._on_update(event)
        return True
