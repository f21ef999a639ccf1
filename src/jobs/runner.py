"""Background execution of job processing.

The API hands new jobs to the runner and returns immediately; the runner
processes distinct jobs concurrently (bounded by a semaphore) and never
runs two tasks for the same job id.
"""

import asyncio

from src.jobs.orchestrator import JobOrchestrator
from src.observability.logging import get_logger
from src.observability.metrics import get_metrics

logger = get_logger(__name__)


class JobRunner:
    """Schedules ``JobOrchestrator.process`` as background tasks.

    Lifecycle:
        1. ``submit(job_id)`` - schedule processing (no-op if already running)
        2. ``resume_unfinished()`` - reschedule non-terminal jobs after restart
        3. ``stop()`` - cancel in-flight tasks
    """

    def __init__(self, orchestrator: JobOrchestrator, max_concurrent: int | None = None) -> None:
        self._orchestrator = orchestrator
        limit = max_concurrent or orchestrator.config.max_concurrent_jobs
        self._semaphore = asyncio.Semaphore(limit)
        self._tasks: dict[str, asyncio.Task] = {}
        self._stopping = False

    @property
    def active_jobs(self) -> list[str]:
        return list(self._tasks)

    def submit(self, job_id: str) -> bool:
        """Schedule a job. Returns False if it is already scheduled or the runner stopped."""
        if self._stopping or job_id in self._tasks:
            return False
        task = asyncio.create_task(self._run(job_id), name=f"job-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(job_id, None))
        return True

    async def resume_unfinished(self) -> int:
        """Schedule every non-terminal job. Returns the number scheduled."""
        jobs = await self._orchestrator.list_unfinished()
        scheduled = sum(1 for job in jobs if self.submit(job.job_id))
        if scheduled:
            logger.info("Resumed unfinished jobs", count=scheduled)
        return scheduled

    async def wait(self, job_id: str) -> None:
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})

    async def stop(self) -> None:
        self._stopping = True
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Job runner stopped", cancelled=len(tasks))

    async def _run(self, job_id: str) -> None:
        async with self._semaphore:
            metrics = get_metrics()
            metrics.jobs_in_flight.inc()
            try:
                job = await self._orchestrator.process(job_id)
                logger.info(
                    "Job finished",
                    job_id=job_id,
                    status=job.status.value,
                    overall_score=job.overall_score,
                )
            except asyncio.CancelledError:
                logger.info("Job processing cancelled", job_id=job_id)
                raise
            except Exception:
                logger.exception("Job processing aborted", job_id=job_id)
            finally:
                metrics.jobs_in_flight.dec()
