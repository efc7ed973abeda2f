"""Hand analysis jobs to the pipeline without blocking the request.

Delivery is at-least-once: a job may be started more than once for the same
analysis id (a retried invocation, a redelivered queue message). The pipeline
tolerates that by claiming the record with a compare-and-set on ``pending``.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class AnalysisJob(BaseModel):
    model_config = {"frozen": True}

    analysis_id: str
    photo_ref: str
    zone_code: str | None
    zone_description: str | None


class TaskDispatcher(Protocol):
    def dispatch(self, job: AnalysisJob) -> None: ...


class AsyncioTaskDispatcher:
    """Runs each job as a task on the running event loop (fire-and-forget)."""

    def __init__(self, handler: Callable[[AnalysisJob], Awaitable[None]]):
        self._handler = handler
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, job: AnalysisJob) -> None:
        task = asyncio.create_task(self._handler(job), name=f"analysis-{job.analysis_id}")
        # the loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Dispatched analysis %s", job.analysis_id)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched job to finish (shutdown, tests)."""
        if self._tasks:
            logger.info("Waiting for %d analysis task(s)", len(self._tasks))
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
