"""
User erasure (right to be forgotten).

Creates the job, plans and executes. ``submit_user_erasure`` runs the
work in the background and hands back an awaitable handle, so callers
learn about completion from the task itself rather than by polling.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from storage_lifecycle.models import CleanupJob
from storage_lifecycle.models.enums import ErasureReason, JobType
from storage_lifecycle.storage.executor import DeletionExecutor
from storage_lifecycle.storage.jobs import JobTracker
from storage_lifecycle.storage.planner import DeletionStrategyPlanner

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Optional[CleanupJob], Optional[BaseException]], None]


@dataclass
class ErasureHandle:
    """A running erasure: the job id is known immediately, the result later."""
    job_id: str
    task: "asyncio.Task[CleanupJob]"

    async def wait(self) -> CleanupJob:
        return await self.task

    def done(self) -> bool:
        return self.task.done()


class ErasureService:
    """Entry point for user erasure requests."""

    def __init__(self, planner: DeletionStrategyPlanner, executor: DeletionExecutor, jobs: JobTracker):
        self.planner = planner
        self.executor = executor
        self.jobs = jobs
        self._running: List[asyncio.Task] = []

    async def erase_user(
        self,
        user_id: str,
        organization_id: Optional[str] = None,
        reason: ErasureReason = ErasureReason.USER_REQUEST,
        requested_by: Optional[str] = None,
    ) -> CleanupJob:
        """Erase ``user_id`` and return the finished job."""
        job = await self.jobs.create(JobType.USER_ERASURE, user_id, "user", reason, requested_by)
        return await self._run(job.id, user_id, organization_id)

    async def _run(self, job_id: str, user_id: str, organization_id: Optional[str]) -> CleanupJob:
        try:
            strategy = await self.planner.plan(user_id, organization_id)
            await self.executor.forget_user_activity(user_id)
        except Exception as e:
            logger.error(f"Preparation failed for erasure job {job_id}: {e}")
            await self.jobs.fail(job_id, f"{type(e).__name__}: {e}")
            raise
        return await self.executor.execute(strategy, job_id)

    async def submit_user_erasure(
        self,
        user_id: str,
        organization_id: Optional[str] = None,
        reason: ErasureReason = ErasureReason.USER_REQUEST,
        requested_by: Optional[str] = None,
        on_complete: Optional[CompletionCallback] = None,
    ) -> ErasureHandle:
        """
        Start an erasure in the background.

        Args:
            user_id: User to erase
            organization_id: Receives the user's business files
            reason: Why the erasure was requested
            requested_by: Actor recorded on the job
            on_complete: Called with (job, None) on success or (None, error) on failure

        Returns:
            ErasureHandle whose task resolves to the finished job
        """
        job = await self.jobs.create(JobType.USER_ERASURE, user_id, "user", reason, requested_by)
        task = asyncio.create_task(self._run(job.id, user_id, organization_id), name=f"erasure-{job.id}")
        self._running.append(task)

        def _done(finished: asyncio.Task) -> None:
            self._running.remove(finished)
            error = None if finished.cancelled() else finished.exception()
            if error is not None:
                logger.error(f"Erasure job {job.id} ended with error: {error}")
            if on_complete is not None:
                on_complete(None if error or finished.cancelled() else finished.result(), error)

        task.add_done_callback(_done)
        return ErasureHandle(job_id=job.id, task=task)

    async def wait_all(self) -> None:
        """Wait for every background erasure (used on shutdown)."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
