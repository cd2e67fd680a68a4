"""
Cleanup job tracking.

The job record is the single source of truth for a lifecycle operation.
Status only moves forward (pending -> in_progress -> completed|failed)
and counters only grow while the job is in progress.
"""
import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Dict, List, Optional

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import InvalidJobTransitionError, JobNotFoundError
from storage_lifecycle.metrics import record_job_completed, record_job_failed, record_job_started
from storage_lifecycle.models import CleanupJob
from storage_lifecycle.models.enums import JobStatus, JobType

logger = logging.getLogger(__name__)


class JobTracker:
    """Creates and advances CleanupJob records in the metadata store."""

    def __init__(self, store):
        self.store = store

    async def create(
        self,
        job_type: JobType,
        target_id: str,
        target_type: str = "user",
        reason: Optional[str] = None,
        requested_by: Optional[str] = None,
    ) -> CleanupJob:
        job = CleanupJob(
            job_type=job_type.value,
            target_id=target_id,
            target_type=target_type,
            status=JobStatus.PENDING.value,
            reason=getattr(reason, "value", reason),
            requested_by=requested_by,
            files_found=0,
            files_processed=0,
            files_deleted=0,
            files_anonymized=0,
            files_transferred=0,
            files_retained=0,
            bytes_deleted=0,
            progress=0.0,
            errors=[],
            warnings=[],
            created_at=utcnow(),
        )
        job = await self.store.add_job(job)
        logger.info(f"Created {job.job_type} job {job.id} for {target_type} {target_id}")
        return job

    async def get(self, job_id: str) -> CleanupJob:
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def start(self, job_id: str, files_found: int) -> CleanupJob:
        job = await self.get(job_id)
        job.transition_to(JobStatus.IN_PROGRESS)
        job.files_found = files_found
        job.progress = 100.0 if files_found == 0 else 0.0
        job = await self.store.save_job(job)
        record_job_started(job.job_type)
        return job

    async def record_phase(
        self,
        job_id: str,
        *,
        processed: int = 0,
        deleted: int = 0,
        anonymized: int = 0,
        transferred: int = 0,
        retained: int = 0,
        bytes_deleted: int = 0,
        warnings: Optional[List[str]] = None,
        errors: Optional[List[str]] = None,
    ) -> CleanupJob:
        """
        Add acknowledged results to the job's running counters.

        Raises:
            InvalidJobTransitionError: If the job is not in progress or a delta is negative
        """
        deltas = {
            "files_processed": processed,
            "files_deleted": deleted,
            "files_anonymized": anonymized,
            "files_transferred": transferred,
            "files_retained": retained,
            "bytes_deleted": bytes_deleted,
        }
        if any(value < 0 for value in deltas.values()):
            raise InvalidJobTransitionError(f"Job {job_id}: counters cannot decrease ({deltas})")

        job = await self.get(job_id)
        if job.status != JobStatus.IN_PROGRESS.value:
            raise InvalidJobTransitionError(f"Job {job_id} is {job.status}, not in_progress")

        for field, delta in deltas.items():
            setattr(job, field, (getattr(job, field) or 0) + delta)
        if warnings:
            job.warnings = list(job.warnings or []) + list(warnings)
        if errors:
            job.errors = list(job.errors or []) + list(errors)
        if job.files_found:
            job.progress = round(min(100.0, job.files_processed / job.files_found * 100), 2)
        return await self.store.save_job(job)

    async def complete(self, job_id: str) -> CleanupJob:
        job = await self.get(job_id)
        job.transition_to(JobStatus.COMPLETED)
        job.progress = 100.0
        job = await self.store.save_job(job)
        record_job_completed(job.job_type, job.duration_seconds or 0.0, partial=job.is_partial)
        logger.info(
            f"Job {job.id} completed: {job.files_deleted} deleted, {job.files_anonymized} anonymized, "
            f"{job.files_transferred} transferred, {job.files_retained} retained, "
            f"{len(job.warnings or [])} warnings"
        )
        return job

    async def fail(self, job_id: str, error: str) -> CleanupJob:
        job = await self.get(job_id)
        job.transition_to(JobStatus.FAILED)
        job.error_message = error
        job.errors = list(job.errors or []) + [error]
        job = await self.store.save_job(job)
        record_job_failed(job.job_type)
        logger.error(f"Job {job.id} failed: {error}")
        return job

    async def list_jobs(
        self,
        job_type: Optional[JobType] = None,
        status: Optional[JobStatus] = None,
        limit: int = 50,
    ) -> List[CleanupJob]:
        return await self.store.list_jobs(job_type=job_type, status=status, limit=limit)

    async def history(self, days: int = 30, limit: int = 100) -> Dict[str, Any]:
        """
        Recent jobs plus aggregate statistics.

        Returns:
            Dictionary with 'jobs' and 'statistics' keys
        """
        since = utcnow() - timedelta(days=days)
        jobs = await self.store.list_jobs(created_from=since, limit=limit)
        by_status = Counter(job.status for job in jobs)
        by_type = Counter(job.job_type for job in jobs)
        finished = [job for job in jobs if job.status == JobStatus.COMPLETED.value]

        return {
            "jobs": [job.to_dict() for job in jobs],
            "statistics": {
                "total_jobs": len(jobs),
                "by_status": dict(sorted(by_status.items())),
                "by_type": dict(sorted(by_type.items())),
                "partial_jobs": sum(1 for job in jobs if job.is_partial),
                "files_deleted": sum(job.files_deleted for job in finished),
                "files_anonymized": sum(job.files_anonymized for job in finished),
                "files_transferred": sum(job.files_transferred for job in finished),
                "files_retained": sum(job.files_retained for job in finished),
                "bytes_deleted": sum(job.bytes_deleted for job in finished),
            },
        }
