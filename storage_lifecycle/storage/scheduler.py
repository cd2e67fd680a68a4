"""
Retention & Cleanup Scheduler

Three independent scans, each recorded as its own CleanupJob:
- Expired temporary files -> deleted through the executor's delete primitive
- Files past their kind's retention period -> deleted (personal) or anonymized
- Orphans -> metadata without a blob is removed; blobs without metadata
  are reported as warnings only, never deleted
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import StorageEngineError
from storage_lifecycle.models import CleanupJob
from storage_lifecycle.models.enums import ErasureReason, FileKind, JobType
from storage_lifecycle.storage.executor import DeletionExecutor
from storage_lifecycle.storage.jobs import JobTracker
from storage_lifecycle.storage.planner import DeletionStrategy, DeletionStrategyPlanner
from storage_lifecycle.storage.retention import RetentionPolicyTable

logger = logging.getLogger(__name__)

TEMPORARY_TAG = "temporary"


class RetentionScheduler:
    """
    Scheduled lifecycle scans.

    Features:
    - Temp-file expiry (explicit expiry or upload time + TTL)
    - Retention enforcement over every kind with a finite period
    - Orphan detection across both stores
    - Text cleanup report
    """

    def __init__(
        self,
        store,
        blob_store,
        planner: DeletionStrategyPlanner,
        executor: DeletionExecutor,
        retention: RetentionPolicyTable,
        jobs: JobTracker,
        settings,
    ):
        self.store = store
        self.blob_store = blob_store
        self.planner = planner
        self.executor = executor
        self.retention = retention
        self.jobs = jobs
        self.temp_ttl = timedelta(hours=settings.TEMP_FILE_TTL_HOURS)
        self.concurrency = settings.WORKER_CONCURRENCY

        logger.info(
            f"RetentionScheduler initialized with {len(retention.finite_policies())} finite policies, "
            f"temp TTL {settings.TEMP_FILE_TTL_HOURS}h"
        )

    def is_temp_expired(self, record, now: datetime) -> bool:
        if record.expires_at is not None:
            return record.expires_at <= now
        return record.created_at + self.temp_ttl <= now

    async def find_expired_temp_files(self, now: Optional[datetime] = None) -> List:
        now = now or utcnow()
        by_kind = await self.store.list_files(kinds=[FileKind.TEMP_UPLOAD])
        by_tag = await self.store.list_files(tag=TEMPORARY_TAG)
        candidates = {record.id: record for record in by_kind + by_tag}
        return sorted(
            (record for record in candidates.values() if self.is_temp_expired(record, now)),
            key=lambda record: (record.created_at, record.id),
        )

    async def cleanup_expired_temp_files(self, now: Optional[datetime] = None) -> CleanupJob:
        """Delete temporary files whose expiry has passed."""
        job = await self.jobs.create(JobType.TEMP_CLEANUP, "temporary_files", "system", ErasureReason.SCHEDULED)
        try:
            expired = await self.find_expired_temp_files(now)
        except StorageEngineError as e:
            await self.jobs.fail(job.id, f"Temp file scan failed: {e}")
            raise
        logger.info(f"Found {len(expired)} expired temporary files")
        strategy = DeletionStrategy.for_deletion([record.path for record in expired], target="temporary_files")
        return await self.executor.execute(strategy, job.id)

    async def find_retention_expired(self, now: Optional[datetime] = None) -> List:
        now = now or utcnow()
        kinds = [policy.kind for policy in self.retention.finite_policies() if policy.kind != FileKind.TEMP_UPLOAD]
        if not kinds:
            return []
        records = await self.store.list_files(kinds=kinds)
        return [
            record for record in records
            if not record.is_anonymized
            and not record.is_legal_obligation
            and self.retention.is_retention_elapsed(record, now)
        ]

    async def enforce_retention_policies(self, now: Optional[datetime] = None) -> CleanupJob:
        """Delete or anonymize files whose retention period has elapsed."""
        job = await self.jobs.create(
            JobType.RETENTION_ENFORCEMENT, "retention_policies", "system", ErasureReason.RETENTION_EXPIRED
        )
        try:
            expired = await self.find_retention_expired(now)
            strategy = self.planner.plan_retention(expired)
        except StorageEngineError as e:
            await self.jobs.fail(job.id, f"Retention scan failed: {e}")
            raise
        logger.info(
            f"Retention enforcement: {len(strategy.personal)} to delete, {len(strategy.business)} to anonymize"
        )
        return await self.executor.execute(strategy, job.id)

    async def cleanup_orphans(self) -> CleanupJob:
        """
        Reconcile metadata with the blob store.

        Metadata whose blob no longer exists is deleted; blobs with no
        metadata are reported as job warnings.
        """
        job = await self.jobs.create(JobType.ORPHAN_CLEANUP, "blob_store", "system", ErasureReason.SCHEDULED)
        try:
            records = await self.store.list_files()
            blobs = await self.blob_store.list_objects()

            semaphore = asyncio.Semaphore(self.concurrency)
            unchecked: List[str] = []

            async def _missing(record) -> bool:
                async with semaphore:
                    try:
                        return not await self.executor.blob_exists(record.path)
                    except StorageEngineError as e:
                        logger.warning(f"Could not check blob for {record.path}: {e}")
                        unchecked.append(f"Blob check failed for {record.path}: {e}")
                        return False

            flags = await asyncio.gather(*(_missing(record) for record in records))
            missing_blob = [record for record, missing in zip(records, flags) if missing]
            known_paths = {record.path for record in records}
            orphan_blobs = sorted(blob.path for blob in blobs if blob.path not in known_paths)

            await self.jobs.start(job.id, files_found=len(missing_blob) + len(orphan_blobs))

            outcomes = await self.executor.run_phase("orphan", missing_blob, self.executor.forget_orphan_record)
            applied = [o for o in outcomes if o.applied]
            warnings = sorted(unchecked) + [w for o in outcomes for w in o.warnings]
            warnings.extend(f"Orphaned blob without metadata: {path}" for path in orphan_blobs)

            await self.jobs.record_phase(
                job.id,
                processed=len(outcomes) + len(orphan_blobs),
                deleted=len(applied),
                warnings=warnings,
            )
            job = await self.jobs.complete(job.id)
        except Exception as e:
            logger.error(f"Orphan cleanup failed: {e}")
            await self.jobs.fail(job.id, f"{type(e).__name__}: {e}")
            raise
        finally:
            self.executor.notify_data_changed()

        logger.info(
            f"Orphan cleanup: {job.files_deleted} stale records removed, {len(orphan_blobs)} orphaned blobs reported"
        )
        return job

    async def run_all(self, now: Optional[datetime] = None) -> List[CleanupJob]:
        """Run the three scans concurrently; a failing scan does not stop the others."""
        results = await asyncio.gather(
            self.cleanup_expired_temp_files(now),
            self.enforce_retention_policies(now),
            self.cleanup_orphans(),
            return_exceptions=True,
        )
        jobs = []
        for result in results:
            if isinstance(result, BaseException):
                logger.error(f"Scheduled scan failed: {result}")
            else:
                jobs.append(result)
        return jobs

    @staticmethod
    def cleanup_report(jobs: List[CleanupJob]) -> str:
        """
        Generate human-readable cleanup report

        Args:
            jobs: Finished cleanup jobs

        Returns:
            Formatted report string
        """
        report = []
        report.append("=" * 60)
        report.append("STORAGE CLEANUP REPORT")
        report.append("=" * 60)

        report.append(f"Total files found: {sum(j.files_found for j in jobs)}")
        report.append(f"Total files deleted: {sum(j.files_deleted for j in jobs)}")
        report.append(f"Total files anonymized: {sum(j.files_anonymized for j in jobs)}")
        report.append(f"Total space freed: {sum(j.bytes_deleted for j in jobs) / (1024 ** 3):.4f} GB")
        report.append(f"Total warnings: {sum(len(j.warnings or []) for j in jobs)}")
        report.append("=" * 60)

        for job in jobs:
            report.append(f"\nJob: {job.job_type} ({job.id})")
            report.append(f"  Status: {job.status}")
            report.append(f"  Files found: {job.files_found}")
            report.append(f"  Files deleted: {job.files_deleted}")
            report.append(f"  Files anonymized: {job.files_anonymized}")
            report.append(f"  Space freed: {job.bytes_deleted / (1024 ** 2):.2f} MB")
            if job.duration_seconds is not None:
                report.append(f"  Duration: {job.duration_seconds:.2f}s")

            if job.warnings:
                report.append(f"  Warnings: {len(job.warnings)}")
                for warning in job.warnings[:5]:  # Show first 5 warnings
                    report.append(f"    - {warning}")

        return "\n".join(report)
