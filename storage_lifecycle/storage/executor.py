"""
Deletion Executor

Carries out a DeletionStrategy against the blob store and the metadata
store, updating the job record after every phase.

Per-file failures (after retries) become job warnings and never abort
the batch. Only orchestration failures (e.g. the job record cannot be
written) fail the job. Delete order per file:
1. legal-hold guard
2. blob delete (already missing is fine)
3. metadata delete (commit point)
4. usage summary decrement and operation log
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional, Sequence

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import NotFoundError, StorageEngineError
from storage_lifecycle.core.logging import get_logger
from storage_lifecycle.core.retry import with_retry
from storage_lifecycle.metrics import record_file_action, record_store_retry
from storage_lifecycle.models import CleanupJob, OperationLog
from storage_lifecycle.models.enums import OperationType, OwnerType, RetentionBasis
from storage_lifecycle.storage.anonymization import (
    ANONYMIZED_UPLOADER_NAME,
    RETAINED_UPLOADER_NAME,
    Anonymizer,
)
from storage_lifecycle.storage.classification import FileClassifier
from storage_lifecycle.storage.jobs import JobTracker
from storage_lifecycle.storage.planner import AnonymizeAction, DeletionStrategy, RetainAction, TransferAction
from storage_lifecycle.storage.retention import RetentionPolicyTable

logger = get_logger(__name__)


@dataclass
class FileOutcome:
    """Result of one per-file primitive."""
    path: str
    action: str
    applied: bool = False
    size_bytes: int = 0
    warnings: List[str] = field(default_factory=list)


class DeletionExecutor:
    """
    Executes deletion strategies with bounded per-file concurrency.

    Features:
    - Four phases (delete, anonymize, transfer, retain), sequential
    - Worker pool of ``WORKER_CONCURRENCY`` per phase
    - Retries on transient store errors with exponential backoff
    - Counters written only from acknowledged store results
    """

    def __init__(
        self,
        store,
        blob_store,
        classifier: FileClassifier,
        retention: RetentionPolicyTable,
        anonymizer: Anonymizer,
        jobs: JobTracker,
        settings,
        on_data_changed: Optional[Callable[[], object]] = None,
    ):
        self.store = store
        self.blob_store = blob_store
        self.classifier = classifier
        self.retention = retention
        self.anonymizer = anonymizer
        self.jobs = jobs
        self.concurrency = settings.WORKER_CONCURRENCY
        self.max_retries = settings.MAX_RETRIES
        self.backoff_seconds = settings.RETRY_BACKOFF_SECONDS
        self.on_data_changed = on_data_changed

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def execute(self, strategy: DeletionStrategy, job_id: str) -> CleanupJob:
        """
        Run every phase of ``strategy`` under job ``job_id``.

        Args:
            strategy: Planned actions
            job_id: Pending job created by JobTracker.create()

        Returns:
            The completed job (check ``is_partial`` for per-file warnings)

        Raises:
            Whatever broke orchestration, after the job was marked failed
        """
        job_logger = logger.bind(job_id=job_id, target_id=strategy.user_id)
        phases = [
            ("delete", strategy.personal, self._delete_action, "deleted"),
            ("anonymize", strategy.business, self._anonymize_action, "anonymized"),
            ("transfer", strategy.shared, self._transfer_action, "transferred"),
            ("retain", strategy.retained, self._retain_action, "retained"),
        ]

        try:
            await self.jobs.start(job_id, files_found=strategy.actionable_count)
            job_logger.info(f"Executing strategy with {strategy.actionable_count} files")

            for phase, items, handler, counter in phases:
                if not items:
                    continue
                outcomes = await self.run_phase(phase, items, handler)
                applied = [o for o in outcomes if o.applied]
                warnings = [w for o in outcomes for w in o.warnings]
                await self.jobs.record_phase(
                    job_id,
                    processed=len(outcomes),
                    bytes_deleted=sum(o.size_bytes for o in applied) if phase == "delete" else 0,
                    warnings=warnings,
                    **{counter: len(applied)},
                )
                job_logger.info(
                    f"Phase {phase} finished: {len(applied)}/{len(outcomes)} applied, {len(warnings)} warnings"
                )

            job = await self.jobs.complete(job_id)
        except Exception as e:
            job_logger.exception(f"Job orchestration failed: {e}")
            await self._mark_failed(job_id, f"{type(e).__name__}: {e}")
            raise
        finally:
            # Phases that ran before a failure still changed the stores.
            self.notify_data_changed()

        return job

    async def _mark_failed(self, job_id: str, error: str) -> None:
        try:
            await self.jobs.fail(job_id, error)
        except StorageEngineError as fail_error:
            logger.error(f"Could not mark job {job_id} failed: {fail_error}")

    def notify_data_changed(self) -> None:
        if self.on_data_changed is not None:
            self.on_data_changed()

    async def run_phase(
        self,
        phase: str,
        items: Sequence,
        handler: Callable[[object], Awaitable[FileOutcome]],
    ) -> List[FileOutcome]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _guarded(item) -> FileOutcome:
            path = getattr(item, "path", item)
            async with semaphore:
                try:
                    outcome = await handler(item)
                except StorageEngineError as e:
                    logger.warning(f"{phase} failed for {path}: {e}")
                    outcome = FileOutcome(path, phase, warnings=[f"{phase} failed for {path}: {e}"])
            record_file_action(phase, outcome.applied, outcome.size_bytes if phase == "delete" else 0)
            return outcome

        return list(await asyncio.gather(*(_guarded(item) for item in items)))

    async def _call(self, description: str, operation, store: str = "metadata"):
        return await with_retry(
            operation,
            attempts=self.max_retries,
            backoff_seconds=self.backoff_seconds,
            description=description,
            on_retry=lambda attempt, error: record_store_retry(store),
        )

    async def _bookkeep(self, outcome: FileOutcome, description: str, operation) -> None:
        """Post-commit work; failures are warnings, the primitive stays applied."""
        try:
            await self._call(description, operation)
        except StorageEngineError as e:
            outcome.warnings.append(f"{description} failed for {outcome.path}: {e}")

    async def _move_usage(self, outcome: FileOutcome, old_owner: str, new_owner: str, size_bytes: int) -> None:
        if old_owner == new_owner:
            return
        await self._bookkeep(outcome, "usage decrement", lambda: self.store.adjust_usage(old_owner, -1, -size_bytes))
        await self._bookkeep(outcome, "usage increment", lambda: self.store.adjust_usage(new_owner, 1, size_bytes))

    async def _load(self, path: str):
        return await self._call(f"load {path}", lambda: self.store.get_file_by_path(path))

    def _classification_change(self, record) -> dict:
        if record.classification:
            return {}
        return {"classification": self.classifier.classify(record).value}

    # ------------------------------------------------------------------
    # Per-file primitives
    # ------------------------------------------------------------------

    async def delete_file(self, path: str) -> FileOutcome:
        """
        Remove the blob, then its metadata record.

        Raises:
            LegalHoldError: Record is under an unexpired legal obligation
            StorageEngineError: Store failures after retries
        """
        record = await self._load(path)
        if record is None:
            logger.info(f"Delete skipped, no metadata for {path}")
            return FileOutcome(path, "delete")

        self.retention.ensure_deletable(record, utcnow())

        started = time.perf_counter()
        try:
            await self._call(f"delete blob {path}", lambda: self.blob_store.delete(path), store="blob")
        except NotFoundError:
            logger.info(f"Blob already missing for {path}; removing metadata")

        removed = await self._call(f"delete metadata {path}", lambda: self.store.delete_file(record.id))
        if not removed:
            return FileOutcome(path, "delete")

        outcome = FileOutcome(path, "delete", applied=True, size_bytes=record.size_bytes or 0)
        duration_ms = (time.perf_counter() - started) * 1000
        await self._bookkeep(
            outcome,
            "usage decrement",
            lambda: self.store.adjust_usage(record.owner_id, -1, -(record.size_bytes or 0)),
        )
        await self._bookkeep(
            outcome,
            "operation log",
            lambda: self.store.add_operation_log(OperationLog(
                operation=OperationType.DELETE.value,
                path=path,
                user_id=self.anonymizer.pseudonymize(record.uploaded_by),
                duration_ms=duration_ms,
                size_bytes=record.size_bytes or 0,
                access_tier=record.access_tier,
                timestamp=utcnow(),
            )),
        )
        return outcome

    async def anonymize_file(self, path: str, new_owner_id: str, new_owner_type: str) -> FileOutcome:
        """Strip uploader identity from the record and hand it to ``new_owner_id``."""
        record = await self._load(path)
        if record is None:
            return FileOutcome(path, "anonymize", warnings=[f"anonymize skipped, file not found: {path}"])
        if record.is_anonymized:
            return FileOutcome(path, "anonymize")

        changes = self.anonymizer.anonymized_changes(
            record, new_owner_id=new_owner_id, new_owner_type=new_owner_type, now=utcnow()
        )
        changes.update(self._classification_change(record))
        await self._call(f"anonymize {path}", lambda: self.store.update_file(record.id, changes))

        outcome = FileOutcome(path, "anonymize", applied=True)
        await self._move_usage(outcome, record.owner_id, new_owner_id, record.size_bytes or 0)
        return outcome

    async def transfer_file(self, path: str, new_owner_id: str, new_owner_type: str, reason: str) -> FileOutcome:
        """Reassign ownership, replacing the uploader with its token. Content and classification stay."""
        record = await self._load(path)
        if record is None:
            return FileOutcome(path, "transfer", warnings=[f"transfer skipped, file not found: {path}"])

        changes = {
            "owner_id": new_owner_id,
            "owner_type": new_owner_type,
            "uploaded_by": self.anonymizer.pseudonymize(record.uploaded_by),
            "uploader_name": ANONYMIZED_UPLOADER_NAME,
            "transfer_reason": reason,
        }
        changes.update(self._classification_change(record))
        await self._call(f"transfer {path}", lambda: self.store.update_file(record.id, changes))

        outcome = FileOutcome(path, "transfer", applied=True)
        await self._move_usage(outcome, record.owner_id, new_owner_id, record.size_bytes or 0)
        return outcome

    async def retain_file(self, path: str, reason: str, period_days: int) -> FileOutcome:
        """Keep the file under legal retention, anonymized, with a computed expiry."""
        record = await self._load(path)
        if record is None:
            return FileOutcome(path, "retain", warnings=[f"retain skipped, file not found: {path}"])
        if record.is_anonymized:
            return FileOutcome(path, "retain")

        if record.owner_type == OwnerType.USER.value:
            new_owner_id = self.anonymizer.pseudonymize(record.owner_id)
        else:
            new_owner_id = record.owner_id

        changes = self.anonymizer.anonymized_changes(
            record,
            new_owner_id=new_owner_id,
            new_owner_type=record.owner_type,
            now=utcnow(),
            uploader_name=RETAINED_UPLOADER_NAME,
        )
        changes.update(self._classification_change(record))
        changes.update({
            "retention_basis": RetentionBasis.LEGAL_OBLIGATION.value,
            "retention_reason": reason,
            "expires_at": record.expires_at or record.created_at + timedelta(days=period_days),
        })
        await self._call(f"retain {path}", lambda: self.store.update_file(record.id, changes))

        outcome = FileOutcome(path, "retain", applied=True)
        await self._move_usage(outcome, record.owner_id, new_owner_id, record.size_bytes or 0)
        return outcome

    async def blob_exists(self, path: str) -> bool:
        return await self._call(f"check blob {path}", lambda: self.blob_store.exists(path), store="blob")

    async def forget_orphan_record(self, record) -> FileOutcome:
        """Drop metadata whose blob is gone. Legally retained records are kept and reported."""
        if record.is_legal_obligation:
            return FileOutcome(
                record.path,
                "orphan",
                warnings=[f"Blob missing for legally retained file {record.path}; metadata kept"],
            )

        removed = await self._call(f"delete orphan metadata {record.path}", lambda: self.store.delete_file(record.id))
        if not removed:
            return FileOutcome(record.path, "orphan")

        outcome = FileOutcome(record.path, "orphan", applied=True)
        await self._bookkeep(
            outcome,
            "usage decrement",
            lambda: self.store.adjust_usage(record.owner_id, -1, -(record.size_bytes or 0)),
        )
        return outcome

    async def forget_user_activity(self, user_id: str) -> int:
        """Pseudonymize ``user_id`` in the operation log; returns the entries rewritten."""
        token = self.anonymizer.pseudonymize(user_id)
        rewritten = await self._call(
            f"pseudonymize activity of {user_id}",
            lambda: self.store.pseudonymize_operation_logs(user_id, token),
        )
        logger.info(f"Pseudonymized {rewritten} operation log entries")
        return rewritten

    # Strategy item adapters

    async def _delete_action(self, path: str) -> FileOutcome:
        return await self.delete_file(path)

    async def _anonymize_action(self, action: AnonymizeAction) -> FileOutcome:
        return await self.anonymize_file(action.path, action.new_owner_id, action.new_owner_type)

    async def _transfer_action(self, action: TransferAction) -> FileOutcome:
        return await self.transfer_file(action.path, action.new_owner_id, action.new_owner_type, action.reason)

    async def _retain_action(self, action: RetainAction) -> FileOutcome:
        return await self.retain_file(action.path, action.reason, action.period_days)
