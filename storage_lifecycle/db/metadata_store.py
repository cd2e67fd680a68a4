"""
Metadata Store

SQLAlchemy-backed store for file metadata, jobs, usage accounting,
compliance reports and alerts.

Each call runs in its own short-lived session. Against PostgreSQL the
blocking work is pushed to a worker thread; against SQLite (single shared
connection) it runs inline. Driver errors are translated:
- OperationalError (connection lost, lock timeout) -> TransientStoreError
- any other SQLAlchemyError -> MetadataStoreError
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import MetadataStoreError, NotFoundError, TransientStoreError
from storage_lifecycle.models import (
    CleanupJob,
    ComplianceReport,
    ComplianceViolation,
    FileRecord,
    OperationLog,
    StorageAlert,
    StorageSummary,
    UsageSnapshot,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MetadataStore:
    """Metadata store with keyed lookups, range filters and atomic counters."""

    def __init__(self, session_factory: sessionmaker, offload: bool = False):
        """
        Args:
            session_factory: Factory built by create_session_factory()
            offload: Run blocking session work in a worker thread
        """
        self._session_factory = session_factory
        self._offload = offload

    async def _run(self, description: str, work: Callable[[Session], T]) -> T:
        def _execute() -> T:
            with self._session_factory() as session:
                result = work(session)
                session.commit()
                return result

        try:
            if self._offload:
                return await asyncio.to_thread(_execute)
            return _execute()
        except OperationalError as e:
            logger.warning(f"Metadata store unavailable during {description}: {e}")
            raise TransientStoreError(f"{description}: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Metadata store error during {description}: {e}")
            raise MetadataStoreError(f"{description}: {e}") from e

    # ------------------------------------------------------------------
    # File records
    # ------------------------------------------------------------------

    async def add_file(self, record: FileRecord) -> FileRecord:
        def _add(session: Session) -> FileRecord:
            session.add(record)
            session.flush()
            return record

        return await self._run("add_file", _add)

    async def get_file(self, file_id: str) -> Optional[FileRecord]:
        return await self._run("get_file", lambda session: session.get(FileRecord, file_id))

    async def get_file_by_path(self, path: str) -> Optional[FileRecord]:
        return await self._run(
            "get_file_by_path",
            lambda session: session.execute(
                select(FileRecord).where(FileRecord.path == path)
            ).scalar_one_or_none(),
        )

    async def list_user_files(self, user_id: str) -> List[FileRecord]:
        """Files owned by or uploaded by ``user_id``."""
        stmt = (
            select(FileRecord)
            .where(or_(FileRecord.uploaded_by == user_id, FileRecord.owner_id == user_id))
            .order_by(FileRecord.created_at, FileRecord.id)
        )
        return await self._run("list_user_files", lambda session: list(session.execute(stmt).scalars()))

    async def list_files(
        self,
        *,
        owner_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        kinds: Optional[Iterable[str]] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        tag: Optional[str] = None,
    ) -> List[FileRecord]:
        """
        Filtered file listing ordered by (created_at, id).

        Args:
            owner_id: Only files owned by this id
            organization_id: Only files belonging to this organization
            kinds: Only these file kinds
            created_from: Inclusive lower bound on created_at
            created_to: Inclusive upper bound on created_at
            tag: Only files carrying this tag (matched in Python for portability)
        """
        stmt = select(FileRecord)
        if owner_id is not None:
            stmt = stmt.where(FileRecord.owner_id == owner_id)
        if organization_id is not None:
            stmt = stmt.where(FileRecord.organization_id == organization_id)
        if kinds is not None:
            stmt = stmt.where(FileRecord.file_kind.in_([str(getattr(k, "value", k)) for k in kinds]))
        if created_from is not None:
            stmt = stmt.where(FileRecord.created_at >= created_from)
        if created_to is not None:
            stmt = stmt.where(FileRecord.created_at <= created_to)
        stmt = stmt.order_by(FileRecord.created_at, FileRecord.id)

        records = await self._run("list_files", lambda session: list(session.execute(stmt).scalars()))
        if tag is not None:
            records = [r for r in records if tag in (r.tags or [])]
        return records

    async def update_file(self, file_id: str, changes: dict) -> FileRecord:
        """
        Apply metadata ``changes`` to a file record.

        Raises:
            NotFoundError: If the record no longer exists
        """
        if "path" in changes:
            raise MetadataStoreError("File content path is immutable")

        def _update(session: Session) -> FileRecord:
            record = session.get(FileRecord, file_id)
            if record is None:
                raise NotFoundError("File record", file_id)
            for field, value in changes.items():
                setattr(record, field, value)
            record.updated_at = utcnow()
            session.flush()
            return record

        return await self._run("update_file", _update)

    async def delete_file(self, file_id: str) -> bool:
        """Delete a file record and close its open violations; False if it was already gone."""
        def _delete(session: Session) -> bool:
            result = session.execute(delete(FileRecord).where(FileRecord.id == file_id))
            if result.rowcount == 0:
                return False
            session.execute(
                update(ComplianceViolation)
                .where(ComplianceViolation.file_id == file_id)
                .where(ComplianceViolation.resolved_at.is_(None))
                .values(resolved_at=utcnow())
            )
            return True

        return await self._run("delete_file", _delete)

    # ------------------------------------------------------------------
    # Usage summaries
    # ------------------------------------------------------------------

    @staticmethod
    def _increment_usage(session: Session, owner_id: str, files_delta: int, bytes_delta: int) -> int:
        result = session.execute(
            update(StorageSummary)
            .where(StorageSummary.owner_id == owner_id)
            .values(
                total_files=StorageSummary.total_files + files_delta,
                total_bytes=StorageSummary.total_bytes + bytes_delta,
                updated_at=utcnow(),
            )
        )
        return result.rowcount

    async def adjust_usage(self, owner_id: str, files_delta: int, bytes_delta: int) -> None:
        """Atomically add deltas to an owner's usage summary, creating it if needed."""
        def _adjust(session: Session) -> None:
            if self._increment_usage(session, owner_id, files_delta, bytes_delta):
                return
            session.add(StorageSummary(
                owner_id=owner_id,
                total_files=max(files_delta, 0),
                total_bytes=max(bytes_delta, 0),
            ))
            try:
                session.flush()
            except IntegrityError:
                # Another writer created the row first.
                session.rollback()
                self._increment_usage(session, owner_id, files_delta, bytes_delta)

        await self._run("adjust_usage", _adjust)

    async def get_usage(self, owner_id: str) -> Optional[StorageSummary]:
        return await self._run("get_usage", lambda session: session.get(StorageSummary, owner_id))

    async def list_usage(self) -> List[StorageSummary]:
        stmt = select(StorageSummary).order_by(StorageSummary.owner_id)
        return await self._run("list_usage", lambda session: list(session.execute(stmt).scalars()))

    async def set_quota(self, owner_id: str, quota_bytes: int) -> StorageSummary:
        def _set(session: Session) -> StorageSummary:
            summary = session.get(StorageSummary, owner_id)
            if summary is None:
                summary = StorageSummary(owner_id=owner_id, total_files=0, total_bytes=0)
                session.add(summary)
            summary.quota_bytes = quota_bytes
            session.flush()
            return summary

        return await self._run("set_quota", _set)

    # ------------------------------------------------------------------
    # Cleanup jobs
    # ------------------------------------------------------------------

    async def add_job(self, job: CleanupJob) -> CleanupJob:
        def _add(session: Session) -> CleanupJob:
            session.add(job)
            session.flush()
            return job

        return await self._run("add_job", _add)

    async def get_job(self, job_id: str) -> Optional[CleanupJob]:
        return await self._run("get_job", lambda session: session.get(CleanupJob, job_id))

    async def save_job(self, job: CleanupJob) -> CleanupJob:
        return await self._run("save_job", lambda session: session.merge(job))

    async def list_jobs(
        self,
        *,
        job_type: Optional[str] = None,
        status: Optional[str] = None,
        target_id: Optional[str] = None,
        created_from: Optional[datetime] = None,
        completed_from: Optional[datetime] = None,
        completed_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CleanupJob]:
        """Jobs newest first, filtered by type/status/target and time ranges."""
        stmt = select(CleanupJob)
        if job_type is not None:
            stmt = stmt.where(CleanupJob.job_type == str(getattr(job_type, "value", job_type)))
        if status is not None:
            stmt = stmt.where(CleanupJob.status == str(getattr(status, "value", status)))
        if target_id is not None:
            stmt = stmt.where(CleanupJob.target_id == target_id)
        if created_from is not None:
            stmt = stmt.where(CleanupJob.created_at >= created_from)
        if completed_from is not None:
            stmt = stmt.where(CleanupJob.completed_at >= completed_from)
        if completed_to is not None:
            stmt = stmt.where(CleanupJob.completed_at <= completed_to)
        stmt = stmt.order_by(CleanupJob.created_at.desc(), CleanupJob.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._run("list_jobs", lambda session: list(session.execute(stmt).scalars()))

    # ------------------------------------------------------------------
    # Operation logs
    # ------------------------------------------------------------------

    async def add_operation_log(self, entry: OperationLog) -> OperationLog:
        def _add(session: Session) -> OperationLog:
            session.add(entry)
            session.flush()
            return entry

        return await self._run("add_operation_log", _add)

    async def list_operation_logs(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        errors_only: bool = False,
    ) -> List[OperationLog]:
        stmt = select(OperationLog)
        if since is not None:
            stmt = stmt.where(OperationLog.timestamp >= since)
        if until is not None:
            stmt = stmt.where(OperationLog.timestamp <= until)
        if errors_only:
            stmt = stmt.where(OperationLog.error_code.is_not(None))
        stmt = stmt.order_by(OperationLog.timestamp, OperationLog.id)
        return await self._run("list_operation_logs", lambda session: list(session.execute(stmt).scalars()))

    async def pseudonymize_operation_logs(self, user_id: str, token: str) -> int:
        """Replace ``user_id`` with ``token`` on every operation log entry."""
        stmt = update(OperationLog).where(OperationLog.user_id == user_id).values(user_id=token)
        return await self._run("pseudonymize_operation_logs", lambda session: session.execute(stmt).rowcount)

    # ------------------------------------------------------------------
    # Usage snapshots
    # ------------------------------------------------------------------

    async def add_snapshot(self, snapshot: UsageSnapshot) -> UsageSnapshot:
        def _add(session: Session) -> UsageSnapshot:
            session.add(snapshot)
            session.flush()
            return snapshot

        return await self._run("add_snapshot", _add)

    async def list_snapshots(self, period: Optional[str] = None, limit: int = 12) -> List[UsageSnapshot]:
        """The most recent ``limit`` snapshots, oldest first."""
        stmt = select(UsageSnapshot)
        if period is not None:
            stmt = stmt.where(UsageSnapshot.period == str(getattr(period, "value", period)))
        stmt = stmt.order_by(UsageSnapshot.window_end.desc(), UsageSnapshot.created_at.desc()).limit(limit)
        snapshots = await self._run("list_snapshots", lambda session: list(session.execute(stmt).scalars()))
        return list(reversed(snapshots))

    # ------------------------------------------------------------------
    # Compliance reports & violations
    # ------------------------------------------------------------------

    async def add_report(
        self,
        report: ComplianceReport,
        violations: List[ComplianceViolation],
        scanned_file_ids: Iterable[str] = (),
    ) -> Tuple[ComplianceReport, List[ComplianceViolation]]:
        """
        Persist a report and its violations in one transaction.

        Open violations from earlier reports on any of ``scanned_file_ids``
        are resolved at ``report.generated_at``; the new scan replaces them.
        """
        file_ids = list(scanned_file_ids)

        def _add(session: Session):
            if file_ids:
                session.execute(
                    update(ComplianceViolation)
                    .where(ComplianceViolation.file_id.in_(file_ids))
                    .where(ComplianceViolation.resolved_at.is_(None))
                    .values(resolved_at=report.generated_at)
                )
            session.add(report)
            session.flush()
            for violation in violations:
                violation.report_id = report.id
                session.add(violation)
            session.flush()
            return report, violations

        return await self._run("add_report", _add)

    async def get_report(self, report_id: str) -> Optional[ComplianceReport]:
        return await self._run("get_report", lambda session: session.get(ComplianceReport, report_id))

    async def list_violations(
        self,
        *,
        report_id: Optional[str] = None,
        severity: Optional[str] = None,
        unresolved_only: bool = False,
    ) -> List[ComplianceViolation]:
        stmt = select(ComplianceViolation)
        if report_id is not None:
            stmt = stmt.where(ComplianceViolation.report_id == report_id)
        if severity is not None:
            stmt = stmt.where(ComplianceViolation.severity == str(getattr(severity, "value", severity)))
        if unresolved_only:
            stmt = stmt.where(ComplianceViolation.resolved_at.is_(None))
        stmt = stmt.order_by(ComplianceViolation.detected_at, ComplianceViolation.id)
        return await self._run("list_violations", lambda session: list(session.execute(stmt).scalars()))

    async def resolve_violation(self, violation_id: str, resolved_at: datetime) -> ComplianceViolation:
        def _resolve(session: Session) -> ComplianceViolation:
            violation = session.get(ComplianceViolation, violation_id)
            if violation is None:
                raise NotFoundError("Compliance violation", violation_id)
            if violation.resolved_at is None:
                violation.resolved_at = resolved_at
            session.flush()
            return violation

        return await self._run("resolve_violation", _resolve)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def find_active_alert(self, fingerprint: str) -> Optional[StorageAlert]:
        """
        The single unresolved alert for ``fingerprint``.

        More than one active alert per fingerprint is a data error and
        surfaces as MetadataStoreError rather than picking one silently.
        """
        stmt = select(StorageAlert).where(
            StorageAlert.fingerprint == fingerprint,
            StorageAlert.resolved_at.is_(None),
        )
        return await self._run("find_active_alert", lambda session: session.execute(stmt).scalar_one_or_none())

    async def upsert_alert(self, fingerprint: str, fields: dict, now: datetime) -> Tuple[StorageAlert, bool]:
        """
        Refresh the active alert for ``fingerprint`` or create a new one.

        Returns:
            (alert, created)
        """
        def _upsert(session: Session):
            alert = session.execute(
                select(StorageAlert).where(
                    StorageAlert.fingerprint == fingerprint,
                    StorageAlert.resolved_at.is_(None),
                )
            ).scalar_one_or_none()
            if alert is None:
                alert = StorageAlert(fingerprint=fingerprint, created_at=now, last_seen_at=now, **fields)
                session.add(alert)
                session.flush()
                return alert, True
            for field, value in fields.items():
                setattr(alert, field, value)
            alert.last_seen_at = now
            alert.occurrences = (alert.occurrences or 1) + 1
            session.flush()
            return alert, False

        return await self._run("upsert_alert", _upsert)

    async def get_alert(self, alert_id: str) -> Optional[StorageAlert]:
        return await self._run("get_alert", lambda session: session.get(StorageAlert, alert_id))

    async def resolve_alert(self, alert_id: str, resolved_at: datetime) -> StorageAlert:
        def _resolve(session: Session) -> StorageAlert:
            alert = session.get(StorageAlert, alert_id)
            if alert is None:
                raise NotFoundError("Storage alert", alert_id)
            if alert.resolved_at is None:
                alert.resolved_at = resolved_at
            session.flush()
            return alert

        return await self._run("resolve_alert", _resolve)

    async def list_alerts(self, active_only: bool = True, alert_type: Optional[str] = None) -> List[StorageAlert]:
        stmt = select(StorageAlert)
        if active_only:
            stmt = stmt.where(StorageAlert.resolved_at.is_(None))
        if alert_type is not None:
            stmt = stmt.where(StorageAlert.alert_type == str(getattr(alert_type, "value", alert_type)))
        stmt = stmt.order_by(StorageAlert.created_at.desc(), StorageAlert.id)
        return await self._run("list_alerts", lambda session: list(session.execute(stmt).scalars()))
