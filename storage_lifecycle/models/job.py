"""
SQLAlchemy model for lifecycle cleanup jobs.
Maps to the 'cleanup_jobs' table. Jobs are the audit trail of every
lifecycle operation and are never deleted.
"""
import uuid

from sqlalchemy import BigInteger, Column, DateTime, Float, Index, Integer, String, Text

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import InvalidJobTransitionError
from storage_lifecycle.models.base import Base, JSONType
from storage_lifecycle.models.enums import JobStatus

ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.IN_PROGRESS, JobStatus.FAILED},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}

COUNTER_FIELDS = (
    "files_deleted",
    "files_anonymized",
    "files_transferred",
    "files_retained",
    "files_processed",
    "bytes_deleted",
)


class CleanupJob(Base):
    """
    One lifecycle batch operation (erasure, temp cleanup, retention
    enforcement or orphan cleanup).
    """
    __tablename__ = "cleanup_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_type = Column(String(32), nullable=False, index=True)
    target_id = Column(String(128), nullable=False, index=True)
    target_type = Column(String(32), nullable=False, default="user")
    status = Column(String(16), nullable=False, default=JobStatus.PENDING.value, index=True)
    reason = Column(String(32), nullable=True)
    requested_by = Column(String(128), nullable=True)

    # Counters
    files_found = Column(Integer, nullable=False, default=0)
    files_processed = Column(Integer, nullable=False, default=0)
    files_deleted = Column(Integer, nullable=False, default=0)
    files_anonymized = Column(Integer, nullable=False, default=0)
    files_transferred = Column(Integer, nullable=False, default=0)
    files_retained = Column(Integer, nullable=False, default=0)
    bytes_deleted = Column(BigInteger, nullable=False, default=0)
    progress = Column(Float, nullable=False, default=0.0)

    errors = Column(JSONType, nullable=False, default=list)
    warnings = Column(JSONType, nullable=False, default=list)
    error_message = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_cleanup_jobs_type_status", "job_type", "status"),
    )

    def __repr__(self):
        return f"<CleanupJob(id={self.id}, type={self.job_type}, status={self.status})>"

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED.value, JobStatus.FAILED.value)

    @property
    def is_partial(self) -> bool:
        """Completed, but some per-file operations failed."""
        return self.status == JobStatus.COMPLETED.value and bool(self.warnings)

    @property
    def duration_seconds(self):
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def transition_to(self, status: JobStatus, now=None) -> None:
        """
        Move to ``status``, stamping started/completed timestamps.

        Raises:
            InvalidJobTransitionError: For any transition not in ALLOWED_TRANSITIONS
        """
        current = JobStatus(self.status)
        if status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidJobTransitionError(
                f"Job {self.id}: cannot move from {current.value} to {status.value}"
            )
        now = now or utcnow()
        self.status = status.value
        if status == JobStatus.IN_PROGRESS:
            self.started_at = now
        else:
            self.completed_at = now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_type": self.job_type,
            "target_id": self.target_id,
            "target_type": self.target_type,
            "status": self.status,
            "reason": self.reason,
            "requested_by": self.requested_by,
            "files_found": self.files_found,
            "files_processed": self.files_processed,
            "files_deleted": self.files_deleted,
            "files_anonymized": self.files_anonymized,
            "files_transferred": self.files_transferred,
            "files_retained": self.files_retained,
            "bytes_deleted": self.bytes_deleted,
            "progress": self.progress,
            "errors": list(self.errors or []),
            "warnings": list(self.warnings or []),
            "error_message": self.error_message,
            "is_partial": self.is_partial,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
