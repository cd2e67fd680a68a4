"""
SQLAlchemy models for usage accounting: per-owner summaries, operation
performance logs and persisted aggregate snapshots.
"""
import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Float, Integer, String

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.models.base import Base, JSONType


class StorageSummary(Base):
    """
    Running totals per owner.
    Only ever updated with atomic ``col = col + delta`` statements.
    """
    __tablename__ = "storage_summaries"

    owner_id = Column(String(128), primary_key=True)
    total_files = Column(Integer, nullable=False, default=0)
    total_bytes = Column(BigInteger, nullable=False, default=0)
    quota_bytes = Column(BigInteger, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def usage_percentage(self, default_quota_bytes: int) -> float:
        quota = self.quota_bytes or default_quota_bytes
        if not quota:
            return 0.0
        return (self.total_bytes / quota) * 100


class OperationLog(Base):
    """Performance record for one storage operation."""
    __tablename__ = "operation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    operation = Column(String(16), nullable=False, index=True)
    path = Column(String(2048), nullable=True)
    user_id = Column(String(128), nullable=True, index=True)
    duration_ms = Column(Float, nullable=False, default=0.0)
    size_bytes = Column(BigInteger, nullable=False, default=0)
    access_tier = Column(String(16), nullable=True)
    cache_hit = Column(Boolean, nullable=False, default=False)
    error_code = Column(String(64), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)

    @property
    def throughput_bytes_per_second(self) -> float:
        if self.duration_ms <= 0:
            return 0.0
        return self.size_bytes / (self.duration_ms / 1000.0)


class UsageSnapshot(Base):
    """A persisted UsageAggregate; the history read by projections."""
    __tablename__ = "usage_snapshots"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    period = Column(String(16), nullable=False, index=True)
    window_start = Column(DateTime, nullable=False)
    window_end = Column(DateTime, nullable=False, index=True)
    total_files = Column(Integer, nullable=False, default=0)
    total_size_bytes = Column(BigInteger, nullable=False, default=0)
    payload = Column(JSONType, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
