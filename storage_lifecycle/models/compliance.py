"""
SQLAlchemy models for compliance reports, their violations, and health alerts.
"""
import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.models.base import Base, JSONType


def _new_id() -> str:
    return str(uuid.uuid4())


class ComplianceReport(Base):
    """A scored compliance scan over a user, organization or the whole platform."""
    __tablename__ = "compliance_reports"

    id = Column(String(36), primary_key=True, default=_new_id)
    scope = Column(String(16), nullable=False)  # user | organization | global
    scope_id = Column(String(128), nullable=True, index=True)

    total_files = Column(Integer, nullable=False, default=0)
    personal_files = Column(Integer, nullable=False, default=0)
    business_files = Column(Integer, nullable=False, default=0)
    shared_files = Column(Integer, nullable=False, default=0)
    public_files = Column(Integer, nullable=False, default=0)
    retained_files = Column(Integer, nullable=False, default=0)
    anonymized_files = Column(Integer, nullable=False, default=0)
    compliant_files = Column(Integer, nullable=False, default=0)
    compliance_score = Column(Float, nullable=False, default=100.0)

    recommendations = Column(JSONType, nullable=False, default=list)
    generated_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class ComplianceViolation(Base):
    """One finding on one file. Findings are data, not exceptions."""
    __tablename__ = "compliance_violations"

    id = Column(String(36), primary_key=True, default=_new_id)
    report_id = Column(String(36), ForeignKey("compliance_reports.id"), nullable=False, index=True)
    violation_type = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), nullable=False, index=True)
    file_id = Column(String(36), nullable=True)
    affected_paths = Column(JSONType, nullable=False, default=list)
    description = Column(Text, nullable=False)
    remediation = Column(Text, nullable=False)
    detected_at = Column(DateTime, nullable=False, default=utcnow)
    resolved_at = Column(DateTime, nullable=True)

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "report_id": self.report_id,
            "violation_type": self.violation_type,
            "severity": self.severity,
            "file_id": self.file_id,
            "affected_paths": list(self.affected_paths or []),
            "description": self.description,
            "remediation": self.remediation,
            "detected_at": self.detected_at.isoformat() if self.detected_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


class StorageAlert(Base):
    """
    Persisted health alert.

    ``fingerprint`` identifies the condition (e.g. ``quota:user-1``) so a
    repeated scan refreshes the active alert instead of duplicating it.
    """
    __tablename__ = "storage_alerts"

    id = Column(String(36), primary_key=True, default=_new_id)
    alert_type = Column(String(32), nullable=False, index=True)
    severity = Column(String(16), nullable=False, index=True)
    title = Column(String(256), nullable=False)
    description = Column(Text, nullable=False)
    affected_resources = Column(JSONType, nullable=False, default=list)
    recommendations = Column(JSONType, nullable=False, default=list)
    fingerprint = Column(String(256), nullable=False, index=True)
    occurrences = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_seen_at = Column(DateTime, nullable=False, default=utcnow)
    resolved_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_active(self) -> bool:
        return self.resolved_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "affected_resources": list(self.affected_resources or []),
            "recommendations": list(self.recommendations or []),
            "fingerprint": self.fingerprint,
            "occurrences": self.occurrences,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_seen_at": self.last_seen_at.isoformat() if self.last_seen_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }
