"""
SQLAlchemy models for the storage lifecycle engine.
"""
from storage_lifecycle.models.base import Base
from storage_lifecycle.models.compliance import ComplianceReport, ComplianceViolation, StorageAlert
from storage_lifecycle.models.file_record import FileRecord
from storage_lifecycle.models.job import CleanupJob
from storage_lifecycle.models.usage import OperationLog, StorageSummary, UsageSnapshot

__all__ = [
    "Base",
    "CleanupJob",
    "ComplianceReport",
    "ComplianceViolation",
    "FileRecord",
    "OperationLog",
    "StorageAlert",
    "StorageSummary",
    "UsageSnapshot",
]
