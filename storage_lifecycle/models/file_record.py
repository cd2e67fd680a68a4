"""
SQLAlchemy model for stored file metadata.
Maps to the 'file_records' table.
"""
import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Index, String, Text

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.models.base import Base, JSONType
from storage_lifecycle.models.enums import AccessTier, FileKind, RetentionBasis


def _new_id() -> str:
    return str(uuid.uuid4())


class FileRecord(Base):
    """
    Metadata for one stored blob.

    The content path is immutable once written; only metadata mutates.
    A record with retention_basis = legal_obligation is never hard-deleted
    before expires_at.
    """
    __tablename__ = "file_records"

    id = Column(String(36), primary_key=True, default=_new_id)
    path = Column(String(2048), unique=True, nullable=False)
    file_name = Column(String(512), nullable=False)

    # Ownership
    owner_id = Column(String(128), nullable=False, index=True)
    owner_type = Column(String(32), nullable=False, default="user")
    uploaded_by = Column(String(128), nullable=False, index=True)
    uploader_name = Column(String(256), nullable=True)
    organization_id = Column(String(128), nullable=True, index=True)
    related_entities = Column(JSONType, nullable=False, default=list)

    # Content
    file_kind = Column(String(64), nullable=False, index=True)
    size_bytes = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(128), nullable=False, default="application/octet-stream")
    access_tier = Column(String(16), nullable=False, default=AccessTier.HOT.value)
    compression_enabled = Column(Boolean, nullable=False, default=False)
    is_public = Column(Boolean, nullable=False, default=False)

    # Compliance
    classification = Column(String(32), nullable=True, index=True)
    retention_basis = Column(String(32), nullable=True)
    retention_reason = Column(String(128), nullable=True)
    business_purpose = Column(Text, nullable=True)
    transfer_reason = Column(String(128), nullable=True)
    is_anonymized = Column(Boolean, nullable=False, default=False)
    anonymized_at = Column(DateTime, nullable=True)

    # Free-form
    tags = Column(JSONType, nullable=False, default=list)
    description = Column(Text, nullable=True)

    # Timestamps (naive UTC)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_accessed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_file_records_owner_created", "owner_id", "created_at"),
    )

    def __repr__(self):
        return f"<FileRecord(path={self.path}, owner={self.owner_id}, kind={self.file_kind})>"

    @property
    def kind(self):
        """Parsed FileKind, or None for unknown/legacy kinds."""
        return FileKind.parse(self.file_kind)

    @property
    def is_legal_obligation(self) -> bool:
        return self.retention_basis == RetentionBasis.LEGAL_OBLIGATION.value

    @property
    def last_touched_at(self):
        """Last access, falling back to creation for never-read files."""
        return self.last_accessed_at or self.created_at

    def is_expired(self, now) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "file_name": self.file_name,
            "owner_id": self.owner_id,
            "owner_type": self.owner_type,
            "uploaded_by": self.uploaded_by,
            "organization_id": self.organization_id,
            "file_kind": self.file_kind,
            "size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
            "access_tier": self.access_tier,
            "classification": self.classification,
            "retention_basis": self.retention_basis,
            "retention_reason": self.retention_reason,
            "is_public": self.is_public,
            "is_anonymized": self.is_anonymized,
            "tags": list(self.tags or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
