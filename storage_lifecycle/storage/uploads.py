"""
Upload Registration Service

Validates uploads before any store write and registers accepted files:
- Size and MIME type limits
- Per-owner storage quota enforcement
- Content scanning through a pluggable ContentScanner
- Blob write, then metadata insert (blob removed again if the insert fails)
- Atomic usage summary increment
"""
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import (
    ContentRejectedError,
    QuotaExceededError,
    StorageEngineError,
    ValidationError,
)
from storage_lifecycle.metrics import record_storage_operation
from storage_lifecycle.models import FileRecord, OperationLog, StorageSummary
from storage_lifecycle.models.enums import AccessTier, FileKind, OperationType, OwnerType

logger = logging.getLogger(__name__)


class ContentScanner(ABC):
    """External content scanning capability (virus / policy checks)."""

    @abstractmethod
    async def scan(self, path: str, data: bytes) -> bool:
        """Return True if the content may be stored."""


class NoopContentScanner(ContentScanner):
    """Accepts everything; real scanning is provided by the deployment."""

    async def scan(self, path: str, data: bytes) -> bool:
        return True


class UploadService:
    """
    Upload validation and registration.

    Features:
    - Validation before any store write (never retried)
    - Quota check against the owner's usage summary
    - Compensating blob delete when metadata cannot be written
    """

    def __init__(
        self,
        store,
        blob_store,
        settings,
        scanner: Optional[ContentScanner] = None,
        on_data_changed: Optional[Callable[[], object]] = None,
    ):
        self.store = store
        self.blob_store = blob_store
        self.max_upload_size = settings.MAX_UPLOAD_SIZE
        self.allowed_mime_types = set(settings.ALLOWED_MIME_TYPES)
        self.default_quota_bytes = settings.default_quota_bytes
        self.temp_ttl = timedelta(hours=settings.TEMP_FILE_TTL_HOURS)
        self.scanner = scanner or NoopContentScanner()
        self.on_data_changed = on_data_changed

    async def quota_status(self, owner_id: str) -> dict:
        summary: Optional[StorageSummary] = await self.store.get_usage(owner_id)
        used = summary.total_bytes if summary else 0
        quota = (summary.quota_bytes if summary and summary.quota_bytes else None) or self.default_quota_bytes
        return {
            "owner_id": owner_id,
            "used_bytes": used,
            "file_count": summary.total_files if summary else 0,
            "quota_bytes": quota,
            "available_bytes": max(0, quota - used),
            "usage_percentage": round(used / quota * 100, 2) if quota else 0.0,
        }

    async def validate_upload(self, owner_id: str, size_bytes: int, mime_type: str) -> None:
        """
        Check an upload against size, MIME and quota limits.

        Raises:
            ValidationError: Size or MIME type not allowed
            QuotaExceededError: Owner would exceed its quota
        """
        if size_bytes <= 0:
            raise ValidationError("Empty uploads are not allowed")
        if size_bytes > self.max_upload_size:
            raise ValidationError(
                f"File size {size_bytes} exceeds maximum upload size of {self.max_upload_size} bytes"
            )
        if mime_type not in self.allowed_mime_types:
            raise ValidationError(f"MIME type not allowed: {mime_type}")

        status = await self.quota_status(owner_id)
        if status["used_bytes"] + size_bytes > status["quota_bytes"]:
            raise QuotaExceededError(owner_id, status["used_bytes"], size_bytes, status["quota_bytes"])

    async def register_upload(
        self,
        *,
        path: str,
        data: bytes,
        file_name: str,
        owner_id: str,
        uploaded_by: str,
        file_kind: FileKind,
        mime_type: str,
        owner_type: OwnerType = OwnerType.USER,
        uploader_name: Optional[str] = None,
        organization_id: Optional[str] = None,
        classification: Optional[str] = None,
        retention_basis: Optional[str] = None,
        is_public: bool = False,
        tags: Optional[List[str]] = None,
        description: Optional[str] = None,
        related_entities: Optional[List[str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> FileRecord:
        """
        Validate, store and register one file.

        Returns:
            The persisted FileRecord
        """
        await self.validate_upload(owner_id, len(data), mime_type)
        if not await self.scanner.scan(path, data):
            raise ContentRejectedError(f"Content scanner rejected {path}")

        now = utcnow()
        if expires_at is None and file_kind == FileKind.TEMP_UPLOAD:
            expires_at = now + self.temp_ttl

        started = time.perf_counter()
        await self.blob_store.put(path, data, mime_type)

        record = FileRecord(
            path=path,
            file_name=file_name,
            owner_id=owner_id,
            owner_type=owner_type.value,
            uploaded_by=uploaded_by,
            uploader_name=uploader_name,
            organization_id=organization_id,
            related_entities=list(related_entities or []),
            file_kind=file_kind.value,
            size_bytes=len(data),
            mime_type=mime_type,
            access_tier=AccessTier.HOT.value,
            compression_enabled=False,
            is_public=is_public,
            classification=getattr(classification, "value", classification),
            retention_basis=getattr(retention_basis, "value", retention_basis),
            is_anonymized=False,
            tags=list(tags or []),
            description=description,
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )
        try:
            record = await self.store.add_file(record)
        except StorageEngineError:
            logger.error(f"Metadata insert failed for {path}; removing uploaded blob")
            try:
                await self.blob_store.delete(path)
            except StorageEngineError as cleanup_error:
                logger.error(f"Compensating blob delete failed for {path}: {cleanup_error}")
            raise

        if self.on_data_changed is not None:
            self.on_data_changed()
        duration = time.perf_counter() - started
        await self.store.adjust_usage(owner_id, 1, len(data))
        await self.store.add_operation_log(OperationLog(
            operation=OperationType.UPLOAD.value,
            path=path,
            user_id=uploaded_by,
            duration_ms=duration * 1000,
            size_bytes=len(data),
            access_tier=AccessTier.HOT.value,
            timestamp=now,
        ))
        record_storage_operation(OperationType.UPLOAD.value, True, duration)
        logger.info(f"Registered upload {path} ({len(data)} bytes) for {owner_id}")
        return record

    async def set_quota(self, owner_id: str, quota_gb: float) -> StorageSummary:
        if quota_gb <= 0:
            raise ValidationError("Quota must be positive")
        return await self.store.set_quota(owner_id, int(quota_gb * 1024 ** 3))
