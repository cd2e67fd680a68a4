"""
Exception taxonomy for the lifecycle engine.

ValidationError is raised before any store write and is never retried.
TransientStoreError is retried at the per-file level. Permanent store
errors and NotFoundError surface to the caller. Partial failure is not
an exception: it is a completed job carrying warnings.
"""
from typing import Optional


class StorageEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(StorageEngineError):
    """Upload rejected before any store write."""


class QuotaExceededError(ValidationError):
    """Owner would exceed its storage quota."""

    def __init__(self, owner_id: str, used_bytes: int, requested_bytes: int, quota_bytes: int):
        self.owner_id = owner_id
        self.used_bytes = used_bytes
        self.requested_bytes = requested_bytes
        self.quota_bytes = quota_bytes
        super().__init__(
            f"Storage quota exceeded for {owner_id}: "
            f"{used_bytes + requested_bytes} > {quota_bytes} bytes"
        )


class ContentRejectedError(ValidationError):
    """Content scanner refused the payload."""


class NotFoundError(StorageEngineError):
    """File, blob or record is absent."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(message)


class JobNotFoundError(NotFoundError):
    def __init__(self, job_id: str):
        super().__init__("Cleanup job", job_id)


class TransientStoreError(StorageEngineError):
    """Network or store unavailability; safe to retry."""


class BlobStoreError(StorageEngineError):
    """Permanent blob store failure."""


class MetadataStoreError(StorageEngineError):
    """Permanent metadata store failure."""


class LegalHoldError(StorageEngineError):
    """Attempt to hard-delete a file under an unexpired legal obligation."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"File is under legal retention and cannot be deleted: {path}")


class InvalidJobTransitionError(StorageEngineError):
    """Job status or counters would move backwards."""


class ConfigurationError(StorageEngineError):
    """Engine cannot be assembled from the given settings."""
