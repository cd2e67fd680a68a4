"""
Blob Store Interface

Abstract blob store used by the lifecycle engine plus the MinIO-backed
implementation. MinIO calls are blocking, so they run in a worker thread;
S3 error codes are translated into the engine's error taxonomy:
- missing key/bucket -> NotFoundError
- throttling / 5xx / network -> TransientStoreError
- everything else -> BlobStoreError
"""
import asyncio
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Type

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError

from storage_lifecycle.core.exceptions import (
    BlobStoreError,
    NotFoundError,
    StorageEngineError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchObject", "NoSuchBucket", "NoSuchVersion"})
TRANSIENT_CODES = frozenset({
    "SlowDown",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "InternalError",
    "ServiceUnavailable",
    "XMinioServerNotInitialized",
    "XMinioStorageFull",
})


@dataclass
class BlobObject:
    """Listing entry for a stored object."""
    path: str
    size_bytes: int
    last_modified: Optional[datetime] = None


class BlobStore(ABC):
    """Content store. Paths are immutable once written."""

    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store ``data`` at ``path`` and return its URL."""

    @abstractmethod
    async def get(self, path: str) -> bytes:
        """Return the object's bytes; raises NotFoundError."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the object; raises NotFoundError if it is already gone."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Return True if an object is stored at ``path``."""

    @abstractmethod
    async def list_objects(self, prefix: str = "") -> List[BlobObject]:
        """List every object under ``prefix``."""


def classify_s3_error_code(code: Optional[str]) -> Type[StorageEngineError]:
    """Map an S3 error code onto the engine error class it should raise."""
    if code in NOT_FOUND_CODES:
        return NotFoundError
    if code in TRANSIENT_CODES:
        return TransientStoreError
    return BlobStoreError


class MinioBlobStore(BlobStore):
    """
    MinIO / S3 implementation of BlobStore.

    Features:
    - Non-blocking wrapper around the synchronous MinIO client
    - Error translation into NotFound / Transient / permanent errors
    - Optional bucket bootstrap
    """

    def __init__(self, client: Minio, bucket_name: str, public_base_url: Optional[str] = None):
        """
        Initialize MinIO blob store

        Args:
            client: MinIO client instance
            bucket_name: Target bucket name
            public_base_url: Base URL returned by put(); defaults to the bucket path
        """
        self.client = client
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url or f"/{bucket_name}"

    @classmethod
    def from_settings(cls, settings) -> "MinioBlobStore":
        client = Minio(
            settings.minio_endpoint,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
        )
        return cls(client, settings.MINIO_BUCKET)

    async def _call(self, description: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except S3Error as e:
            error_cls = classify_s3_error_code(e.code)
            if error_cls is NotFoundError:
                raise NotFoundError("Blob", kwargs.get("object_name")) from e
            logger.error(f"MinIO {description} failed ({e.code}): {e}")
            raise error_cls(f"MinIO {description} failed ({e.code}): {e}") from e
        except (HTTPError, OSError) as e:
            logger.warning(f"MinIO {description} network failure: {e}")
            raise TransientStoreError(f"MinIO {description} unavailable: {e}") from e

    async def ensure_bucket(self) -> None:
        exists = await self._call("bucket_exists", self.client.bucket_exists, bucket_name=self.bucket_name)
        if not exists:
            await self._call("make_bucket", self.client.make_bucket, bucket_name=self.bucket_name)
            logger.info(f"Created bucket '{self.bucket_name}'")

    async def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        await self._call(
            "put_object",
            self.client.put_object,
            bucket_name=self.bucket_name,
            object_name=path,
            data=io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )
        return f"{self.public_base_url}/{path}"

    async def get(self, path: str) -> bytes:
        def _read() -> bytes:
            response = self.client.get_object(bucket_name=self.bucket_name, object_name=path)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        try:
            return await self._call("get_object", _read)
        except NotFoundError:
            raise NotFoundError("Blob", path)

    async def delete(self, path: str) -> None:
        # remove_object succeeds silently for missing keys, so check first.
        if not await self.exists(path):
            raise NotFoundError("Blob", path)
        await self._call(
            "remove_object",
            self.client.remove_object,
            bucket_name=self.bucket_name,
            object_name=path,
        )

    async def exists(self, path: str) -> bool:
        try:
            await self._call(
                "stat_object",
                self.client.stat_object,
                bucket_name=self.bucket_name,
                object_name=path,
            )
        except NotFoundError:
            return False
        return True

    async def list_objects(self, prefix: str = "") -> List[BlobObject]:
        def _list() -> List[BlobObject]:
            objects = self.client.list_objects(
                bucket_name=self.bucket_name,
                prefix=prefix or None,
                recursive=True,
            )
            return [
                BlobObject(path=obj.object_name, size_bytes=obj.size or 0, last_modified=obj.last_modified)
                for obj in objects
                if not obj.is_dir
            ]

        return await self._call("list_objects", _list)
