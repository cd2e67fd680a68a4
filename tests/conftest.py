"""
Pytest configuration and shared fixtures for Storage Lifecycle tests.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from storage_lifecycle.core.blob_store import BlobObject, BlobStore
from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.config import Settings
from storage_lifecycle.core.exceptions import BlobStoreError, NotFoundError, TransientStoreError
from storage_lifecycle.engine import build_engine
from storage_lifecycle.main import create_app
from storage_lifecycle.models import FileRecord
from storage_lifecycle.models.enums import AccessTier, FileKind, OwnerType

TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_ANONYMIZATION_KEY = "test-anonymization-key-0123456789"


class InMemoryBlobStore(BlobStore):
    """
    Dict-backed blob store with failure injection.

    ``fail_transiently[path] = n`` makes the next n calls touching ``path``
    raise TransientStoreError; ``unavailable`` paths raise it on every call;
    ``fail_permanently`` paths raise BlobStoreError, which is never retried.
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.fail_transiently: Dict[str, int] = {}
        self.unavailable: set = set()
        self.fail_permanently: set = set()
        self.calls: List[tuple] = []

    def _maybe_fail(self, operation: str, path: str) -> None:
        self.calls.append((operation, path))
        if path in self.fail_permanently:
            raise BlobStoreError(f"{operation} {path}: access denied")
        if path in self.unavailable:
            raise TransientStoreError(f"{operation} {path}: store unavailable")
        remaining = self.fail_transiently.get(path, 0)
        if remaining > 0:
            self.fail_transiently[path] = remaining - 1
            raise TransientStoreError(f"{operation} {path}: connection reset")

    async def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self._maybe_fail("put", path)
        self.objects[path] = data
        return f"memory://{path}"

    async def get(self, path: str) -> bytes:
        self._maybe_fail("get", path)
        if path not in self.objects:
            raise NotFoundError("Blob", path)
        return self.objects[path]

    async def delete(self, path: str) -> None:
        self._maybe_fail("delete", path)
        if path not in self.objects:
            raise NotFoundError("Blob", path)
        del self.objects[path]

    async def exists(self, path: str) -> bool:
        self._maybe_fail("exists", path)
        return path in self.objects

    async def list_objects(self, prefix: str = "") -> List[BlobObject]:
        return [
            BlobObject(path=path, size_bytes=len(data))
            for path, data in sorted(self.objects.items())
            if path.startswith(prefix)
        ]


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": TEST_DATABASE_URL,
        "REDIS_URL": None,
        "ANONYMIZATION_KEY": TEST_ANONYMIZATION_KEY,
        "RETRY_BACKOFF_SECONDS": 0,
        "LOG_JSON": False,
        "LOG_LEVEL": "DEBUG",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory():
    """Build Settings with test defaults plus overrides."""
    return make_settings


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def engine(settings, blob_store):
    """A fully wired engine on a fresh in-memory database."""
    lifecycle = build_engine(settings, blob_store=blob_store)
    yield lifecycle
    lifecycle.db_engine.dispose()


@pytest.fixture
def store(engine):
    return engine.store


@pytest.fixture
def make_file(engine, blob_store):
    """
    Factory storing a file in both stores and counting it in usage.

    Usage: ``record = await make_file("users/u1/avatar.png", kind=FileKind.PROFILE_AVATAR)``
    """
    async def _make(
        path: str,
        *,
        kind: FileKind = FileKind.PORTFOLIO_IMAGE,
        uploaded_by: str = "user-1",
        owner_id: Optional[str] = None,
        owner_type: OwnerType = OwnerType.USER,
        size_bytes: int = 1024,
        created_at: Optional[datetime] = None,
        with_blob: bool = True,
        **fields,
    ) -> FileRecord:
        created = created_at or utcnow() - timedelta(days=1)
        record = FileRecord(
            path=path,
            file_name=fields.pop("file_name", path.rsplit("/", 1)[-1]),
            owner_id=owner_id or uploaded_by,
            owner_type=owner_type.value,
            uploaded_by=uploaded_by,
            file_kind=kind.value,
            size_bytes=size_bytes,
            mime_type=fields.pop("mime_type", "application/octet-stream"),
            access_tier=fields.pop("access_tier", AccessTier.HOT.value),
            compression_enabled=fields.pop("compression_enabled", False),
            is_public=fields.pop("is_public", False),
            is_anonymized=fields.pop("is_anonymized", False),
            related_entities=fields.pop("related_entities", []),
            tags=fields.pop("tags", []),
            created_at=created,
            updated_at=created,
            **fields,
        )
        record = await engine.store.add_file(record)
        if with_blob:
            blob_store.objects[path] = b"x" * min(size_bytes, 64)
        await engine.store.adjust_usage(record.owner_id, 1, size_bytes)
        return record

    return _make


@pytest.fixture
def client(engine):
    """Test client bound to the engine fixture."""
    app = create_app(engine)
    with TestClient(app) as test_client:
        yield test_client
