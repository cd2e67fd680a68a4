"""
Unit tests for the MinIO blob store.
Tests storage_lifecycle/core/blob_store.py
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from minio.error import S3Error
from urllib3.exceptions import MaxRetryError

from storage_lifecycle.core.blob_store import MinioBlobStore, classify_s3_error_code
from storage_lifecycle.core.exceptions import BlobStoreError, NotFoundError, TransientStoreError


def _s3_error(code: str) -> S3Error:
    return S3Error(
        code=code,
        message=f"{code} raised by test",
        resource="/lifecycle/key",
        request_id="req-1",
        host_id="host-1",
        response=MagicMock(),
    )


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def blob_store(client):
    return MinioBlobStore(client, "lifecycle")


@pytest.mark.unit
class TestErrorClassification:
    """Test S3 error code mapping."""

    @pytest.mark.parametrize("code, expected", [
        ("NoSuchKey", NotFoundError),
        ("NoSuchBucket", NotFoundError),
        ("SlowDown", TransientStoreError),
        ("ServiceUnavailable", TransientStoreError),
        ("AccessDenied", BlobStoreError),
        (None, BlobStoreError),
    ])
    def test_codes(self, code, expected):
        assert classify_s3_error_code(code) is expected


@pytest.mark.unit
class TestMinioBlobStore:
    """Test MinIO calls and error translation."""

    @pytest.mark.asyncio
    async def test_put(self, blob_store, client):
        url = await blob_store.put("users/u1/a.png", b"data", "image/png")

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["bucket_name"] == "lifecycle"
        assert kwargs["object_name"] == "users/u1/a.png"
        assert kwargs["length"] == 4
        assert kwargs["content_type"] == "image/png"
        assert url == "/lifecycle/users/u1/a.png"

    @pytest.mark.asyncio
    async def test_get_reads_and_releases(self, blob_store, client):
        response = MagicMock()
        response.read.return_value = b"payload"
        client.get_object.return_value = response

        assert await blob_store.get("a") == b"payload"
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_existing(self, blob_store, client):
        await blob_store.delete("a")

        client.remove_object.assert_called_once_with(bucket_name="lifecycle", object_name="a")

    @pytest.mark.asyncio
    async def test_delete_missing_raises_not_found(self, blob_store, client):
        client.stat_object.side_effect = _s3_error("NoSuchKey")

        with pytest.raises(NotFoundError):
            await blob_store.delete("a")
        client.remove_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_exists(self, blob_store, client):
        assert await blob_store.exists("a")

        client.stat_object.side_effect = _s3_error("NoSuchKey")
        assert not await blob_store.exists("a")

    @pytest.mark.asyncio
    async def test_throttling_is_transient(self, blob_store, client):
        client.put_object.side_effect = _s3_error("SlowDown")

        with pytest.raises(TransientStoreError):
            await blob_store.put("a", b"x")

    @pytest.mark.asyncio
    async def test_access_denied_is_permanent(self, blob_store, client):
        client.put_object.side_effect = _s3_error("AccessDenied")

        with pytest.raises(BlobStoreError):
            await blob_store.put("a", b"x")

    @pytest.mark.asyncio
    async def test_network_failure_is_transient(self, blob_store, client):
        client.stat_object.side_effect = MaxRetryError(None, "/lifecycle/a", "connection refused")

        with pytest.raises(TransientStoreError):
            await blob_store.exists("a")

    @pytest.mark.asyncio
    async def test_list_objects_skips_directories(self, blob_store, client):
        client.list_objects.return_value = [
            SimpleNamespace(object_name="a/1.png", size=10, last_modified=None, is_dir=False),
            SimpleNamespace(object_name="a/sub/", size=0, last_modified=None, is_dir=True),
        ]

        objects = await blob_store.list_objects("a/")

        assert [(o.path, o.size_bytes) for o in objects] == [("a/1.png", 10)]
        assert client.list_objects.call_args.kwargs["recursive"] is True

    @pytest.mark.asyncio
    async def test_ensure_bucket_creates_missing(self, blob_store, client):
        client.bucket_exists.return_value = False

        await blob_store.ensure_bucket()

        client.make_bucket.assert_called_once_with(bucket_name="lifecycle")
