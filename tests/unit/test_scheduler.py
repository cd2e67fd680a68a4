"""
Unit tests for scheduled lifecycle scans.
Tests storage_lifecycle/storage/scheduler.py
"""
from datetime import timedelta

import pytest

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.models.enums import FileKind, JobStatus, JobType, RetentionBasis
from storage_lifecycle.storage.scheduler import RetentionScheduler


@pytest.mark.unit
class TestTempCleanup:
    """Test expiry of temporary uploads."""

    @pytest.mark.asyncio
    async def test_expired_temp_files_deleted(self, engine, store, blob_store, make_file):
        now = utcnow()
        await make_file("tmp/old.bin", kind=FileKind.TEMP_UPLOAD, created_at=now - timedelta(hours=30))
        await make_file("tmp/fresh.bin", kind=FileKind.TEMP_UPLOAD, created_at=now - timedelta(hours=2))

        job = await engine.scheduler.cleanup_expired_temp_files(now)

        assert job.job_type == JobType.TEMP_CLEANUP.value
        assert job.status == JobStatus.COMPLETED.value
        assert job.files_deleted == 1
        assert await store.get_file_by_path("tmp/old.bin") is None
        assert await store.get_file_by_path("tmp/fresh.bin") is not None
        assert "tmp/old.bin" not in blob_store.objects

    @pytest.mark.asyncio
    async def test_explicit_expiry_respected(self, engine, make_file):
        now = utcnow()
        await make_file(
            "tmp/keep.bin",
            kind=FileKind.TEMP_UPLOAD,
            created_at=now - timedelta(days=3),
            expires_at=now + timedelta(hours=1),
        )

        expired = await engine.scheduler.find_expired_temp_files(now)

        assert expired == []

    @pytest.mark.asyncio
    async def test_temporary_tag_counts(self, engine, make_file):
        now = utcnow()
        await make_file(
            "u/scratch.png",
            kind=FileKind.PORTFOLIO_IMAGE,
            created_at=now - timedelta(days=2),
            tags=["temporary"],
        )

        expired = await engine.scheduler.find_expired_temp_files(now)

        assert [record.path for record in expired] == ["u/scratch.png"]

    @pytest.mark.asyncio
    async def test_nothing_to_clean(self, engine):
        job = await engine.scheduler.cleanup_expired_temp_files()

        assert job.status == JobStatus.COMPLETED.value
        assert job.files_found == 0


@pytest.mark.unit
class TestRetentionEnforcement:
    """Test per-kind retention enforcement."""

    @pytest.mark.asyncio
    async def test_elapsed_files_processed(self, engine, store, make_file):
        now = utcnow()
        await make_file("b/old-backup.tar", kind=FileKind.SYSTEM_BACKUP, created_at=now - timedelta(days=45))
        await make_file("b/new-backup.tar", kind=FileKind.SYSTEM_BACKUP, created_at=now - timedelta(days=5))
        await make_file("m/old-attachment.txt", kind=FileKind.MESSAGE_ATTACHMENT, created_at=now - timedelta(days=400))

        job = await engine.scheduler.enforce_retention_policies(now)

        assert job.job_type == JobType.RETENTION_ENFORCEMENT.value
        assert job.files_anonymized == 2
        assert (await store.get_file_by_path("b/old-backup.tar")).is_anonymized
        assert not (await store.get_file_by_path("b/new-backup.tar")).is_anonymized

    @pytest.mark.asyncio
    async def test_legal_files_skipped(self, engine, store, make_file):
        now = utcnow()
        await make_file(
            "c/contract.pdf",
            kind=FileKind.CONTRACT_DOCUMENT,
            created_at=now - timedelta(days=3700),
            retention_basis=RetentionBasis.LEGAL_OBLIGATION.value,
        )

        expired = await engine.scheduler.find_retention_expired(now)

        assert expired == []

    @pytest.mark.asyncio
    async def test_anonymized_files_skipped(self, engine, make_file):
        now = utcnow()
        await make_file(
            "b/old.tar", kind=FileKind.SYSTEM_BACKUP, created_at=now - timedelta(days=60), is_anonymized=True
        )

        assert await engine.scheduler.find_retention_expired(now) == []


@pytest.mark.unit
class TestOrphanCleanup:
    """Test reconciliation between metadata and blobs."""

    @pytest.mark.asyncio
    async def test_stale_metadata_removed_and_orphan_blobs_reported(self, engine, store, blob_store, make_file):
        await make_file("u/healthy.png")
        await make_file("u/stale.png", with_blob=False)
        blob_store.objects["u/stray.bin"] = b"lost"

        job = await engine.scheduler.cleanup_orphans()

        assert job.status == JobStatus.COMPLETED.value
        assert job.files_found == 2
        assert job.files_deleted == 1
        assert await store.get_file_by_path("u/stale.png") is None
        assert await store.get_file_by_path("u/healthy.png") is not None
        assert "u/stray.bin" in blob_store.objects
        assert any("u/stray.bin" in warning for warning in job.warnings)

    @pytest.mark.asyncio
    async def test_legally_retained_metadata_kept(self, engine, store, make_file):
        await make_file(
            "c/contract.pdf",
            kind=FileKind.CONTRACT_DOCUMENT,
            with_blob=False,
            retention_basis=RetentionBasis.LEGAL_OBLIGATION.value,
        )

        job = await engine.scheduler.cleanup_orphans()

        assert job.files_deleted == 0
        assert job.is_partial
        assert await store.get_file_by_path("c/contract.pdf") is not None

    @pytest.mark.asyncio
    async def test_transient_blob_check_is_retried(self, engine, store, blob_store, make_file):
        for index in range(10):
            await make_file(f"f/{index}.bin")
        await make_file("f/stale.bin", with_blob=False)
        blob_store.fail_transiently["f/3.bin"] = 1

        job = await engine.scheduler.cleanup_orphans()

        assert job.status == JobStatus.COMPLETED.value
        assert not job.is_partial
        assert job.files_deleted == 1
        assert blob_store.calls.count(("exists", "f/3.bin")) == 2
        assert await store.get_file_by_path("f/3.bin") is not None

    @pytest.mark.asyncio
    async def test_unreachable_blob_becomes_warning(self, engine, store, blob_store, make_file):
        await make_file("f/down.bin")
        await make_file("f/stale.bin", with_blob=False)
        blob_store.unavailable.add("f/down.bin")

        job = await engine.scheduler.cleanup_orphans()

        assert job.status == JobStatus.COMPLETED.value
        assert job.is_partial
        assert job.files_deleted == 1
        assert any("f/down.bin" in warning for warning in job.warnings)
        assert await store.get_file_by_path("f/down.bin") is not None

    @pytest.mark.asyncio
    async def test_orphan_cleanup_invalidates_analytics(self, engine, make_file):
        await make_file("u/stale.png", with_blob=False)
        calls = []
        engine.executor.on_data_changed = lambda: calls.append(True)

        await engine.scheduler.cleanup_orphans()

        assert calls == [True]


@pytest.mark.unit
class TestRunAll:
    """Test running every scan together."""

    @pytest.mark.asyncio
    async def test_run_all_returns_three_jobs(self, engine):
        jobs = await engine.scheduler.run_all()

        assert sorted(job.job_type for job in jobs) == [
            "orphan_cleanup",
            "retention_enforcement",
            "temp_cleanup",
        ]

    @pytest.mark.asyncio
    async def test_cleanup_report(self, engine, make_file):
        now = utcnow()
        await make_file("tmp/old.bin", kind=FileKind.TEMP_UPLOAD, created_at=now - timedelta(days=2))
        job = await engine.scheduler.cleanup_expired_temp_files(now)

        report = RetentionScheduler.cleanup_report([job])

        assert "STORAGE CLEANUP REPORT" in report
        assert "Total files deleted: 1" in report
        assert "temp_cleanup" in report
