"""
Unit tests for health monitoring and alerts.
Tests storage_lifecycle/services/health.py
"""
from datetime import timedelta

import pytest

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import NotFoundError
from storage_lifecycle.models import OperationLog
from storage_lifecycle.models.enums import FileKind, JobType


@pytest.mark.unit
class TestQuotaAlerts:
    """Test quota threshold alerts."""

    @pytest.mark.asyncio
    async def test_warning_threshold(self, engine, store, make_file):
        await store.set_quota("user-1", 1000)
        await make_file("u/a.bin", size_bytes=850)

        [alert] = await engine.health.check_quotas(utcnow())

        assert alert.alert_type == "quota"
        assert alert.severity == "warning"
        assert alert.fingerprint == "quota:user-1"
        assert "85.0%" in alert.description

    @pytest.mark.asyncio
    async def test_critical_threshold(self, engine, store, make_file):
        await store.set_quota("user-1", 1000)
        await make_file("u/a.bin", size_bytes=990)

        [alert] = await engine.health.check_quotas(utcnow())

        assert alert.severity == "critical"

    @pytest.mark.asyncio
    async def test_below_threshold(self, engine, make_file):
        await make_file("u/a.bin", size_bytes=1024)

        assert await engine.health.check_quotas(utcnow()) == []

    @pytest.mark.asyncio
    async def test_repeated_scan_refreshes_alert(self, engine, store, make_file):
        await store.set_quota("user-1", 1000)
        await make_file("u/a.bin", size_bytes=850)

        first = await engine.health.check_quotas(utcnow())
        second = await engine.health.check_quotas(utcnow())

        assert first[0].id == second[0].id
        assert second[0].occurrences == 2
        assert len(await store.list_alerts()) == 1


@pytest.mark.unit
class TestOtherChecks:
    """Test error, security, compliance and job checks."""

    @pytest.mark.asyncio
    async def test_error_threshold(self, engine, store):
        now = utcnow()
        for index in range(11):
            await store.add_operation_log(OperationLog(
                operation="upload", path=f"f/{index}", duration_ms=5.0, error_code="timeout", timestamp=now,
            ))

        [alert] = await engine.health.check_errors(now)

        assert alert.fingerprint == "performance:errors"
        assert alert.severity == "high"

    @pytest.mark.asyncio
    async def test_errors_at_threshold_ignored(self, engine, store):
        now = utcnow()
        for index in range(10):
            await store.add_operation_log(OperationLog(
                operation="upload", duration_ms=5.0, error_code="timeout", timestamp=now,
            ))

        assert await engine.health.check_errors(now) == []

    @pytest.mark.asyncio
    async def test_public_personal_file(self, engine, make_file):
        record = await make_file("u/avatar.png", kind=FileKind.PROFILE_AVATAR, is_public=True)
        await make_file("c/logo.png", kind=FileKind.COMPANY_LOGO, is_public=True)

        [alert] = await engine.health.check_public_personal(utcnow())

        assert alert.severity == "critical"
        assert alert.alert_type == "security"
        assert record.id in alert.affected_resources

    @pytest.mark.asyncio
    async def test_critical_violations(self, engine, make_file):
        await make_file(
            "u/old.pdf",
            classification="business",
            retention_basis="contract",
            expires_at=utcnow() - timedelta(days=2),
        )
        await engine.compliance.generate_report()

        [alert] = await engine.health.check_compliance(utcnow())

        assert alert.fingerprint == "compliance:critical_violations"
        assert alert.affected_resources == ["u/old.pdf"]

    @pytest.mark.asyncio
    async def test_repeated_reports_count_once(self, engine, make_file):
        await make_file(
            "e/x.bin",
            classification="business",
            retention_basis="contract",
            expires_at=utcnow() - timedelta(days=2),
        )
        await engine.compliance.generate_report()
        await engine.compliance.generate_report(user_id="user-1")

        [alert] = await engine.health.check_compliance(utcnow())

        assert alert.description.startswith("1 critical compliance violations")

    @pytest.mark.asyncio
    async def test_deleted_file_clears_critical_violations(self, engine, make_file):
        await make_file(
            "e/x.bin",
            kind=FileKind.PROFILE_AVATAR,
            classification="personal",
            retention_basis="consent",
            expires_at=utcnow() - timedelta(days=2),
        )
        await engine.compliance.generate_report()
        await engine.compliance.generate_report()

        await engine.executor.delete_file("e/x.bin")

        assert await engine.health.check_compliance(utcnow()) == []

    @pytest.mark.asyncio
    async def test_failed_jobs(self, engine):
        job = await engine.jobs.create(JobType.USER_ERASURE, "user-9")
        await engine.jobs.fail(job.id, "metadata store unavailable")

        [alert] = await engine.health.check_failed_jobs(utcnow())

        assert alert.fingerprint == f"jobs:failed:{job.id}"
        assert "metadata store unavailable" in alert.description


@pytest.mark.unit
class TestSystemHealth:
    """Test the overall health summary."""

    @pytest.mark.asyncio
    async def test_healthy_without_alerts(self, engine):
        health = await engine.health.system_health()

        assert health == {"status": "healthy", "active_alerts": 0, "issues": []}

    @pytest.mark.asyncio
    async def test_status_follows_worst_alert(self, engine, store, make_file):
        await store.set_quota("user-1", 1000)
        await make_file("u/a.bin", size_bytes=850)
        await engine.health.run_checks()

        assert (await engine.health.system_health())["status"] == "warning"

        await make_file("u/avatar.png", kind=FileKind.PROFILE_AVATAR, is_public=True, size_bytes=1)
        await engine.health.run_checks()

        assert (await engine.health.system_health())["status"] == "critical"

    @pytest.mark.asyncio
    async def test_resolve_alert(self, engine, store, make_file):
        await store.set_quota("user-1", 1000)
        await make_file("u/a.bin", size_bytes=850)
        [alert] = await engine.health.run_checks()

        resolved = await engine.health.resolve_alert(alert.id)

        assert not resolved.is_active
        assert (await engine.health.system_health())["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_resolve_unknown_alert(self, engine):
        with pytest.raises(NotFoundError):
            await engine.health.resolve_alert("missing")
