"""
Integration tests for the HTTP API.
Tests storage_lifecycle/main.py and storage_lifecycle/api/v1/endpoints/*
"""
import asyncio
import time
from datetime import timedelta

import pytest

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.models.enums import FileKind

API = "/api/v1"


def seed(coro):
    """Run an async fixture factory from a sync test."""
    return asyncio.run(coro)


@pytest.mark.integration
class TestServiceEndpoints:
    """Test health and metrics endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "healthy"
        assert body["storage"]["status"] == "healthy"

    def test_metrics(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "api_requests_total" in response.text


@pytest.mark.integration
class TestErasureEndpoints:
    """Test erasure requests and job queries."""

    def test_sync_erasure(self, client, make_file):
        seed(make_file("users/user-1/avatar.png", kind=FileKind.PROFILE_AVATAR))
        seed(make_file("users/user-1/work.png", kind=FileKind.PORTFOLIO_IMAGE))

        response = client.post(f"{API}/erasures/sync", json={"user_id": "user-1", "organization_id": "org-1"})

        assert response.status_code == 200
        job = response.json()
        assert job["status"] == "completed"
        assert job["files_deleted"] == 1
        assert job["files_anonymized"] == 1
        assert job["is_partial"] is False

    def test_background_erasure(self, client):
        response = client.post(f"{API}/erasures", json={"user_id": "user-1"})

        assert response.status_code == 202
        job_id = response.json()["job_id"]

        status = None
        for _ in range(50):
            status = client.get(f"{API}/jobs/{job_id}").json()["status"]
            if status == "completed":
                break
            time.sleep(0.02)
        assert status == "completed"

    def test_erasure_requires_user(self, client):
        response = client.post(f"{API}/erasures/sync", json={"user_id": ""})

        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"

    def test_unknown_job(self, client):
        response = client.get(f"{API}/jobs/does-not-exist")

        assert response.status_code == 404
        assert response.json()["type"] == "JobNotFoundError"

    def test_list_and_history(self, client):
        client.post(f"{API}/erasures/sync", json={"user_id": "user-1"})

        listed = client.get(f"{API}/jobs", params={"job_type": "user_erasure", "status": "completed"})
        history = client.get(f"{API}/jobs/history", params={"days": 1})

        assert listed.status_code == 200
        assert len(listed.json()) == 1
        assert history.json()["statistics"]["total_jobs"] == 1


@pytest.mark.integration
class TestCleanupEndpoints:
    """Test cleanup triggers."""

    def test_temp_cleanup(self, client, make_file):
        seed(make_file("tmp/old.bin", kind=FileKind.TEMP_UPLOAD, created_at=utcnow() - timedelta(days=2)))

        response = client.post(f"{API}/cleanup/temp")

        assert response.status_code == 200
        body = response.json()
        assert body["jobs"][0]["files_deleted"] == 1
        assert "STORAGE CLEANUP REPORT" in body["report"]

    def test_run_all(self, client):
        response = client.post(f"{API}/cleanup/all")

        assert len(response.json()["jobs"]) == 3

    def test_unknown_scan(self, client):
        assert client.post(f"{API}/cleanup/everything").status_code == 422


@pytest.mark.integration
class TestReportingEndpoints:
    """Test analytics, compliance and alert endpoints."""

    def test_analytics(self, client, make_file):
        seed(make_file("a.png", size_bytes=2048))

        response = client.get(f"{API}/analytics", params={"period": "weekly"})

        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "weekly"
        assert body["total_files"] == 1
        assert body["total_size_bytes"] == 2048

    def test_inverted_window_rejected(self, client):
        response = client.get(
            f"{API}/analytics",
            params={"start": "2025-03-31T00:00:00", "end": "2025-03-01T00:00:00"},
        )

        assert response.status_code == 422

    def test_cost_and_projections(self, client, make_file):
        seed(make_file("a.csv", size_bytes=4096, mime_type="text/csv"))

        cost = client.get(f"{API}/analytics/cost")
        projections = client.get(f"{API}/analytics/projections")

        assert cost.json()["current"]["currency"] == "USD"
        assert [p["timeframe"] for p in projections.json()] == ["1_month", "3_months", "6_months", "12_months"]

    def test_compliance_report_lifecycle(self, client, make_file):
        seed(make_file("a.bin"))

        created = client.post(f"{API}/compliance/reports", json={})
        report = created.json()
        fetched = client.get(f"{API}/compliance/reports/{report['id']}")
        resolved = client.post(f"{API}/compliance/violations/{report['violations'][0]['id']}/resolve")

        assert created.status_code == 201
        assert report["scope"] == "global"
        assert report["compliance_score"] == 0.0
        assert fetched.json()["id"] == report["id"]
        assert resolved.json()["resolved_at"] is not None

    def test_unknown_report(self, client):
        assert client.get(f"{API}/compliance/reports/missing").status_code == 404

    def test_alert_scan_and_resolve(self, client, make_file, store):
        seed(store.set_quota("user-1", 1000))
        seed(make_file("a.bin", size_bytes=900))

        scanned = client.post(f"{API}/alerts/scan")
        [alert] = scanned.json()
        summary = client.get(f"{API}/alerts/summary")
        resolved = client.post(f"{API}/alerts/{alert['id']}/resolve")
        active = client.get(f"{API}/alerts")

        assert alert["alert_type"] == "quota"
        assert summary.json()["status"] == "warning"
        assert resolved.json()["resolved_at"] is not None
        assert active.json() == []
