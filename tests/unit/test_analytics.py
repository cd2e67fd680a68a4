"""
Unit tests for usage analytics.
Tests storage_lifecycle/services/analytics.py
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from storage_lifecycle.core.exceptions import ValidationError
from storage_lifecycle.models import OperationLog
from storage_lifecycle.models.enums import (
    AccessTier,
    Classification,
    FileKind,
    JobType,
    Period,
    RetentionBasis,
)
from storage_lifecycle.services.analytics import (
    AnalyticsAggregator,
    growth_rate,
    period_bounds,
    trend_label,
)

END = datetime(2025, 3, 31, 12, 0, 0)
START = END - timedelta(days=10)


@pytest.mark.unit
class TestPeriodBounds:
    """Test aggregation window resolution."""

    def test_daily_and_weekly(self):
        assert period_bounds(Period.DAILY, end=END) == (END - timedelta(days=1), END)
        assert period_bounds(Period.WEEKLY, end=END) == (END - timedelta(days=7), END)

    def test_monthly_clamps_to_month_end(self):
        start, _ = period_bounds(Period.MONTHLY, end=END)

        assert start == datetime(2025, 2, 28, 12, 0, 0)

    def test_yearly_handles_leap_day(self):
        start, _ = period_bounds(Period.YEARLY, end=datetime(2024, 2, 29))

        assert start == datetime(2023, 2, 28)

    def test_explicit_bounds_win(self):
        assert period_bounds(Period.YEARLY, START, END) == (START, END)

    def test_aware_bounds_normalized(self):
        aware_end = datetime(2025, 3, 31, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))

        _, end = period_bounds(Period.DAILY, end=aware_end)

        assert end == END
        assert end.tzinfo is None

    def test_inverted_window_rejected(self):
        with pytest.raises(ValidationError):
            period_bounds(Period.DAILY, END, START)


@pytest.mark.unit
class TestGrowthHelpers:
    """Test growth and trend helpers."""

    @pytest.mark.parametrize("current, previous, expected", [
        (150, 100, 50.0),
        (50, 100, -50.0),
        (5, 0, 0.0),
        (0, 0, 0.0),
        (1, 3, -66.67),
    ])
    def test_growth_rate(self, current, previous, expected):
        assert growth_rate(current, previous) == expected

    def test_trend_label(self):
        assert trend_label(25.0) == "increasing"
        assert trend_label(-25.0) == "decreasing"
        assert trend_label(5.0) == "stable"
        assert trend_label(30.0, rising="degrading", falling="improving") == "degrading"


@pytest.mark.unit
class TestAggregate:
    """Test aggregate contents."""

    @pytest.mark.asyncio
    async def test_compliance_sub_score(self, engine, make_file):
        for index in range(100):
            await make_file(
                f"files/{index:03d}.bin",
                created_at=END - timedelta(days=1),
                classification=Classification.BUSINESS.value if index < 40 else None,
                retention_basis=RetentionBasis.CONTRACT.value,
            )

        aggregate = await engine.analytics.aggregate(Period.DAILY, START, END)

        assert aggregate.total_files == 100
        assert aggregate.compliance_score == 40.0

    @pytest.mark.asyncio
    async def test_empty_store_is_fully_compliant(self, engine):
        aggregate = await engine.analytics.aggregate(Period.DAILY, START, END)

        assert aggregate.total_files == 0
        assert aggregate.compliance_score == 100.0
        assert aggregate.by_tier["hot"].count_percentage == 0.0

    @pytest.mark.asyncio
    async def test_only_window_files_counted(self, engine, make_file):
        await make_file("old/a.bin", created_at=START - timedelta(days=3), size_bytes=100)
        await make_file("new/b.bin", created_at=START + timedelta(days=1), size_bytes=300)
        await make_file("future/c.bin", created_at=END + timedelta(days=1), size_bytes=999)

        aggregate = await engine.analytics.aggregate(Period.DAILY, START, END)

        assert aggregate.total_files == 1
        assert aggregate.total_size_bytes == 300
        assert aggregate.new_files == 1
        assert aggregate.by_kind["portfolio_image"].count == 1

    @pytest.mark.asyncio
    async def test_older_files_do_not_dilute_compliance_score(self, engine, make_file):
        for index in range(50):
            await make_file(f"old/{index:03d}.bin", created_at=START - timedelta(days=20))
        for index in range(100):
            await make_file(
                f"new/{index:03d}.bin",
                created_at=END - timedelta(days=1),
                classification=Classification.BUSINESS.value if index < 40 else None,
                retention_basis=RetentionBasis.CONTRACT.value if index < 40 else None,
            )

        aggregate = await engine.analytics.aggregate(Period.MONTHLY, START, END)

        assert aggregate.total_files == 100
        assert aggregate.compliance_score == 40.0
        assert aggregate.by_classification["personal"].count == 0

    @pytest.mark.asyncio
    async def test_distributions(self, engine, make_file):
        created = END - timedelta(days=1)
        await make_file("a.png", kind=FileKind.PROFILE_AVATAR, size_bytes=100, created_at=created)
        await make_file("b.png", kind=FileKind.PORTFOLIO_IMAGE, size_bytes=300, created_at=created)
        await make_file(
            "c.png", kind=FileKind.PORTFOLIO_IMAGE, size_bytes=600, created_at=created,
            access_tier=AccessTier.COLD.value,
        )

        aggregate = await engine.analytics.aggregate(Period.DAILY, START, END)

        assert aggregate.by_kind["portfolio_image"].count == 2
        assert aggregate.by_kind["portfolio_image"].size_percentage == 90.0
        assert aggregate.by_kind["profile_avatar"].count_percentage == 33.33
        assert list(aggregate.by_tier) == ["hot", "warm", "cold"]
        assert aggregate.by_tier["cold"].size_bytes == 600
        assert aggregate.by_classification["personal"].count == 1
        assert aggregate.by_classification["business"].count == 2

    @pytest.mark.asyncio
    async def test_top_users(self, engine, make_file):
        created = END - timedelta(days=1)
        await make_file("u1/a.bin", uploaded_by="user-1", size_bytes=100, created_at=created)
        await make_file("u2/a.bin", uploaded_by="user-2", size_bytes=500, created_at=created)
        await make_file("u3/a.bin", uploaded_by="user-3", size_bytes=100, created_at=created)

        aggregate = await engine.analytics.aggregate(Period.DAILY, START, END)

        assert aggregate.active_users == 3
        assert [u.user_id for u in aggregate.top_users] == ["user-2", "user-1", "user-3"]

    @pytest.mark.asyncio
    async def test_duplicates_and_cold_candidates(self, engine, make_file):
        await make_file("a/report.pdf", created_at=END - timedelta(days=45))
        await make_file("b/report.pdf", created_at=END - timedelta(days=2))
        await make_file("c/other.pdf", created_at=END - timedelta(days=2), size_bytes=2048)

        aggregate = await engine.analytics.aggregate(Period.MONTHLY, END - timedelta(days=60), END)

        assert aggregate.duplicate_files == 1
        assert aggregate.cold_storage_candidates == 1

    @pytest.mark.asyncio
    async def test_operation_stats(self, engine, store):
        for duration, error, cache_hit in [(100.0, None, True), (300.0, "timeout", False)]:
            await store.add_operation_log(OperationLog(
                operation="upload",
                path="x",
                user_id="user-1",
                duration_ms=duration,
                size_bytes=1000,
                cache_hit=cache_hit,
                error_code=error,
                timestamp=END - timedelta(hours=1),
            ))

        aggregate = await engine.analytics.aggregate(Period.DAILY, START, END)

        stats = aggregate.operations["upload"]
        assert stats.count == 2
        assert stats.average_duration_ms == 200.0
        assert stats.error_count == 1
        assert aggregate.error_rate == 50.0
        assert aggregate.cache_hit_rate == 50.0

    @pytest.mark.asyncio
    async def test_deleted_counts_from_jobs(self, engine):
        job = await engine.jobs.create(JobType.TEMP_CLEANUP, "temporary_files", "system")
        await engine.jobs.start(job.id, files_found=2)
        await engine.jobs.record_phase(job.id, processed=2, deleted=2, bytes_deleted=4096)
        await engine.jobs.complete(job.id)

        aggregate = await engine.analytics.aggregate(Period.DAILY)

        assert aggregate.deleted_files == 2
        assert aggregate.deleted_size_bytes == 4096


@pytest.mark.unit
class TestTrends:
    """Test comparisons with the preceding window."""

    @pytest.mark.asyncio
    async def test_growth_against_previous_window(self, engine, make_file):
        await make_file("prev/a.bin", uploaded_by="user-1", created_at=START - timedelta(days=5), size_bytes=100)
        for index in range(3):
            await make_file(
                f"cur/{index}.bin",
                uploaded_by=f"user-{index}",
                created_at=START + timedelta(days=index + 1),
                size_bytes=100,
            )

        trends = (await engine.analytics.aggregate(Period.DAILY, START, END)).trends

        assert trends.upload_trend == "increasing"
        assert trends.file_growth_rate == 200.0
        assert trends.size_growth_rate == 200.0
        assert trends.user_growth_rate == 200.0

    @pytest.mark.asyncio
    async def test_uploads_without_baseline_are_stable(self, engine, make_file):
        await make_file("cur/a.bin", created_at=END - timedelta(days=1))

        trends = (await engine.analytics.aggregate(Period.DAILY, START, END)).trends

        assert trends.upload_trend == "stable"
        assert trends.file_growth_rate == 0.0

    @pytest.mark.asyncio
    async def test_performance_without_baseline_is_stable(self, engine, store):
        await store.add_operation_log(OperationLog(
            operation="download", duration_ms=900.0, size_bytes=10, timestamp=END - timedelta(hours=2),
        ))

        trends = (await engine.analytics.aggregate(Period.DAILY, START, END)).trends

        assert trends.performance_trend == "stable"

    @pytest.mark.asyncio
    async def test_slower_operations_are_degrading(self, engine, store):
        await store.add_operation_log(OperationLog(
            operation="download", duration_ms=100.0, size_bytes=10, timestamp=START - timedelta(days=2),
        ))
        await store.add_operation_log(OperationLog(
            operation="download", duration_ms=200.0, size_bytes=10, timestamp=END - timedelta(hours=2),
        ))

        trends = (await engine.analytics.aggregate(Period.DAILY, START, END)).trends

        assert trends.performance_trend == "degrading"


@pytest.mark.unit
class TestDeterminismAndCache:
    """Test repeatability, caching and snapshots."""

    @pytest.mark.asyncio
    async def test_same_window_serializes_identically(self, engine, make_file):
        await make_file("a.png", created_at=END - timedelta(days=1))
        await make_file("b.png", kind=FileKind.CONTRACT_DOCUMENT, created_at=END - timedelta(days=2))

        first = await engine.analytics.aggregate(Period.DAILY, START, END)
        second = await engine.analytics.aggregate(Period.DAILY, START, END)

        assert first.model_dump_json() == second.model_dump_json()

    @pytest.mark.asyncio
    async def test_cache_miss_stores_payload(self, engine, settings):
        cache = MagicMock()
        cache.get_aggregate.return_value = None
        aggregator = AnalyticsAggregator(engine.store, engine.classifier, settings, cache)

        aggregate = await aggregator.aggregate(Period.DAILY, START, END)

        cache.set_aggregate.assert_called_once_with("daily", START, END, aggregate.model_dump(mode="json"))

    @pytest.mark.asyncio
    async def test_cache_hit_skips_store(self, engine, settings):
        cached = (await engine.analytics.aggregate(Period.DAILY, START, END)).model_dump(mode="json")
        cached["total_files"] = 42
        cache = MagicMock()
        cache.get_aggregate.return_value = cached
        store = MagicMock()
        aggregator = AnalyticsAggregator(store, engine.classifier, settings, cache)

        aggregate = await aggregator.aggregate(Period.DAILY, START, END)

        assert aggregate.total_files == 42
        store.list_files.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_window_not_cached(self, engine, settings):
        cache = MagicMock()
        aggregator = AnalyticsAggregator(engine.store, engine.classifier, settings, cache)

        await aggregator.aggregate(Period.DAILY)

        cache.get_aggregate.assert_not_called()
        cache.set_aggregate.assert_not_called()

    def test_invalidate_cache(self, engine, settings):
        cache = MagicMock()
        cache.invalidate.return_value = 3
        aggregator = AnalyticsAggregator(engine.store, engine.classifier, settings, cache)

        aggregator.invalidate_cache()

        cache.invalidate.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_persist_writes_snapshot(self, engine, store, make_file):
        await make_file("a.png", created_at=END - timedelta(days=1), size_bytes=512)

        await engine.analytics.aggregate(Period.MONTHLY, START, END, persist=True)

        snapshots = await store.list_snapshots(period=Period.MONTHLY)
        assert len(snapshots) == 1
        assert snapshots[0].total_size_bytes == 512
        assert snapshots[0].payload["total_files"] == 1
