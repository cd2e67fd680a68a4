"""
Analytics Aggregator

Period-bounded usage, performance and compliance statistics computed from
file metadata, operation logs and finished lifecycle jobs.
"""
import calendar
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from storage_lifecycle.core.cache import AggregateCache
from storage_lifecycle.core.clock import as_naive_utc, utcnow
from storage_lifecycle.core.exceptions import ValidationError
from storage_lifecycle.metrics import update_usage_metrics
from storage_lifecycle.models import UsageSnapshot
from storage_lifecycle.models.enums import AccessTier, Classification, FileKind, JobStatus, Period
from storage_lifecycle.schemas.analytics import (
    DistributionEntry,
    OperationStats,
    TrendSummary,
    UsageAggregate,
    UserUsage,
)

logger = logging.getLogger(__name__)

TREND_THRESHOLD_PERCENT = 10.0
COLD_STORAGE_IDLE_DAYS = 30


def _subtract_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 - months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def period_bounds(
    period: Period,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    Resolve the aggregation window for a named period.

    Explicit bounds win; a missing start is derived from ``end`` (default now):
    daily = 1 day, weekly = 7 days, monthly = one calendar month,
    yearly = one calendar year.
    """
    period = Period(period)
    end = as_naive_utc(end) if end is not None else utcnow()
    if start is not None:
        start = as_naive_utc(start)
    elif period == Period.DAILY:
        start = end - timedelta(days=1)
    elif period == Period.WEEKLY:
        start = end - timedelta(days=7)
    elif period == Period.MONTHLY:
        start = _subtract_months(end, 1)
    else:
        start = _subtract_months(end, 12)

    if start > end:
        raise ValidationError(f"Aggregation window starts after it ends ({start} > {end})")
    return start, end


def growth_rate(current: float, previous: float) -> float:
    """Percent change, rounded to 2 decimals; an empty baseline gives no signal (0)."""
    if previous == 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def trend_label(rate: float, rising: str = "increasing", falling: str = "decreasing") -> str:
    if rate > TREND_THRESHOLD_PERCENT:
        return rising
    if rate < -TREND_THRESHOLD_PERCENT:
        return falling
    return "stable"


def _distribution(records: List, key, buckets: Iterable[str]) -> Dict[str, DistributionEntry]:
    total_count = len(records)
    total_size = sum(r.size_bytes for r in records)
    counts: Dict[str, int] = defaultdict(int)
    sizes: Dict[str, int] = defaultdict(int)
    for record in records:
        bucket = key(record)
        counts[bucket] += 1
        sizes[bucket] += record.size_bytes

    # Known buckets first in enum order, then anything unexpected sorted.
    known = list(buckets)
    ordered = known + sorted(b for b in counts if b not in known)
    return {
        bucket: DistributionEntry(
            count=counts[bucket],
            size_bytes=sizes[bucket],
            count_percentage=round(counts[bucket] / total_count * 100, 2) if total_count else 0.0,
            size_percentage=round(sizes[bucket] / total_size * 100, 2) if total_size else 0.0,
        )
        for bucket in ordered
    }


def compliance_sub_score(records: List) -> float:
    """Share of files carrying both a classification and a retention basis."""
    if not records:
        return 100.0
    complete = sum(1 for r in records if r.classification and r.retention_basis)
    return round(complete / len(records) * 100, 2)


def count_duplicates(records: List) -> int:
    """Extra copies sharing a file name and size."""
    groups: Dict[Tuple[str, int], int] = defaultdict(int)
    for record in records:
        groups[(record.file_name, record.size_bytes)] += 1
    return sum(count - 1 for count in groups.values() if count > 1)


class AnalyticsAggregator:
    """
    Computes UsageAggregates.

    Every figure is computed over the files created inside [start, end];
    trends compare that set with the equal-length window just before it.
    Aggregates carry no generation timestamp so the same window over
    unchanged data always serializes identically.
    """

    def __init__(self, store, classifier, settings, cache: Optional[AggregateCache] = None):
        self.store = store
        self.classifier = classifier
        self.top_users_limit = settings.TOP_USERS_LIMIT
        self.cache = cache

    async def aggregate(
        self,
        period: Period = Period.MONTHLY,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        persist: bool = False,
    ) -> UsageAggregate:
        period = Period(period)
        explicit_window = start is not None and end is not None
        start, end = period_bounds(period, start, end)

        if explicit_window and self.cache is not None:
            cached = self.cache.get_aggregate(period.value, start, end)
            if cached is not None:
                logger.debug(f"Aggregate cache hit for {period.value} {start} - {end}")
                return UsageAggregate.model_validate(cached)

        aggregate = await self._compute(period, start, end)

        if explicit_window and self.cache is not None:
            self.cache.set_aggregate(period.value, start, end, aggregate.model_dump(mode="json"))
        if persist:
            await self.save_snapshot(aggregate)

        update_usage_metrics(aggregate.total_files, aggregate.total_size_bytes)
        logger.info(
            f"Aggregated {period.value} window {start.isoformat()} - {end.isoformat()}: "
            f"{aggregate.total_files} files, {aggregate.new_files} new"
        )
        return aggregate

    async def save_snapshot(self, aggregate: UsageAggregate) -> UsageSnapshot:
        return await self.store.add_snapshot(UsageSnapshot(
            period=aggregate.period.value,
            window_start=aggregate.window_start,
            window_end=aggregate.window_end,
            total_files=aggregate.total_files,
            total_size_bytes=aggregate.total_size_bytes,
            payload=aggregate.model_dump(mode="json"),
            created_at=utcnow(),
        ))

    async def _compute(self, period: Period, start: datetime, end: datetime) -> UsageAggregate:
        window = await self.store.list_files(created_from=start, created_to=end)
        logs = await self.store.list_operation_logs(since=start, until=end)
        finished_jobs = await self.store.list_jobs(
            status=JobStatus.COMPLETED,
            completed_from=start,
            completed_to=end,
        )

        users = self._user_usage(window)
        window_size = sum(r.size_bytes for r in window)
        aggregate = UsageAggregate(
            period=period,
            window_start=start,
            window_end=end,
            total_files=len(window),
            total_size_bytes=window_size,
            new_files=len(window),
            new_size_bytes=window_size,
            deleted_files=sum(j.files_deleted or 0 for j in finished_jobs),
            deleted_size_bytes=sum(j.bytes_deleted or 0 for j in finished_jobs),
            anonymized_files=sum(1 for r in window if r.is_anonymized),
            by_kind=_distribution(window, lambda r: r.file_kind, [k.value for k in FileKind]),
            by_tier=_distribution(
                window, lambda r: r.access_tier or AccessTier.HOT.value, [t.value for t in AccessTier]
            ),
            by_classification=_distribution(
                window, lambda r: self.classifier.classify(r).value, [c.value for c in Classification]
            ),
            active_users=len(users),
            top_users=users[: self.top_users_limit],
            operations=self._operation_stats(logs),
            cache_hit_rate=round(sum(1 for l in logs if l.cache_hit) / len(logs) * 100, 2) if logs else 0.0,
            error_rate=round(sum(1 for l in logs if l.error_code) / len(logs) * 100, 2) if logs else 0.0,
            compliance_score=compliance_sub_score(window),
            cold_storage_candidates=self._cold_candidates(window, end),
            duplicate_files=count_duplicates(window),
        )
        aggregate.trends = await self._trends(start, end, window, users, logs)
        return aggregate

    @staticmethod
    def _user_usage(records: List) -> List[UserUsage]:
        counts: Dict[str, int] = defaultdict(int)
        sizes: Dict[str, int] = defaultdict(int)
        for record in records:
            counts[record.uploaded_by] += 1
            sizes[record.uploaded_by] += record.size_bytes
        usage = [UserUsage(user_id=u, file_count=counts[u], size_bytes=sizes[u]) for u in counts]
        usage.sort(key=lambda u: (-u.size_bytes, u.user_id))
        return usage

    @staticmethod
    def _operation_stats(logs: List) -> Dict[str, OperationStats]:
        grouped: Dict[str, list] = defaultdict(list)
        for entry in logs:
            grouped[entry.operation].append(entry)

        stats = {}
        for operation in sorted(grouped):
            entries = grouped[operation]
            stats[operation] = OperationStats(
                count=len(entries),
                average_duration_ms=round(sum(e.duration_ms for e in entries) / len(entries), 3),
                average_throughput_bytes_per_second=round(
                    sum(e.throughput_bytes_per_second for e in entries) / len(entries), 3
                ),
                error_count=sum(1 for e in entries if e.error_code),
            )
        return stats

    @staticmethod
    def _cold_candidates(records: List, end: datetime) -> int:
        cutoff = end - timedelta(days=COLD_STORAGE_IDLE_DAYS)
        return sum(
            1 for r in records
            if (r.access_tier or AccessTier.HOT.value) == AccessTier.HOT.value and r.last_touched_at <= cutoff
        )

    async def _trends(self, start, end, window, users, logs) -> TrendSummary:
        previous_start = start - (end - start)
        # The previous window is half-open so a file stamped exactly at ``start`` counts once.
        previous_window = [
            r for r in await self.store.list_files(created_from=previous_start, created_to=start)
            if r.created_at < start
        ]
        previous_logs = await self.store.list_operation_logs(since=previous_start, until=start)
        previous_logs = [l for l in previous_logs if l.timestamp < start]

        upload_rate = growth_rate(len(window), len(previous_window))
        previous_users = {r.uploaded_by for r in previous_window}

        current_duration = sum(l.duration_ms for l in logs) / len(logs) if logs else 0.0
        previous_duration = (
            sum(l.duration_ms for l in previous_logs) / len(previous_logs) if previous_logs else 0.0
        )
        performance_rate = growth_rate(current_duration, previous_duration)

        return TrendSummary(
            upload_trend=trend_label(upload_rate),
            file_growth_rate=upload_rate,
            size_growth_rate=growth_rate(
                sum(r.size_bytes for r in window), sum(r.size_bytes for r in previous_window)
            ),
            user_growth_rate=growth_rate(len(users), len(previous_users)),
            performance_trend=trend_label(performance_rate, rising="degrading", falling="improving"),
        )

    def invalidate_cache(self) -> None:
        if self.cache is not None:
            removed = self.cache.invalidate()
            logger.debug(f"Invalidated {removed} cached aggregates")
