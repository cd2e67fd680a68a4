"""
Cost & Projection Engine

Turns usage into cost estimates, optimization recommendations and forward
projections. Prices always come from the configured PricingTable.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.config import PricingTable
from storage_lifecycle.metrics import update_cost_metrics
from storage_lifecycle.models.enums import AccessTier, Period
from storage_lifecycle.schemas.analytics import (
    CostAnalysis,
    CostEstimate,
    OptimizationRecommendation,
    UsageAggregate,
    UsageProjection,
)

logger = logging.getLogger(__name__)

GIB = 1024 ** 3
MIB = 1024 ** 2

TIER_MIGRATION_IDLE_DAYS = 30
COMPRESSION_MIN_BYTES = MIB
COMPRESSION_RATIO = 0.7
COMPRESSIBLE_MIME_TYPES = {"application/json", "application/xml", "text/csv"}

DEFAULT_SIZE_GROWTH = 0.05
DEFAULT_FILE_GROWTH = 0.08
DEFAULT_CONFIDENCE = 0.5
MIN_HISTORY_POINTS = 3

PROJECTION_HORIZONS = [
    ("1_month", 1),
    ("3_months", 3),
    ("6_months", 6),
    ("12_months", 12),
]

# Snapshot periods per month, for turning per-snapshot growth into monthly growth.
PERIODS_PER_MONTH = {
    Period.DAILY: 365.25 / 12,
    Period.WEEKLY: 365.25 / 12 / 7,
    Period.MONTHLY: 1.0,
    Period.YEARLY: 1 / 12,
}


def _impact(savings: float) -> str:
    if savings > 10:
        return "high"
    if savings > 5:
        return "medium"
    return "low"


def _is_compressible(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return False
    return mime_type.startswith("text/") or mime_type in COMPRESSIBLE_MIME_TYPES


def _average(values: List[float]) -> float:
    return sum(values) / len(values)


def _monthly(rate: float, periods_per_month: float) -> float:
    return (1 + rate) ** periods_per_month - 1


class CostEngine:
    """Cost estimation, optimization detection and usage projections."""

    def __init__(self, store, pricing: PricingTable):
        self.store = store
        self.pricing = pricing

    # ------------------------------------------------------------------
    # Current cost
    # ------------------------------------------------------------------

    def _estimate(self, tier_bytes: Dict[str, int], file_count: int) -> CostEstimate:
        by_tier = {
            tier.value: tier_bytes.get(tier.value, 0) / GIB * self.pricing.storage_price(tier.value)
            for tier in AccessTier
        }
        storage_cost = sum(by_tier.values())
        operations_cost = file_count * self.pricing.operations_per_10k / 10000
        return CostEstimate(
            storage_cost=storage_cost,
            operations_cost=operations_cost,
            total_cost=storage_cost + operations_cost,
            by_tier=by_tier,
        )

    def estimate_cost(self, aggregate: UsageAggregate) -> CostEstimate:
        """Monthly cost of the aggregate's tier mix plus per-file operations."""
        tier_bytes = {tier: entry.size_bytes for tier, entry in aggregate.by_tier.items()}
        return self._estimate(tier_bytes, aggregate.total_files)

    # ------------------------------------------------------------------
    # Optimizations
    # ------------------------------------------------------------------

    def find_optimizations(self, records, now: Optional[datetime] = None) -> List[OptimizationRecommendation]:
        """
        Run both detectors over ``records``.

        - Hot-tier files untouched for 30+ days: migrate to cold
          (savings = GiB x (hot - cold)).
        - Uncompressed text/structured files above 1 MiB: compress
          (savings = GiB x 0.7 x the file's tier price).
        """
        now = now or utcnow()
        idle_cutoff = now - timedelta(days=TIER_MIGRATION_IDLE_DAYS)
        hot_cold_delta = self.pricing.hot_per_gb_month - self.pricing.cold_per_gb_month

        recommendations = []
        for record in records:
            size_gib = record.size_bytes / GIB
            tier = record.access_tier or AccessTier.HOT.value

            if tier == AccessTier.HOT.value and record.last_touched_at <= idle_cutoff:
                savings = size_gib * hot_cold_delta
                idle_days = (now - record.last_touched_at).days
                recommendations.append(OptimizationRecommendation(
                    recommendation_type="tier_migration",
                    file_id=record.id,
                    path=record.path,
                    description=f"Move {record.file_name} to cold storage (untouched for {idle_days} days)",
                    potential_savings=savings,
                    impact=_impact(savings),
                ))

            if (
                record.size_bytes > COMPRESSION_MIN_BYTES
                and _is_compressible(record.mime_type)
                and not record.compression_enabled
            ):
                savings = size_gib * COMPRESSION_RATIO * self.pricing.storage_price(tier)
                recommendations.append(OptimizationRecommendation(
                    recommendation_type="compression",
                    file_id=record.id,
                    path=record.path,
                    description=f"Enable compression for {record.file_name}",
                    potential_savings=savings,
                    impact="medium",
                ))

        recommendations.sort(key=lambda r: (-r.potential_savings, r.path, r.recommendation_type))
        return recommendations

    async def _scoped_records(self, user_id: Optional[str], organization_id: Optional[str]):
        if user_id:
            return await self.store.list_user_files(user_id)
        if organization_id:
            return await self.store.list_files(organization_id=organization_id)
        return await self.store.list_files()

    async def analyze_costs(
        self,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CostAnalysis:
        """Current cost and optimization recommendations for a user, organization or everything."""
        records = await self._scoped_records(user_id, organization_id)

        tier_bytes: Dict[str, int] = {}
        for record in records:
            tier = record.access_tier or AccessTier.HOT.value
            tier_bytes[tier] = tier_bytes.get(tier, 0) + record.size_bytes

        current = self._estimate(tier_bytes, len(records))
        recommendations = self.find_optimizations(records, now)
        if not user_id and not organization_id:
            update_cost_metrics(current.total_cost)

        return CostAnalysis(
            current=current,
            recommendations=recommendations,
            total_potential_savings=sum(r.potential_savings for r in recommendations),
        )

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def _blended_price(self, latest) -> float:
        """Per-GiB price weighted by the latest point's tier mix (hot if unknown)."""
        payload = getattr(latest, "payload", None) or {}
        by_tier = payload.get("by_tier") or {}
        total = sum(entry.get("size_bytes", 0) for entry in by_tier.values())
        if not total:
            return self.pricing.hot_per_gb_month
        return sum(
            entry.get("size_bytes", 0) / total * self.pricing.storage_price(tier)
            for tier, entry in by_tier.items()
        )

    def project(
        self,
        history: Sequence,
        months: int,
        timeframe: Optional[str] = None,
        period: Period = Period.MONTHLY,
    ) -> UsageProjection:
        """
        Project usage ``months`` ahead by compound growth.

        ``history`` is ordered oldest first; each point exposes
        ``total_size_bytes`` and ``total_files`` and is one ``period`` apart.
        Growth between points is compounded to a monthly rate before projecting.
        """
        per_month = PERIODS_PER_MONTH[Period(period)]
        size_rates: List[float] = []
        file_rates: List[float] = []
        if len(history) >= MIN_HISTORY_POINTS:
            for previous, current in zip(history, history[1:]):
                if previous.total_size_bytes > 0:
                    size_rates.append(
                        (current.total_size_bytes - previous.total_size_bytes) / previous.total_size_bytes
                    )
                if previous.total_files > 0:
                    file_rates.append((current.total_files - previous.total_files) / previous.total_files)

        size_growth = _monthly(_average(size_rates), per_month) if size_rates else DEFAULT_SIZE_GROWTH
        file_growth = _monthly(_average(file_rates), per_month) if file_rates else DEFAULT_FILE_GROWTH
        confidence = min(0.9, 0.5 + 0.1 * len(size_rates)) if size_rates else DEFAULT_CONFIDENCE

        latest = history[-1] if history else None
        current_size = latest.total_size_bytes if latest is not None else 0
        current_files = latest.total_files if latest is not None else 0

        projected_size = round(current_size * (1 + size_growth) ** months)
        projected_files = round(current_files * (1 + file_growth) ** months)
        price = self._blended_price(latest)
        projected_cost = (
            projected_size / GIB * price
            + projected_files * self.pricing.operations_per_10k / 10000
        )

        assumptions = [
            f"{size_growth * 100:.1f}% monthly storage growth assumed",
            f"{file_growth * 100:.1f}% monthly file count growth assumed",
            f"Storage priced at ${price:.4f}/GiB/month across current tiers",
            "No major changes in usage patterns or pricing",
        ]
        if size_rates and Period(period) != Period.MONTHLY:
            assumptions.append(f"Growth derived from {Period(period).value} snapshots, compounded to monthly")
        if len(history) < MIN_HISTORY_POINTS:
            assumptions.append("Limited historical data - projections based on default growth rates")

        return UsageProjection(
            timeframe=timeframe or f"{months}_months",
            months=months,
            projected_size_bytes=projected_size,
            projected_files=projected_files,
            projected_cost=round(projected_cost, 2),
            confidence=round(confidence, 2),
            assumptions=assumptions,
            size_growth_rate=round(size_growth, 4),
            file_growth_rate=round(file_growth, 4),
        )

    async def projections(self, period: Period = Period.MONTHLY, limit: int = 12) -> List[UsageProjection]:
        """Projections for every standard horizon from persisted snapshots."""
        history = await self.store.list_snapshots(period=Period(period), limit=limit)
        logger.info(f"Projecting usage from {len(history)} {Period(period).value} snapshots")
        return [self.project(history, months, timeframe, period) for timeframe, months in PROJECTION_HORIZONS]
