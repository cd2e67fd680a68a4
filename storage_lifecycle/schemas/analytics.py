"""
Pydantic schemas for analytics, cost and projection results.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from storage_lifecycle.models.enums import Period


# ========================================
# Usage Aggregates
# ========================================

class DistributionEntry(BaseModel):
    """Count/size share of one bucket (kind, tier or classification)."""
    count: int = 0
    size_bytes: int = 0
    count_percentage: float = 0.0
    size_percentage: float = 0.0


class UserUsage(BaseModel):
    user_id: str
    file_count: int
    size_bytes: int


class OperationStats(BaseModel):
    count: int = 0
    average_duration_ms: float = 0.0
    average_throughput_bytes_per_second: float = 0.0
    error_count: int = 0


class TrendSummary(BaseModel):
    """Comparison against the equal-length window immediately before."""
    upload_trend: str = "stable"
    file_growth_rate: float = 0.0
    size_growth_rate: float = 0.0
    user_growth_rate: float = 0.0
    performance_trend: str = "stable"


class UsageAggregate(BaseModel):
    """Deterministic usage statistics for one period window."""
    period: Period
    window_start: datetime
    window_end: datetime

    total_files: int = 0
    total_size_bytes: int = 0
    new_files: int = 0
    new_size_bytes: int = 0
    deleted_files: int = 0
    deleted_size_bytes: int = 0
    anonymized_files: int = 0

    by_kind: Dict[str, DistributionEntry] = Field(default_factory=dict)
    by_tier: Dict[str, DistributionEntry] = Field(default_factory=dict)
    by_classification: Dict[str, DistributionEntry] = Field(default_factory=dict)

    active_users: int = 0
    top_users: List[UserUsage] = Field(default_factory=list)

    operations: Dict[str, OperationStats] = Field(default_factory=dict)
    cache_hit_rate: float = 0.0
    error_rate: float = 0.0
    compliance_score: float = 100.0

    cold_storage_candidates: int = 0
    duplicate_files: int = 0

    trends: TrendSummary = Field(default_factory=TrendSummary)

    @property
    def total_size_gib(self) -> float:
        return self.total_size_bytes / (1024 ** 3)


# ========================================
# Cost & Projections
# ========================================

class CostEstimate(BaseModel):
    storage_cost: float
    operations_cost: float
    total_cost: float
    by_tier: Dict[str, float] = Field(default_factory=dict)
    currency: str = "USD"


class OptimizationRecommendation(BaseModel):
    recommendation_type: str  # tier_migration | compression
    file_id: str
    path: str
    description: str
    potential_savings: float
    impact: str  # low | medium | high


class CostAnalysis(BaseModel):
    current: CostEstimate
    recommendations: List[OptimizationRecommendation] = Field(default_factory=list)
    total_potential_savings: float = 0.0


class UsageProjection(BaseModel):
    """Forward projection; never a certainty, always with its assumptions."""
    timeframe: str
    months: int
    projected_size_bytes: int
    projected_files: int
    projected_cost: float
    confidence: float
    assumptions: List[str] = Field(default_factory=list)
    size_growth_rate: Optional[float] = None
    file_growth_rate: Optional[float] = None
