"""
Pydantic schemas for analytics results and API request/response validation.
"""
from storage_lifecycle.schemas.analytics import (
    CostAnalysis,
    CostEstimate,
    DistributionEntry,
    OperationStats,
    OptimizationRecommendation,
    TrendSummary,
    UsageAggregate,
    UsageProjection,
    UserUsage,
)
from storage_lifecycle.schemas.api import (
    AlertResponse,
    ComplianceReportRequest,
    ComplianceReportResponse,
    ErasureAccepted,
    ErasureRequest,
    JobResponse,
    ViolationResponse,
)

__all__ = [
    "AlertResponse",
    "ComplianceReportRequest",
    "ComplianceReportResponse",
    "CostAnalysis",
    "CostEstimate",
    "DistributionEntry",
    "ErasureAccepted",
    "ErasureRequest",
    "JobResponse",
    "OperationStats",
    "OptimizationRecommendation",
    "TrendSummary",
    "UsageAggregate",
    "UsageProjection",
    "UserUsage",
    "ViolationResponse",
]
