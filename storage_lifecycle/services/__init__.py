"""
Reporting services built on top of the lifecycle metadata.
"""
from storage_lifecycle.services.analytics import AnalyticsAggregator, period_bounds
from storage_lifecycle.services.compliance import ComplianceReporter
from storage_lifecycle.services.cost import CostEngine
from storage_lifecycle.services.health import HealthMonitor

__all__ = [
    "AnalyticsAggregator",
    "ComplianceReporter",
    "CostEngine",
    "HealthMonitor",
    "period_bounds",
]
