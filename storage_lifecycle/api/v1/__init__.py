"""
API v1 router aggregation.
"""
from fastapi import APIRouter

from storage_lifecycle.api.v1.endpoints import alerts, analytics, cleanup, compliance, erasures, jobs

api_router = APIRouter()

# Erasure requests and the jobs they create
api_router.include_router(erasures.router, prefix="/erasures", tags=["erasures"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])

# Scheduled cleanup triggers
api_router.include_router(cleanup.router, prefix="/cleanup", tags=["cleanup"])

# Reporting
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(compliance.router, prefix="/compliance", tags=["compliance"])
api_router.include_router(alerts.router, prefix="/alerts", tags=["alerts"])

__all__ = ["api_router"]
