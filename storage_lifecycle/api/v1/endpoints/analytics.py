"""
Usage analytics, cost analysis and projection endpoints.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from storage_lifecycle.api.deps import get_engine
from storage_lifecycle.engine import LifecycleEngine
from storage_lifecycle.models.enums import Period
from storage_lifecycle.schemas.analytics import CostAnalysis, UsageAggregate, UsageProjection

router = APIRouter()


@router.get("", response_model=UsageAggregate)
async def get_usage_aggregate(
    period: Period = Period.MONTHLY,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    persist: bool = Query(default=False, description="Store the aggregate as a history snapshot"),
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    Aggregate usage for a period.

    Without explicit bounds the window ends now and spans one period.
    """
    return await engine.analytics.aggregate(period, start=start, end=end, persist=persist)


@router.get("/cost", response_model=CostAnalysis)
async def get_cost_analysis(
    user_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Current monthly cost and optimization recommendations."""
    return await engine.cost.analyze_costs(user_id=user_id, organization_id=organization_id)


@router.get("/projections", response_model=List[UsageProjection])
async def get_projections(
    period: Period = Period.MONTHLY,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Usage projections for 1, 3, 6 and 12 months with their assumptions."""
    return await engine.cost.projections(period)
