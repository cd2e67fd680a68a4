"""
Storage health alert endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from storage_lifecycle.api.deps import get_engine
from storage_lifecycle.engine import LifecycleEngine
from storage_lifecycle.models.enums import AlertType
from storage_lifecycle.schemas.api import AlertResponse

router = APIRouter()


@router.get("", response_model=List[AlertResponse])
async def list_alerts(
    active_only: bool = True,
    alert_type: Optional[AlertType] = None,
    engine: LifecycleEngine = Depends(get_engine),
):
    """List alerts, newest first (active ones only by default)."""
    return await engine.store.list_alerts(active_only=active_only, alert_type=alert_type)


@router.post("/scan", response_model=List[AlertResponse])
async def scan_health(engine: LifecycleEngine = Depends(get_engine)):
    """Run every health check and return the alerts it raised or refreshed."""
    return await engine.health.run_checks()


@router.get("/summary", response_model=dict)
async def health_summary(engine: LifecycleEngine = Depends(get_engine)):
    """Overall storage health: healthy, warning or critical, with the open issues."""
    return await engine.health.system_health()


@router.post("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: str,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.health.resolve_alert(alert_id)
