"""
Lifecycle job query endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from storage_lifecycle.api.deps import get_engine
from storage_lifecycle.engine import LifecycleEngine
from storage_lifecycle.models.enums import JobStatus, JobType
from storage_lifecycle.schemas.api import JobResponse

router = APIRouter()


@router.get("", response_model=List[JobResponse])
async def list_jobs(
    job_type: Optional[JobType] = None,
    status_filter: Optional[JobStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    List lifecycle jobs, newest first.

    **Parameters:**
    - job_type: user_erasure, temp_cleanup, retention_enforcement or orphan_cleanup
    - status: pending, in_progress, completed or failed
    - limit: Maximum number of jobs (default: 50)
    """
    return await engine.jobs.list_jobs(job_type=job_type, status=status_filter, limit=limit)


@router.get("/history", response_model=dict)
async def job_history(
    days: int = Query(default=30, ge=1, le=365),
    limit: int = Query(default=100, ge=1, le=1000),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Recent jobs with aggregate cleanup statistics."""
    return await engine.jobs.history(days=days, limit=limit)


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Get the status, counters and warnings of one job."""
    return await engine.jobs.get(job_id)
