"""
Scheduled cleanup triggers.
Normally run by a cron-equivalent; exposed here for operators.
"""
from enum import Enum

from fastapi import APIRouter, Depends

from storage_lifecycle.api.deps import get_engine
from storage_lifecycle.engine import LifecycleEngine
from storage_lifecycle.schemas.api import JobResponse

router = APIRouter()


class CleanupScan(str, Enum):
    TEMP = "temp"
    RETENTION = "retention"
    ORPHANS = "orphans"
    ALL = "all"


@router.post("/{scan}", response_model=dict)
async def run_cleanup(
    scan: CleanupScan,
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    Run one cleanup scan (or all of them) and return the finished jobs.

    **Parameters:**
    - scan: temp, retention, orphans or all
    """
    scheduler = engine.scheduler
    if scan == CleanupScan.TEMP:
        jobs = [await scheduler.cleanup_expired_temp_files()]
    elif scan == CleanupScan.RETENTION:
        jobs = [await scheduler.enforce_retention_policies()]
    elif scan == CleanupScan.ORPHANS:
        jobs = [await scheduler.cleanup_orphans()]
    else:
        jobs = await scheduler.run_all()

    return {
        "jobs": [JobResponse.model_validate(job).model_dump(mode="json") for job in jobs],
        "report": scheduler.cleanup_report(jobs),
    }
