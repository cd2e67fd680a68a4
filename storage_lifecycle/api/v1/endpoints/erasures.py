"""
User erasure endpoints.
Erasures run in the background; poll the returned job or wait for it server-side.
"""
from fastapi import APIRouter, Depends, status

from storage_lifecycle.api.deps import get_engine
from storage_lifecycle.engine import LifecycleEngine
from storage_lifecycle.schemas.api import ErasureAccepted, ErasureRequest, JobResponse

router = APIRouter()


@router.post("", response_model=ErasureAccepted, status_code=status.HTTP_202_ACCEPTED)
async def request_erasure(
    request: ErasureRequest,
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    Start erasing a user's files.

    **Returns:** the id of the pending erasure job
    """
    handle = await engine.erasure.submit_user_erasure(
        request.user_id,
        organization_id=request.organization_id,
        reason=request.reason,
        requested_by=request.requested_by,
    )
    return ErasureAccepted(job_id=handle.job_id, status="pending")


@router.post("/sync", response_model=JobResponse)
async def erase_user_now(
    request: ErasureRequest,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Erase a user and return the finished job."""
    return await engine.erasure.erase_user(
        request.user_id,
        organization_id=request.organization_id,
        reason=request.reason,
        requested_by=request.requested_by,
    )
