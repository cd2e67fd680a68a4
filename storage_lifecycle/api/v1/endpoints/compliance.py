"""
Compliance report endpoints.
"""
from fastapi import APIRouter, Depends, status

from storage_lifecycle.api.deps import get_engine
from storage_lifecycle.engine import LifecycleEngine
from storage_lifecycle.schemas.api import (
    ComplianceReportRequest,
    ComplianceReportResponse,
    ViolationResponse,
)

router = APIRouter()


def _report_response(engine: LifecycleEngine, report, violations) -> ComplianceReportResponse:
    return ComplianceReportResponse(
        id=report.id,
        scope=report.scope,
        scope_id=report.scope_id,
        generated_at=report.generated_at,
        summary=engine.compliance.report_summary(report),
        compliance_score=report.compliance_score,
        violations=[ViolationResponse.model_validate(v) for v in violations],
        recommendations=list(report.recommendations or []),
    )


@router.post("/reports", response_model=ComplianceReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    request: ComplianceReportRequest,
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    Scan a user, an organization or (with neither) the whole platform.
    """
    report, violations = await engine.compliance.generate_report(
        user_id=request.user_id,
        organization_id=request.organization_id,
    )
    return _report_response(engine, report, violations)


@router.get("/reports/{report_id}", response_model=ComplianceReportResponse)
async def get_report(
    report_id: str,
    engine: LifecycleEngine = Depends(get_engine),
):
    report, violations = await engine.compliance.get_report(report_id)
    return _report_response(engine, report, violations)


@router.post("/violations/{violation_id}/resolve", response_model=ViolationResponse)
async def resolve_violation(
    violation_id: str,
    engine: LifecycleEngine = Depends(get_engine),
):
    return await engine.compliance.resolve_violation(violation_id)
