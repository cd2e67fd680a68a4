"""
Pydantic schemas for API requests and responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from storage_lifecycle.models.enums import ErasureReason


# ========================================
# Request Schemas
# ========================================

class ErasureRequest(BaseModel):
    """Schema for a user erasure request."""
    user_id: str = Field(..., min_length=1, description="User leaving the platform")
    organization_id: Optional[str] = Field(
        default=None,
        description="Organization receiving the user's business files",
    )
    reason: ErasureReason = Field(default=ErasureReason.USER_REQUEST)
    requested_by: Optional[str] = None


class ComplianceReportRequest(BaseModel):
    user_id: Optional[str] = None
    organization_id: Optional[str] = None


# ========================================
# Response Schemas
# ========================================

class JobResponse(BaseModel):
    """Schema for cleanup job response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_type: str
    target_id: str
    target_type: str
    status: str
    reason: Optional[str] = None
    requested_by: Optional[str] = None

    files_found: int
    files_processed: int
    files_deleted: int
    files_anonymized: int
    files_transferred: int
    files_retained: int
    bytes_deleted: int
    progress: float

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None
    is_partial: bool = False

    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ErasureAccepted(BaseModel):
    job_id: str
    status: str


class ViolationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    violation_type: str
    severity: str
    file_id: Optional[str] = None
    affected_paths: List[str] = Field(default_factory=list)
    description: str
    remediation: str
    detected_at: datetime
    resolved_at: Optional[datetime] = None


class ComplianceReportResponse(BaseModel):
    id: str
    scope: str
    scope_id: Optional[str] = None
    generated_at: datetime
    summary: Dict[str, Any]
    compliance_score: float
    violations: List[ViolationResponse] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class AlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    alert_type: str
    severity: str
    title: str
    description: str
    affected_resources: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    occurrences: int = 1
    created_at: datetime
    last_seen_at: datetime
    resolved_at: Optional[datetime] = None
