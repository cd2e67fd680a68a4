"""
Compliance Reporter

Scans file metadata for missing classification, missing retention basis
and passed expiry. Findings are persisted as violations on a scored report;
they are data, never raised.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from storage_lifecycle.core.clock import utcnow
from storage_lifecycle.core.exceptions import NotFoundError
from storage_lifecycle.metrics import record_compliance_report
from storage_lifecycle.models import ComplianceReport, ComplianceViolation
from storage_lifecycle.models.enums import Classification, Severity, ViolationType

logger = logging.getLogger(__name__)

PERSONAL_RATIO_LIMIT = 0.5
ANONYMIZATION_RATIO_FLOOR = 0.1
ANONYMIZATION_MIN_FILES = 100


class ComplianceReporter:
    def __init__(self, store, classifier, retention):
        self.store = store
        self.classifier = classifier
        self.retention = retention

    def check_file(self, record, now: Optional[datetime] = None) -> List[ComplianceViolation]:
        """Unsaved violations for one file (empty when compliant)."""
        now = now or utcnow()
        violations = []

        if not record.classification:
            violations.append(ComplianceViolation(
                violation_type=ViolationType.MISSING_CLASSIFICATION.value,
                severity=Severity.MEDIUM.value,
                file_id=record.id,
                affected_paths=[record.path],
                description=f"File {record.path} has no data classification",
                remediation="Add a classification to the file metadata",
                detected_at=now,
            ))

        if not record.retention_basis:
            violations.append(ComplianceViolation(
                violation_type=ViolationType.INVALID_BASIS.value,
                severity=Severity.HIGH.value,
                file_id=record.id,
                affected_paths=[record.path],
                description=f"File {record.path} has no retention basis",
                remediation="Add a retention basis to the file metadata",
                detected_at=now,
            ))

        if record.is_expired(now):
            violations.append(ComplianceViolation(
                violation_type=ViolationType.EXPIRED_RETENTION.value,
                severity=Severity.CRITICAL.value,
                file_id=record.id,
                affected_paths=[record.path],
                description=f"File {record.path} expired on {record.expires_at.isoformat()}",
                remediation="Delete or anonymize the file according to retention policy",
                detected_at=now,
            ))

        return violations

    @staticmethod
    def recommendations(total: int, personal: int, anonymized: int, violations) -> List[str]:
        missing = sum(1 for v in violations if v.violation_type == ViolationType.MISSING_CLASSIFICATION.value)
        expired = sum(1 for v in violations if v.violation_type == ViolationType.EXPIRED_RETENTION.value)

        recommendations = []
        if missing:
            recommendations.append(
                f"{missing} files need data classification. "
                "Implement automated classification based on file type and content."
            )
        if expired:
            recommendations.append(
                f"{expired} files have exceeded retention periods. "
                "Set up automated cleanup jobs to handle expired files."
            )
        if total and personal / total > PERSONAL_RATIO_LIMIT:
            recommendations.append(
                "High percentage of personal data files detected. "
                "Consider implementing data minimization strategies."
            )
        if total > ANONYMIZATION_MIN_FILES and anonymized / total < ANONYMIZATION_RATIO_FLOOR:
            recommendations.append(
                "Low anonymization rate. "
                "Consider anonymizing older business files that no longer need personal identifiers."
            )
        return recommendations

    async def _scope(self, user_id: Optional[str], organization_id: Optional[str]) -> Tuple[str, Optional[str], list]:
        if user_id:
            return "user", user_id, await self.store.list_user_files(user_id)
        if organization_id:
            return "organization", organization_id, await self.store.list_files(organization_id=organization_id)
        return "global", None, await self.store.list_files()

    async def generate_report(
        self,
        user_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[ComplianceReport, List[ComplianceViolation]]:
        """
        Scan a user, an organization or (with neither) the whole platform.

        Returns:
            The persisted report and its violations
        """
        now = now or utcnow()
        scope, scope_id, records = await self._scope(user_id, organization_id)

        counts = {c: 0 for c in Classification}
        violations: List[ComplianceViolation] = []
        compliant = 0
        for record in records:
            counts[self.classifier.classify(record)] += 1
            found = self.check_file(record, now)
            if not found:
                compliant += 1
            violations.extend(found)

        total = len(records)
        anonymized = sum(1 for r in records if r.is_anonymized)
        report = ComplianceReport(
            scope=scope,
            scope_id=scope_id,
            total_files=total,
            personal_files=counts[Classification.PERSONAL],
            business_files=counts[Classification.BUSINESS],
            shared_files=counts[Classification.SHARED],
            public_files=counts[Classification.PUBLIC],
            retained_files=sum(1 for r in records if self.retention.is_legally_retained(r)),
            anonymized_files=anonymized,
            compliant_files=compliant,
            compliance_score=round(compliant / total * 100, 2) if total else 100.0,
            recommendations=self.recommendations(total, counts[Classification.PERSONAL], anonymized, violations),
            generated_at=now,
        )
        report, violations = await self.store.add_report(report, violations, [r.id for r in records])

        record_compliance_report(report.compliance_score, [(v.violation_type, v.severity) for v in violations])
        logger.info(
            f"Compliance report {report.id} ({scope}{':' + scope_id if scope_id else ''}): "
            f"score {report.compliance_score}, {len(violations)} violations"
        )
        return report, violations

    async def get_report(self, report_id: str) -> Tuple[ComplianceReport, List[ComplianceViolation]]:
        report = await self.store.get_report(report_id)
        if report is None:
            raise NotFoundError("Compliance report", report_id)
        return report, await self.store.list_violations(report_id=report_id)

    async def resolve_violation(self, violation_id: str) -> ComplianceViolation:
        violation = await self.store.resolve_violation(violation_id, utcnow())
        logger.info(f"Resolved compliance violation {violation_id}")
        return violation

    @staticmethod
    def report_summary(report: ComplianceReport) -> dict:
        return {
            "total_files": report.total_files,
            "personal_files": report.personal_files,
            "business_files": report.business_files,
            "shared_files": report.shared_files,
            "public_files": report.public_files,
            "retained_files": report.retained_files,
            "anonymized_files": report.anonymized_files,
            "compliant_files": report.compliant_files,
        }
