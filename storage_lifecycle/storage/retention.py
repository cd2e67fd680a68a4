"""
Retention Policy Table

Static mapping from file kind to retention period, plus the legal
retention rules that pull contracts, invoices and legal/compliance
documents out of any deletion path:
- Contracts: 10 years (contract_legal_requirement)
- Invoices: 7 years (tax_legal_requirement)
- Legal documents: 10 years (legal_compliance)
- Other legal-obligation files: 7 years (business_legal_requirement)
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from storage_lifecycle.core.exceptions import ConfigurationError, LegalHoldError
from storage_lifecycle.models.enums import FileKind, RetentionBasis

logger = logging.getLogger(__name__)

MAX_RETENTION_DAYS = 3650


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Retention policy for one file kind.
    ``days=None`` keeps the file indefinitely.
    """
    kind: FileKind
    days: Optional[int]
    basis: Optional[RetentionBasis] = None
    description: str = ""

    @property
    def is_finite(self) -> bool:
        return self.days is not None


@dataclass(frozen=True)
class LegalRetention:
    """Why, and for how long, a file must be kept."""
    reason: str
    period_days: int


DEFAULT_POLICIES: List[RetentionPolicy] = [
    RetentionPolicy(FileKind.TEMP_UPLOAD, 1, description="Temporary uploads expire after 1 day"),
    RetentionPolicy(
        FileKind.MESSAGE_ATTACHMENT, 365, RetentionBasis.LEGITIMATE_INTEREST,
        "Message attachments are kept for 1 year",
    ),
    RetentionPolicy(
        FileKind.PROJECT_DELIVERABLE, None, RetentionBasis.CONTRACT,
        "Project deliverables are kept for the life of the project",
    ),
    RetentionPolicy(
        FileKind.PERSONAL_VERIFICATION, 2555, RetentionBasis.LEGAL_OBLIGATION,
        "Identity verification records are kept for 7 years",
    ),
    RetentionPolicy(
        FileKind.CONTRACT_DOCUMENT, 3650, RetentionBasis.LEGAL_OBLIGATION,
        "Signed contracts are kept for 10 years",
    ),
    RetentionPolicy(
        FileKind.INVOICE_DOCUMENT, 2555, RetentionBasis.LEGAL_OBLIGATION,
        "Invoices are kept for 7 years for tax purposes",
    ),
    RetentionPolicy(
        FileKind.LEGAL_DOCUMENT, 3650, RetentionBasis.LEGAL_OBLIGATION,
        "Legal documents are kept for 10 years",
    ),
    RetentionPolicy(
        FileKind.PORTFOLIO_IMAGE, None, RetentionBasis.CONSENT,
        "Portfolio images are kept until the owner removes them",
    ),
    RetentionPolicy(
        FileKind.SYSTEM_BACKUP, 30, RetentionBasis.LEGITIMATE_INTEREST,
        "System backups rotate after 30 days",
    ),
]

LEGAL_RETENTION_BY_KIND: Dict[FileKind, LegalRetention] = {
    FileKind.CONTRACT_DOCUMENT: LegalRetention("contract_legal_requirement", 3650),
    FileKind.INVOICE_DOCUMENT: LegalRetention("tax_legal_requirement", 2555),
    FileKind.LEGAL_DOCUMENT: LegalRetention("legal_compliance", 3650),
    FileKind.COMPLIANCE_DOCUMENT: LegalRetention("legal_compliance", 3650),
}
DEFAULT_LEGAL_RETENTION = LegalRetention("business_legal_requirement", 2555)


class RetentionPolicyTable:
    """
    Lookup of retention policies and legal holds.

    Features:
    - Per-kind retention periods with validation
    - Legal retention detection by kind or explicit basis
    - Expiry computation and legal-hold enforcement
    """

    def __init__(self, policies: Optional[List[RetentionPolicy]] = None):
        self.policies: Dict[FileKind, RetentionPolicy] = {
            policy.kind: policy for policy in (policies or DEFAULT_POLICIES)
        }
        self.validate()

    def validate(self) -> None:
        """
        Validate retention policies

        Raises:
            ConfigurationError: If a period is outside 1..3650 days
        """
        for policy in self.policies.values():
            if policy.days is not None and not 1 <= policy.days <= MAX_RETENTION_DAYS:
                raise ConfigurationError(
                    f"Retention for {policy.kind.value} must be between 1 and {MAX_RETENTION_DAYS} days "
                    f"(got {policy.days})"
                )

    def policy_for(self, kind) -> Optional[RetentionPolicy]:
        parsed = kind if isinstance(kind, FileKind) else FileKind.parse(kind or "")
        if parsed is None:
            return None
        return self.policies.get(parsed)

    def finite_policies(self) -> List[RetentionPolicy]:
        return [policy for policy in self.policies.values() if policy.is_finite]

    def legal_retention_for(self, record) -> Optional[LegalRetention]:
        """
        Legal retention applying to ``record``, if any.

        Returns:
            LegalRetention for legal kinds or explicit legal_obligation basis, else None
        """
        kind = record.kind
        if kind in LEGAL_RETENTION_BY_KIND:
            return LEGAL_RETENTION_BY_KIND[kind]
        if record.is_legal_obligation:
            return DEFAULT_LEGAL_RETENTION
        return None

    def is_legally_retained(self, record) -> bool:
        return self.legal_retention_for(record) is not None

    def retention_expiry(self, record) -> Optional[datetime]:
        """When the record's retention ends: explicit expiry, else created + policy period."""
        if record.expires_at is not None:
            return record.expires_at
        legal = self.legal_retention_for(record)
        if legal is not None:
            return record.created_at + timedelta(days=legal.period_days)
        policy = self.policy_for(record.file_kind)
        if policy is None or not policy.is_finite:
            return None
        return record.created_at + timedelta(days=policy.days)

    def is_retention_elapsed(self, record, now: datetime) -> bool:
        policy = self.policy_for(record.file_kind)
        if policy is None or not policy.is_finite:
            return False
        return record.created_at + timedelta(days=policy.days) <= now

    def ensure_deletable(self, record, now: datetime) -> None:
        """
        Refuse hard deletion of legal-obligation files before expiry.

        Raises:
            LegalHoldError: If the record is under an unexpired legal obligation
        """
        if not record.is_legal_obligation:
            return
        expiry = self.retention_expiry(record)
        if expiry is None or expiry > now:
            logger.warning(f"Blocked deletion of legally retained file {record.path}")
            raise LegalHoldError(record.path)
