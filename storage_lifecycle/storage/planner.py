"""
Deletion Strategy Planner

Partitions a user's files into delete / anonymize / transfer / retain
buckets. Public and already-anonymized files are listed separately as
deliberately excluded, so the partition can be checked for completeness.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from storage_lifecycle.models.enums import Classification, OwnerType, RetentionBasis
from storage_lifecycle.storage.classification import FileClassifier
from storage_lifecycle.storage.retention import RetentionPolicyTable

logger = logging.getLogger(__name__)

TRANSFER_REASON = "business_continuity"


@dataclass(frozen=True)
class AnonymizeAction:
    path: str
    new_owner_id: str
    new_owner_type: str


@dataclass(frozen=True)
class TransferAction:
    path: str
    new_owner_id: str
    new_owner_type: str
    reason: str = TRANSFER_REASON


@dataclass(frozen=True)
class RetainAction:
    path: str
    reason: str
    period_days: int


@dataclass(frozen=True)
class ExcludedFile:
    path: str
    reason: str  # public | already_anonymized


@dataclass
class DeletionStrategy:
    """
    A per-user plan. Every file of the user appears in exactly one of
    personal / business / shared / retained / excluded.
    """
    user_id: str
    organization_id: Optional[str] = None
    personal: List[str] = field(default_factory=list)
    business: List[AnonymizeAction] = field(default_factory=list)
    shared: List[TransferAction] = field(default_factory=list)
    retained: List[RetainAction] = field(default_factory=list)
    excluded: List[ExcludedFile] = field(default_factory=list)

    @classmethod
    def for_deletion(cls, paths: Iterable[str], target: str = "system") -> "DeletionStrategy":
        return cls(user_id=target, personal=list(paths))

    @property
    def actionable_count(self) -> int:
        return len(self.personal) + len(self.business) + len(self.shared) + len(self.retained)

    @property
    def is_empty(self) -> bool:
        return self.actionable_count == 0

    def all_paths(self) -> List[str]:
        return (
            list(self.personal)
            + [a.path for a in self.business]
            + [a.path for a in self.shared]
            + [a.path for a in self.retained]
            + [e.path for e in self.excluded]
        )

    def to_dict(self) -> Dict:
        return {
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "personal": list(self.personal),
            "business": [vars(a) for a in self.business],
            "shared": [vars(a) for a in self.shared],
            "retained": [vars(a) for a in self.retained],
            "excluded": [vars(e) for e in self.excluded],
        }


class DeletionStrategyPlanner:
    """Builds DeletionStrategy objects from the metadata store."""

    def __init__(
        self,
        store,
        classifier: FileClassifier,
        retention: RetentionPolicyTable,
        platform_owner_id: str,
    ):
        self.store = store
        self.classifier = classifier
        self.retention = retention
        self.platform_owner_id = platform_owner_id

    async def plan(self, user_id: str, organization_id: Optional[str] = None) -> DeletionStrategy:
        """
        Plan the erasure of everything owned by or attributed to ``user_id``.

        Args:
            user_id: User leaving the platform
            organization_id: The user's organization, if any; new owner of business files

        Returns:
            DeletionStrategy partitioning the user's files
        """
        records = await self.store.list_user_files(user_id)
        strategy = self.plan_records(user_id, records, organization_id)
        logger.info(
            f"Planned erasure for {user_id}: {len(strategy.personal)} delete, "
            f"{len(strategy.business)} anonymize, {len(strategy.shared)} transfer, "
            f"{len(strategy.retained)} retain, {len(strategy.excluded)} excluded"
        )
        return strategy

    def _fallback_owner(self, organization_id: Optional[str]):
        if organization_id:
            return organization_id, OwnerType.ORGANIZATION.value
        return self.platform_owner_id, OwnerType.PLATFORM.value

    def plan_records(
        self,
        user_id: str,
        records: Iterable,
        organization_id: Optional[str] = None,
    ) -> DeletionStrategy:
        """Partition an explicit set of records (no store access)."""
        strategy = DeletionStrategy(user_id=user_id, organization_id=organization_id)
        seen = set()

        for record in records:
            if record.path in seen:
                continue
            seen.add(record.path)
            org = organization_id or record.organization_id

            if record.is_anonymized:
                strategy.excluded.append(ExcludedFile(record.path, "already_anonymized"))
                continue

            legal = self.retention.legal_retention_for(record)
            if legal is not None:
                strategy.retained.append(RetainAction(record.path, legal.reason, legal.period_days))
                continue

            classification = self.classifier.classify(record)
            if classification == Classification.PUBLIC:
                strategy.excluded.append(ExcludedFile(record.path, "public"))
            elif classification == Classification.PERSONAL:
                strategy.personal.append(record.path)
            elif classification == Classification.SHARED:
                related = [entity for entity in (record.related_entities or []) if entity and entity != user_id]
                if related:
                    owner_id, owner_type = related[0], OwnerType.PROJECT.value
                else:
                    owner_id, owner_type = self._fallback_owner(org)
                strategy.shared.append(TransferAction(record.path, owner_id, owner_type))
            else:
                owner_id, owner_type = self._fallback_owner(org)
                strategy.business.append(AnonymizeAction(record.path, owner_id, owner_type))

        return strategy

    def plan_retention(self, records: Iterable, organization_id: Optional[str] = None) -> DeletionStrategy:
        """
        Strategy for files whose retention period has elapsed.

        Personal files are deleted, everything else is anonymized in place
        under its organization (or the platform). Legal-obligation files
        are never included.
        """
        strategy = DeletionStrategy(user_id="retention", organization_id=organization_id)
        for record in records:
            if record.retention_basis == RetentionBasis.LEGAL_OBLIGATION.value:
                strategy.excluded.append(ExcludedFile(record.path, "legal_obligation"))
                continue
            if self.classifier.classify(record) == Classification.PERSONAL:
                strategy.personal.append(record.path)
            else:
                owner_id, owner_type = self._fallback_owner(organization_id or record.organization_id)
                strategy.business.append(AnonymizeAction(record.path, owner_id, owner_type))
        return strategy
