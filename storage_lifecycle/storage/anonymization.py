"""
Anonymization of file metadata.

Replaces uploader identity with a keyed one-way token (HMAC-SHA256),
drops personal tags and scrubs e-mail, name and phone patterns from
free-text fields. Business fields (kind, size, path, non-personal tags)
are preserved.
"""
import hashlib
import hmac
import re
from datetime import datetime
from typing import Iterable, List, Optional

PERSONAL_TAGS = frozenset({"personal", "private", "confidential", "identity"})

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+ [A-Z][a-z]+\b")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s().-]{7,}\d")

ANONYMIZED_UPLOADER_NAME = "Former team member"
RETAINED_UPLOADER_NAME = "Former user (retained for compliance)"

TOKEN_PREFIX = "anon_"


class Anonymizer:
    """Builds anonymized metadata for file records."""

    def __init__(self, key: str):
        if not key:
            raise ValueError("Anonymization key must not be empty")
        self._key = key.encode("utf-8")

    def pseudonymize(self, user_id: str) -> str:
        """Stable, non-reversible token for ``user_id``."""
        digest = hmac.new(self._key, user_id.encode("utf-8"), hashlib.sha256).hexdigest()
        return f"{TOKEN_PREFIX}{digest[:32]}"

    @staticmethod
    def is_token(value: Optional[str]) -> bool:
        return bool(value) and value.startswith(TOKEN_PREFIX)

    @staticmethod
    def scrub_text(text: Optional[str], identifiers: Iterable[str] = ()) -> Optional[str]:
        """Replace e-mails, phone numbers, names and known identifiers."""
        if text is None:
            return None
        scrubbed = text
        for identifier in sorted({i for i in identifiers if i}, key=len, reverse=True):
            scrubbed = scrubbed.replace(identifier, "[user]")
        scrubbed = EMAIL_PATTERN.sub("[email]", scrubbed)
        scrubbed = PHONE_PATTERN.sub("[phone]", scrubbed)
        scrubbed = NAME_PATTERN.sub("[name]", scrubbed)
        return scrubbed

    @staticmethod
    def strip_personal_tags(tags: Optional[Iterable[str]]) -> List[str]:
        return [tag for tag in (tags or []) if tag.lower() not in PERSONAL_TAGS]

    def anonymized_changes(
        self,
        record,
        *,
        new_owner_id: str,
        new_owner_type: str,
        now: datetime,
        uploader_name: str = ANONYMIZED_UPLOADER_NAME,
    ) -> dict:
        """
        Metadata changes that strip ``record`` of its uploader's identity.

        Args:
            record: FileRecord being anonymized
            new_owner_id: Owner after anonymization
            new_owner_type: OwnerType value for the new owner
            now: Timestamp recorded as anonymized_at
            uploader_name: Placeholder for the uploader's display name

        Returns:
            Field -> value mapping for MetadataStore.update_file()
        """
        identifiers = [record.uploaded_by, record.uploader_name]
        if not self.is_token(record.owner_id) and record.owner_type == "user":
            identifiers.append(record.owner_id)

        return {
            "uploaded_by": self.pseudonymize(record.uploaded_by),
            "uploader_name": uploader_name,
            "owner_id": new_owner_id,
            "owner_type": new_owner_type,
            "file_name": self.scrub_text(record.file_name, identifiers),
            "description": self.scrub_text(record.description, identifiers),
            "business_purpose": self.scrub_text(record.business_purpose, identifiers),
            "tags": self.strip_personal_tags(record.tags),
            "is_anonymized": True,
            "anonymized_at": now,
        }
