"""
Unit tests for metadata anonymization.
Tests storage_lifecycle/storage/anonymization.py
"""
import re
from datetime import datetime

import pytest

from storage_lifecycle.models import FileRecord
from storage_lifecycle.storage.anonymization import (
    ANONYMIZED_UPLOADER_NAME,
    EMAIL_PATTERN,
    NAME_PATTERN,
    Anonymizer,
)

KEY = "unit-test-anonymization-key"
NOW = datetime(2025, 6, 1, 12, 0, 0)


@pytest.fixture
def anonymizer():
    return Anonymizer(KEY)


@pytest.fixture
def record():
    return FileRecord(
        path="users/jane-doe-42/portfolio/hero.png",
        file_name="Jane Doe hero shot.png",
        owner_id="jane-doe-42",
        owner_type="user",
        uploaded_by="jane-doe-42",
        uploader_name="Jane Doe",
        description="Shot for jane@example.com, call +1 (555) 010-9999 with questions",
        business_purpose="Portfolio of jane-doe-42",
        tags=["portfolio", "personal", "Private", "landscape"],
        file_kind="portfolio_image",
        size_bytes=2048,
    )


@pytest.mark.unit
class TestPseudonymize:
    """Test keyed pseudonymization."""

    def test_stable_for_same_key(self, anonymizer):
        assert anonymizer.pseudonymize("user-1") == Anonymizer(KEY).pseudonymize("user-1")

    def test_differs_between_keys(self, anonymizer):
        assert anonymizer.pseudonymize("user-1") != Anonymizer("another-key-entirely").pseudonymize("user-1")

    def test_token_hides_user_id(self, anonymizer):
        token = anonymizer.pseudonymize("user-1")

        assert "user-1" not in token
        assert Anonymizer.is_token(token)
        assert not Anonymizer.is_token("user-1")

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            Anonymizer("")


@pytest.mark.unit
class TestScrubText:
    """Test free-text scrubbing."""

    def test_scrubs_email_phone_and_name(self):
        text = "Contact Jane Doe at jane@example.com or +44 20 7946 0958"

        scrubbed = Anonymizer.scrub_text(text)

        assert "[email]" in scrubbed
        assert "[phone]" in scrubbed
        assert "[name]" in scrubbed
        assert "jane@example.com" not in scrubbed

    def test_replaces_known_identifiers(self):
        assert Anonymizer.scrub_text("owned by user-77", ["user-77"]) == "owned by [user]"

    def test_none_passthrough(self):
        assert Anonymizer.scrub_text(None) is None


@pytest.mark.unit
class TestAnonymizedChanges:
    """Test the full set of anonymized metadata."""

    def test_no_identity_left_in_text_fields(self, anonymizer, record):
        changes = anonymizer.anonymized_changes(
            record, new_owner_id="platform", new_owner_type="platform", now=NOW
        )

        for field in ("file_name", "description", "business_purpose", "uploader_name", "uploaded_by"):
            value = changes[field] or ""
            assert "jane-doe-42" not in value
            assert not EMAIL_PATTERN.search(value), field
            assert not NAME_PATTERN.search(value), field

    def test_owner_and_flags(self, anonymizer, record):
        changes = anonymizer.anonymized_changes(
            record, new_owner_id="org-1", new_owner_type="organization", now=NOW
        )

        assert changes["owner_id"] == "org-1"
        assert changes["owner_type"] == "organization"
        assert changes["uploaded_by"] == anonymizer.pseudonymize("jane-doe-42")
        assert changes["uploader_name"] == ANONYMIZED_UPLOADER_NAME
        assert changes["is_anonymized"] is True
        assert changes["anonymized_at"] == NOW

    def test_personal_tags_removed(self, anonymizer, record):
        changes = anonymizer.anonymized_changes(
            record, new_owner_id="platform", new_owner_type="platform", now=NOW
        )

        assert changes["tags"] == ["portfolio", "landscape"]

    def test_path_untouched(self, anonymizer, record):
        """Test that content paths are never rewritten."""
        changes = anonymizer.anonymized_changes(
            record, new_owner_id="platform", new_owner_type="platform", now=NOW
        )

        assert "path" not in changes
