"""
File Classifier

Maps a file's declared kind onto one of four data classifications
(Personal, Business, Shared, Public). Pure and deterministic; an explicit
classification already on the record always wins.
"""
from typing import Dict, Union

from storage_lifecycle.models.enums import Classification, FileKind

# Must cover every FileKind member (checked by tests).
KIND_CLASSIFICATION: Dict[FileKind, Classification] = {
    # Profile
    FileKind.PROFILE_AVATAR: Classification.PERSONAL,
    FileKind.PROFILE_COVER: Classification.PERSONAL,
    FileKind.PROFILE_BANNER: Classification.PERSONAL,

    # Company
    FileKind.COMPANY_LOGO: Classification.PUBLIC,
    FileKind.COMPANY_BANNER: Classification.PUBLIC,
    FileKind.COMPANY_ASSETS: Classification.BUSINESS,

    # Personal documents
    FileKind.PERSONAL_VERIFICATION: Classification.PERSONAL,
    FileKind.PERSONAL_IDENTITY: Classification.PERSONAL,
    FileKind.PERSONAL_CERTIFICATES: Classification.PERSONAL,

    # Legal & business documents
    FileKind.CONTRACT_DOCUMENT: Classification.BUSINESS,
    FileKind.INVOICE_DOCUMENT: Classification.BUSINESS,
    FileKind.LEGAL_DOCUMENT: Classification.BUSINESS,
    FileKind.COMPLIANCE_DOCUMENT: Classification.BUSINESS,

    # Portfolio
    FileKind.PORTFOLIO_IMAGE: Classification.BUSINESS,
    FileKind.PORTFOLIO_VIDEO: Classification.BUSINESS,
    FileKind.PORTFOLIO_DOCUMENT: Classification.BUSINESS,
    FileKind.CASE_STUDY_ASSET: Classification.BUSINESS,
    FileKind.WORK_SAMPLE: Classification.BUSINESS,

    # Projects
    FileKind.PROJECT_ASSET: Classification.SHARED,
    FileKind.PROJECT_DELIVERABLE: Classification.SHARED,
    FileKind.PROJECT_REQUIREMENT: Classification.SHARED,
    FileKind.PROJECT_FEEDBACK: Classification.SHARED,
    FileKind.PROJECT_DOCUMENTATION: Classification.SHARED,

    # Communication
    FileKind.MESSAGE_ATTACHMENT: Classification.SHARED,
    FileKind.CHAT_MEDIA: Classification.SHARED,
    FileKind.SHARED_FILES: Classification.SHARED,

    # Content
    FileKind.BLOG_IMAGE: Classification.PUBLIC,
    FileKind.BLOG_VIDEO: Classification.PUBLIC,
    FileKind.MARKETING_ASSET: Classification.PUBLIC,
    FileKind.SERVICE_MEDIA: Classification.PUBLIC,

    # System
    FileKind.TEMP_UPLOAD: Classification.PERSONAL,
    FileKind.SYSTEM_BACKUP: Classification.BUSINESS,
    FileKind.ANALYTICS_EXPORT: Classification.BUSINESS,
    FileKind.AUDIT_EXPORT: Classification.BUSINESS,
}

# Unknown kinds are preserved rather than deleted.
DEFAULT_CLASSIFICATION = Classification.BUSINESS


class FileClassifier:
    """Classifies file records by explicit label or kind lookup."""

    def __init__(self, table: Dict[FileKind, Classification] = None):
        self.table = dict(table or KIND_CLASSIFICATION)

    def classify_kind(self, kind: Union[FileKind, str, None]) -> Classification:
        parsed = kind if isinstance(kind, FileKind) else FileKind.parse(kind or "")
        if parsed is None:
            return DEFAULT_CLASSIFICATION
        return self.table.get(parsed, DEFAULT_CLASSIFICATION)

    def classify(self, record) -> Classification:
        if record.classification:
            return Classification(record.classification)
        return self.classify_kind(record.file_kind)
