"""
Enumerations shared by models, schemas and services.
"""
import enum


class Classification(str, enum.Enum):
    """Data classification; decides a file's fate on user erasure."""
    PERSONAL = "personal"
    BUSINESS = "business"
    SHARED = "shared"
    PUBLIC = "public"


class RetentionBasis(str, enum.Enum):
    """Legal or business justification for keeping a file."""
    LEGAL_OBLIGATION = "legal_obligation"
    LEGITIMATE_INTEREST = "legitimate_interest"
    CONTRACT = "contract"
    CONSENT = "consent"


class AccessTier(str, enum.Enum):
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


class OwnerType(str, enum.Enum):
    USER = "user"
    ORGANIZATION = "organization"
    PROJECT = "project"
    PLATFORM = "platform"


class FileKind(str, enum.Enum):
    """Closed set of file kinds the platform stores."""
    # Profile
    PROFILE_AVATAR = "profile_avatar"
    PROFILE_COVER = "profile_cover"
    PROFILE_BANNER = "profile_banner"

    # Company
    COMPANY_LOGO = "company_logo"
    COMPANY_BANNER = "company_banner"
    COMPANY_ASSETS = "company_assets"

    # Personal documents
    PERSONAL_VERIFICATION = "personal_verification"
    PERSONAL_IDENTITY = "personal_identity"
    PERSONAL_CERTIFICATES = "personal_certificates"

    # Legal & business documents
    CONTRACT_DOCUMENT = "contract_document"
    INVOICE_DOCUMENT = "invoice_document"
    LEGAL_DOCUMENT = "legal_document"
    COMPLIANCE_DOCUMENT = "compliance_document"

    # Portfolio
    PORTFOLIO_IMAGE = "portfolio_image"
    PORTFOLIO_VIDEO = "portfolio_video"
    PORTFOLIO_DOCUMENT = "portfolio_document"
    CASE_STUDY_ASSET = "case_study_asset"
    WORK_SAMPLE = "work_sample"

    # Projects
    PROJECT_ASSET = "project_asset"
    PROJECT_DELIVERABLE = "project_deliverable"
    PROJECT_REQUIREMENT = "project_requirement"
    PROJECT_FEEDBACK = "project_feedback"
    PROJECT_DOCUMENTATION = "project_documentation"

    # Communication
    MESSAGE_ATTACHMENT = "message_attachment"
    CHAT_MEDIA = "chat_media"
    SHARED_FILES = "shared_files"

    # Content
    BLOG_IMAGE = "blog_image"
    BLOG_VIDEO = "blog_video"
    MARKETING_ASSET = "marketing_asset"
    SERVICE_MEDIA = "service_media"

    # System
    TEMP_UPLOAD = "temp_upload"
    SYSTEM_BACKUP = "system_backup"
    ANALYTICS_EXPORT = "analytics_export"
    AUDIT_EXPORT = "audit_export"

    @classmethod
    def parse(cls, value: str):
        """Return the FileKind for ``value`` or None for unknown kinds."""
        try:
            return cls(value)
        except ValueError:
            return None


class JobType(str, enum.Enum):
    USER_ERASURE = "user_erasure"
    TEMP_CLEANUP = "temp_cleanup"
    RETENTION_ENFORCEMENT = "retention_enforcement"
    ORPHAN_CLEANUP = "orphan_cleanup"


class JobStatus(str, enum.Enum):
    """Job status enumeration (pending -> in_progress -> completed|failed)."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ErasureReason(str, enum.Enum):
    USER_REQUEST = "user_request"
    RETENTION_EXPIRED = "retention_expired"
    CONSENT_WITHDRAWN = "consent_withdrawn"
    SCHEDULED = "scheduled"


class OperationType(str, enum.Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    DELETE = "delete"
    LIST = "list"
    UPDATE = "update"


class ViolationType(str, enum.Enum):
    MISSING_CLASSIFICATION = "missing_classification"
    INVALID_BASIS = "invalid_basis"
    EXPIRED_RETENTION = "expired_retention"


class Severity(str, enum.Enum):
    INFO = "info"
    MEDIUM = "medium"
    WARNING = "warning"
    HIGH = "high"
    CRITICAL = "critical"


class AlertType(str, enum.Enum):
    QUOTA = "quota"
    PERFORMANCE = "performance"
    COMPLIANCE = "compliance"
    SECURITY = "security"


class Period(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
