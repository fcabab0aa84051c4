from .verification_document_db import (
    VerificationDocumentDB,
    VerificationDocumentStatus,
    ReviewDecision,
    DocumentAccess,
)
from .contact_access_db import (
    ContactAccessRequestDB,
    ContactAccessGrantDB,
    ContactAccessStatus,
    ContactType,
    ConsentDecision,
    AccessType,
    AccessMethod,
    MemberContact,
    DisclosedContact,
)
from .audit_entry_db import (
    AuditEntryDB,
    AuditAction,
    ApprovalStatus,
    AuditSearchFilters,
    AuditPage,
    AuditStats,
)

__all__ = [
    "VerificationDocumentDB",
    "VerificationDocumentStatus",
    "ReviewDecision",
    "DocumentAccess",
    "ContactAccessRequestDB",
    "ContactAccessGrantDB",
    "ContactAccessStatus",
    "ContactType",
    "ConsentDecision",
    "AccessType",
    "AccessMethod",
    "MemberContact",
    "DisclosedContact",
    "AuditEntryDB",
    "AuditAction",
    "ApprovalStatus",
    "AuditSearchFilters",
    "AuditPage",
    "AuditStats",
]
