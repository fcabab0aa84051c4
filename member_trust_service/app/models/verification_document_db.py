import enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import SideEffectOutcome, UtcDatetime, new_id, utc_now


class VerificationDocumentStatus(str, enum.Enum):
    UPLOADED = "UPLOADED"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"


# A member may hold at most one document in these states.
OPEN_DOCUMENT_STATUSES = (VerificationDocumentStatus.UPLOADED, VerificationDocumentStatus.PENDING_REVIEW)


class ReviewDecision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class VerificationDocumentDB(BaseModel):
    id: str = Field(default_factory=new_id)
    member_id: str # Owner; reviewers only appear in reviewed_by
    storage_ref: str # Object store path, e.g. verification-documents/<member_id>/<uuid>.pdf
    original_filename: str
    mime_type: str
    size_bytes: int

    status: VerificationDocumentStatus = VerificationDocumentStatus.UPLOADED

    uploaded_at: UtcDatetime = Field(default_factory=utc_now)
    reviewed_at: Optional[UtcDatetime] = None
    reviewed_by: Optional[str] = None
    reviewer_notes: Optional[str] = None
    expires_at: Optional[UtcDatetime] = None # Set on approval: end of the retention window
    purge_claimed_at: Optional[UtcDatetime] = None # Set by the expiry sweep that owns the object delete

    # Outcome of the account activation triggered by this call; never stored.
    activation: Optional[SideEffectOutcome] = Field(default=None, exclude=True)

    model_config = {"use_enum_values": True} # Stored and compared as plain strings


class DocumentAccess(BaseModel):
    """A document plus, while it is still under review, a short-lived read handle."""
    document: VerificationDocumentDB
    signed_url: Optional[str] = None
    url_expires_at: Optional[UtcDatetime] = None
