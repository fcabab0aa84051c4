import enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .common import SideEffectOutcome, UtcDatetime, new_id, utc_now


class ContactType(str, enum.Enum):
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    ADDRESS = "ADDRESS"


class ContactAccessStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class ConsentDecision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class AccessType(str, enum.Enum):
    DIRECT_VIEW = "DIRECT_VIEW"
    EMAIL_SENT = "EMAIL_SENT"
    LABEL_GENERATED = "LABEL_GENERATED"


class AccessMethod(str, enum.Enum):
    WEB_VIEW = "WEB_VIEW"
    DOWNLOAD = "DOWNLOAD"
    EXPORT = "EXPORT"


class ContactAccessRequestDB(BaseModel):
    id: str = Field(default_factory=new_id)
    requester_id: str
    target_id: str
    status: ContactAccessStatus = ContactAccessStatus.PENDING
    requested_contact_types: List[ContactType]
    reason: str
    block_future_requests: bool = False # Set by the target on response; consulted by every later request
    approved_contact_types: Optional[List[ContactType]] = None # Subset of requested_contact_types, set on approval

    expires_at: UtcDatetime
    created_at: UtcDatetime = Field(default_factory=utc_now)
    responded_at: Optional[UtcDatetime] = None
    target_notified_at: Optional[UtcDatetime] = None

    # Outcome of the target notification sent on creation; never stored.
    notification: Optional[SideEffectOutcome] = Field(default=None, exclude=True)

    model_config = {"use_enum_values": True}


class ContactAccessGrantDB(BaseModel): # One ledger row per disclosed field
    id: str = Field(default_factory=new_id)
    viewer_id: str
    subject_id: str
    contact_type: ContactType
    access_type: AccessType = AccessType.DIRECT_VIEW
    access_method: AccessMethod = AccessMethod.WEB_VIEW
    request_id: Optional[str] = None
    granted_by: str
    created_at: UtcDatetime = Field(default_factory=utc_now)

    model_config = {"use_enum_values": True}


class MemberContact(BaseModel):
    """Directory view of a member: profile basics plus the disclosable fields."""
    member_id: str
    display_name: Optional[str] = None
    graduation_year: Optional[int] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None


class DisclosedContact(BaseModel):
    """What a viewer may currently see. Fields without a valid grant stay None."""
    email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
