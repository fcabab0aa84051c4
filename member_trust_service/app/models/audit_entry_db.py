import enum
import math
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .audit_details import GenericDetail, StoredAuditDetail
from .common import UtcDatetime, new_id, utc_now


class AuditAction(str, enum.Enum):
    VIEW = "VIEW"
    SEARCH = "SEARCH"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    UPLOAD = "UPLOAD"
    DOWNLOAD = "DOWNLOAD"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    SEND_MESSAGE = "SEND_MESSAGE"


class ApprovalStatus(str, enum.Enum):
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AuditEntryDB(BaseModel):
    id: str = Field(default_factory=new_id)
    actor_id: Optional[str] = None # None for system actions (sweeps)
    action: AuditAction
    resource_type: str # e.g., VERIFICATION_DOCUMENT, CONTACT_ACCESS_REQUEST, USER
    resource_id: Optional[str] = None
    detail: StoredAuditDetail = Field(default_factory=GenericDetail)
    ip_address: str = "unknown"
    user_agent: str = "unknown"

    requires_approval: bool = False
    approval_status: ApprovalStatus = ApprovalStatus.NOT_REQUIRED
    approved_by: Optional[str] = None
    approved_at: Optional[UtcDatetime] = None
    approval_reason: Optional[str] = None

    created_at: UtcDatetime = Field(default_factory=utc_now)

    model_config = {"use_enum_values": True}

    @model_validator(mode="after")
    def _approval_status_matches_flag(self):
        if not self.requires_approval and self.approval_status != ApprovalStatus.NOT_REQUIRED:
            raise ValueError("approval_status must be NOT_REQUIRED when requires_approval is false")
        if self.requires_approval and self.approval_status == ApprovalStatus.NOT_REQUIRED:
            raise ValueError("approval_status cannot be NOT_REQUIRED when requires_approval is true")
        return self


class AuditSearchFilters(BaseModel):
    actor_id: Optional[str] = None
    action: Optional[AuditAction] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    approval_status: Optional[ApprovalStatus] = None
    date_from: Optional[UtcDatetime] = None
    date_to: Optional[UtcDatetime] = None

    model_config = {"use_enum_values": True}


class AuditPage(BaseModel):
    entries: List[AuditEntryDB]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, entries: List[AuditEntryDB], total: int, page: int, limit: int) -> "AuditPage":
        return cls(entries=entries, total=total, page=page, limit=limit, total_pages=math.ceil(total / limit))


class AuditStats(BaseModel):
    total_entries: int
    entries_by_action: Dict[str, int] = Field(default_factory=dict)
    entries_by_resource_type: Dict[str, int] = Field(default_factory=dict)
    pending_approvals: int = 0
