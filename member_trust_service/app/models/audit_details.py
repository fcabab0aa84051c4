# Structured, versioned detail payloads for audit entries.
# Known action shapes are parsed into their own models; anything else is kept
# as an opaque key-value map so older readers never choke on newer writers.
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

AUDIT_DETAIL_SCHEMA_VERSION = 1


class DocumentReviewDetail(BaseModel):
    kind: Literal["document_review"] = "document_review"
    schema_version: int = AUDIT_DETAIL_SCHEMA_VERSION
    document_id: str
    decision: str
    notes: Optional[str] = None


class DocumentUploadDetail(BaseModel):
    kind: Literal["document_upload"] = "document_upload"
    schema_version: int = AUDIT_DETAIL_SCHEMA_VERSION
    document_id: str
    mime_type: str
    size_bytes: int


class ContactResponseDetail(BaseModel):
    kind: Literal["contact_response"] = "contact_response"
    schema_version: int = AUDIT_DETAIL_SCHEMA_VERSION
    request_id: str
    decision: str
    approved_contact_types: List[str] = Field(default_factory=list)
    block_future_requests: bool = False


class ExpirySweepDetail(BaseModel):
    kind: Literal["expiry_sweep"] = "expiry_sweep"
    schema_version: int = AUDIT_DETAIL_SCHEMA_VERSION
    expired_documents: int = 0
    expired_requests: int = 0


class ExportDetail(BaseModel):
    kind: Literal["export"] = "export"
    schema_version: int = AUDIT_DETAIL_SCHEMA_VERSION
    filters: Dict[str, Any] = Field(default_factory=dict)
    exported_count: Optional[int] = None


class SearchDetail(BaseModel):
    kind: Literal["search"] = "search"
    schema_version: int = AUDIT_DETAIL_SCHEMA_VERSION
    query: Dict[str, Any] = Field(default_factory=dict)
    all_cohorts: bool = False


class GenericDetail(BaseModel):
    kind: Literal["generic"] = "generic"
    schema_version: int = AUDIT_DETAIL_SCHEMA_VERSION
    data: Dict[str, Any] = Field(default_factory=dict)


AuditDetail = Annotated[
    Union[
        DocumentReviewDetail,
        DocumentUploadDetail,
        ContactResponseDetail,
        ExpirySweepDetail,
        ExportDetail,
        SearchDetail,
        GenericDetail,
    ],
    Field(discriminator="kind"),
]

_audit_detail_adapter = TypeAdapter(AuditDetail)
KNOWN_DETAIL_KINDS = {
    "document_review", "document_upload", "contact_response",
    "expiry_sweep", "export", "search", "generic",
}


def coerce_detail(raw: Union[BaseModel, Dict[str, Any], None]) -> AuditDetail:
    """Turns a model or a loose dict into one of the known detail shapes, falling back to GenericDetail."""
    if raw is None:
        return GenericDetail()
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if isinstance(raw, dict) and raw.get("kind") in KNOWN_DETAIL_KINDS:
        try:
            return _audit_detail_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"Audit detail of kind '{raw.get('kind')}' did not match its schema; storing as generic. Errors: {e.error_count()}")
    data = dict(raw) if isinstance(raw, dict) else {"value": raw}
    return GenericDetail(data=data)


# Detail as read back from storage: entries written by newer code with an
# unknown kind or schema load as GenericDetail instead of failing the read.
StoredAuditDetail = Annotated[AuditDetail, BeforeValidator(coerce_detail)]
