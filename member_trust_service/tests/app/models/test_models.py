import datetime

import pytest
from pydantic import ValidationError

from member_trust_service.app.models.audit_details import (
    ContactResponseDetail,
    DocumentReviewDetail,
    GenericDetail,
    coerce_detail,
)
from member_trust_service.app.models.audit_entry_db import AuditEntryDB, AuditPage
from member_trust_service.app.models.common import as_utc, to_storage_datetime
from member_trust_service.app.models.contact_access_db import ContactAccessRequestDB


def test_coerce_detail_parses_known_kind():
    detail = coerce_detail({"kind": "document_review", "document_id": "d1", "decision": "APPROVE"})

    assert isinstance(detail, DocumentReviewDetail)
    assert detail.schema_version == 1


def test_coerce_detail_accepts_models():
    detail = coerce_detail(ContactResponseDetail(request_id="r1", decision="REJECT"))

    assert isinstance(detail, ContactResponseDetail)
    assert detail.approved_contact_types == []


def test_coerce_detail_falls_back_to_generic():
    assert coerce_detail(None) == GenericDetail()
    assert coerce_detail({"fields": ["email"]}).data == {"fields": ["email"]}

    malformed = coerce_detail({"kind": "document_review", "decision": "APPROVE"})
    assert isinstance(malformed, GenericDetail)
    assert malformed.data["kind"] == "document_review"


def test_audit_entry_round_trips_detail_from_storage():
    entry = AuditEntryDB(
        action="APPROVE", resource_type="VERIFICATION_DOCUMENT",
        detail={"kind": "document_review", "document_id": "d1", "decision": "APPROVE"},
    )

    assert isinstance(AuditEntryDB(**entry.model_dump()).detail, DocumentReviewDetail)


def test_audit_entry_reads_unknown_detail_kind_as_generic():
    stored = AuditEntryDB(action="VIEW", resource_type="MEMBER").model_dump()
    stored["detail"] = {"kind": "bulk_message", "schema_version": 2, "recipients": 40}

    entry = AuditEntryDB(**stored)

    assert isinstance(entry.detail, GenericDetail)
    assert entry.detail.data["kind"] == "bulk_message"


@pytest.mark.parametrize("requires_approval, approval_status", [
    (False, "PENDING"),
    (True, "NOT_REQUIRED"),
])
def test_audit_entry_rejects_inconsistent_approval_state(requires_approval, approval_status):
    with pytest.raises(ValidationError):
        AuditEntryDB(
            action="EXPORT", resource_type="AUDIT_LOG",
            requires_approval=requires_approval, approval_status=approval_status,
        )


def test_audit_page_rounds_total_pages_up():
    assert AuditPage.build([], total=101, page=1, limit=50).total_pages == 3
    assert AuditPage.build([], total=0, page=1, limit=50).total_pages == 0


def test_naive_storage_datetimes_are_read_back_as_utc():
    naive = datetime.datetime(2026, 1, 1, 8, 0, 0)
    request = ContactAccessRequestDB(
        requester_id="a", target_id="b", requested_contact_types=["EMAIL"], reason="r",
        expires_at=naive, created_at=naive,
    )

    assert request.expires_at.tzinfo is not None
    assert request.expires_at == datetime.datetime(2026, 1, 1, 8, 0, 0, tzinfo=datetime.timezone.utc)


def test_to_storage_datetime_truncates_to_milliseconds_in_utc():
    offset = datetime.timezone(datetime.timedelta(hours=2))
    value = datetime.datetime(2026, 1, 1, 10, 0, 0, 987654, tzinfo=offset)

    assert to_storage_datetime(value) == datetime.datetime(2026, 1, 1, 8, 0, 0, 987000)
    assert as_utc(value).hour == 8
