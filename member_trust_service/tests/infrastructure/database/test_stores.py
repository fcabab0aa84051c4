import pytest
from unittest.mock import AsyncMock, MagicMock
import datetime

from pymongo import ReturnDocument

from member_trust_service.app.models.audit_entry_db import AuditSearchFilters
from member_trust_service.app.models.contact_access_db import ContactAccessGrantDB, ContactAccessStatus, ContactType
from member_trust_service.app.models.verification_document_db import VerificationDocumentStatus
from member_trust_service.infrastructure.database import audit_entry_store
from member_trust_service.infrastructure.database import contact_access_grant_store as grant_store
from member_trust_service.infrastructure.database import contact_access_request_store as request_store
from member_trust_service.infrastructure.database import member_store
from member_trust_service.infrastructure.database import verification_document_store as document_store

NOW = datetime.datetime(2026, 3, 1, 12, 0, 0, 123456, tzinfo=datetime.timezone.utc)


@pytest.fixture
def mock_collection():
    collection = MagicMock()
    collection.find_one = AsyncMock()
    collection.find_one_and_update = AsyncMock()
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.delete_many = AsyncMock()
    collection.count_documents = AsyncMock()

    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor
    collection.aggregate.return_value = cursor
    return collection

@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__.return_value = mock_collection
    return db


# --- verification_document_store ---

@pytest.mark.asyncio
async def test_transition_document_status_is_conditional_on_expected_status(mock_db, mock_collection):
    mock_collection.find_one_and_update.return_value = {
        "id": "doc-1", "member_id": "m1", "storage_ref": "verification-documents/m1/x.pdf",
        "original_filename": "x.pdf", "mime_type": "application/pdf", "size_bytes": 10,
        "status": "APPROVED", "uploaded_at": NOW, "reviewed_by": "officer-1",
    }

    result = await document_store.transition_document_status(
        mock_db, "doc-1", VerificationDocumentStatus.PENDING_REVIEW, VerificationDocumentStatus.APPROVED,
        {"reviewed_by": "officer-1"},
    )

    assert result.status == "APPROVED"
    mock_db.__getitem__.assert_called_with("verification_documents")
    mock_collection.find_one_and_update.assert_called_once_with(
        {"id": "doc-1", "status": "PENDING_REVIEW"},
        {"$set": {"status": "APPROVED", "reviewed_by": "officer-1"}},
        return_document=ReturnDocument.AFTER,
    )

@pytest.mark.asyncio
async def test_transition_document_status_returns_none_when_not_applied(mock_db, mock_collection):
    mock_collection.find_one_and_update.return_value = None

    result = await document_store.transition_document_status(
        mock_db, "doc-1", VerificationDocumentStatus.APPROVED, VerificationDocumentStatus.DELETED
    )

    assert result is None

@pytest.mark.asyncio
async def test_find_open_document_for_member_queries_open_statuses(mock_db, mock_collection):
    mock_collection.find_one.return_value = None

    assert await document_store.find_open_document_for_member(mock_db, "m1") is None
    mock_collection.find_one.assert_called_once_with({
        "member_id": "m1",
        "status": {"$in": ["UPLOADED", "PENDING_REVIEW"]},
    })

@pytest.mark.asyncio
async def test_list_approved_documents_expired_before_uses_storage_datetime(mock_db, mock_collection):
    await document_store.list_approved_documents_expired_before(mock_db, NOW)

    query = mock_collection.find.call_args[0][0]
    assert query["status"] == "APPROVED"
    assert query["expires_at"]["$lt"] == datetime.datetime(2026, 3, 1, 12, 0, 0, 123000)

@pytest.mark.asyncio
async def test_claim_document_for_purge_requires_approved_and_no_live_claim(mock_db, mock_collection):
    mock_collection.find_one_and_update.return_value = None
    stale_before = NOW - datetime.timedelta(minutes=15)

    result = await document_store.claim_document_for_purge(mock_db, "doc-1", NOW, stale_before)

    assert result is None
    mock_collection.find_one_and_update.assert_called_once_with(
        {
            "id": "doc-1",
            "status": "APPROVED",
            "$or": [
                {"purge_claimed_at": None},
                {"purge_claimed_at": {"$lt": datetime.datetime(2026, 3, 1, 11, 45, 0, 123000)}},
            ],
        },
        {"$set": {"purge_claimed_at": datetime.datetime(2026, 3, 1, 12, 0, 0, 123000)}},
        return_document=ReturnDocument.AFTER,
    )

@pytest.mark.asyncio
async def test_release_purge_claim_only_touches_approved_documents(mock_db, mock_collection):
    await document_store.release_purge_claim(mock_db, "doc-1")

    mock_collection.update_one.assert_called_once_with(
        {"id": "doc-1", "status": "APPROVED"}, {"$set": {"purge_claimed_at": None}}
    )


# --- contact_access_request_store ---

@pytest.mark.asyncio
async def test_has_blocking_request_ignores_status(mock_db, mock_collection):
    mock_collection.find_one.return_value = {"id": "r1"}

    assert await request_store.has_blocking_request(mock_db, "alice", "bob") is True
    mock_collection.find_one.assert_called_once_with({
        "requester_id": "alice", "target_id": "bob", "block_future_requests": True,
    })

@pytest.mark.asyncio
async def test_transition_request_status_conditional_update(mock_db, mock_collection):
    mock_collection.find_one_and_update.return_value = None

    result = await request_store.transition_request_status(
        mock_db, "r1", ContactAccessStatus.PENDING, ContactAccessStatus.EXPIRED
    )

    assert result is None
    mock_db.__getitem__.assert_called_with("contact_access_requests")
    mock_collection.find_one_and_update.assert_called_once_with(
        {"id": "r1", "status": "PENDING"},
        {"$set": {"status": "EXPIRED"}},
        return_document=ReturnDocument.AFTER,
    )

@pytest.mark.asyncio
async def test_list_pending_received_excludes_expired(mock_db, mock_collection):
    await request_store.list_pending_received(mock_db, "bob", NOW)

    query = mock_collection.find.call_args[0][0]
    assert query["target_id"] == "bob"
    assert query["status"] == "PENDING"
    assert "$gt" in query["expires_at"]
    mock_collection.find.return_value.sort.assert_called_once_with("created_at", -1)


# --- contact_access_grant_store ---

@pytest.mark.asyncio
async def test_upsert_grant_only_sets_on_insert(mock_db, mock_collection):
    mock_collection.update_one.return_value = MagicMock(upserted_id="oid")
    grant = ContactAccessGrantDB(
        viewer_id="alice", subject_id="bob", contact_type=ContactType.EMAIL,
        request_id="r1", granted_by="bob", created_at=NOW,
    )

    created = await grant_store.upsert_grant(mock_db, grant)

    assert created is True
    key, update = mock_collection.update_one.call_args[0]
    assert key == {"viewer_id": "alice", "subject_id": "bob", "contact_type": "EMAIL", "request_id": "r1"}
    assert list(update) == ["$setOnInsert"]
    assert update["$setOnInsert"]["id"] == grant.id
    assert mock_collection.update_one.call_args[1] == {"upsert": True}

@pytest.mark.asyncio
async def test_upsert_grant_reports_existing_row(mock_db, mock_collection):
    mock_collection.update_one.return_value = MagicMock(upserted_id=None)
    grant = ContactAccessGrantDB(viewer_id="alice", subject_id="bob", contact_type="PHONE", request_id="r1", granted_by="bob")

    assert await grant_store.upsert_grant(mock_db, grant) is False

@pytest.mark.asyncio
async def test_delete_grants_for_request_can_keep_fields(mock_db, mock_collection):
    mock_collection.delete_many.return_value = MagicMock(deleted_count=2)

    deleted = await grant_store.delete_grants_for_request(mock_db, "r1", [ContactType.EMAIL])

    assert deleted == 2
    mock_collection.delete_many.assert_called_once_with({"request_id": "r1", "contact_type": {"$nin": ["EMAIL"]}})


# --- audit_entry_store ---

def test_build_audit_query_maps_filters():
    filters = AuditSearchFilters(
        actor_id="officer-1", action="EXPORT", resource_type="AUDIT_LOG",
        approval_status="PENDING", date_from=NOW, date_to=NOW + datetime.timedelta(days=1),
    )

    query = audit_entry_store.build_audit_query(filters)

    assert query["actor_id"] == "officer-1"
    assert query["action"] == "EXPORT"
    assert query["resource_type"] == "AUDIT_LOG"
    assert query["approval_status"] == "PENDING"
    assert query["created_at"]["$gte"] == datetime.datetime(2026, 3, 1, 12, 0, 0, 123000)
    assert query["created_at"]["$lte"] == datetime.datetime(2026, 3, 2, 12, 0, 0, 123000)

def test_build_audit_query_without_filters():
    assert audit_entry_store.build_audit_query(None) == {}
    assert audit_entry_store.build_audit_query(AuditSearchFilters()) == {}

@pytest.mark.asyncio
async def test_count_by_field_groups_and_sorts(mock_db, mock_collection):
    mock_collection.aggregate.return_value.to_list.return_value = [
        {"_id": "VIEW", "count": 4}, {"_id": "EXPORT", "count": 1},
    ]

    counts = await audit_entry_store.count_by_field(mock_db, "action", {"actor_id": "officer-1"})

    assert counts == {"VIEW": 4, "EXPORT": 1}
    pipeline = mock_collection.aggregate.call_args[0][0]
    assert pipeline[0] == {"$match": {"actor_id": "officer-1"}}
    assert pipeline[1] == {"$group": {"_id": "$action", "count": {"$sum": 1}}}

@pytest.mark.asyncio
async def test_search_entries_applies_skip_and_limit(mock_db, mock_collection):
    mock_collection.count_documents.return_value = 7

    entries, total = await audit_entry_store.search_entries(mock_db, AuditSearchFilters(actor_id="a"), skip=4, limit=2)

    assert entries == []
    assert total == 7
    cursor = mock_collection.find.return_value
    cursor.skip.assert_called_once_with(4)
    cursor.limit.assert_called_once_with(2)


# --- member_store ---

@pytest.mark.asyncio
async def test_set_member_status_unknown_member(mock_db, mock_collection):
    mock_collection.update_one.return_value = MagicMock(matched_count=0)

    assert await member_store.set_member_status(mock_db, "ghost", "ACTIVE") is False
    mock_collection.update_one.assert_called_once_with({"id": "ghost"}, {"$set": {"status": "ACTIVE"}})
