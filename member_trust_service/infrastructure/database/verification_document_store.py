# Operations for the verification_documents collection
import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from member_trust_service.app.models.common import to_storage_datetime
from member_trust_service.app.models.verification_document_db import (
    OPEN_DOCUMENT_STATUSES,
    VerificationDocumentDB,
    VerificationDocumentStatus,
)

logger = logging.getLogger(__name__)
VERIFICATION_DOCUMENTS_COLLECTION = "verification_documents"


async def insert_document(db: AsyncIOMotorDatabase, document: VerificationDocumentDB) -> VerificationDocumentDB:
    await db[VERIFICATION_DOCUMENTS_COLLECTION].insert_one(document.model_dump())
    logger.info(f"Inserted verification document ID: {document.id} for member {document.member_id} (status: {document.status})")
    return document

async def get_document_by_id(db: AsyncIOMotorDatabase, document_id: str) -> Optional[VerificationDocumentDB]:
    doc = await db[VERIFICATION_DOCUMENTS_COLLECTION].find_one({"id": document_id})
    if doc:
        return VerificationDocumentDB(**doc)
    return None

async def find_open_document_for_member(db: AsyncIOMotorDatabase, member_id: str) -> Optional[VerificationDocumentDB]:
    """Returns the member's document still in UPLOADED or PENDING_REVIEW, if any."""
    doc = await db[VERIFICATION_DOCUMENTS_COLLECTION].find_one({
        "member_id": member_id,
        "status": {"$in": [status.value for status in OPEN_DOCUMENT_STATUSES]},
    })
    return VerificationDocumentDB(**doc) if doc else None

async def transition_document_status(
    db: AsyncIOMotorDatabase,
    document_id: str,
    expected_status: VerificationDocumentStatus,
    new_status: VerificationDocumentStatus,
    extra_fields: Optional[Dict[str, Any]] = None,
) -> Optional[VerificationDocumentDB]:
    """
    Conditional update: applies only if the document is still in expected_status.

    Returns the updated document, or None when the document is missing or another
    writer moved it first. Callers decide which of the two it was.
    """
    set_operations: Dict[str, Any] = {"status": new_status.value}
    if extra_fields:
        set_operations.update(extra_fields)

    updated = await db[VERIFICATION_DOCUMENTS_COLLECTION].find_one_and_update(
        {"id": document_id, "status": expected_status.value},
        {"$set": set_operations},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.info(f"Conditional transition {expected_status.value} -> {new_status.value} did not apply to document {document_id}.")
        return None
    logger.info(f"Verification document {document_id} transitioned {expected_status.value} -> {new_status.value}.")
    return VerificationDocumentDB(**updated)

async def list_documents(
    db: AsyncIOMotorDatabase,
    member_id: Optional[str] = None,
    statuses: Optional[Iterable[VerificationDocumentStatus]] = None,
    newest_first: bool = False,
) -> List[VerificationDocumentDB]:
    query_filter: Dict[str, Any] = {}
    if member_id:
        query_filter["member_id"] = member_id
    if statuses:
        query_filter["status"] = {"$in": [status.value for status in statuses]}

    docs_cursor = db[VERIFICATION_DOCUMENTS_COLLECTION].find(query_filter).sort("uploaded_at", -1 if newest_first else 1)
    documents = await docs_cursor.to_list(length=None)
    return [VerificationDocumentDB(**doc) for doc in documents]

async def list_approved_documents_expired_before(db: AsyncIOMotorDatabase, cutoff: datetime.datetime) -> List[VerificationDocumentDB]:
    docs_cursor = db[VERIFICATION_DOCUMENTS_COLLECTION].find({
        "status": VerificationDocumentStatus.APPROVED.value,
        "expires_at": {"$lt": to_storage_datetime(cutoff)},
    }).sort("expires_at", 1)
    documents = await docs_cursor.to_list(length=None)
    return [VerificationDocumentDB(**doc) for doc in documents]

async def claim_document_for_purge(
    db: AsyncIOMotorDatabase,
    document_id: str,
    claimed_at: datetime.datetime,
    stale_before: datetime.datetime,
) -> Optional[VerificationDocumentDB]:
    """
    Marks an APPROVED document as being purged by the caller.

    Succeeds only when no other sweep holds a claim, or when the existing claim
    is older than stale_before (its sweep died mid-purge). Returns None otherwise.
    """
    updated = await db[VERIFICATION_DOCUMENTS_COLLECTION].find_one_and_update(
        {
            "id": document_id,
            "status": VerificationDocumentStatus.APPROVED.value,
            "$or": [
                {"purge_claimed_at": None},
                {"purge_claimed_at": {"$lt": to_storage_datetime(stale_before)}},
            ],
        },
        {"$set": {"purge_claimed_at": to_storage_datetime(claimed_at)}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.info(f"Purge claim on document {document_id} not taken; another sweep owns it or it left APPROVED.")
        return None
    return VerificationDocumentDB(**updated)

async def release_purge_claim(db: AsyncIOMotorDatabase, document_id: str):
    """Leaves the document APPROVED and claimable so a later sweep retries the purge."""
    await db[VERIFICATION_DOCUMENTS_COLLECTION].update_one(
        {"id": document_id, "status": VerificationDocumentStatus.APPROVED.value},
        {"$set": {"purge_claimed_at": None}},
    )
    logger.info(f"Released purge claim on document {document_id}; purge stays pending.")
