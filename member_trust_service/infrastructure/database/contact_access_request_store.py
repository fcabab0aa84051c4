# Operations for the contact_access_requests collection
import datetime
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from member_trust_service.app.models.common import to_storage_datetime
from member_trust_service.app.models.contact_access_db import ContactAccessRequestDB, ContactAccessStatus

logger = logging.getLogger(__name__)
CONTACT_ACCESS_REQUESTS_COLLECTION = "contact_access_requests"


async def insert_request(db: AsyncIOMotorDatabase, request: ContactAccessRequestDB) -> ContactAccessRequestDB:
    await db[CONTACT_ACCESS_REQUESTS_COLLECTION].insert_one(request.model_dump())
    logger.info(f"Inserted contact access request ID: {request.id} ({request.requester_id} -> {request.target_id})")
    return request

async def get_request_by_id(db: AsyncIOMotorDatabase, request_id: str) -> Optional[ContactAccessRequestDB]:
    doc = await db[CONTACT_ACCESS_REQUESTS_COLLECTION].find_one({"id": request_id})
    if doc:
        return ContactAccessRequestDB(**doc)
    return None

async def find_pending_request(db: AsyncIOMotorDatabase, requester_id: str, target_id: str) -> Optional[ContactAccessRequestDB]:
    doc = await db[CONTACT_ACCESS_REQUESTS_COLLECTION].find_one({
        "requester_id": requester_id,
        "target_id": target_id,
        "status": ContactAccessStatus.PENDING.value,
    })
    return ContactAccessRequestDB(**doc) if doc else None

async def has_blocking_request(db: AsyncIOMotorDatabase, requester_id: str, target_id: str) -> bool:
    """True if the target ever answered this requester with block_future_requests set, whatever the outcome."""
    doc = await db[CONTACT_ACCESS_REQUESTS_COLLECTION].find_one({
        "requester_id": requester_id,
        "target_id": target_id,
        "block_future_requests": True,
    })
    return doc is not None

async def transition_request_status(
    db: AsyncIOMotorDatabase,
    request_id: str,
    expected_status: ContactAccessStatus,
    new_status: ContactAccessStatus,
    extra_fields: Optional[Dict[str, Any]] = None,
) -> Optional[ContactAccessRequestDB]:
    """Conditional update keyed on id and expected status. None means it did not apply."""
    set_operations: Dict[str, Any] = {"status": new_status.value}
    if extra_fields:
        set_operations.update(extra_fields)

    updated = await db[CONTACT_ACCESS_REQUESTS_COLLECTION].find_one_and_update(
        {"id": request_id, "status": expected_status.value},
        {"$set": set_operations},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.info(f"Conditional transition {expected_status.value} -> {new_status.value} did not apply to request {request_id}.")
        return None
    logger.info(f"Contact access request {request_id} transitioned {expected_status.value} -> {new_status.value}.")
    return ContactAccessRequestDB(**updated)

async def mark_target_notified(db: AsyncIOMotorDatabase, request_id: str, notified_at: datetime.datetime) -> None:
    await db[CONTACT_ACCESS_REQUESTS_COLLECTION].update_one(
        {"id": request_id},
        {"$set": {"target_notified_at": notified_at}},
    )

async def list_pending_received(db: AsyncIOMotorDatabase, target_id: str, now: datetime.datetime) -> List[ContactAccessRequestDB]:
    docs_cursor = db[CONTACT_ACCESS_REQUESTS_COLLECTION].find({
        "target_id": target_id,
        "status": ContactAccessStatus.PENDING.value,
        "expires_at": {"$gt": to_storage_datetime(now)},
    }).sort("created_at", -1)
    requests = await docs_cursor.to_list(length=None)
    return [ContactAccessRequestDB(**doc) for doc in requests]

async def list_sent(db: AsyncIOMotorDatabase, requester_id: str) -> List[ContactAccessRequestDB]:
    docs_cursor = db[CONTACT_ACCESS_REQUESTS_COLLECTION].find({"requester_id": requester_id}).sort("created_at", -1)
    requests = await docs_cursor.to_list(length=None)
    return [ContactAccessRequestDB(**doc) for doc in requests]

async def list_pending_expired_before(db: AsyncIOMotorDatabase, cutoff: datetime.datetime) -> List[ContactAccessRequestDB]:
    docs_cursor = db[CONTACT_ACCESS_REQUESTS_COLLECTION].find({
        "status": ContactAccessStatus.PENDING.value,
        "expires_at": {"$lt": to_storage_datetime(cutoff)},
    }).sort("expires_at", 1)
    requests = await docs_cursor.to_list(length=None)
    return [ContactAccessRequestDB(**doc) for doc in requests]
