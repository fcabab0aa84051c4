# Operations for the contact_access_grants collection (append-only ledger)
import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from member_trust_service.app.models.common import to_storage_datetime
from member_trust_service.app.models.contact_access_db import ContactAccessGrantDB, ContactType

logger = logging.getLogger(__name__)
CONTACT_ACCESS_GRANTS_COLLECTION = "contact_access_grants"

# Composite key that makes a grant write idempotent.
GRANT_KEY_FIELDS = ("viewer_id", "subject_id", "contact_type", "request_id")


async def upsert_grant(db: AsyncIOMotorDatabase, grant: ContactAccessGrantDB) -> bool:
    """
    Inserts the grant unless one with the same composite key exists.
    Existing rows are never modified. Returns True when a new row was written.
    """
    grant_doc = grant.model_dump()
    key = {field: grant_doc[field] for field in GRANT_KEY_FIELDS}
    result = await db[CONTACT_ACCESS_GRANTS_COLLECTION].update_one(
        key,
        {"$setOnInsert": grant_doc},
        upsert=True,
    )
    created = result.upserted_id is not None
    if created:
        logger.info(f"Recorded grant {grant.id}: {grant.viewer_id} may view {grant.contact_type} of {grant.subject_id}.")
    else:
        logger.info(f"Grant for {key} already recorded; nothing written.")
    return created

async def list_grants_since(
    db: AsyncIOMotorDatabase,
    viewer_id: str,
    subject_id: str,
    since: datetime.datetime,
) -> List[ContactAccessGrantDB]:
    docs_cursor = db[CONTACT_ACCESS_GRANTS_COLLECTION].find({
        "viewer_id": viewer_id,
        "subject_id": subject_id,
        "created_at": {"$gte": to_storage_datetime(since)},
    }).sort("created_at", -1)
    grants = await docs_cursor.to_list(length=None)
    return [ContactAccessGrantDB(**doc) for doc in grants]

async def list_grants_for_viewer(db: AsyncIOMotorDatabase, viewer_id: str) -> List[ContactAccessGrantDB]:
    docs_cursor = db[CONTACT_ACCESS_GRANTS_COLLECTION].find({"viewer_id": viewer_id}).sort("created_at", -1)
    grants = await docs_cursor.to_list(length=None)
    return [ContactAccessGrantDB(**doc) for doc in grants]

async def list_grants_for_subject(db: AsyncIOMotorDatabase, subject_id: str) -> List[ContactAccessGrantDB]:
    docs_cursor = db[CONTACT_ACCESS_GRANTS_COLLECTION].find({"subject_id": subject_id}).sort("created_at", -1)
    grants = await docs_cursor.to_list(length=None)
    return [ContactAccessGrantDB(**doc) for doc in grants]

async def delete_grants_for_request(
    db: AsyncIOMotorDatabase,
    request_id: str,
    keep_contact_types: Optional[Iterable[ContactType]] = None,
) -> int:
    """Removes grants written for a request whose approval never took effect, except the kept fields."""
    query_filter: Dict[str, Any] = {"request_id": request_id}
    if keep_contact_types:
        query_filter["contact_type"] = {"$nin": [ContactType(t).value for t in keep_contact_types]}

    result = await db[CONTACT_ACCESS_GRANTS_COLLECTION].delete_many(query_filter)
    if result.deleted_count:
        logger.warning(f"Removed {result.deleted_count} unapproved grant(s) written for request {request_id}.")
    return result.deleted_count
