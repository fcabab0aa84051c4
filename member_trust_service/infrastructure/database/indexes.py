import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from member_trust_service.app.models.contact_access_db import ContactAccessStatus
from member_trust_service.app.models.verification_document_db import VerificationDocumentStatus
from member_trust_service.infrastructure.database.audit_entry_store import AUDIT_ENTRIES_COLLECTION
from member_trust_service.infrastructure.database.contact_access_grant_store import (
    CONTACT_ACCESS_GRANTS_COLLECTION,
    GRANT_KEY_FIELDS,
)
from member_trust_service.infrastructure.database.contact_access_request_store import CONTACT_ACCESS_REQUESTS_COLLECTION
from member_trust_service.infrastructure.database.member_store import MEMBERS_COLLECTION
from member_trust_service.infrastructure.database.verification_document_store import VERIFICATION_DOCUMENTS_COLLECTION

logger = logging.getLogger(__name__)


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """Creates the indexes the stores rely on. Safe to call on every startup."""
    await db[VERIFICATION_DOCUMENTS_COLLECTION].create_index([("id", ASCENDING)], unique=True)
    await db[VERIFICATION_DOCUMENTS_COLLECTION].create_index([("member_id", ASCENDING), ("status", ASCENDING)])
    # At most one document under review per member, enforced by the store as well as checked up front.
    await db[VERIFICATION_DOCUMENTS_COLLECTION].create_index(
        [("member_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"status": VerificationDocumentStatus.PENDING_REVIEW.value},
        name="one_open_document_per_member",
    )
    await db[VERIFICATION_DOCUMENTS_COLLECTION].create_index([("status", ASCENDING), ("expires_at", ASCENDING)])

    await db[CONTACT_ACCESS_REQUESTS_COLLECTION].create_index([("id", ASCENDING)], unique=True)
    await db[CONTACT_ACCESS_REQUESTS_COLLECTION].create_index(
        [("requester_id", ASCENDING), ("target_id", ASCENDING), ("status", ASCENDING)]
    )
    await db[CONTACT_ACCESS_REQUESTS_COLLECTION].create_index(
        [("requester_id", ASCENDING), ("target_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"status": ContactAccessStatus.PENDING.value},
        name="one_pending_request_per_pair",
    )
    await db[CONTACT_ACCESS_REQUESTS_COLLECTION].create_index([("target_id", ASCENDING), ("created_at", DESCENDING)])
    await db[CONTACT_ACCESS_REQUESTS_COLLECTION].create_index([("status", ASCENDING), ("expires_at", ASCENDING)])

    # Grant writes are upserts on this key; the unique index keeps retries from duplicating rows.
    await db[CONTACT_ACCESS_GRANTS_COLLECTION].create_index(
        [(field, ASCENDING) for field in GRANT_KEY_FIELDS], unique=True
    )
    await db[CONTACT_ACCESS_GRANTS_COLLECTION].create_index(
        [("viewer_id", ASCENDING), ("subject_id", ASCENDING), ("created_at", DESCENDING)]
    )

    await db[AUDIT_ENTRIES_COLLECTION].create_index([("id", ASCENDING)], unique=True)
    await db[AUDIT_ENTRIES_COLLECTION].create_index([("created_at", DESCENDING)])
    await db[AUDIT_ENTRIES_COLLECTION].create_index([("actor_id", ASCENDING), ("created_at", DESCENDING)])
    await db[AUDIT_ENTRIES_COLLECTION].create_index([("approval_status", ASCENDING), ("created_at", ASCENDING)])

    await db[MEMBERS_COLLECTION].create_index([("id", ASCENDING)], unique=True)
    logger.info("MongoDB indexes ensured for member trust collections.")
