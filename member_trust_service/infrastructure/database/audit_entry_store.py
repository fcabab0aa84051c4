# Operations for the audit_entries collection
import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from member_trust_service.app.models.audit_entry_db import ApprovalStatus, AuditEntryDB, AuditSearchFilters
from member_trust_service.app.models.common import to_storage_datetime

logger = logging.getLogger(__name__)
AUDIT_ENTRIES_COLLECTION = "audit_entries"


def build_audit_query(filters: Optional[AuditSearchFilters]) -> Dict[str, Any]:
    query_filter: Dict[str, Any] = {}
    if filters is None:
        return query_filter
    if filters.actor_id:
        query_filter["actor_id"] = filters.actor_id
    if filters.action:
        query_filter["action"] = filters.action
    if filters.resource_type:
        query_filter["resource_type"] = filters.resource_type
    if filters.resource_id:
        query_filter["resource_id"] = filters.resource_id
    if filters.approval_status:
        query_filter["approval_status"] = filters.approval_status
    created_range: Dict[str, Any] = {}
    if filters.date_from:
        created_range["$gte"] = to_storage_datetime(filters.date_from)
    if filters.date_to:
        created_range["$lte"] = to_storage_datetime(filters.date_to)
    if created_range:
        query_filter["created_at"] = created_range
    return query_filter

async def insert_entry(db: AsyncIOMotorDatabase, entry: AuditEntryDB) -> AuditEntryDB:
    await db[AUDIT_ENTRIES_COLLECTION].insert_one(entry.model_dump())
    logger.info(f"Inserted audit entry ID: {entry.id} ({entry.action} on {entry.resource_type}, approval: {entry.approval_status})")
    return entry

async def get_entry_by_id(db: AsyncIOMotorDatabase, entry_id: str) -> Optional[AuditEntryDB]:
    doc = await db[AUDIT_ENTRIES_COLLECTION].find_one({"id": entry_id})
    if doc:
        return AuditEntryDB(**doc)
    return None

async def resolve_pending_entry(
    db: AsyncIOMotorDatabase,
    entry_id: str,
    new_status: ApprovalStatus,
    approver_id: str,
    resolved_at: datetime.datetime,
    reason: Optional[str] = None,
) -> Optional[AuditEntryDB]:
    """Records the approval decision only while the entry is still PENDING. None means it did not apply."""
    updated = await db[AUDIT_ENTRIES_COLLECTION].find_one_and_update(
        {"id": entry_id, "approval_status": ApprovalStatus.PENDING.value},
        {"$set": {
            "approval_status": new_status.value,
            "approved_by": approver_id,
            "approved_at": resolved_at,
            "approval_reason": reason,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.info(f"Approval decision for audit entry {entry_id} did not apply (missing or already resolved).")
        return None
    logger.info(f"Audit entry {entry_id} resolved as {new_status.value} by {approver_id}.")
    return AuditEntryDB(**updated)

async def list_entries(
    db: AsyncIOMotorDatabase,
    query_filter: Dict[str, Any],
    skip: int = 0,
    limit: Optional[int] = None,
    newest_first: bool = True,
) -> List[AuditEntryDB]:
    docs_cursor = db[AUDIT_ENTRIES_COLLECTION].find(query_filter).sort("created_at", -1 if newest_first else 1)
    if skip:
        docs_cursor = docs_cursor.skip(skip)
    if limit:
        docs_cursor = docs_cursor.limit(limit)
    entries = await docs_cursor.to_list(length=None)
    return [AuditEntryDB(**doc) for doc in entries]

async def count_entries(db: AsyncIOMotorDatabase, query_filter: Dict[str, Any]) -> int:
    return await db[AUDIT_ENTRIES_COLLECTION].count_documents(query_filter)

async def search_entries(
    db: AsyncIOMotorDatabase,
    filters: Optional[AuditSearchFilters],
    skip: int,
    limit: int,
) -> Tuple[List[AuditEntryDB], int]:
    query_filter = build_audit_query(filters)
    entries = await list_entries(db, query_filter, skip=skip, limit=limit)
    total = await count_entries(db, query_filter)
    return entries, total

async def count_by_field(db: AsyncIOMotorDatabase, field: str, query_filter: Dict[str, Any]) -> Dict[str, int]:
    pipeline = [
        {"$match": query_filter},
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ]
    results = await db[AUDIT_ENTRIES_COLLECTION].aggregate(pipeline).to_list(length=None)
    return {str(row["_id"]): row["count"] for row in results}
