# Audit trail for privileged operations, with the secondary-approval flag.
import datetime
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from member_trust_service.app.config import settings
from member_trust_service.app.models.audit_details import SearchDetail, coerce_detail
from member_trust_service.app.models.audit_entry_db import (
    ApprovalStatus,
    AuditAction,
    AuditEntryDB,
    AuditPage,
    AuditSearchFilters,
    AuditStats,
)
from member_trust_service.app.models.common import utc_now
from member_trust_service.app.observability import audit_approval_required_counter, audit_record_failures_counter
from member_trust_service.app.service.audit.policy import requires_approval
from member_trust_service.app.service.audit.redaction import redact
from member_trust_service.app.service.exceptions import (
    AlreadyResolvedError,
    AuditEntryNotFoundError,
    ForbiddenError,
    InvalidPaginationError,
)
from member_trust_service.app.service.outcomes import RecordOutcome
from member_trust_service.infrastructure.database import audit_entry_store as audit_store

logger = logging.getLogger(__name__)
# Operational channel for audit write failures; kept separate so it can be routed on its own.
audit_logger = logging.getLogger("member_trust_service.audit")


class AuditOverlay:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock: Callable[[], datetime.datetime] = utc_now,
        max_page_size: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        self.max_page_size = max_page_size if max_page_size is not None else settings.AUDIT_MAX_PAGE_SIZE

    async def record(
        self,
        actor_id: Optional[str],
        action: Union[AuditAction, str],
        resource_type: str,
        resource_id: Optional[str] = None,
        detail: Union[BaseModel, Dict[str, Any], None] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> RecordOutcome:
        """
        Writes one audit entry. Never raises.

        Failures are logged on the audit channel, counted, and returned in the
        outcome so the audited operation carries on regardless.
        """
        try:
            raw_detail = detail.model_dump() if isinstance(detail, BaseModel) else detail
            structured_detail = coerce_detail(redact(raw_detail) if raw_detail is not None else None)

            classification_context = dict(context or {})
            if isinstance(structured_detail, SearchDetail) and structured_detail.all_cohorts:
                classification_context.setdefault("all_cohorts", True)
            needs_approval = requires_approval(action, resource_type, classification_context)

            entry = AuditEntryDB(
                actor_id=actor_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                detail=structured_detail,
                ip_address=ip_address or "unknown",
                user_agent=user_agent or "unknown",
                requires_approval=needs_approval,
                approval_status=ApprovalStatus.PENDING if needs_approval else ApprovalStatus.NOT_REQUIRED,
                created_at=self.clock(),
            )
            await audit_store.insert_entry(self.db, entry)
        except Exception as e:
            audit_logger.error(
                f"Failed to record audit entry ({action} on {resource_type} {resource_id}) for actor {actor_id}: {e}",
                exc_info=True,
            )
            audit_record_failures_counter.add(1, {"action": str(getattr(action, "value", action))})
            return RecordOutcome(error=str(e))

        if entry.requires_approval:
            audit_approval_required_counter.add(1, {"action": entry.action})
            logger.info(f"Audit entry {entry.id} ({entry.action} on {entry.resource_type}) awaits secondary approval.")
        return RecordOutcome(entry=entry)

    async def resolve_approval(
        self,
        entry_id: str,
        approver_id: str,
        approved: bool,
        reason: Optional[str] = None,
    ) -> AuditEntryDB:
        entry = await audit_store.get_entry_by_id(self.db, entry_id)
        if entry is None:
            raise AuditEntryNotFoundError(entry_id)
        if entry.approval_status != ApprovalStatus.PENDING:
            raise AlreadyResolvedError(entry_id, entry.approval_status)
        if entry.actor_id is not None and entry.actor_id == approver_id:
            raise ForbiddenError("An action cannot be approved by the member who performed it.")

        new_status = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        resolved = await audit_store.resolve_pending_entry(
            self.db, entry_id, new_status, approver_id, self.clock(), reason
        )
        if resolved is None:
            raise AlreadyResolvedError(entry_id)
        return resolved

    async def list_pending_approvals(self) -> List[AuditEntryDB]:
        return await audit_store.list_entries(
            self.db, {"approval_status": ApprovalStatus.PENDING.value}, newest_first=False
        )

    def _check_pagination(self, page: int, limit: int):
        if page < 1:
            raise InvalidPaginationError("Page must be 1 or greater.")
        if limit < 1 or limit > self.max_page_size:
            raise InvalidPaginationError(f"Limit must be between 1 and {self.max_page_size}.")

    async def search(self, filters: Optional[AuditSearchFilters] = None, page: int = 1, limit: int = 50) -> AuditPage:
        self._check_pagination(page, limit)
        entries, total = await audit_store.search_entries(self.db, filters, skip=(page - 1) * limit, limit=limit)
        return AuditPage.build(entries, total, page, limit)

    async def export(self, filters: Optional[AuditSearchFilters] = None) -> List[AuditEntryDB]:
        entries = await audit_store.list_entries(self.db, audit_store.build_audit_query(filters))
        logger.info(f"Exported {len(entries)} audit entries.")
        return entries

    async def recent_for_actor(self, actor_id: str, limit: int = 10) -> List[AuditEntryDB]:
        return await audit_store.list_entries(self.db, {"actor_id": actor_id}, limit=limit)

    async def stats(
        self,
        date_from: Optional[datetime.datetime] = None,
        date_to: Optional[datetime.datetime] = None,
    ) -> AuditStats:
        query_filter = audit_store.build_audit_query(AuditSearchFilters(date_from=date_from, date_to=date_to))
        pending_filter = dict(query_filter, approval_status=ApprovalStatus.PENDING.value)
        return AuditStats(
            total_entries=await audit_store.count_entries(self.db, query_filter),
            entries_by_action=await audit_store.count_by_field(self.db, "action", query_filter),
            entries_by_resource_type=await audit_store.count_by_field(self.db, "resource_type", query_filter),
            pending_approvals=await audit_store.count_entries(self.db, pending_filter),
        )
