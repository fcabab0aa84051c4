# API Router for the audit trail and secondary approvals (reviewers only)
import datetime
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel

from member_trust_service.app.api.errors import to_http_exception
from member_trust_service.app.dependencies.caller import CallerContext, require_reviewer
from member_trust_service.app.dependencies.workflows import get_audit_overlay
from member_trust_service.app.models.audit_details import ExportDetail
from member_trust_service.app.models.audit_entry_db import (
    ApprovalStatus,
    AuditAction,
    AuditEntryDB,
    AuditPage,
    AuditSearchFilters,
    AuditStats,
)
from member_trust_service.app.service.audit.overlay import AuditOverlay
from member_trust_service.app.service.exceptions import BaseTrustServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


class ResolveApprovalRequest(BaseModel):
    approved: bool
    reason: Optional[str] = None


def get_audit_filters(
    actor_id: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    approval_status: Optional[ApprovalStatus] = Query(None),
    date_from: Optional[datetime.datetime] = Query(None),
    date_to: Optional[datetime.datetime] = Query(None),
) -> AuditSearchFilters:
    return AuditSearchFilters(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        approval_status=approval_status,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/entries", response_model=AuditPage, summary="Search the audit trail, newest first.")
async def search_audit_entries_api(
    filters: AuditSearchFilters = Depends(get_audit_filters),
    page: int = Query(1),
    limit: int = Query(50),
    caller: CallerContext = Depends(require_reviewer),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    try:
        return await audit.search(filters, page=page, limit=limit)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)


@router.get("/pending-approvals", response_model=List[AuditEntryDB], summary="Entries awaiting a secondary approval, oldest first.")
async def list_pending_approvals_api(
    caller: CallerContext = Depends(require_reviewer),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    return await audit.list_pending_approvals()


@router.post("/entries/{entry_id}/resolve", response_model=AuditEntryDB, summary="Approve or reject a flagged entry.")
async def resolve_audit_approval_api(
    entry_id: str,
    request_data: ResolveApprovalRequest = Body(...),
    caller: CallerContext = Depends(require_reviewer),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    try:
        return await audit.resolve_approval(entry_id, caller.member_id, request_data.approved, request_data.reason)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error resolving audit entry {entry_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to resolve audit approval.")


@router.get("/export", response_model=List[AuditEntryDB], summary="Export all matching entries. The export itself is audited and flagged for approval.")
async def export_audit_entries_api(
    filters: AuditSearchFilters = Depends(get_audit_filters),
    caller: CallerContext = Depends(require_reviewer),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    entries = await audit.export(filters)
    await audit.record(
        caller.member_id, AuditAction.EXPORT, "AUDIT_LOG", None,
        ExportDetail(filters=filters.model_dump(mode="json", exclude_none=True), exported_count=len(entries)),
        caller.ip_address, caller.user_agent,
    )
    return entries


@router.get("/stats", response_model=AuditStats)
async def audit_stats_api(
    date_from: Optional[datetime.datetime] = Query(None),
    date_to: Optional[datetime.datetime] = Query(None),
    caller: CallerContext = Depends(require_reviewer),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    return await audit.stats(date_from, date_to)


@router.get("/actors/{actor_id}/recent", response_model=List[AuditEntryDB], summary="Latest entries recorded for one actor.")
async def recent_actor_activity_api(
    actor_id: str,
    limit: int = Query(10, ge=1, le=100),
    caller: CallerContext = Depends(require_reviewer),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    return await audit.recent_for_actor(actor_id, limit=limit)
