# API Router for identity verification documents
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from member_trust_service.app.api.errors import to_http_exception
from member_trust_service.app.config import settings
from member_trust_service.app.dependencies.caller import CallerContext, get_caller_context, require_reviewer
from member_trust_service.app.dependencies.workflows import get_audit_overlay, get_verification_workflow
from member_trust_service.app.models.audit_details import DocumentReviewDetail, DocumentUploadDetail
from member_trust_service.app.models.audit_entry_db import AuditAction
from member_trust_service.app.models.verification_document_db import DocumentAccess, ReviewDecision, VerificationDocumentDB
from member_trust_service.app.service.audit.overlay import AuditOverlay
from member_trust_service.app.service.exceptions import BaseTrustServiceError
from member_trust_service.app.service.verification.workflow import VerificationWorkflow

logger = logging.getLogger(__name__)
router = APIRouter()

RESOURCE_TYPE = "VERIFICATION_DOCUMENT"


class ReviewRequest(BaseModel):
    decision: ReviewDecision
    notes: Optional[str] = Field(None, max_length=1000)


@router.post(
    "",
    response_model=VerificationDocumentDB,
    status_code=201,
    summary="Upload an identity document for review."
)
async def upload_verification_document_api(
    file: UploadFile = File(...),
    caller: CallerContext = Depends(get_caller_context),
    workflow: VerificationWorkflow = Depends(get_verification_workflow),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    # One byte past the limit is enough for the size check to reject it.
    file_bytes = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    try:
        document = await workflow.submit(caller.member_id, file_bytes, file.filename or "document", file.content_type or "")
    except BaseTrustServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error uploading verification document for {caller.member_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload verification document.")

    await audit.record(
        caller.member_id, AuditAction.UPLOAD, RESOURCE_TYPE, document.id,
        DocumentUploadDetail(document_id=document.id, mime_type=document.mime_type, size_bytes=document.size_bytes),
        caller.ip_address, caller.user_agent,
    )
    return document


@router.get("/pending", response_model=List[VerificationDocumentDB], summary="Reviewer queue, oldest upload first.")
async def list_pending_documents_api(
    caller: CallerContext = Depends(require_reviewer),
    workflow: VerificationWorkflow = Depends(get_verification_workflow),
):
    return await workflow.list_pending()


@router.get("/mine", response_model=List[VerificationDocumentDB], summary="The caller's own submissions, newest first.")
async def list_my_documents_api(
    caller: CallerContext = Depends(get_caller_context),
    workflow: VerificationWorkflow = Depends(get_verification_workflow),
):
    return await workflow.list_for_member(caller.member_id)


@router.get("/{document_id}", response_model=DocumentAccess, summary="Document metadata plus a short-lived read URL while under review.")
async def get_verification_document_api(
    document_id: str,
    caller: CallerContext = Depends(require_reviewer),
    workflow: VerificationWorkflow = Depends(get_verification_workflow),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    try:
        access = await workflow.fetch_for_review(document_id, requester_id=caller.member_id)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)

    await audit.record(
        caller.member_id, AuditAction.VIEW, RESOURCE_TYPE, document_id,
        {"signed_url_issued": access.signed_url is not None},
        caller.ip_address, caller.user_agent,
    )
    return access


@router.post("/{document_id}/review", response_model=VerificationDocumentDB, summary="Approve or reject a pending document.")
async def review_verification_document_api(
    document_id: str,
    request_data: ReviewRequest = Body(...),
    caller: CallerContext = Depends(require_reviewer),
    workflow: VerificationWorkflow = Depends(get_verification_workflow),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    try:
        document = await workflow.review(document_id, caller.member_id, request_data.decision, request_data.notes)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error reviewing document {document_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to review verification document.")

    action = AuditAction.APPROVE if request_data.decision == ReviewDecision.APPROVE else AuditAction.REJECT
    await audit.record(
        caller.member_id, action, RESOURCE_TYPE, document_id,
        DocumentReviewDetail(document_id=document_id, decision=request_data.decision.value, notes=request_data.notes),
        caller.ip_address, caller.user_agent,
    )
    return document
