# API Router for contact-access consent requests and disclosures
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field

from member_trust_service.app.api.errors import to_http_exception
from member_trust_service.app.dependencies.caller import CallerContext, get_caller_context
from member_trust_service.app.dependencies.workflows import get_audit_overlay, get_consent_workflow
from member_trust_service.app.models.audit_details import ContactResponseDetail
from member_trust_service.app.models.audit_entry_db import AuditAction
from member_trust_service.app.models.contact_access_db import (
    ConsentDecision,
    ContactAccessGrantDB,
    ContactAccessRequestDB,
    ContactType,
    DisclosedContact,
)
from member_trust_service.app.service.audit.overlay import AuditOverlay
from member_trust_service.app.service.consent.workflow import ConsentWorkflow
from member_trust_service.app.service.exceptions import BaseTrustServiceError

logger = logging.getLogger(__name__)
router = APIRouter()

REQUEST_RESOURCE = "CONTACT_ACCESS_REQUEST"
CONTACT_RESOURCE = "MEMBER_CONTACT"


class CreateContactAccessRequest(BaseModel):
    target_id: str
    contact_types: List[ContactType]
    reason: str = Field(..., min_length=1, max_length=500)


class RespondToContactAccessRequest(BaseModel):
    decision: ConsentDecision
    approved_contact_types: Optional[List[ContactType]] = None
    block_future_requests: bool = False


@router.post("/requests", response_model=ContactAccessRequestDB, status_code=201, summary="Ask another member to disclose contact details.")
async def create_contact_access_request_api(
    request_data: CreateContactAccessRequest = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    try:
        request = await workflow.create_request(caller.member_id, request_data.target_id, request_data.contact_types, request_data.reason)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error creating contact access request: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create contact access request.")

    await audit.record(
        caller.member_id, AuditAction.UPDATE, REQUEST_RESOURCE, request.id,
        {"target_id": request.target_id, "requested_contact_types": request.requested_contact_types},
        caller.ip_address, caller.user_agent,
    )
    return request


@router.get("/requests/received", response_model=List[ContactAccessRequestDB], summary="Pending requests awaiting the caller's answer.")
async def list_received_requests_api(
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
):
    return await workflow.list_received(caller.member_id)


@router.get("/requests/sent", response_model=List[ContactAccessRequestDB], summary="All requests the caller has sent.")
async def list_sent_requests_api(
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
):
    return await workflow.list_sent(caller.member_id)


@router.get("/requests/{request_id}", response_model=ContactAccessRequestDB)
async def get_contact_access_request_api(
    request_id: str,
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
):
    try:
        return await workflow.get_request(request_id, caller.member_id)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)


@router.post("/requests/{request_id}/respond", response_model=ContactAccessRequestDB, summary="Approve or reject a request addressed to the caller.")
async def respond_to_contact_access_request_api(
    request_id: str,
    request_data: RespondToContactAccessRequest = Body(...),
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    try:
        request = await workflow.respond(
            request_id,
            caller.member_id,
            request_data.decision,
            approved_contact_types=request_data.approved_contact_types,
            block_future=request_data.block_future_requests,
        )
    except BaseTrustServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error responding to contact access request {request_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to respond to contact access request.")

    approved = request_data.decision == ConsentDecision.APPROVE
    approved_types = request_data.approved_contact_types if request_data.approved_contact_types is not None else request.requested_contact_types
    await audit.record(
        caller.member_id,
        AuditAction.APPROVE if approved else AuditAction.REJECT,
        REQUEST_RESOURCE,
        request_id,
        ContactResponseDetail(
            request_id=request_id,
            decision=request_data.decision.value,
            approved_contact_types=[ContactType(t).value for t in approved_types] if approved else [],
            block_future_requests=request_data.block_future_requests,
        ),
        caller.ip_address,
        caller.user_agent,
    )
    return request


@router.post("/requests/{request_id}/cancel", response_model=ContactAccessRequestDB, summary="Withdraw a pending request the caller sent.")
async def cancel_contact_access_request_api(
    request_id: str,
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
):
    try:
        return await workflow.cancel(request_id, caller.member_id)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)


@router.get("/contacts/{subject_id}", response_model=DisclosedContact, response_model_exclude_none=True, summary="Contact fields the caller currently has approved access to.")
async def read_disclosed_contact_api(
    subject_id: str,
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
    audit: AuditOverlay = Depends(get_audit_overlay),
):
    try:
        contact = await workflow.read_disclosed_contact(caller.member_id, subject_id)
    except BaseTrustServiceError as e:
        raise to_http_exception(e)

    await audit.record(
        caller.member_id, AuditAction.VIEW, CONTACT_RESOURCE, subject_id,
        {"fields": sorted(contact.model_dump(exclude_none=True))},
        caller.ip_address, caller.user_agent,
    )
    return contact


@router.get("/grants/viewed", response_model=List[ContactAccessGrantDB], summary="Disclosures the caller has received.")
async def list_viewed_grants_api(
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
):
    return await workflow.ledger.list_for_viewer(caller.member_id)


@router.get("/grants/disclosed", response_model=List[ContactAccessGrantDB], summary="Disclosures of the caller's own contact details.")
async def list_disclosed_grants_api(
    caller: CallerContext = Depends(get_caller_context),
    workflow: ConsentWorkflow = Depends(get_consent_workflow),
):
    return await workflow.ledger.list_for_subject(caller.member_id)
