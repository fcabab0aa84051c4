# Member-to-member contact disclosure: requests, consent, blocking, expiry.
import asyncio
import datetime
import logging
from typing import Callable, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry import trace
from pymongo.errors import DuplicateKeyError

from member_trust_service.app.config import settings
from member_trust_service.app.models.common import SideEffectOutcome, utc_now
from member_trust_service.app.models.contact_access_db import (
    ConsentDecision,
    ContactAccessRequestDB,
    ContactAccessStatus,
    ContactType,
    DisclosedContact,
)
from member_trust_service.app.observability import suppressed_notifications_counter, sweep_items_counter
from member_trust_service.app.service.consent.ledger import AccessLedger
from member_trust_service.app.service.exceptions import (
    AlreadyResolvedError,
    BlockedError,
    DuplicatePendingError,
    ForbiddenError,
    NoApprovedAccessError,
    RequestNotFoundError,
    SelfRequestError,
    TargetNotFoundError,
    ValidationError,
)
from member_trust_service.app.service.interfaces.contact_directory import AbstractContactDirectory
from member_trust_service.app.service.interfaces.notifier import CONTACT_ACCESS_REQUESTED, AbstractNotifier
from member_trust_service.infrastructure.database import contact_access_request_store as request_store

logger = logging.getLogger(__name__)

# Which MemberContact attribute each grantable field discloses.
CONTACT_FIELD_ATTRIBUTES = {
    ContactType.EMAIL: "email",
    ContactType.PHONE: "phone_number",
    ContactType.ADDRESS: "address",
}


def normalize_contact_types(contact_types: Optional[Iterable]) -> List[ContactType]:
    """Parses and de-duplicates requested fields, keeping first-seen order."""
    normalized: List[ContactType] = []
    for raw in contact_types or []:
        try:
            contact_type = ContactType(raw)
        except ValueError:
            raise ValidationError(f"Unknown contact type: {raw}.")
        if contact_type not in normalized:
            normalized.append(contact_type)
    return normalized


class ConsentWorkflow:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        directory: AbstractContactDirectory,
        notifier: AbstractNotifier,
        ledger: Optional[AccessLedger] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
        request_expiry_days: Optional[int] = None,
        notification_timeout_seconds: Optional[float] = None,
    ):
        self.db = db
        self.directory = directory
        self.notifier = notifier
        self.ledger = ledger or AccessLedger(db)
        self.clock = clock
        self.request_expiry_days = request_expiry_days if request_expiry_days is not None else settings.CONTACT_REQUEST_EXPIRY_DAYS
        self.notification_timeout_seconds = (
            notification_timeout_seconds if notification_timeout_seconds is not None else settings.NOTIFICATION_TIMEOUT_SECONDS
        )

    async def create_request(
        self,
        requester_id: str,
        target_id: str,
        contact_types: Iterable,
        reason: str,
    ) -> ContactAccessRequestDB:
        current_span = trace.get_current_span()
        current_span.add_event("ContactAccessRequestStarted", {"requester.id": requester_id, "target.id": target_id})

        if requester_id == target_id:
            raise SelfRequestError()
        requested_types = normalize_contact_types(contact_types)
        if not requested_types:
            raise ValidationError("Select at least one type of contact information to request.")

        if await self.directory.get_member(target_id) is None:
            raise TargetNotFoundError(target_id)
        if await request_store.has_blocking_request(self.db, requester_id, target_id):
            raise BlockedError(requester_id, target_id)
        if await request_store.find_pending_request(self.db, requester_id, target_id):
            raise DuplicatePendingError(requester_id, target_id)

        now = self.clock()
        request = ContactAccessRequestDB(
            requester_id=requester_id,
            target_id=target_id,
            requested_contact_types=requested_types,
            reason=reason,
            created_at=now,
            expires_at=now + datetime.timedelta(days=self.request_expiry_days),
        )
        try:
            await request_store.insert_request(self.db, request)
        except DuplicateKeyError as e:
            raise DuplicatePendingError(requester_id, target_id) from e

        request.notification = await self._notify_target(request)
        if request.notification.succeeded:
            request.target_notified_at = self.clock()
            try:
                await request_store.mark_target_notified(self.db, request.id, request.target_notified_at)
            except Exception as e:
                logger.warning(f"Notification for request {request.id} was sent but could not be recorded: {e}")

        current_span.add_event("ContactAccessRequestCreated", {"request.id": request.id})
        return request

    async def _notify_target(self, request: ContactAccessRequestDB) -> SideEffectOutcome:
        payload = {
            "request_id": request.id,
            "requester_id": request.requester_id,
            "requested_contact_types": list(request.requested_contact_types),
            "reason": request.reason,
            "review_url": f"{settings.FRONTEND_URL}/contact-requests",
        }
        try:
            requester = await self.directory.get_member(request.requester_id)
            if requester and requester.display_name:
                payload["requester_name"] = requester.display_name
            delivered = await asyncio.wait_for(
                self.notifier.notify(request.target_id, CONTACT_ACCESS_REQUESTED, payload),
                timeout=self.notification_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Notification for contact request {request.id} timed out after {self.notification_timeout_seconds}s; request kept.")
            suppressed_notifications_counter.add(1, {"template": CONTACT_ACCESS_REQUESTED, "reason": "timeout"})
            return SideEffectOutcome.failed("target_notification", "timeout")
        except Exception as e:
            logger.error(f"Notification for contact request {request.id} failed; request kept: {e}", exc_info=True)
            suppressed_notifications_counter.add(1, {"template": CONTACT_ACCESS_REQUESTED, "reason": "error"})
            return SideEffectOutcome.failed("target_notification", str(e))

        if not delivered:
            logger.info(f"Notification for contact request {request.id} was skipped by the notifier.")
            return SideEffectOutcome.skip("target_notification")
        return SideEffectOutcome.ok("target_notification")

    async def respond(
        self,
        request_id: str,
        target_id: str,
        decision: ConsentDecision,
        approved_contact_types: Optional[Iterable] = None,
        block_future: bool = False,
    ) -> ContactAccessRequestDB:
        current_span = trace.get_current_span()
        current_span.add_event("ContactAccessResponseStarted", {"request.id": request_id, "decision": ConsentDecision(decision).value})

        request = await request_store.get_request_by_id(self.db, request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        if request.target_id != target_id:
            raise ForbiddenError("You are not authorized to respond to this request.")
        if request.status != ContactAccessStatus.PENDING:
            raise AlreadyResolvedError(request_id, request.status)

        response_fields = {
            "responded_at": self.clock(),
            "block_future_requests": bool(block_future),
        }

        if decision == ConsentDecision.APPROVE:
            requested = [ContactType(t) for t in request.requested_contact_types]
            if approved_contact_types is None:
                approved = requested
            else:
                approved = normalize_contact_types(approved_contact_types)
            if not approved:
                raise ValidationError("Select at least one type of contact information to share.")
            if any(contact_type not in requested for contact_type in approved):
                raise ValidationError("Only requested contact information can be shared.")

            # Grants first: a crash here leaves the request PENDING and the retry is idempotent.
            for contact_type in approved:
                await self.ledger.record_grant(
                    viewer_id=request.requester_id,
                    subject_id=request.target_id,
                    contact_type=contact_type,
                    request_id=request.id,
                    granted_by=target_id,
                    granted_at=response_fields["responded_at"],
                )
            response_fields["approved_contact_types"] = [contact_type.value for contact_type in approved]
            new_status = ContactAccessStatus.APPROVED
        else:
            new_status = ContactAccessStatus.REJECTED

        responded = await request_store.transition_request_status(
            self.db, request_id, ContactAccessStatus.PENDING, new_status, response_fields
        )
        if responded is None:
            await self._discard_unapproved_grants(request_id, new_status)
            raise AlreadyResolvedError(request_id)

        current_span.add_event("ContactAccessResponseFinished", {"request.id": request_id, "status": responded.status})
        return responded

    async def _discard_unapproved_grants(self, request_id: str, attempted_status: ContactAccessStatus):
        if attempted_status != ContactAccessStatus.APPROVED:
            return
        # Our grants lost the race; only what the winning response approved may remain.
        latest = await request_store.get_request_by_id(self.db, request_id)
        keep_contact_types = []
        if latest is not None and latest.status == ContactAccessStatus.APPROVED:
            keep_contact_types = latest.approved_contact_types or []
        await self.ledger.discard_for_request(request_id, keep_contact_types)

    async def cancel(self, request_id: str, requester_id: str) -> ContactAccessRequestDB:
        request = await request_store.get_request_by_id(self.db, request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        if request.requester_id != requester_id:
            raise ForbiddenError("You are not authorized to cancel this request.")
        if request.status != ContactAccessStatus.PENDING:
            raise AlreadyResolvedError(request_id, request.status)

        cancelled = await request_store.transition_request_status(
            self.db, request_id, ContactAccessStatus.PENDING, ContactAccessStatus.CANCELLED,
            {"responded_at": self.clock()},
        )
        if cancelled is None:
            raise AlreadyResolvedError(request_id)
        return cancelled

    async def get_request(self, request_id: str, member_id: str) -> ContactAccessRequestDB:
        request = await request_store.get_request_by_id(self.db, request_id)
        # Outsiders get the same answer as for a missing request.
        if request is None or member_id not in (request.requester_id, request.target_id):
            raise RequestNotFoundError(request_id)
        return request

    async def list_received(self, member_id: str) -> List[ContactAccessRequestDB]:
        return await request_store.list_pending_received(self.db, member_id, self.clock())

    async def list_sent(self, member_id: str) -> List[ContactAccessRequestDB]:
        return await request_store.list_sent(self.db, member_id)

    async def read_disclosed_contact(self, viewer_id: str, subject_id: str) -> DisclosedContact:
        granted = await self.ledger.granted_fields(viewer_id, subject_id, self.clock())
        if not granted:
            raise NoApprovedAccessError(viewer_id, subject_id)

        subject = await self.directory.get_member(subject_id)
        if subject is None:
            raise TargetNotFoundError(subject_id)

        disclosed = {}
        for contact_type in granted:
            attribute = CONTACT_FIELD_ATTRIBUTES[contact_type]
            value = getattr(subject, attribute)
            if value:
                disclosed[attribute] = value
        logger.info(f"Disclosed {sorted(disclosed)} of member {subject_id} to {viewer_id}.")
        return DisclosedContact(**disclosed)

    async def sweep_expired(self) -> int:
        now = self.clock()
        candidates = await request_store.list_pending_expired_before(self.db, now)
        logger.info(f"Contact request expiry sweep found {len(candidates)} candidate(s).")

        expired_count = 0
        for request in candidates:
            try:
                updated = await request_store.transition_request_status(
                    self.db, request.id, ContactAccessStatus.PENDING, ContactAccessStatus.EXPIRED
                )
            except Exception as e:
                logger.error(f"Expiry sweep could not expire request {request.id}: {e}", exc_info=True)
                sweep_items_counter.add(1, {"sweep": "contact_access_requests", "outcome": "failed"})
                continue
            if updated is None:
                continue
            expired_count += 1
            sweep_items_counter.add(1, {"sweep": "contact_access_requests", "outcome": "expired"})

        trace.get_current_span().add_event("ContactRequestExpirySweepFinished", {"expired.count": expired_count})
        return expired_count
