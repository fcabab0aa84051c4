# Identity-document review pipeline: upload, review, time-limited access, retention purge.
import datetime
import logging
import uuid
from typing import Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry import trace
from pymongo.errors import DuplicateKeyError

from member_trust_service.app.config import settings
from member_trust_service.app.models.common import SideEffectOutcome, utc_now
from member_trust_service.app.models.verification_document_db import (
    OPEN_DOCUMENT_STATUSES,
    DocumentAccess,
    ReviewDecision,
    VerificationDocumentDB,
    VerificationDocumentStatus,
)
from member_trust_service.app.observability import sweep_items_counter
from member_trust_service.app.service.exceptions import (
    DocumentNotFoundError,
    DocumentNotPendingError,
    DuplicateSubmissionError,
    StorageFailure,
)
from member_trust_service.app.service.interfaces.account_client import AbstractAccountClient
from member_trust_service.app.service.interfaces.object_store import AbstractObjectStore
from member_trust_service.app.service.verification.file_validation import validate_upload
from member_trust_service.infrastructure.database import verification_document_store as document_store

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "verification-documents"
PURGE_CLAIM_LEASE = datetime.timedelta(minutes=15) # After this a claim from a crashed sweep can be taken over


class VerificationWorkflow:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        object_store: AbstractObjectStore,
        account_client: AbstractAccountClient,
        clock: Callable[[], datetime.datetime] = utc_now,
        max_upload_bytes: Optional[int] = None,
        retention_days: Optional[int] = None,
        signed_url_ttl_seconds: Optional[int] = None,
    ):
        self.db = db
        self.object_store = object_store
        self.account_client = account_client
        self.clock = clock
        self.max_upload_bytes = max_upload_bytes if max_upload_bytes is not None else settings.MAX_UPLOAD_BYTES
        self.retention_days = retention_days if retention_days is not None else settings.DOCUMENT_RETENTION_DAYS
        self.signed_url_ttl_seconds = signed_url_ttl_seconds if signed_url_ttl_seconds is not None else settings.SIGNED_URL_TTL_SECONDS

    async def submit(self, member_id: str, file_bytes: bytes, filename: str, mime_type: str) -> VerificationDocumentDB:
        current_span = trace.get_current_span()
        current_span.set_attribute("member.id", member_id)
        current_span.add_event("VerificationSubmitStarted", {"mime_type": mime_type or "", "size_bytes": len(file_bytes)})

        accepted = validate_upload(file_bytes, mime_type, self.max_upload_bytes)

        if await document_store.find_open_document_for_member(self.db, member_id):
            raise DuplicateSubmissionError(member_id)

        now = self.clock()
        storage_path = f"{STORAGE_PREFIX}/{member_id}/{uuid.uuid4()}.{accepted.extension}"
        metadata = {
            "original-filename": filename,
            "uploaded-by": member_id,
            "uploaded-at": now.isoformat(),
        }

        try:
            storage_ref = await self.object_store.put(file_bytes, storage_path, accepted.canonical_mime_type, metadata)
        except StorageFailure:
            logger.error(f"Object store rejected upload for member {member_id}.", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Unexpected error storing upload for member {member_id}: {e}", exc_info=True)
            raise StorageFailure() from e

        # The UPLOADED stage ends as soon as the bytes are stored; the record is created ready for review.
        document = VerificationDocumentDB(
            member_id=member_id,
            storage_ref=storage_ref,
            original_filename=filename,
            mime_type=accepted.canonical_mime_type,
            size_bytes=len(file_bytes),
            status=VerificationDocumentStatus.PENDING_REVIEW,
            uploaded_at=now,
        )
        try:
            await document_store.insert_document(self.db, document)
        except DuplicateKeyError as e:
            # A concurrent submission for the same member won the unique open-document index.
            await self._discard_object(storage_ref)
            raise DuplicateSubmissionError(member_id) from e
        except Exception:
            logger.error(f"Failed to record verification document for member {member_id}; removing stored object.", exc_info=True)
            await self._discard_object(storage_ref)
            raise

        current_span.add_event("VerificationSubmitFinished", {"document.id": document.id})
        return document

    async def _discard_object(self, storage_ref: str):
        try:
            await self.object_store.delete(storage_ref)
        except Exception as e:
            logger.error(f"Could not remove orphaned object {storage_ref}: {e}", exc_info=True)

    async def review(
        self,
        document_id: str,
        reviewer_id: str,
        decision: ReviewDecision,
        notes: Optional[str] = None,
    ) -> VerificationDocumentDB:
        current_span = trace.get_current_span()
        current_span.set_attribute("document.id", document_id)
        current_span.add_event("VerificationReviewStarted", {"decision": ReviewDecision(decision).value})

        document = await document_store.get_document_by_id(self.db, document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        if document.status != VerificationDocumentStatus.PENDING_REVIEW:
            raise DocumentNotPendingError(document_id, document.status)

        now = self.clock()
        review_fields = {
            "reviewed_at": now,
            "reviewed_by": reviewer_id,
            "reviewer_notes": notes,
        }
        if decision == ReviewDecision.APPROVE:
            new_status = VerificationDocumentStatus.APPROVED
            review_fields["expires_at"] = now + datetime.timedelta(days=self.retention_days)
        else:
            new_status = VerificationDocumentStatus.REJECTED

        reviewed = await document_store.transition_document_status(
            self.db, document_id, VerificationDocumentStatus.PENDING_REVIEW, new_status, review_fields
        )
        if reviewed is None:
            # Another reviewer decided between our read and our write.
            raise DocumentNotPendingError(document_id)

        if new_status == VerificationDocumentStatus.APPROVED:
            reviewed.activation = await self._activate_member(reviewed.member_id)

        current_span.add_event("VerificationReviewFinished", {"document.id": document_id, "status": reviewed.status})
        return reviewed

    async def _activate_member(self, member_id: str) -> SideEffectOutcome:
        try:
            await self.account_client.activate(member_id)
            return SideEffectOutcome.ok("account_activation")
        except Exception as e:
            logger.error(f"Account activation failed for member {member_id} after document approval: {e}", exc_info=True)
            return SideEffectOutcome.failed("account_activation", str(e))

    async def fetch_for_review(self, document_id: str, requester_id: Optional[str] = None) -> DocumentAccess:
        document = await document_store.get_document_by_id(self.db, document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)

        if document.status not in [status.value for status in OPEN_DOCUMENT_STATUSES]:
            logger.info(f"Document {document_id} is {document.status}; returning metadata only to {requester_id}.")
            return DocumentAccess(document=document)

        signed_url = await self.object_store.signed_url(document.storage_ref, self.signed_url_ttl_seconds)
        url_expires_at = self.clock() + datetime.timedelta(seconds=self.signed_url_ttl_seconds)
        logger.info(f"Issued {self.signed_url_ttl_seconds}s read URL for document {document_id} to {requester_id}.")
        return DocumentAccess(document=document, signed_url=signed_url, url_expires_at=url_expires_at)

    async def list_pending(self) -> List[VerificationDocumentDB]:
        return await document_store.list_documents(self.db, statuses=[VerificationDocumentStatus.PENDING_REVIEW])

    async def list_for_member(self, member_id: str) -> List[VerificationDocumentDB]:
        return await document_store.list_documents(self.db, member_id=member_id, newest_first=True)

    async def sweep_expired(self) -> int:
        """
        Purges approved documents whose retention window has ended.

        A sweep claims each document before touching its stored object, so
        overlapping sweeps never delete the same object twice. A failed delete
        releases the claim and the purge stays pending for the next run. The
        return value counts documents actually moved to DELETED.
        """
        now = self.clock()
        candidates = await document_store.list_approved_documents_expired_before(self.db, now)
        logger.info(f"Document expiry sweep found {len(candidates)} candidate(s).")

        deleted_count = 0
        for document in candidates:
            try:
                claimed = await document_store.claim_document_for_purge(
                    self.db, document.id, now, stale_before=now - PURGE_CLAIM_LEASE
                )
            except Exception as e:
                logger.error(f"Expiry sweep could not claim document {document.id}: {e}", exc_info=True)
                sweep_items_counter.add(1, {"sweep": "verification_documents", "outcome": "failed"})
                continue
            if claimed is None:
                continue

            try:
                await self.object_store.delete(claimed.storage_ref)
            except Exception as e:
                logger.error(f"Expiry sweep could not delete the stored object of document {document.id}; purge pending: {e}", exc_info=True)
                sweep_items_counter.add(1, {"sweep": "verification_documents", "outcome": "failed"})
                await self._release_claim(document.id)
                continue

            try:
                updated = await document_store.transition_document_status(
                    self.db, document.id, VerificationDocumentStatus.APPROVED, VerificationDocumentStatus.DELETED
                )
            except Exception as e:
                # The claim is kept; once it goes stale a later sweep repeats the delete and finishes the transition.
                logger.error(f"Expiry sweep deleted the object of document {document.id} but could not mark it DELETED: {e}", exc_info=True)
                sweep_items_counter.add(1, {"sweep": "verification_documents", "outcome": "failed"})
                continue

            if updated is None:
                logger.warning(f"Document {document.id} left APPROVED while its purge was claimed.")
                continue
            deleted_count += 1
            sweep_items_counter.add(1, {"sweep": "verification_documents", "outcome": "deleted"})

        trace.get_current_span().add_event("DocumentExpirySweepFinished", {"deleted.count": deleted_count})
        return deleted_count

    async def _release_claim(self, document_id: str):
        try:
            await document_store.release_purge_claim(self.db, document_id)
        except Exception as e:
            logger.error(f"Could not release purge claim on document {document_id}; it is retried once the claim goes stale: {e}", exc_info=True)
