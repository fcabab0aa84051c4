# Entry point for the external timer (cron, systemd timer, orchestrator job). Cadence is the caller's concern.
import asyncio
import logging

from pydantic import BaseModel

from member_trust_service.app.models.audit_details import ExpirySweepDetail
from member_trust_service.app.models.audit_entry_db import AuditAction
from member_trust_service.app.observability import tracer
from member_trust_service.app.service.audit.overlay import AuditOverlay
from member_trust_service.app.service.consent.workflow import ConsentWorkflow
from member_trust_service.app.service.verification.workflow import VerificationWorkflow

logger = logging.getLogger(__name__)

EXPIRED_DATA_RESOURCE = "EXPIRED_DATA"


class SweepReport(BaseModel):
    expired_documents: int = 0
    expired_requests: int = 0


class ExpiryScheduler:
    def __init__(self, verification: VerificationWorkflow, consent: ConsentWorkflow, audit: AuditOverlay):
        self.verification = verification
        self.consent = consent
        self.audit = audit

    async def run_sweeps(self) -> SweepReport:
        """Runs both expiry sweeps once. A sweep that cannot run at all propagates its error."""
        with tracer.start_as_current_span("member_trust.run_sweeps") as span:
            expired_documents, expired_requests = await asyncio.gather(
                self.verification.sweep_expired(),
                self.consent.sweep_expired(),
            )
            report = SweepReport(expired_documents=expired_documents, expired_requests=expired_requests)
            span.set_attribute("sweep.expired_documents", expired_documents)
            span.set_attribute("sweep.expired_requests", expired_requests)

            if expired_documents or expired_requests:
                await self.audit.record(
                    actor_id=None,
                    action=AuditAction.DELETE,
                    resource_type=EXPIRED_DATA_RESOURCE,
                    detail=ExpirySweepDetail(expired_documents=expired_documents, expired_requests=expired_requests),
                    ip_address="system",
                    user_agent="scheduler",
                )
            logger.info(f"Expiry sweeps finished: {expired_documents} document(s) deleted, {expired_requests} request(s) expired.")
            return report
