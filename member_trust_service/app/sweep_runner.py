# One expiry-sweep pass, for an external timer: `member-trust-sweep` or `python -m member_trust_service.app.sweep_runner`
import asyncio
import logging
import sys

import httpx

from member_trust_service.app.config import settings
from member_trust_service.app.observability import setup_opentelemetry

setup_opentelemetry(service_name=settings.SERVICE_NAME_SCHEDULER)

from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from member_trust_service.app.service.audit.overlay import AuditOverlay
from member_trust_service.app.service.consent.workflow import ConsentWorkflow
from member_trust_service.app.service.scheduler import ExpiryScheduler, SweepReport
from member_trust_service.app.service.verification.workflow import VerificationWorkflow
from member_trust_service.infrastructure.database import connection
from member_trust_service.infrastructure.member_directory import MongoAccountClient, MongoContactDirectory
from member_trust_service.infrastructure.notification_client import HttpNotifier
from member_trust_service.infrastructure.object_store_client import HttpObjectStoreClient

logger = logging.getLogger(__name__)


async def run_once() -> SweepReport:
    await connection.connect_to_mongo()
    db = connection.db
    async with httpx.AsyncClient(timeout=settings.DEFAULT_HTTP_TIMEOUT) as http_client:
        HTTPXClientInstrumentor().instrument()
        scheduler = ExpiryScheduler(
            verification=VerificationWorkflow(db, HttpObjectStoreClient(http_client), MongoAccountClient(db)),
            consent=ConsentWorkflow(db, MongoContactDirectory(db), HttpNotifier(http_client)),
            audit=AuditOverlay(db),
        )
        try:
            return await scheduler.run_sweeps()
        finally:
            connection.close_mongo_connection()


def main():
    logger.info("Starting expiry sweep run...")
    try:
        report = asyncio.run(run_once())
    except Exception as e:
        logger.critical(f"Expiry sweep run failed: {e}", exc_info=True)
        sys.exit(1)
    logger.info(f"Expiry sweep run complete: {report.model_dump()}")


if __name__ == "__main__":
    main()
