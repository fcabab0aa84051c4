# DI providers: one workflow per request, built over the shared db handle and HTTP client.
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from member_trust_service.app.service.audit.overlay import AuditOverlay
from member_trust_service.app.service.consent.workflow import ConsentWorkflow
from member_trust_service.app.service.interfaces.notifier import AbstractNotifier
from member_trust_service.app.service.interfaces.object_store import AbstractObjectStore
from member_trust_service.app.service.verification.workflow import VerificationWorkflow
from member_trust_service.infrastructure.database.connection import get_db
from member_trust_service.infrastructure.member_directory import MongoAccountClient, MongoContactDirectory
from member_trust_service.infrastructure.notification_client import get_notifier
from member_trust_service.infrastructure.object_store_client import get_object_store


def get_verification_workflow(
    db: AsyncIOMotorDatabase = Depends(get_db),
    object_store: AbstractObjectStore = Depends(get_object_store),
) -> VerificationWorkflow:
    return VerificationWorkflow(db, object_store, MongoAccountClient(db))


def get_consent_workflow(
    db: AsyncIOMotorDatabase = Depends(get_db),
    notifier: AbstractNotifier = Depends(get_notifier),
) -> ConsentWorkflow:
    return ConsentWorkflow(db, MongoContactDirectory(db), notifier)


def get_audit_overlay(db: AsyncIOMotorDatabase = Depends(get_db)) -> AuditOverlay:
    return AuditOverlay(db)
