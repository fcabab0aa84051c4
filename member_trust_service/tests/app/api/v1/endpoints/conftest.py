import pytest
from fastapi.testclient import TestClient

from member_trust_service.app.dependencies.workflows import (
    get_audit_overlay,
    get_consent_workflow,
    get_verification_workflow,
)
from member_trust_service.app.main import app
from member_trust_service.app.service.audit.overlay import AuditOverlay
from member_trust_service.app.service.consent.ledger import AccessLedger
from member_trust_service.app.service.consent.workflow import ConsentWorkflow
from member_trust_service.app.service.verification.workflow import VerificationWorkflow
from member_trust_service.infrastructure.member_directory import MongoContactDirectory


@pytest.fixture
def verification_workflow(mongo_db, object_store, account_client, clock):
    return VerificationWorkflow(mongo_db, object_store, account_client, clock=clock)


@pytest.fixture
def consent_workflow(mongo_db, notifier, clock):
    return ConsentWorkflow(
        mongo_db, MongoContactDirectory(mongo_db), notifier,
        ledger=AccessLedger(mongo_db), clock=clock, notification_timeout_seconds=0.5,
    )


@pytest.fixture
def audit_overlay(mongo_db, clock):
    return AuditOverlay(mongo_db, clock=clock)


@pytest.fixture
def client(verification_workflow, consent_workflow, audit_overlay):
    app.dependency_overrides = {
        get_verification_workflow: lambda: verification_workflow,
        get_consent_workflow: lambda: consent_workflow,
        get_audit_overlay: lambda: audit_overlay,
    }
    yield TestClient(app)
    app.dependency_overrides = {}


@pytest.fixture
def as_member():
    def _headers(member_id: str, role: str = "GENERAL_MEMBER"):
        return {"X-Member-Id": member_id, "X-Member-Role": role, "User-Agent": "pytest-client"}
    return _headers
