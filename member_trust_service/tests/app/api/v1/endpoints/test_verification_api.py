import pytest
from unittest.mock import AsyncMock, patch

PDF_BYTES = b"%PDF-1.4\n" + b"0" * 2048


def upload(client, headers, data=PDF_BYTES, filename="passport.pdf", content_type="application/pdf"):
    return client.post(
        "/api/v1/verification-documents",
        files={"file": (filename, data, content_type)},
        headers=headers,
    )


def test_upload_creates_pending_document_and_audits(client, as_member, mongo_db):
    response = upload(client, as_member("alice"))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING_REVIEW"
    assert body["member_id"] == "alice"

    entry = mongo_db.sync["audit_entries"].find_one({"action": "UPLOAD"})
    assert entry["actor_id"] == "alice"
    assert entry["resource_id"] == body["id"]
    assert entry["user_agent"] == "pytest-client"


def test_upload_requires_caller_identity(client):
    response = upload(client, {})

    assert response.status_code == 401


def test_upload_rejects_unsupported_type(client, as_member):
    response = upload(client, as_member("alice"), data=b"GIF89a", filename="me.gif", content_type="image/gif")

    assert response.status_code == 400
    assert response.json() == {"detail": "Unsupported file type. Only JPEG, PNG, and PDF are allowed."}


def test_upload_rejects_oversized_file(client, as_member):
    response = upload(client, as_member("alice"), data=b"%PDF" + b"0" * (6 * 1024 * 1024))

    assert response.status_code == 400
    assert response.json()["detail"] == "File size exceeds the maximum limit of 5MB."


def test_second_upload_while_pending_conflicts(client, as_member):
    upload(client, as_member("alice"))

    response = upload(client, as_member("alice"))

    assert response.status_code == 409


def test_upload_storage_outage_is_service_unavailable(client, as_member, object_store):
    object_store.fail_put = True

    response = upload(client, as_member("alice"))

    assert response.status_code == 503


def test_upload_unexpected_failure_is_generic_500(client, as_member, verification_workflow):
    with patch.object(verification_workflow, "submit", AsyncMock(side_effect=RuntimeError("boom"))):
        response = upload(client, as_member("alice"))

    assert response.status_code == 500
    assert "boom" not in response.text


def test_pending_queue_is_reviewer_only(client, as_member):
    upload(client, as_member("alice"))

    assert client.get("/api/v1/verification-documents/pending", headers=as_member("bob")).status_code == 403

    response = client.get("/api/v1/verification-documents/pending", headers=as_member("officer-1", "OFFICER"))
    assert response.status_code == 200
    assert [d["member_id"] for d in response.json()] == ["alice"]


def test_mine_lists_only_callers_documents(client, as_member):
    upload(client, as_member("alice"))
    upload(client, as_member("bob"))

    response = client.get("/api/v1/verification-documents/mine", headers=as_member("alice"))

    assert [d["member_id"] for d in response.json()] == ["alice"]


def test_reviewer_fetch_returns_signed_url_and_audits_view(client, as_member, mongo_db):
    document_id = upload(client, as_member("alice")).json()["id"]

    response = client.get(f"/api/v1/verification-documents/{document_id}", headers=as_member("officer-1", "OFFICER"))

    assert response.status_code == 200
    assert response.json()["signed_url"].endswith("?expires_in=300")
    assert mongo_db.sync["audit_entries"].count_documents({"action": "VIEW", "resource_id": document_id}) == 1


def test_fetch_unknown_document(client, as_member):
    response = client.get("/api/v1/verification-documents/missing", headers=as_member("admin", "SYSTEM_ADMIN"))

    assert response.status_code == 404
    assert response.json() == {"detail": "Verification document not found."}


def test_review_approve_activates_and_audits(client, as_member, account_client, mongo_db):
    document_id = upload(client, as_member("alice")).json()["id"]

    response = client.post(
        f"/api/v1/verification-documents/{document_id}/review",
        json={"decision": "APPROVE", "notes": "Matches graduation records"},
        headers=as_member("officer-1", "OFFICER"),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"
    assert response.json()["expires_at"] is not None
    assert account_client.activated == ["alice"]
    entry = mongo_db.sync["audit_entries"].find_one({"action": "APPROVE"})
    assert entry["detail"]["decision"] == "APPROVE"
    assert entry["detail"]["notes"] == "Matches graduation records"


def test_review_by_general_member_is_forbidden(client, as_member):
    document_id = upload(client, as_member("alice")).json()["id"]

    response = client.post(
        f"/api/v1/verification-documents/{document_id}/review",
        json={"decision": "APPROVE"},
        headers=as_member("alice"),
    )

    assert response.status_code == 403


def test_second_review_conflicts(client, as_member):
    document_id = upload(client, as_member("alice")).json()["id"]
    reviewer = as_member("officer-1", "OFFICER")
    client.post(f"/api/v1/verification-documents/{document_id}/review", json={"decision": "REJECT"}, headers=reviewer)

    response = client.post(f"/api/v1/verification-documents/{document_id}/review", json={"decision": "APPROVE"}, headers=reviewer)

    assert response.status_code == 409
    assert response.json() == {"detail": "Document is not in pending review status."}


@pytest.mark.parametrize("payload", [{"decision": "MAYBE"}, {}])
def test_review_payload_validation(client, as_member, payload):
    response = client.post("/api/v1/verification-documents/any/review", json=payload, headers=as_member("officer-1", "OFFICER"))

    assert response.status_code == 422
