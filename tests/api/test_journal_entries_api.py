"""
API tests - journal entry endpoints through FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from ledgerbook.api.dependencies import get_session_factory
from ledgerbook.main import app

ACCOUNTANT = {"X-User-Id": "u-acct", "X-Username": "accountant", "X-User-Role": "Accountant"}
MANAGER = {
    "X-User-Id": "u-manager",
    "X-Username": "manager",
    "X-User-Name": "Morgan Manager",
    "X-User-Role": "Manager",
}


@pytest.fixture
def client(session_factory, accounts):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def payload(accounts):
    def _make(debit="100.00", credit="100.00", status="draft"):
        return {
            "entry_date": "2024-03-01",
            "description": "Consulting fee received",
            "status": status,
            "lines": [
                {"account_id": str(accounts["cash"].id), "debit": debit},
                {"account_id": str(accounts["revenue"].id), "credit": credit},
            ],
        }

    return _make


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_identity_headers_required(client, payload):
    response = client.post("/api/v1/journal-entries", json=payload())
    assert response.status_code == 401


def test_unknown_role_is_rejected(client, payload):
    headers = dict(ACCOUNTANT, **{"X-User-Role": "Auditor"})
    response = client.post("/api/v1/journal-entries", json=payload(), headers=headers)
    assert response.status_code == 401


def test_create_draft(client, payload):
    response = client.post("/api/v1/journal-entries", json=payload(), headers=ACCOUNTANT)

    assert response.status_code == 201
    body = response.json()
    assert body["entry"]["status"] == "draft"
    assert body["entry"]["entry_number"] == 1
    assert body["entry"]["line_items"][0]["account_name"] == "Cash"
    assert body["downgraded"] is False


def test_validation_errors_are_field_tagged(client, payload):
    body = payload(credit="90.00")
    body["entry_date"] = None
    response = client.post("/api/v1/journal-entries", json=body, headers=ACCOUNTANT)

    assert response.status_code == 400
    errors = response.json()["errors"]
    assert response.json()["code"] == "VALIDATION_FAILED"
    assert {error["kind"] for error in errors} == {"MissingDate"}
    assert errors[0]["field"] == "entry_date"


def test_unbalanced_entry(client, payload):
    response = client.post(
        "/api/v1/journal-entries", json=payload(credit="90.00"), headers=ACCOUNTANT
    )
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["kind"] == "Unbalanced"
    assert "$10.00" in error["message"]


def test_accountant_direct_post_downgraded(client, payload):
    response = client.post(
        "/api/v1/journal-entries", json=payload(status="posted"), headers=ACCOUNTANT
    )
    body = response.json()
    assert response.status_code == 201
    assert body["downgraded"] is True
    assert body["entry"]["status"] == "pending_approval"
    assert "submitted for approval" in body["message"]


def test_full_approval_flow(client, payload, accounts):
    entry = client.post(
        "/api/v1/journal-entries", json=payload(status="pending_approval"), headers=ACCOUNTANT
    ).json()["entry"]

    denied = client.post(f"/api/v1/journal-entries/{entry['id']}/approve", headers=ACCOUNTANT)
    assert denied.status_code == 403
    assert denied.json()["code"] == "UNAUTHORIZED_TRANSITION"

    approved = client.post(f"/api/v1/journal-entries/{entry['id']}/approve", headers=MANAGER)
    assert approved.json()["entry"]["approved_by_name"] == "Morgan Manager"

    posted = client.post(f"/api/v1/journal-entries/{entry['id']}/post", headers=MANAGER)
    assert posted.status_code == 200
    assert len(posted.json()["transactions"]) == 2

    ledger = client.get(
        f"/api/v1/accounts/{accounts['cash'].id}/ledger", headers=ACCOUNTANT
    ).json()
    assert ledger["account"]["balance"] == "150.00"
    assert [row["balance"] for row in ledger["transactions"]] == ["150.00"]

    again = client.post(f"/api/v1/journal-entries/{entry['id']}/post", headers=MANAGER)
    assert again.status_code == 409
    assert again.json()["code"] == "ILLEGAL_TRANSITION"


def test_reject_without_reason(client, payload):
    entry = client.post(
        "/api/v1/journal-entries", json=payload(status="pending_approval"), headers=ACCOUNTANT
    ).json()["entry"]
    response = client.post(
        f"/api/v1/journal-entries/{entry['id']}/reject", json={"reason": ""}, headers=MANAGER
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["kind"] == "MissingRejectionReason"


def test_delete_draft(client, payload):
    entry = client.post(
        "/api/v1/journal-entries", json=payload(), headers=ACCOUNTANT
    ).json()["entry"]

    assert client.delete(f"/api/v1/journal-entries/{entry['id']}", headers=ACCOUNTANT).status_code == 204
    missing = client.get(f"/api/v1/journal-entries/{entry['id']}", headers=ACCOUNTANT)
    assert missing.status_code == 404


def test_list_filters_by_status(client, payload):
    client.post("/api/v1/journal-entries", json=payload(), headers=ACCOUNTANT)
    client.post(
        "/api/v1/journal-entries", json=payload(status="pending_approval"), headers=ACCOUNTANT
    )

    response = client.get(
        "/api/v1/journal-entries", params={"status": "pending_approval"}, headers=ACCOUNTANT
    )
    assert [entry["entry_number"] for entry in response.json()] == [2]


def test_accounts_listing(client):
    response = client.get("/api/v1/accounts", params={"active": True}, headers=ACCOUNTANT)
    numbers = [account["number"] for account in response.json()]
    assert numbers == ["101", "401", "510"]


def test_audit_failure_surfaces_as_retry(client, payload, monkeypatch):
    from ledgerbook.domain.exceptions import AuditRecordError
    from ledgerbook.infrastructure.repositories import SqlAuditRecorder

    def fail(*args, **kwargs):
        raise AuditRecordError("event log unavailable")

    monkeypatch.setattr(SqlAuditRecorder, "record", fail)
    response = client.post("/api/v1/journal-entries", json=payload(), headers=ACCOUNTANT)

    assert response.status_code == 503
    assert response.json()["detail"] == "The operation did not complete. Please try again."
    assert client.get("/api/v1/journal-entries", headers=ACCOUNTANT).json() == []


def test_validate_without_saving(client, payload):
    response = client.post(
        "/api/v1/journal-entries/validate", json=payload(), headers=ACCOUNTANT
    )
    assert response.status_code == 200
    assert response.json()["total_amount"] == "100.00"
    assert client.get("/api/v1/journal-entries", headers=ACCOUNTANT).json() == []


def test_approved_entry_cannot_be_replaced_through_put(client, payload, accounts):
    entry = client.post(
        "/api/v1/journal-entries", json=payload(status="pending_approval"), headers=ACCOUNTANT
    ).json()["entry"]
    client.post(f"/api/v1/journal-entries/{entry['id']}/approve", headers=MANAGER)

    response = client.put(
        f"/api/v1/journal-entries/{entry['id']}",
        json=payload(debit="999.00", credit="999.00", status="posted"),
        headers=MANAGER,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "ILLEGAL_TRANSITION"

    stored = client.get(f"/api/v1/journal-entries/{entry['id']}", headers=MANAGER).json()
    assert stored["status"] == "approved"
    assert stored["total_amount"] == "100.00"


def test_oversized_amount_is_reported_not_crashing(client, payload):
    response = client.post(
        "/api/v1/journal-entries", json=payload(debit="1e30", credit="1e30"), headers=ACCOUNTANT
    )
    assert response.status_code == 400
    assert {error["kind"] for error in response.json()["errors"]} == {"InvalidAmount"}
