"""
HTTP API tests against the in-memory backend.
"""

import pytest
from fastapi.testclient import TestClient

from clinicrecords.app import create_app
from clinicrecords.core.config import reset_settings

HEADERS = {"X-User-ID": "doc-1", "X-User-Name": "Dra. Ana Souza"}
BASE = "/clinics/clinic-a"


@pytest.fixture
def client(monkeypatch):
    """Test client with the lifespan running so the store is opened and closed."""
    monkeypatch.setenv("STORE_BACKEND", "memory")
    reset_settings()
    with TestClient(create_app()) as test_client:
        yield test_client
    reset_settings()


@pytest.fixture
def prescription_body():
    return {
        "professional": {"id": "doc-1", "name": "Dra. Ana Souza", "crm": "123456", "crm_state": "sp"},
        "prescription": {
            "patient_id": "patient-1",
            "patient_name": "Maria Silva",
            "medications": [
                {"name": "Morfina", "dosage": "10mg", "control_type": "A1"},
                {"name": "Dipirona", "dosage": "500mg"},
            ],
        },
    }


def _create_record(client, **fields):
    body = {"patient_id": "patient-1", "type": "soap", "subjective": "v1", **fields}
    response = client.post(f"{BASE}/records", json=body, headers=HEADERS)
    assert response.status_code == 201
    return response.json()["data"]


def test_missing_user_header_is_unauthorized(client):
    response = client.post(f"{BASE}/records", json={"patient_id": "p1", "type": "note"})

    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


def test_record_lifecycle(client):
    record = _create_record(client)
    assert record["version"] == 1
    assert record["type"] == "soap"
    record_id = record["id"]

    response = client.patch(
        f"{BASE}/records/{record_id}",
        params={"change_reason": "correction"},
        json={"subjective": "v2"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"record_id": record_id, "version": 2}

    fetched = client.get(f"{BASE}/records/{record_id}", headers=HEADERS).json()["data"]
    assert fetched["subjective"] == "v2"

    history = client.get(f"{BASE}/records/{record_id}/versions").json()["data"]
    assert [v["version"] for v in history] == [1]
    assert history[0]["change_reason"] == "correction"

    snapshot = client.get(f"{BASE}/records/{record_id}/versions/1").json()["data"]
    assert snapshot["data"]["subjective"] == "v1"

    restored = client.post(f"{BASE}/records/{record_id}/versions/1/restore", headers=HEADERS)
    assert restored.status_code == 200
    assert restored.json()["data"]["version"] == 3

    listed = client.get(f"{BASE}/records", params={"patient_id": "patient-1"}).json()["data"]
    assert [r["subjective"] for r in listed] == ["v1"]
    everything = client.get(f"{BASE}/records").json()["data"]
    assert [r["id"] for r in everything] == [record_id]

    deleted = client.delete(f"{BASE}/records/{record_id}", headers=HEADERS)
    assert deleted.status_code == 200
    assert client.get(f"{BASE}/records/{record_id}", headers=HEADERS).status_code == 404


def test_unknown_version_is_not_found(client):
    record = _create_record(client)

    response = client.get(f"{BASE}/records/{record['id']}/versions/9")

    assert response.status_code == 404
    assert response.json()["error"] == "VERSION_NOT_FOUND"


def test_empty_update_is_unprocessable(client):
    record = _create_record(client)

    response = client.patch(f"{BASE}/records/{record['id']}", json={}, headers=HEADERS)

    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_FAILED"


def test_invalid_body_is_rejected(client):
    response = client.post(
        f"{BASE}/records", json={"patient_id": "p1", "type": "hologram"}, headers=HEADERS
    )

    assert response.status_code == 422
    assert response.json()["error"] == "INVALID_INPUT"


def test_attachments_endpoints(client):
    record = _create_record(client, type="exam_request")

    added = client.post(
        f"{BASE}/records/{record['id']}/attachments",
        json={"url": "https://files.example/exame.pdf", "name": "exame.pdf", "size": 1024, "kind": "pdf"},
        headers=HEADERS,
    )
    assert added.status_code == 201
    attachment_id = added.json()["data"]["id"]

    removed = client.delete(
        f"{BASE}/records/{record['id']}/attachments/{attachment_id}", headers=HEADERS
    )
    assert removed.status_code == 200

    fetched = client.get(f"{BASE}/records/{record['id']}", headers=HEADERS).json()["data"]
    assert fetched["version"] == 3
    assert fetched["attachments"] == []


def test_export_and_data_request(client):
    _create_record(client)

    exported = client.get(f"{BASE}/patients/patient-1/records/export", headers=HEADERS)
    assert exported.status_code == 200
    assert len(exported.json()["data"]) == 1

    registered = client.post(
        f"{BASE}/patients/patient-1/data-requests",
        json={"request_type": "portability"},
        headers=HEADERS,
    )
    assert registered.status_code == 202
    assert registered.json()["data"]["audit_id"]


def test_prescription_workflow_endpoints(client, prescription_body):
    created = client.post(f"{BASE}/prescriptions", json=prescription_body, headers=HEADERS)
    assert created.status_code == 201
    prescription = created.json()["data"]
    assert prescription["type"] == "yellow"
    assert prescription["status"] == "draft"
    assert prescription["professional_crm_state"] == "SP"
    prescription_id = prescription["id"]

    signed = client.post(
        f"{BASE}/prescriptions/{prescription_id}/sign",
        json={"signed_by": "doc-1", "certificate_serial": "ICP-0001", "signature_hash": "abc"},
        headers=HEADERS,
    )
    assert signed.json()["data"]["status"] == "signed"

    sent = client.post(
        f"{BASE}/prescriptions/{prescription_id}/send", json={"method": "email"}, headers=HEADERS
    )
    assert sent.json()["data"]["status"] == "sent"

    code = prescription["validation_code"]
    validated = client.get(f"{BASE}/prescriptions/validate/{code}")
    assert validated.json()["data"]["id"] == prescription_id

    viewed = client.post(f"{BASE}/prescriptions/{prescription_id}/view")
    assert viewed.json()["data"]["status"] == "viewed"

    filled = client.post(
        f"{BASE}/prescriptions/{prescription_id}/fill", json={"pharmacy_name": "Drogaria Sul"}
    )
    assert filled.json()["data"]["status"] == "filled"

    logs = client.get(f"{BASE}/prescriptions/{prescription_id}/logs").json()["data"]
    assert [log["event_type"] for log in logs] == ["created", "signed", "sent", "viewed", "filled"]

    listed = client.get(f"{BASE}/prescriptions", params={"status": "filled"}).json()["data"]
    assert [p["id"] for p in listed] == [prescription_id]


def test_illegal_transition_is_conflict(client, prescription_body):
    prescription_id = client.post(
        f"{BASE}/prescriptions", json=prescription_body, headers=HEADERS
    ).json()["data"]["id"]

    response = client.post(
        f"{BASE}/prescriptions/{prescription_id}/send", json={"method": "sms"}, headers=HEADERS
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "INVALID_STATE"
    assert body["details"]["current_status"] == "draft"


def test_cancel_and_sweep(client, prescription_body):
    prescription_id = client.post(
        f"{BASE}/prescriptions", json=prescription_body, headers=HEADERS
    ).json()["data"]["id"]

    canceled = client.post(
        f"{BASE}/prescriptions/{prescription_id}/cancel",
        json={"reason": "patient changed mind"},
        headers=HEADERS,
    )
    assert canceled.json()["data"]["status"] == "canceled"

    sweep = client.post(f"{BASE}/prescriptions/expire-sweep")
    assert sweep.status_code == 200
    assert sweep.json()["data"] == {"clinic_id": "clinic-a", "expired": 0}


def test_unknown_prescription_is_not_found(client):
    response = client.get(f"{BASE}/prescriptions/missing")

    assert response.status_code == 404
    assert response.json()["error"] == "PRESCRIPTION_NOT_FOUND"


def test_request_id_header_is_echoed(client):
    response = client.get("/health/", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time" in response.headers
