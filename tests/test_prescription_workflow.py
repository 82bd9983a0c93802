"""
Prescription lifecycle: creation rules, guarded transitions and workflow logs.
"""

from datetime import timedelta

import pytest

from clinicrecords.application.collections import prescriptions_path
from clinicrecords.domain.entities.prescription import ALLOWED_TRANSITIONS, VIEW_NOOP_STATUSES
from clinicrecords.domain.enums.prescription import PrescriptionStatus, PrescriptionType
from clinicrecords.domain.errors import (
    InvalidStateError,
    PrescriptionNotFoundError,
    ValidationFailedError,
)
from clinicrecords.domain.prescription_rules import VALIDATION_CODE_ALPHABET

from conftest import CLINIC_ID


@pytest.mark.asyncio
async def test_create_draft_derives_common_type(engine, doctor, professional, prescription_data, clock):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    assert prescription.status == PrescriptionStatus.DRAFT
    assert prescription.type == PrescriptionType.COMMON
    assert prescription.validity_days == 60
    assert prescription.prescribed_at == clock.current
    assert prescription.expires_at == clock.current + timedelta(days=60)
    assert prescription.professional_crm_state == "SP"
    assert len(prescription.validation_code) == 8
    assert set(prescription.validation_code) <= set(VALIDATION_CODE_ALPHABET)
    assert prescription.medications[0].id


@pytest.mark.asyncio
async def test_narcotic_and_common_resolve_to_yellow(engine, doctor, professional, clock):
    prescription = await engine.create(
        CLINIC_ID,
        doctor,
        professional,
        {
            "patient_id": "patient-1",
            "patient_name": "Maria Silva",
            "medications": [
                {"name": "Morfina", "dosage": "10mg", "control_type": "a1"},
                {"name": "Dipirona", "dosage": "500mg"},
            ],
        },
    )

    assert prescription.type == PrescriptionType.YELLOW
    assert prescription.expires_at == prescription.prescribed_at + timedelta(days=30)
    assert prescription.status == PrescriptionStatus.DRAFT
    morphine = prescription.medications[0]
    assert morphine.control_type == "A1"
    assert morphine.is_controlled is True


@pytest.mark.asyncio
async def test_requested_type_cannot_lower_restriction(engine, doctor, professional, prescription_data):
    prescription_data["medications"][0]["control_type"] = "B1"
    prescription_data["type"] = "common"

    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    assert prescription.type == PrescriptionType.BLUE


@pytest.mark.asyncio
async def test_create_requires_medications(engine, doctor, professional, prescription_data):
    prescription_data["medications"] = []

    with pytest.raises(ValidationFailedError):
        await engine.create(CLINIC_ID, doctor, professional, prescription_data)


@pytest.mark.asyncio
async def test_create_writes_log_and_audit(
    engine, doctor, professional, prescription_data, audit_entries, workflow_logs
):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    logs = await workflow_logs(prescription.id)
    assert [log.data["event_type"] for log in logs] == ["created"]
    entries = await audit_entries()
    assert len(entries) == 1
    assert entries[0]["action"] == "create"
    assert entries[0]["resource_type"] == "prescription"
    assert entries[0]["resource_id"] == prescription.id


@pytest.mark.asyncio
async def test_sign_send_cancel_then_fill_is_rejected(
    engine, doctor, professional, prescription_data, signature, clock
):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    signed = await engine.sign(CLINIC_ID, prescription.id, signature, doctor)
    assert signed.status == PrescriptionStatus.SIGNED
    assert signed.signature.certificate_serial == "ICP-0001"
    assert signed.signature.signed_at == clock.current

    clock.advance(minutes=10)
    sent = await engine.send_to_patient(CLINIC_ID, prescription.id, "email", doctor)
    assert sent.status == PrescriptionStatus.SENT
    assert sent.sent_at == clock.current
    assert sent.sent_via.value == "email"

    canceled = await engine.cancel(CLINIC_ID, prescription.id, "patient changed mind", doctor)
    assert canceled.status == PrescriptionStatus.CANCELED
    assert canceled.cancel_reason == "patient changed mind"

    with pytest.raises(InvalidStateError) as exc_info:
        await engine.mark_as_filled(CLINIC_ID, prescription.id, "Farmácia Central")
    assert exc_info.value.details["current_status"] == "canceled"


@pytest.mark.asyncio
async def test_full_happy_path_logs(
    engine, doctor, professional, prescription_data, signature, workflow_logs
):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await engine.update(CLINIC_ID, prescription.id, {"observations": "Tomar após as refeições"}, doctor)
    await engine.submit_for_signature(CLINIC_ID, prescription.id, doctor)
    await engine.sign(CLINIC_ID, prescription.id, signature, doctor)
    await engine.send_to_patient(CLINIC_ID, prescription.id, "whatsapp", doctor)
    viewed = await engine.mark_as_viewed(CLINIC_ID, prescription.id)
    filled = await engine.mark_as_filled(CLINIC_ID, prescription.id, "Farmácia Central")

    assert viewed.viewed_at is not None
    assert filled.status == PrescriptionStatus.FILLED
    assert filled.filled_by_pharmacy == "Farmácia Central"
    assert filled.observations == "Tomar após as refeições"

    logs = await engine.get_logs(CLINIC_ID, prescription.id)
    assert [log.event_type.value for log in logs] == [
        "created",
        "updated",
        "updated",
        "signed",
        "sent",
        "viewed",
        "filled",
    ]
    assert logs[5].user_id == "patient-1"
    assert logs[6].user_id == "pharmacy"
    assert logs[6].user_name == "Farmácia Central"


@pytest.mark.asyncio
async def test_view_is_idempotent(
    engine, doctor, professional, prescription_data, signature, workflow_logs, audit_entries
):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await engine.sign(CLINIC_ID, prescription.id, signature, doctor)
    await engine.send_to_patient(CLINIC_ID, prescription.id, "sms", doctor)
    first = await engine.mark_as_viewed(CLINIC_ID, prescription.id)
    entry_count = len(await audit_entries())

    second = await engine.mark_as_viewed(CLINIC_ID, prescription.id)

    assert second.status == PrescriptionStatus.VIEWED
    assert second.viewed_at == first.viewed_at
    assert len(await audit_entries()) == entry_count
    events = [log.data["event_type"] for log in await workflow_logs(prescription.id)]
    assert events.count("viewed") == 1


@pytest.mark.asyncio
async def test_draft_update_keeps_type_and_expiry(engine, doctor, professional, prescription_data):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    updated = await engine.update(
        CLINIC_ID,
        prescription.id,
        {"medications": [{"name": "Paracetamol", "dosage": "750mg"}]},
        doctor,
    )

    assert [m.name for m in updated.medications] == ["Paracetamol"]
    assert updated.type == prescription.type
    assert updated.expires_at == prescription.expires_at


@pytest.mark.asyncio
async def test_draft_update_rejects_more_restrictive_medication(
    engine, doctor, professional, prescription_data
):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    with pytest.raises(ValidationFailedError) as exc_info:
        await engine.update(
            CLINIC_ID,
            prescription.id,
            {"medications": [{"name": "Clonazepam", "dosage": "2mg", "control_type": "B1"}]},
            doctor,
        )

    assert exc_info.value.details["required_type"] == "blue"
    unchanged = await engine.get_by_id(CLINIC_ID, prescription.id)
    assert [m.name for m in unchanged.medications] == ["Amoxicilina"]


@pytest.mark.asyncio
async def test_send_rejects_unknown_method(engine, doctor, professional, prescription_data, signature):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await engine.sign(CLINIC_ID, prescription.id, signature, doctor)

    with pytest.raises(ValidationFailedError):
        await engine.send_to_patient(CLINIC_ID, prescription.id, "pigeon", doctor)


@pytest.mark.asyncio
async def test_cancel_requires_reason(engine, doctor, professional, prescription_data):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    with pytest.raises(ValidationFailedError):
        await engine.cancel(CLINIC_ID, prescription.id, "  ", doctor)


@pytest.mark.asyncio
async def test_transition_on_missing_prescription(engine, doctor):
    with pytest.raises(PrescriptionNotFoundError):
        await engine.submit_for_signature(CLINIC_ID, "missing", doctor)


@pytest.mark.asyncio
async def test_lookup_by_validation_code(engine, doctor, professional, prescription_data):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)

    found = await engine.get_by_validation_code(CLINIC_ID, f" {prescription.validation_code.lower()} ")

    assert found.id == prescription.id
    assert await engine.get_by_validation_code(CLINIC_ID, "ZZZZZZZZ") is None


@pytest.mark.asyncio
async def test_list_filters(engine, doctor, professional, prescription_data, clock):
    first = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    clock.advance(hours=1)
    prescription_data["patient_id"] = "patient-2"
    second = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await engine.cancel(CLINIC_ID, second.id, "duplicate", doctor)

    assert [p.id for p in await engine.list(CLINIC_ID)] == [second.id, first.id]
    assert [p.id for p in await engine.list(CLINIC_ID, status="draft")] == [first.id]
    assert [p.id for p in await engine.list(CLINIC_ID, patient_id="patient-2")] == [second.id]
    assert len(await engine.list(CLINIC_ID, limit=1)) == 1


_TARGETS = {
    "update": PrescriptionStatus.DRAFT,
    "submit_for_signature": PrescriptionStatus.PENDING_SIGNATURE,
    "sign": PrescriptionStatus.SIGNED,
    "send_to_patient": PrescriptionStatus.SENT,
    "mark_as_viewed": PrescriptionStatus.VIEWED,
    "mark_as_filled": PrescriptionStatus.FILLED,
    "cancel": PrescriptionStatus.CANCELED,
}


def _invoke(engine, operation, prescription_id, actor, signature):
    calls = {
        "update": lambda: engine.update(CLINIC_ID, prescription_id, {"observations": "x"}, actor),
        "submit_for_signature": lambda: engine.submit_for_signature(CLINIC_ID, prescription_id, actor),
        "sign": lambda: engine.sign(CLINIC_ID, prescription_id, signature, actor),
        "send_to_patient": lambda: engine.send_to_patient(CLINIC_ID, prescription_id, "email", actor),
        "mark_as_viewed": lambda: engine.mark_as_viewed(CLINIC_ID, prescription_id, actor),
        "mark_as_filled": lambda: engine.mark_as_filled(CLINIC_ID, prescription_id, "Drogaria", actor),
        "cancel": lambda: engine.cancel(CLINIC_ID, prescription_id, "duplicate", actor),
    }
    return calls[operation]()


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", sorted(_TARGETS))
@pytest.mark.parametrize("status", list(PrescriptionStatus))
async def test_guard_totality(
    operation,
    status,
    engine,
    store,
    doctor,
    professional,
    prescription_data,
    signature,
    audit_entries,
    workflow_logs,
):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await store.update(prescriptions_path(CLINIC_ID), prescription.id, {"status": status.value})
    before = await engine.get_by_id(CLINIC_ID, prescription.id)
    audit_before = len(await audit_entries())
    logs_before = len(await workflow_logs(prescription.id))

    if status in ALLOWED_TRANSITIONS[operation]:
        result = await _invoke(engine, operation, prescription.id, doctor, signature)
        assert result.status == _TARGETS[operation]
        assert len(await audit_entries()) == audit_before + 1
        assert len(await workflow_logs(prescription.id)) == logs_before + 1
        return

    if operation == "mark_as_viewed" and status in VIEW_NOOP_STATUSES:
        result = await _invoke(engine, operation, prescription.id, doctor, signature)
        assert result.status == status
    else:
        with pytest.raises(InvalidStateError):
            await _invoke(engine, operation, prescription.id, doctor, signature)

    after = await engine.get_by_id(CLINIC_ID, prescription.id)
    assert after.status == before.status
    assert after.expires_at == before.expires_at
    assert after.medications == before.medications
    assert len(await audit_entries()) == audit_before
    assert len(await workflow_logs(prescription.id)) == logs_before


@pytest.mark.asyncio
async def test_each_transition_issues_one_update_entry(
    engine, doctor, professional, prescription_data, signature, audit_entries
):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await engine.submit_for_signature(CLINIC_ID, prescription.id, doctor)
    await engine.sign(CLINIC_ID, prescription.id, signature, doctor)

    entries = await audit_entries()
    assert [e["action"] for e in entries] == ["create", "update", "update"]
    assert all(e["resource_id"] == prescription.id for e in entries)
    assert entries[1]["previous_values"] == {"status": "draft"}
    assert entries[1]["new_values"] == {"status": "pending_signature"}
    assert entries[2]["previous_values"]["signature"] is None
    assert "signature" in entries[2]["modified_fields"]
