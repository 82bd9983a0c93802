"""
Time-based prescription expiry: engine sweep and the background worker.
"""

from datetime import datetime, timezone

import pytest

from clinicrecords.application.collections import CLINICS
from clinicrecords.domain.enums.prescription import PrescriptionStatus
from clinicrecords.workers.prescription_expiry_sweeper import _sweep_once

from conftest import CLINIC_ID


async def _prepare(engine, doctor, professional, prescription_data, signature):
    """One prescription per delivery status plus a draft that must never expire."""
    created = {}
    for label in ("draft", "signed", "sent", "viewed"):
        prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
        if label != "draft":
            await engine.sign(CLINIC_ID, prescription.id, signature, doctor)
        if label in ("sent", "viewed"):
            await engine.send_to_patient(CLINIC_ID, prescription.id, "email", doctor)
        if label == "viewed":
            await engine.mark_as_viewed(CLINIC_ID, prescription.id)
        created[label] = prescription.id
    return created


@pytest.mark.asyncio
async def test_sweep_is_idempotent(
    engine, doctor, professional, prescription_data, signature, clock, workflow_logs, audit_entries
):
    created = await _prepare(engine, doctor, professional, prescription_data, signature)

    assert await engine.sweep_expired(CLINIC_ID) == 0

    clock.advance(days=61)
    assert await engine.sweep_expired(CLINIC_ID) == 3
    assert await engine.sweep_expired(CLINIC_ID) == 0

    for label in ("signed", "sent", "viewed"):
        prescription = await engine.get_by_id(CLINIC_ID, created[label])
        assert prescription.status == PrescriptionStatus.EXPIRED
        events = [log.data["event_type"] for log in await workflow_logs(created[label])]
        assert events.count("expired") == 1
        assert (await workflow_logs(created[label]))[-1].data["user_id"] == "system"

    draft = await engine.get_by_id(CLINIC_ID, created["draft"])
    assert draft.status == PrescriptionStatus.DRAFT

    expiry_entries = [
        e for e in await audit_entries() if e.get("new_values", {}).get("status") == "expired"
    ]
    assert len(expiry_entries) == 3
    assert {e["user_id"] for e in expiry_entries} == {"system"}


@pytest.mark.asyncio
async def test_sweep_respects_explicit_cutoff(engine, doctor, professional, prescription_data, signature):
    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await engine.sign(CLINIC_ID, prescription.id, signature, doctor)

    before_expiry = prescription.expires_at
    assert await engine.sweep_expired(CLINIC_ID, now=before_expiry) == 0
    assert await engine.sweep_expired(CLINIC_ID, now=datetime(2030, 1, 1, tzinfo=timezone.utc)) == 1


@pytest.mark.asyncio
async def test_expired_prescription_cannot_be_filled(
    engine, doctor, professional, prescription_data, signature, clock
):
    from clinicrecords.domain.errors import InvalidStateError

    prescription = await engine.create(CLINIC_ID, doctor, professional, prescription_data)
    await engine.sign(CLINIC_ID, prescription.id, signature, doctor)
    await engine.send_to_patient(CLINIC_ID, prescription.id, "email", doctor)
    clock.advance(days=90)
    await engine.sweep_expired(CLINIC_ID)

    with pytest.raises(InvalidStateError):
        await engine.mark_as_filled(CLINIC_ID, prescription.id, "Drogaria")

    # Viewing an expired prescription is ignored
    viewed = await engine.mark_as_viewed(CLINIC_ID, prescription.id)
    assert viewed.status == PrescriptionStatus.EXPIRED


@pytest.mark.asyncio
async def test_worker_sweeps_every_clinic(
    store, engine, doctor, professional, prescription_data, signature, clock
):
    await store.put(CLINICS, CLINIC_ID, {"name": "Clínica A"})
    await store.put(CLINICS, "clinic-b", {"name": "Clínica B"})

    for clinic_id in (CLINIC_ID, "clinic-b"):
        prescription = await engine.create(clinic_id, doctor, professional, prescription_data)
        await engine.sign(clinic_id, prescription.id, signature, doctor)

    later = clock.current.replace(year=clock.current.year + 1)
    expired = await _sweep_once(store, engine, now=later)

    assert expired == {CLINIC_ID: 1, "clinic-b": 1}
    assert await _sweep_once(store, engine, now=later) == {CLINIC_ID: 0, "clinic-b": 0}
