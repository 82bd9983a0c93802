"""
Audit log writer: entry shape, checksums and the fallback channel.
"""

import json
import logging

import pytest

from clinicrecords.adapters.store.memory_store import InMemoryDocumentStore
from clinicrecords.application.services.audit_log_writer import (
    AuditLogWriter,
    calculate_checksum,
    verify_checksum,
)
from clinicrecords.application.services.record_manager import RecordManager
from clinicrecords.application.services.version_store import VersionStore
from clinicrecords.core.structured_logger import JSONFormatter
from clinicrecords.domain.enums.audit import AuditAction, AuditResourceType
from clinicrecords.domain.errors import StoreFailureError

from conftest import CLINIC_ID


class AuditOutageStore(InMemoryDocumentStore):
    """Store whose audit collections reject every append."""

    async def add(self, collection, data):
        if collection.endswith("/auditLog"):
            raise StoreFailureError("add", collection, RuntimeError("connection reset"))
        return await super().add(collection, data)


@pytest.mark.asyncio
async def test_append_shape(audit, doctor, audit_entries):
    entry_id = await audit.append(
        CLINIC_ID,
        doctor,
        AuditAction.UPDATE,
        AuditResourceType.MEDICAL_RECORD,
        "rec-1",
        modified_fields=["title"],
        previous_values={"title": "a"},
        new_values={"title": "b"},
    )

    assert entry_id
    entry = (await audit_entries())[0]
    assert entry["clinic_id"] == CLINIC_ID
    assert entry["user_id"] == "doc-1"
    assert entry["user_name"] == "Dra. Ana Souza"
    assert entry["action"] == "update"
    assert entry["resource_type"] == "medical_record"
    assert entry["timestamp"] is not None
    assert entry["request_id"]
    assert verify_checksum(entry)


@pytest.mark.asyncio
async def test_tampered_entry_fails_checksum(audit, doctor, audit_entries):
    await audit.log_delete(CLINIC_ID, doctor, AuditResourceType.MEDICAL_RECORD, "rec-1")
    entry = (await audit_entries())[0]

    entry["user_id"] = "someone-else"

    assert not verify_checksum(entry)


def test_checksum_ignores_resolved_fields():
    entry = {"action": "view", "resource_id": "r1"}
    checksum = calculate_checksum(entry)

    assert calculate_checksum({**entry, "timestamp": "2024-01-01", "id": "x"}) == checksum
    assert verify_checksum({**entry, "checksum": checksum})
    assert not verify_checksum(entry)


@pytest.mark.asyncio
async def test_log_update_lists_modified_fields(audit, doctor, audit_entries):
    await audit.log_update(
        CLINIC_ID,
        doctor,
        AuditResourceType.PRESCRIPTION,
        "rx-1",
        previous_values={"status": "draft"},
        new_values={"status": "signed", "signature": {"signed_by": "doc-1"}},
    )

    entry = (await audit_entries())[0]
    assert entry["modified_fields"] == ["status", "signature"]


@pytest.mark.asyncio
async def test_data_request_targets_patient(audit, doctor, audit_entries):
    await audit.log_data_request(CLINIC_ID, doctor, "patient-1", "access", {"channel": "email"})

    entry = (await audit_entries())[0]
    assert entry["action"] == "data_request"
    assert entry["resource_type"] == "patient"
    assert entry["details"] == {"request_type": "access", "channel": "email"}


@pytest.mark.asyncio
async def test_store_outage_uses_fallback_and_keeps_mutation(clock, doctor, caplog):
    store = AuditOutageStore(clock=clock)
    audit = AuditLogWriter(store, mirror_to_app_log=False)
    records = RecordManager(store, VersionStore(store, audit), audit)

    with caplog.at_level(logging.CRITICAL):
        record = await records.create(CLINIC_ID, doctor, {"patient_id": "p1", "type": "note"})

    assert await records.get_by_id(CLINIC_ID, record.id) is not None
    fallback = [r for r in caplog.records if r.levelno == logging.CRITICAL]
    assert len(fallback) == 1
    message = fallback[0].getMessage()
    assert message.startswith("AUDIT_FALLBACK: ")
    payload = json.loads(message[len("AUDIT_FALLBACK: "):])
    assert payload["resource_id"] == record.id
    assert payload["action"] == "create"


@pytest.mark.asyncio
async def test_mirror_to_app_log(store, doctor, caplog):
    audit = AuditLogWriter(store, mirror_to_app_log=True)

    with caplog.at_level(logging.INFO, logger="clinicrecords.audit"):
        await audit.log_view(CLINIC_ID, doctor, AuditResourceType.MEDICAL_RECORD, "rec-1")

    mirrored = [r for r in caplog.records if r.name == "clinicrecords.audit"]
    assert len(mirrored) == 1
    assert mirrored[0].getMessage() == "AUDIT"
    assert mirrored[0].extra_data["component"] == "audit_log"
    assert mirrored[0].extra_data["resource"] == "medical_record:rec-1"

    line = json.loads(JSONFormatter().format(mirrored[0]))
    assert line["message"] == "AUDIT"
    assert line["action"] == "view"
