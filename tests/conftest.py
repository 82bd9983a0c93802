"""
Shared fixtures for the clinic records core test suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from clinicrecords.adapters.store.memory_store import InMemoryDocumentStore
from clinicrecords.application.collections import audit_log_path, prescription_logs_path
from clinicrecords.application.ports.document_store import OrderBy
from clinicrecords.application.services.audit_log_writer import AuditLogWriter
from clinicrecords.application.services.prescription_workflow import PrescriptionWorkflowEngine
from clinicrecords.application.services.record_manager import RecordManager
from clinicrecords.application.services.version_store import VersionStore
from clinicrecords.domain.value_objects.actor import Actor

CLINIC_ID = "clinic-a"


class FakeClock:
    """Wall clock that only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(clock):
    return InMemoryDocumentStore(clock=clock)


@pytest.fixture
def audit(store):
    return AuditLogWriter(store, mirror_to_app_log=False)


@pytest.fixture
def versions(store, audit):
    return VersionStore(store, audit)


@pytest.fixture
def records(store, versions, audit):
    return RecordManager(store, versions, audit)


@pytest.fixture
def engine(store, audit, clock):
    return PrescriptionWorkflowEngine(store, audit, clock=clock)


@pytest.fixture
def doctor():
    return Actor(user_id="doc-1", user_name="Dra. Ana Souza")


@pytest.fixture
def professional():
    return {"id": "doc-1", "name": "Dra. Ana Souza", "crm": "123456", "crm_state": "SP"}


@pytest.fixture
def prescription_data():
    return {
        "patient_id": "patient-1",
        "patient_name": "Maria Silva",
        "medications": [
            {"name": "Amoxicilina", "dosage": "500mg", "frequency": "8/8h", "duration": "7 dias"},
        ],
    }


@pytest.fixture
def signature():
    return {
        "signed_by": "doc-1",
        "certificate_serial": "ICP-0001",
        "signature_hash": "3f8a9c",
    }


@pytest.fixture
def audit_entries(store):
    """Read back the audit trail of a clinic in append order."""

    async def _entries(clinic_id: str = CLINIC_ID):
        snapshots = await store.query(audit_log_path(clinic_id), order_by=[OrderBy("timestamp")])
        return [s.data for s in snapshots]

    return _entries


@pytest.fixture
def workflow_logs(store):
    async def _logs(prescription_id: str, clinic_id: str = CLINIC_ID):
        return await store.query(prescription_logs_path(clinic_id, prescription_id))

    return _logs
