"""
Collection paths, all scoped under the owning clinic.
"""

from ..domain.value_objects.clinic_id import require_clinic_id, require_document_id

CLINICS = "clinics"


def _clinic_root(clinic_id: str) -> str:
    return f"{CLINICS}/{require_clinic_id(clinic_id)}"


def records_path(clinic_id: str) -> str:
    return f"{_clinic_root(clinic_id)}/records"


def versions_path(clinic_id: str, record_id: str) -> str:
    return f"{records_path(clinic_id)}/{require_document_id(record_id, 'record_id')}/versions"


def prescriptions_path(clinic_id: str) -> str:
    return f"{_clinic_root(clinic_id)}/prescriptions"


def prescription_logs_path(clinic_id: str, prescription_id: str) -> str:
    return (
        f"{prescriptions_path(clinic_id)}/"
        f"{require_document_id(prescription_id, 'prescription_id')}/logs"
    )


def audit_log_path(clinic_id: str) -> str:
    return f"{_clinic_root(clinic_id)}/auditLog"
