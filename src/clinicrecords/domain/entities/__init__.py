"""
Domain entities package.
"""

from .audit import AuditLogEntry
from .prescription import (
    Prescription,
    PrescriptionLog,
    PrescriptionMedication,
    SignatureBlock,
)
from .record import (
    AnthropometryRecord,
    BaseRecord,
    ExamRequestRecord,
    MedicalRecord,
    NoteRecord,
    PrescriptionRecord,
    PsychoSessionRecord,
    RecordAttachment,
    RecordMedication,
    RecordVersion,
    SoapRecord,
)

__all__ = [
    "AuditLogEntry",
    "Prescription",
    "PrescriptionLog",
    "PrescriptionMedication",
    "SignatureBlock",
    "AnthropometryRecord",
    "BaseRecord",
    "ExamRequestRecord",
    "MedicalRecord",
    "NoteRecord",
    "PrescriptionRecord",
    "PsychoSessionRecord",
    "RecordAttachment",
    "RecordMedication",
    "RecordVersion",
    "SoapRecord",
]
