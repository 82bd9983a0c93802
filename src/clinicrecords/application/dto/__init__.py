"""
Input models for the record and prescription services.
"""

from .prescription_dto import (
    CancelInput,
    CreatePrescriptionInput,
    FillInput,
    MedicationInput,
    PrescriptionUpdate,
    ProfessionalInfo,
    SendInput,
    SignatureInput,
)
from .record_dto import AttachmentInput, CreateRecordInput, RecordMedicationInput, RecordUpdate
from .validation import parse_input

__all__ = [
    "CancelInput",
    "CreatePrescriptionInput",
    "FillInput",
    "MedicationInput",
    "PrescriptionUpdate",
    "ProfessionalInfo",
    "SendInput",
    "SignatureInput",
    "AttachmentInput",
    "CreateRecordInput",
    "RecordMedicationInput",
    "RecordUpdate",
    "parse_input",
]
