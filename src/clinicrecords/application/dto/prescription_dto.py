"""Prescription input models."""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...domain.enums.prescription import DeliveryMethod, PrescriptionType

_CONTROL_TYPE_PATTERN = re.compile(r"^[ABC]\d?$")


class MedicationInput(BaseModel):
    """Medication line as submitted by the prescriber."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    dosage: str = Field(..., min_length=1)
    unit: str = "unidade"
    route: str = "oral"
    frequency: str = ""
    duration: str = ""
    quantity: int = Field(1, ge=1)
    instructions: Optional[str] = None
    active_principle: Optional[str] = None
    presentation: Optional[str] = None
    is_controlled: bool = False
    control_type: Optional[str] = None
    continuous_use: bool = False

    @field_validator("control_type")
    @classmethod
    def validate_control_type(cls, v: Optional[str]) -> Optional[str]:
        """Accept list codes such as A1, B2, C5, or 'antimicrobial'."""
        if v is None:
            return v
        s = v.strip()
        if s.lower() == "antimicrobial":
            return "antimicrobial"
        s = s.upper()
        if not _CONTROL_TYPE_PATTERN.fullmatch(s):
            raise ValueError("control_type must be a list code like A1, B2, C1 or 'antimicrobial'")
        return s


class ProfessionalInfo(BaseModel):
    """Prescriber identity copied onto the prescription."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    crm: str = Field(..., min_length=1)
    crm_state: str = Field(..., min_length=2, max_length=2)


class CreatePrescriptionInput(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    patient_id: str = Field(..., min_length=1)
    patient_name: str = Field(..., min_length=1)
    patient_cpf: Optional[str] = None
    medications: List[MedicationInput] = Field(..., min_length=1)
    observations: Optional[str] = None
    type: Optional[PrescriptionType] = None


class PrescriptionUpdate(BaseModel):
    """Editable prescription content while still a draft."""

    model_config = ConfigDict(extra="forbid")

    medications: Optional[List[MedicationInput]] = Field(None, min_length=1)
    observations: Optional[str] = None
    patient_cpf: Optional[str] = None


class SignatureInput(BaseModel):
    signed_by: str = Field(..., min_length=1)
    certificate_serial: str = Field(..., min_length=1)
    signature_hash: str = Field(..., min_length=1)
    signed_at: Optional[datetime] = None


class SendInput(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    method: DeliveryMethod


class FillInput(BaseModel):
    pharmacy_name: str = Field(..., min_length=1)


class CancelInput(BaseModel):
    reason: str = Field(..., min_length=1)

