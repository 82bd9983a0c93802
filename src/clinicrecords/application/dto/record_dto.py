"""Medical record input models.

Updates are partial: only the fields a caller actually sets are written,
via ``model_dump(exclude_unset=True)``.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...domain.enums.records import AttachmentKind, RecordType, SessionMood


class RecordMedicationInput(BaseModel):
    name: str = Field(..., min_length=1)
    dosage: str = ""
    instructions: str = ""


class _RecordFields(BaseModel):
    """Variant fields; every one is optional so a single model covers all types."""

    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    specialty: Optional[str] = None
    professional: Optional[str] = None
    # soap
    subjective: Optional[str] = None
    objective: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    # note
    title: Optional[str] = None
    content: Optional[str] = None
    # prescription
    medications: Optional[List[RecordMedicationInput]] = None
    # exam_request
    exams: Optional[List[str]] = None
    justification: Optional[str] = None
    # psycho_session
    mood: Optional[SessionMood] = None
    summary: Optional[str] = None
    private_notes: Optional[str] = None
    # anthropometry
    weight: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)
    imc: Optional[float] = Field(None, ge=0)
    waist: Optional[float] = Field(None, ge=0)
    hip: Optional[float] = Field(None, ge=0)

    def to_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CreateRecordInput(_RecordFields):
    """Request to create a medical record."""

    patient_id: str = Field(..., min_length=1)
    type: RecordType


class RecordUpdate(_RecordFields):
    """Partial update of a medical record's content fields."""


class AttachmentInput(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    url: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    kind: AttachmentKind
