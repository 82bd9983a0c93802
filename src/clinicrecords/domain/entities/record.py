"""Medical record domain entities.

Six record variants share one clinic-scoped collection and are told apart by
their ``type`` tag. Every variant carries the versioning fields: the live
document is version N and the version trail holds the states 1..N-1.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from ..enums.records import AttachmentKind, RecordType, SessionMood


@dataclass
class RecordAttachment:
    """File attached to a medical record."""

    id: str
    url: str
    name: str
    size: int
    kind: AttachmentKind
    uploaded_at: Optional[datetime] = None
    uploaded_by: Optional[str] = None


@dataclass
class RecordMedication:
    name: str
    dosage: str = ""
    instructions: str = ""


@dataclass
class BaseRecord:
    """Fields shared by every record variant."""

    id: str
    patient_id: str
    type: RecordType
    specialty: str = ""
    professional: str = ""
    date: Optional[datetime] = None
    version: int = 1
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    attachments: List[RecordAttachment] = field(default_factory=list)


@dataclass
class SoapRecord(BaseRecord):
    subjective: str = ""
    objective: str = ""
    assessment: str = ""
    plan: str = ""


@dataclass
class NoteRecord(BaseRecord):
    """Free-text note. Also the fallback for unrecognised type tags."""

    title: str = ""
    content: str = ""


@dataclass
class PrescriptionRecord(BaseRecord):
    medications: List[RecordMedication] = field(default_factory=list)


@dataclass
class ExamRequestRecord(BaseRecord):
    exams: List[str] = field(default_factory=list)
    justification: str = ""


@dataclass
class PsychoSessionRecord(BaseRecord):
    mood: SessionMood = SessionMood.NEUTRAL
    summary: str = ""
    private_notes: str = ""


@dataclass
class AnthropometryRecord(BaseRecord):
    weight: float = 0.0
    height: float = 0.0
    imc: float = 0.0
    waist: float = 0.0
    hip: float = 0.0


MedicalRecord = Union[
    SoapRecord,
    NoteRecord,
    PrescriptionRecord,
    ExamRequestRecord,
    PsychoSessionRecord,
    AnthropometryRecord,
]


@dataclass
class RecordVersion:
    """Immutable snapshot of a record's fields before an update or restore."""

    id: str
    record_id: str
    version: int
    data: Dict[str, Any]
    saved_at: Optional[datetime]
    saved_by: str
    change_reason: Optional[str] = None
