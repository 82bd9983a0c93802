"""
Conversion of stored documents into typed domain entities.

Mirrors a mongo-to-domain mapping: documents come back as plain dicts and
each loader picks only the fields its entity knows. Record variants are
dispatched on their ``type`` tag; an unrecognised tag is read as a generic
note instead of failing the read.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..domain.entities.prescription import (
    Prescription,
    PrescriptionLog,
    PrescriptionMedication,
    SignatureBlock,
)
from ..domain.entities.record import (
    AnthropometryRecord,
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
from ..domain.enums.prescription import (
    DeliveryMethod,
    PrescriptionEventType,
    PrescriptionStatus,
    PrescriptionType,
)
from ..domain.enums.records import AttachmentKind, RecordType, SessionMood

logger = logging.getLogger(__name__)

UNKNOWN_RECORD_TITLE = "Unknown Record"


def _attachments(data: Dict[str, Any]) -> List[RecordAttachment]:
    return [
        RecordAttachment(
            id=a["id"],
            url=a.get("url", ""),
            name=a.get("name", ""),
            size=a.get("size", 0),
            kind=AttachmentKind(a.get("kind", AttachmentKind.PDF.value)),
            uploaded_at=a.get("uploaded_at"),
            uploaded_by=a.get("uploaded_by"),
        )
        for a in data.get("attachments") or []
    ]


def _base_fields(record_id: str, data: Dict[str, Any], record_type: RecordType) -> Dict[str, Any]:
    return {
        "id": record_id,
        "patient_id": data.get("patient_id", ""),
        "type": record_type,
        "specialty": data.get("specialty", ""),
        "professional": data.get("professional", ""),
        "date": data.get("date"),
        # Records written before versioning existed count as version 1
        "version": data.get("version") or 1,
        "updated_at": data.get("updated_at"),
        "updated_by": data.get("updated_by"),
        "attachments": _attachments(data),
    }


def _soap(base: Dict[str, Any], data: Dict[str, Any]) -> SoapRecord:
    return SoapRecord(
        **base,
        subjective=data.get("subjective", ""),
        objective=data.get("objective", ""),
        assessment=data.get("assessment", ""),
        plan=data.get("plan", ""),
    )


def _note(base: Dict[str, Any], data: Dict[str, Any]) -> NoteRecord:
    return NoteRecord(**base, title=data.get("title", ""), content=data.get("content", ""))


def _prescription_note(base: Dict[str, Any], data: Dict[str, Any]) -> PrescriptionRecord:
    medications = [
        RecordMedication(
            name=m.get("name", ""),
            dosage=m.get("dosage", ""),
            instructions=m.get("instructions", ""),
        )
        for m in data.get("medications") or []
    ]
    return PrescriptionRecord(**base, medications=medications)


def _exam_request(base: Dict[str, Any], data: Dict[str, Any]) -> ExamRequestRecord:
    return ExamRequestRecord(
        **base,
        exams=list(data.get("exams") or []),
        justification=data.get("justification", ""),
    )


def _psycho_session(base: Dict[str, Any], data: Dict[str, Any]) -> PsychoSessionRecord:
    try:
        mood = SessionMood(data.get("mood", SessionMood.NEUTRAL.value))
    except ValueError:
        mood = SessionMood.NEUTRAL
    return PsychoSessionRecord(
        **base,
        mood=mood,
        summary=data.get("summary", ""),
        private_notes=data.get("private_notes", ""),
    )


def _anthropometry(base: Dict[str, Any], data: Dict[str, Any]) -> AnthropometryRecord:
    return AnthropometryRecord(
        **base,
        weight=data.get("weight", 0.0),
        height=data.get("height", 0.0),
        imc=data.get("imc", 0.0),
        waist=data.get("waist", 0.0),
        hip=data.get("hip", 0.0),
    )


_RECORD_LOADERS: Dict[RecordType, Callable[[Dict[str, Any], Dict[str, Any]], MedicalRecord]] = {
    RecordType.SOAP: _soap,
    RecordType.NOTE: _note,
    RecordType.PRESCRIPTION: _prescription_note,
    RecordType.EXAM_REQUEST: _exam_request,
    RecordType.PSYCHO_SESSION: _psycho_session,
    RecordType.ANTHROPOMETRY: _anthropometry,
}


def to_record(record_id: str, data: Dict[str, Any]) -> MedicalRecord:
    """Convert stored fields into the typed record variant."""
    raw_type = data.get("type")
    try:
        record_type = RecordType(raw_type)
    except ValueError:
        logger.warning("Unknown record type %r on record %s; reading as note", raw_type, record_id)
        base = _base_fields(record_id, data, RecordType.NOTE)
        return NoteRecord(
            **base,
            title=UNKNOWN_RECORD_TITLE,
            content=data.get("content", ""),
        )
    return _RECORD_LOADERS[record_type](_base_fields(record_id, data, record_type), data)


def to_record_version(version_id: str, record_id: str, data: Dict[str, Any]) -> RecordVersion:
    return RecordVersion(
        id=version_id,
        record_id=record_id,
        version=data["version"],
        data=dict(data.get("data") or {}),
        saved_at=data.get("saved_at"),
        saved_by=data.get("saved_by", ""),
        change_reason=data.get("change_reason"),
    )


def _medication(data: Dict[str, Any]) -> PrescriptionMedication:
    return PrescriptionMedication(
        id=data.get("id", ""),
        name=data.get("name", ""),
        dosage=data.get("dosage", ""),
        unit=data.get("unit", "unidade"),
        route=data.get("route", "oral"),
        frequency=data.get("frequency", ""),
        duration=data.get("duration", ""),
        quantity=data.get("quantity", 1),
        instructions=data.get("instructions"),
        active_principle=data.get("active_principle"),
        presentation=data.get("presentation"),
        is_controlled=data.get("is_controlled", False),
        control_type=data.get("control_type"),
        continuous_use=data.get("continuous_use", False),
    )


def _signature(data: Optional[Dict[str, Any]]) -> Optional[SignatureBlock]:
    if not data:
        return None
    signed_at: datetime = data["signed_at"]
    return SignatureBlock(
        signed_by=data["signed_by"],
        signed_at=signed_at,
        certificate_serial=data["certificate_serial"],
        signature_hash=data["signature_hash"],
    )


def to_prescription(prescription_id: str, data: Dict[str, Any]) -> Prescription:
    sent_via = data.get("sent_via")
    return Prescription(
        id=prescription_id,
        clinic_id=data.get("clinic_id", ""),
        patient_id=data["patient_id"],
        patient_name=data.get("patient_name", ""),
        patient_cpf=data.get("patient_cpf"),
        professional_id=data.get("professional_id", ""),
        professional_name=data.get("professional_name", ""),
        professional_crm=data.get("professional_crm", ""),
        professional_crm_state=data.get("professional_crm_state", ""),
        type=PrescriptionType(data["type"]),
        status=PrescriptionStatus(data["status"]),
        medications=[_medication(m) for m in data.get("medications") or []],
        observations=data.get("observations"),
        validity_days=data["validity_days"],
        prescribed_at=data["prescribed_at"],
        expires_at=data["expires_at"],
        signature=_signature(data.get("signature")),
        validation_code=data.get("validation_code"),
        sent_at=data.get("sent_at"),
        sent_via=DeliveryMethod(sent_via) if sent_via else None,
        viewed_at=data.get("viewed_at"),
        filled_at=data.get("filled_at"),
        filled_by_pharmacy=data.get("filled_by_pharmacy"),
        canceled_at=data.get("canceled_at"),
        cancel_reason=data.get("cancel_reason"),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


def to_prescription_log(log_id: str, data: Dict[str, Any]) -> PrescriptionLog:
    return PrescriptionLog(
        id=log_id,
        prescription_id=data["prescription_id"],
        event_type=PrescriptionEventType(data["event_type"]),
        user_id=data.get("user_id", ""),
        user_name=data.get("user_name", ""),
        timestamp=data.get("timestamp"),
        details=dict(data.get("details") or {}),
    )
