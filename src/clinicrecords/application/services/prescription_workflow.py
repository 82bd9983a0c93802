"""
Prescription lifecycle engine.

    draft -> pending_signature -> signed -> sent -> viewed -> filled
    draft | pending_signature | signed | sent | viewed -> canceled
    signed | sent | viewed -> expired   (time-based sweep only)

Every guarded operation checks the transition table before any write and
raises InvalidStateError otherwise. A transition writes the live status,
one workflow log entry under ``logs`` and exactly one audit ``update``.
"""

import logging
import uuid
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from ...domain.entities.prescription import (
    EVENT_FOR_STATUS,
    VIEW_NOOP_STATUSES,
    Prescription,
    PrescriptionLog,
)
from ...domain.enums.audit import AuditResourceType
from ...domain.enums.prescription import (
    DeliveryMethod,
    PrescriptionEventType,
    PrescriptionStatus,
)
from ...domain.errors import PrescriptionNotFoundError, ValidationFailedError
from ...domain.prescription_rules import (
    calculate_expiration,
    derive_prescription_type,
    generate_validation_code,
    restriction_rank,
    validity_days_for,
)
from ...domain.value_objects.actor import Actor
from ...domain.value_objects.clinic_id import require_clinic_id
from ..collections import prescription_logs_path, prescriptions_path
from ..dto.prescription_dto import (
    CreatePrescriptionInput,
    PrescriptionUpdate,
    ProfessionalInfo,
    SignatureInput,
)
from ..dto.validation import parse_input
from ..ports.document_store import (
    DOCUMENT_ID,
    SERVER_TIMESTAMP,
    DocumentStore,
    OrderBy,
    QueryFilter,
)
from ..read_models import to_prescription, to_prescription_log
from .audit_log_writer import AuditLogWriter
from .subscriptions import ErrorCallback, live_view

logger = logging.getLogger(__name__)

_RESOURCE = AuditResourceType.PRESCRIPTION
_S = PrescriptionStatus

EXPIRABLE_STATUSES = [_S.SIGNED.value, _S.SENT.value, _S.VIEWED.value]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _plain(value: Any) -> Any:
    """Entity attribute as a storable value."""
    if is_dataclass(value):
        return {k: _plain(v) for k, v in asdict(value).items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _medication_documents(medications: List[Any]) -> List[Dict[str, Any]]:
    documents = []
    for medication in medications:
        document = {"id": str(uuid.uuid4()), **medication.model_dump()}
        if document.get("control_type"):
            document["is_controlled"] = True
        documents.append(document)
    return documents


class PrescriptionWorkflowEngine:
    """Guarded state machine over prescription documents."""

    def __init__(
        self,
        store: DocumentStore,
        audit: AuditLogWriter,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._audit = audit
        self._clock = clock or _utcnow

    # Reads

    async def get_by_id(self, clinic_id: str, prescription_id: str) -> Optional[Prescription]:
        require_clinic_id(clinic_id)
        snapshot = await self._store.get(prescriptions_path(clinic_id), prescription_id)
        if snapshot is None:
            return None
        return to_prescription(snapshot.id, snapshot.data)

    async def _require(self, clinic_id: str, prescription_id: str) -> Prescription:
        prescription = await self.get_by_id(clinic_id, prescription_id)
        if prescription is None:
            raise PrescriptionNotFoundError(clinic_id, prescription_id)
        return prescription

    async def list(
        self,
        clinic_id: str,
        status: Optional[PrescriptionStatus] = None,
        patient_id: Optional[str] = None,
        professional_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Prescription]:
        """Prescriptions of a clinic, newest first."""
        require_clinic_id(clinic_id)
        filters = []
        if status is not None:
            filters.append(QueryFilter("status", "==", PrescriptionStatus(status).value))
        if patient_id:
            filters.append(QueryFilter("patient_id", "==", patient_id))
        if professional_id:
            filters.append(QueryFilter("professional_id", "==", professional_id))
        snapshots = await self._store.query(
            prescriptions_path(clinic_id),
            filters=filters,
            order_by=[OrderBy("prescribed_at", descending=True)],
            limit=limit,
        )
        return [to_prescription(s.id, s.data) for s in snapshots]

    async def get_by_validation_code(
        self, clinic_id: str, validation_code: str
    ) -> Optional[Prescription]:
        require_clinic_id(clinic_id)
        snapshots = await self._store.query(
            prescriptions_path(clinic_id),
            filters=[QueryFilter("validation_code", "==", validation_code.strip().upper())],
            limit=1,
        )
        if not snapshots:
            return None
        return to_prescription(snapshots[0].id, snapshots[0].data)

    async def get_logs(self, clinic_id: str, prescription_id: str) -> List[PrescriptionLog]:
        """Workflow events of a prescription, oldest first."""
        require_clinic_id(clinic_id)
        snapshots = await self._store.query(
            prescription_logs_path(clinic_id, prescription_id),
            order_by=[OrderBy("timestamp")],
        )
        return [to_prescription_log(s.id, s.data) for s in snapshots]

    # Creation

    async def create(
        self,
        clinic_id: str,
        actor: Actor,
        professional: Union[ProfessionalInfo, Dict[str, Any]],
        data: Union[CreatePrescriptionInput, Dict[str, Any]],
    ) -> Prescription:
        """Create a draft; type and expiry are derived from the medications."""
        require_clinic_id(clinic_id)
        professional_info = parse_input(ProfessionalInfo, professional)
        prescription_input = parse_input(CreatePrescriptionInput, data)

        prescription_type = derive_prescription_type(
            [m.control_type for m in prescription_input.medications],
            requested=prescription_input.type,
        )
        prescribed_at = self._clock()
        document: Dict[str, Any] = {
            "clinic_id": clinic_id,
            "patient_id": prescription_input.patient_id,
            "patient_name": prescription_input.patient_name,
            "patient_cpf": prescription_input.patient_cpf,
            "professional_id": professional_info.id,
            "professional_name": professional_info.name,
            "professional_crm": professional_info.crm,
            "professional_crm_state": professional_info.crm_state.upper(),
            "type": prescription_type.value,
            "status": _S.DRAFT.value,
            "medications": _medication_documents(prescription_input.medications),
            "observations": prescription_input.observations,
            "validity_days": validity_days_for(prescription_type),
            "prescribed_at": prescribed_at,
            "expires_at": calculate_expiration(prescribed_at, prescription_type),
            "validation_code": generate_validation_code(),
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }
        prescription_id = await self._store.add(prescriptions_path(clinic_id), document)
        logger.info(
            "Created %s prescription %s for patient %s (clinic=%s)",
            prescription_type.value,
            prescription_id,
            prescription_input.patient_id,
            clinic_id,
        )

        try:
            await self._add_log(
                clinic_id,
                prescription_id,
                PrescriptionEventType.CREATED,
                actor,
                {"medication_count": len(prescription_input.medications)},
            )
        finally:
            await self._audit.log_create(
                clinic_id,
                actor,
                _RESOURCE,
                prescription_id,
                data={
                    "type": prescription_type.value,
                    "status": _S.DRAFT.value,
                    "patient_id": prescription_input.patient_id,
                    "expires_at": document["expires_at"],
                },
            )
        return await self._require(clinic_id, prescription_id)

    # Guarded transitions

    async def update(
        self,
        clinic_id: str,
        prescription_id: str,
        changes: Union[PrescriptionUpdate, Dict[str, Any]],
        actor: Actor,
    ) -> Prescription:
        """Edit a draft's content. Type and expiry stay as derived at creation."""
        require_clinic_id(clinic_id)
        update_input = parse_input(PrescriptionUpdate, changes)
        current = await self._require(clinic_id, prescription_id)
        current.ensure_can("update")

        fields = update_input.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationFailedError("Prescription update contains no fields")
        if update_input.medications is not None:
            required = derive_prescription_type([m.control_type for m in update_input.medications])
            if restriction_rank(required) > restriction_rank(current.type):
                raise ValidationFailedError(
                    "Medications require a more restrictive prescription type; "
                    "cancel this draft and create a new prescription",
                    {"current_type": current.type.value, "required_type": required.value},
                )
            fields["medications"] = _medication_documents(update_input.medications)

        return await self._transition(
            clinic_id,
            current,
            actor,
            _S.DRAFT,
            fields,
            log_details={"fields": sorted(fields)},
        )

    async def submit_for_signature(
        self, clinic_id: str, prescription_id: str, actor: Actor
    ) -> Prescription:
        require_clinic_id(clinic_id)
        current = await self._require(clinic_id, prescription_id)
        current.ensure_can("submit_for_signature")
        return await self._transition(clinic_id, current, actor, _S.PENDING_SIGNATURE)

    async def sign(
        self,
        clinic_id: str,
        prescription_id: str,
        signature: Union[SignatureInput, Dict[str, Any]],
        actor: Actor,
    ) -> Prescription:
        require_clinic_id(clinic_id)
        signature_input = parse_input(SignatureInput, signature)
        current = await self._require(clinic_id, prescription_id)
        current.ensure_can("sign")

        signature_block = {
            "signed_by": signature_input.signed_by,
            "signed_at": signature_input.signed_at or self._clock(),
            "certificate_serial": signature_input.certificate_serial,
            "signature_hash": signature_input.signature_hash,
        }
        return await self._transition(
            clinic_id,
            current,
            actor,
            _S.SIGNED,
            {"signature": signature_block},
            log_details={"certificate_serial": signature_input.certificate_serial},
        )

    async def send_to_patient(
        self,
        clinic_id: str,
        prescription_id: str,
        method: Union[DeliveryMethod, str],
        actor: Actor,
    ) -> Prescription:
        require_clinic_id(clinic_id)
        try:
            delivery = DeliveryMethod(method)
        except ValueError as e:
            raise ValidationFailedError(
                f"Unsupported delivery method: {method}", {"method": str(method)}
            ) from e
        current = await self._require(clinic_id, prescription_id)
        current.ensure_can("send_to_patient")
        return await self._transition(
            clinic_id,
            current,
            actor,
            _S.SENT,
            {"sent_at": self._clock(), "sent_via": delivery.value},
            log_details={"method": delivery.value},
        )

    async def mark_as_viewed(
        self, clinic_id: str, prescription_id: str, actor: Optional[Actor] = None
    ) -> Prescription:
        """Record the patient's first view; later calls are ignored."""
        require_clinic_id(clinic_id)
        current = await self._require(clinic_id, prescription_id)
        if current.status in VIEW_NOOP_STATUSES:
            return current
        current.ensure_can("mark_as_viewed")
        return await self._transition(
            clinic_id,
            current,
            actor or Actor.patient(current.patient_id, current.patient_name or "Patient"),
            _S.VIEWED,
            {"viewed_at": self._clock()},
        )

    async def mark_as_filled(
        self,
        clinic_id: str,
        prescription_id: str,
        pharmacy_name: str,
        actor: Optional[Actor] = None,
    ) -> Prescription:
        require_clinic_id(clinic_id)
        if not pharmacy_name or not pharmacy_name.strip():
            raise ValidationFailedError("Pharmacy name is required")
        current = await self._require(clinic_id, prescription_id)
        current.ensure_can("mark_as_filled")
        return await self._transition(
            clinic_id,
            current,
            actor or Actor.pharmacy(pharmacy_name),
            _S.FILLED,
            {"filled_at": self._clock(), "filled_by_pharmacy": pharmacy_name},
            log_details={"pharmacy": pharmacy_name},
        )

    async def cancel(
        self, clinic_id: str, prescription_id: str, reason: str, actor: Actor
    ) -> Prescription:
        require_clinic_id(clinic_id)
        if not reason or not reason.strip():
            raise ValidationFailedError("Cancellation reason is required")
        current = await self._require(clinic_id, prescription_id)
        current.ensure_can("cancel")
        return await self._transition(
            clinic_id,
            current,
            actor,
            _S.CANCELED,
            {"canceled_at": self._clock(), "cancel_reason": reason},
            log_details={"reason": reason},
        )

    async def sweep_expired(self, clinic_id: str, now: Optional[datetime] = None) -> int:
        """Expire signed, sent or viewed prescriptions past ``expires_at``.

        Returns the number transitioned; a second run finds nothing new.
        """
        require_clinic_id(clinic_id)
        cutoff = now or self._clock()
        snapshots = await self._store.query(
            prescriptions_path(clinic_id),
            filters=[
                QueryFilter("status", "in", EXPIRABLE_STATUSES),
                QueryFilter("expires_at", "<", cutoff),
            ],
        )
        system = Actor.system()
        count = 0
        for snapshot in snapshots:
            current = to_prescription(snapshot.id, snapshot.data)
            if not current.can("expire") or not current.is_past_expiry(cutoff):
                continue
            await self._transition(
                clinic_id,
                current,
                system,
                _S.EXPIRED,
                log_details={"expires_at": current.expires_at},
                reload=False,
            )
            count += 1
        if count:
            logger.info("Expired %s prescriptions (clinic=%s)", count, clinic_id)
        return count

    async def _transition(
        self,
        clinic_id: str,
        current: Prescription,
        actor: Actor,
        target: PrescriptionStatus,
        fields: Optional[Dict[str, Any]] = None,
        log_details: Optional[Dict[str, Any]] = None,
        reload: bool = True,
    ) -> Optional[Prescription]:
        fields = dict(fields or {})
        await self._store.update(
            prescriptions_path(clinic_id),
            current.id,
            {**fields, "status": target.value, "updated_at": SERVER_TIMESTAMP},
        )
        logger.info(
            "Prescription %s: %s -> %s by %s (clinic=%s)",
            current.id,
            current.status.value,
            target.value,
            actor.user_id,
            clinic_id,
        )

        previous_values: Dict[str, Any] = {"status": current.status.value}
        for key in fields:
            previous_values[key] = _plain(getattr(current, key, None))
        try:
            await self._add_log(clinic_id, current.id, EVENT_FOR_STATUS[target], actor, log_details)
        finally:
            await self._audit.log_update(
                clinic_id,
                actor,
                _RESOURCE,
                current.id,
                previous_values=previous_values,
                new_values={"status": target.value, **fields},
            )
        if not reload:
            return None
        return await self._require(clinic_id, current.id)

    async def _add_log(
        self,
        clinic_id: str,
        prescription_id: str,
        event_type: PrescriptionEventType,
        actor: Actor,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        document: Dict[str, Any] = {
            "prescription_id": prescription_id,
            "event_type": event_type.value,
            "user_id": actor.user_id,
            "user_name": actor.user_name,
            "timestamp": SERVER_TIMESTAMP,
        }
        if details:
            document["details"] = details
        return await self._store.add(prescription_logs_path(clinic_id, prescription_id), document)

    # Live views

    async def watch(
        self, clinic_id: str, prescription_id: str, on_error: Optional[ErrorCallback] = None
    ) -> AsyncIterator[Optional[Prescription]]:
        """Live view of one prescription; yields None while it does not exist."""
        view = live_view(
            lambda: self._store.subscribe(
                prescriptions_path(clinic_id),
                filters=[QueryFilter(DOCUMENT_ID, "==", prescription_id)],
            ),
            lambda s: to_prescription(s.id, s.data),
            on_error,
            description=f"prescription {prescription_id}",
        )
        try:
            async for prescriptions in view:
                yield prescriptions[0] if prescriptions else None
        finally:
            await view.aclose()

    def watch_by_patient(
        self, clinic_id: str, patient_id: str, on_error: Optional[ErrorCallback] = None
    ) -> AsyncIterator[List[Prescription]]:
        return live_view(
            lambda: self._store.subscribe(
                prescriptions_path(clinic_id),
                filters=[QueryFilter("patient_id", "==", patient_id)],
                order_by=[OrderBy("prescribed_at", descending=True)],
            ),
            lambda s: to_prescription(s.id, s.data),
            on_error,
            description=f"prescriptions of patient {patient_id}",
        )
