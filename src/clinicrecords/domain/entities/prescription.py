"""Prescription domain entity and its lifecycle guards."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from ..enums.prescription import (
    DeliveryMethod,
    PrescriptionEventType,
    PrescriptionStatus,
    PrescriptionType,
)
from ..errors import InvalidStateError

_S = PrescriptionStatus

# Operation name -> statuses it may be invoked from
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[PrescriptionStatus]] = {
    "update": frozenset({_S.DRAFT}),
    "submit_for_signature": frozenset({_S.DRAFT}),
    "sign": frozenset({_S.DRAFT, _S.PENDING_SIGNATURE}),
    "send_to_patient": frozenset({_S.SIGNED}),
    "mark_as_viewed": frozenset({_S.SENT}),
    "mark_as_filled": frozenset({_S.SENT, _S.VIEWED}),
    "cancel": frozenset(
        {_S.DRAFT, _S.PENDING_SIGNATURE, _S.SIGNED, _S.SENT, _S.VIEWED}
    ),
    "expire": frozenset({_S.SIGNED, _S.SENT, _S.VIEWED}),
}

# Statuses already past "sent"; viewing again is silently ignored
VIEW_NOOP_STATUSES = frozenset({_S.VIEWED, _S.FILLED, _S.EXPIRED})


EVENT_FOR_STATUS: Dict[PrescriptionStatus, PrescriptionEventType] = {
    _S.DRAFT: PrescriptionEventType.UPDATED,
    _S.PENDING_SIGNATURE: PrescriptionEventType.UPDATED,
    _S.SIGNED: PrescriptionEventType.SIGNED,
    _S.SENT: PrescriptionEventType.SENT,
    _S.VIEWED: PrescriptionEventType.VIEWED,
    _S.FILLED: PrescriptionEventType.FILLED,
    _S.EXPIRED: PrescriptionEventType.EXPIRED,
    _S.CANCELED: PrescriptionEventType.CANCELED,
}


@dataclass
class PrescriptionMedication:
    """Medication line on a prescription."""

    id: str
    name: str
    dosage: str
    unit: str = "unidade"
    route: str = "oral"
    frequency: str = ""
    duration: str = ""
    quantity: int = 1
    instructions: Optional[str] = None
    active_principle: Optional[str] = None
    presentation: Optional[str] = None
    is_controlled: bool = False
    control_type: Optional[str] = None
    continuous_use: bool = False


@dataclass
class SignatureBlock:
    signed_by: str
    signed_at: datetime
    certificate_serial: str
    signature_hash: str


@dataclass
class Prescription:
    """Prescription domain entity.

    ``expires_at`` is fixed at creation from the type's validity window and
    is never recomputed afterwards.
    """

    id: str
    clinic_id: str
    patient_id: str
    patient_name: str
    professional_id: str
    professional_name: str
    professional_crm: str
    professional_crm_state: str
    type: PrescriptionType
    status: PrescriptionStatus
    medications: List[PrescriptionMedication]
    validity_days: int
    prescribed_at: datetime
    expires_at: datetime
    patient_cpf: Optional[str] = None
    observations: Optional[str] = None
    signature: Optional[SignatureBlock] = None
    validation_code: Optional[str] = None
    sent_at: Optional[datetime] = None
    sent_via: Optional[DeliveryMethod] = None
    viewed_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None
    filled_by_pharmacy: Optional[str] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def can(self, operation: str) -> bool:
        """Check whether ``operation`` is legal from the current status."""
        return self.status in ALLOWED_TRANSITIONS[operation]

    def ensure_can(self, operation: str) -> None:
        if not self.can(operation):
            allowed = sorted(s.value for s in ALLOWED_TRANSITIONS[operation])
            raise InvalidStateError(operation, self.status.value, allowed)

    def is_past_expiry(self, now: datetime) -> bool:
        return self.expires_at < now


@dataclass
class PrescriptionLog:
    """Workflow event recorded under a prescription."""

    id: str
    prescription_id: str
    event_type: PrescriptionEventType
    user_id: str
    user_name: str
    timestamp: Optional[datetime] = None
    details: Dict[str, Any] = field(default_factory=dict)
