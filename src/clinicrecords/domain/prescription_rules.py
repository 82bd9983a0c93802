"""
Prescription classification rules.

Statutory prescription type is derived from the medications' control
classification: the most restrictive medication decides the type for the
whole prescription. Each type carries a fixed validity window.
"""

import secrets
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .enums.prescription import PrescriptionType

VALIDITY_DAYS = {
    PrescriptionType.COMMON: 60,
    PrescriptionType.ANTIMICROBIAL: 10,
    PrescriptionType.SPECIAL_WHITE: 30,
    PrescriptionType.BLUE: 30,
    PrescriptionType.YELLOW: 30,
}

# Least to most restrictive
_RESTRICTION_ORDER = [
    PrescriptionType.COMMON,
    PrescriptionType.ANTIMICROBIAL,
    PrescriptionType.SPECIAL_WHITE,
    PrescriptionType.BLUE,
    PrescriptionType.YELLOW,
]

VALIDATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
VALIDATION_CODE_LENGTH = 8


def restriction_rank(prescription_type: PrescriptionType) -> int:
    return _RESTRICTION_ORDER.index(PrescriptionType(prescription_type))


def classify_control_type(control_type: Optional[str]) -> PrescriptionType:
    """Map a single medication's control classification to a prescription type."""
    if not control_type:
        return PrescriptionType.COMMON
    normalized = control_type.strip()
    if normalized.lower() == "antimicrobial":
        return PrescriptionType.ANTIMICROBIAL
    first = normalized[:1].upper()
    if first == "A":
        return PrescriptionType.YELLOW
    if first == "B":
        return PrescriptionType.BLUE
    if first == "C":
        return PrescriptionType.SPECIAL_WHITE
    return PrescriptionType.COMMON


def derive_prescription_type(
    control_types: Iterable[Optional[str]],
    requested: Optional[PrescriptionType] = None,
) -> PrescriptionType:
    """Resolve the prescription type; the highest restriction wins.

    A requested type is only honoured when it is at least as restrictive
    as the one derived from the medications.
    """
    derived = PrescriptionType.COMMON
    for control_type in control_types:
        candidate = classify_control_type(control_type)
        if restriction_rank(candidate) > restriction_rank(derived):
            derived = candidate

    if requested is not None and restriction_rank(requested) >= restriction_rank(derived):
        return PrescriptionType(requested)
    return derived


def validity_days_for(prescription_type: PrescriptionType) -> int:
    return VALIDITY_DAYS[PrescriptionType(prescription_type)]


def calculate_expiration(prescribed_at: datetime, prescription_type: PrescriptionType) -> datetime:
    return prescribed_at + timedelta(days=validity_days_for(prescription_type))


def generate_validation_code() -> str:
    """Generate an 8-character pharmacy lookup token without ambiguous glyphs."""
    return "".join(
        secrets.choice(VALIDATION_CODE_ALPHABET) for _ in range(VALIDATION_CODE_LENGTH)
    )
