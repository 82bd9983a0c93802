"""
Prescription lifecycle enums.
"""

from enum import Enum


class PrescriptionStatus(str, Enum):
    """Prescription status values along the lifecycle graph."""

    # Editable statuses
    DRAFT = "draft"
    PENDING_SIGNATURE = "pending_signature"

    # Delivery statuses (sequential)
    SIGNED = "signed"
    SENT = "sent"
    VIEWED = "viewed"

    # Terminal statuses
    FILLED = "filled"
    EXPIRED = "expired"
    CANCELED = "canceled"


class PrescriptionType(str, Enum):
    """Prescription marking derived from medication control classification."""
    COMMON = "common"                # Plain white form
    ANTIMICROBIAL = "antimicrobial"  # Antimicrobial retention form
    SPECIAL_WHITE = "special_white"  # C-list substances
    BLUE = "blue"                    # B-list psychotropics
    YELLOW = "yellow"                # A-list narcotics


class PrescriptionEventType(str, Enum):
    """Event types written to a prescription's workflow log."""
    CREATED = "created"
    UPDATED = "updated"
    SIGNED = "signed"
    SENT = "sent"
    VIEWED = "viewed"
    FILLED = "filled"
    EXPIRED = "expired"
    CANCELED = "canceled"


class DeliveryMethod(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
