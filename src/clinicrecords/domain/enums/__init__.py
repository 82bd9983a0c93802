"""
Domain enums package.
"""

from .audit import AuditAction, AuditResourceType
from .prescription import (
    DeliveryMethod,
    PrescriptionEventType,
    PrescriptionStatus,
    PrescriptionType,
)
from .records import AttachmentKind, RecordType, SessionMood

__all__ = [
    "AuditAction",
    "AuditResourceType",
    "DeliveryMethod",
    "PrescriptionEventType",
    "PrescriptionStatus",
    "PrescriptionType",
    "AttachmentKind",
    "RecordType",
    "SessionMood",
]
