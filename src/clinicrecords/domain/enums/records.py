"""
Medical record type enums.
"""

from enum import Enum


class RecordType(str, Enum):
    """Variants sharing the clinic's records collection."""
    SOAP = "soap"
    NOTE = "note"
    PRESCRIPTION = "prescription"
    EXAM_REQUEST = "exam_request"
    PSYCHO_SESSION = "psycho_session"
    ANTHROPOMETRY = "anthropometry"


class SessionMood(str, Enum):
    """Patient mood recorded on a psychotherapy session."""
    HAPPY = "happy"
    NEUTRAL = "neutral"
    SAD = "sad"
    ANXIOUS = "anxious"
    ANGRY = "angry"


class AttachmentKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
