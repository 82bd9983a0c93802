"""
Compliance audit log enums.
"""

from enum import Enum


class AuditAction(str, Enum):
    """Actions recorded in the audit log."""
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"
    DATA_REQUEST = "data_request"


class AuditResourceType(str, Enum):
    """Resource types written by the core."""
    MEDICAL_RECORD = "medical_record"
    RECORD_VERSION = "record_version"
    PRESCRIPTION = "prescription"
    PATIENT = "patient"
