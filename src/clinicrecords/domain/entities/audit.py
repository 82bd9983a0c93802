"""Compliance audit log entry entity."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..enums.audit import AuditAction


@dataclass
class AuditLogEntry:
    """Append-only record of who accessed or changed what."""

    clinic_id: str
    user_id: str
    user_name: str
    action: AuditAction
    resource_type: str
    resource_id: str
    request_id: str
    modified_fields: Optional[List[str]] = None
    previous_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None
    checksum: Optional[str] = None
    timestamp: Optional[datetime] = None
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """Stored fields; unset optional sections are omitted."""
        document: Dict[str, Any] = {
            "clinic_id": self.clinic_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "action": AuditAction(self.action).value,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "request_id": self.request_id,
        }
        for key in ("modified_fields", "previous_values", "new_values", "details", "checksum"):
            value = getattr(self, key)
            if value is not None:
                document[key] = value
        return document
