"""
Compliance audit log writer.

Appends immutable who-did-what entries under ``clinics/{clinic_id}/auditLog``.
Every mutating call in the core issues exactly one append after its primary
write. A failed append never undoes or fails the primary mutation; the full
entry is emitted on the CRITICAL fallback channel instead.
"""

import hashlib
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from ...core.structured_logger import get_logger
from ...domain.entities.audit import AuditLogEntry
from ...domain.enums.audit import AuditAction, AuditResourceType
from ...domain.errors import StoreFailureError
from ...domain.value_objects.actor import Actor
from ..collections import audit_log_path
from ..ports.document_store import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger(__name__)

# Fields resolved or produced after the checksum is taken
_CHECKSUM_EXCLUDED = {"checksum", "timestamp", "_id", "id"}


def calculate_checksum(entry: Dict[str, Any]) -> str:
    """Calculate SHA-256 checksum for integrity verification."""
    entry_copy = {k: v for k, v in entry.items() if k not in _CHECKSUM_EXCLUDED}
    entry_json = json.dumps(entry_copy, sort_keys=True, default=str)
    return hashlib.sha256(entry_json.encode()).hexdigest()


def verify_checksum(entry: Dict[str, Any]) -> bool:
    stored_checksum = entry.get("checksum")
    if not stored_checksum:
        return False
    return stored_checksum == calculate_checksum(entry)


class AuditLogWriter:
    """Append-only writer for the clinic audit log."""

    def __init__(self, store: DocumentStore, mirror_to_app_log: bool = True):
        self._store = store
        self._mirror_to_app_log = mirror_to_app_log
        self._structured = get_logger("clinicrecords.audit", component="audit_log")

    async def append(
        self,
        clinic_id: str,
        actor: Actor,
        action: AuditAction,
        resource_type: str,
        resource_id: str,
        modified_fields: Optional[List[str]] = None,
        previous_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Append one entry; returns its id, or None when the fallback was used."""
        collection = audit_log_path(clinic_id)
        entry = AuditLogEntry(
            clinic_id=clinic_id,
            user_id=actor.user_id,
            user_name=actor.user_name,
            action=AuditAction(action),
            resource_type=str(getattr(resource_type, "value", resource_type)),
            resource_id=resource_id,
            request_id=str(uuid.uuid4()),
            modified_fields=list(modified_fields) if modified_fields is not None else None,
            previous_values=previous_values,
            new_values=new_values,
            details=details,
        ).to_document()
        entry["checksum"] = calculate_checksum(entry)

        try:
            entry_id = await self._store.add(collection, {**entry, "timestamp": SERVER_TIMESTAMP})
        except StoreFailureError as e:
            logger.error("Failed to write audit entry: %s", e.message)
            self._fallback_log(entry)
            return None

        if self._mirror_to_app_log:
            self._structured.info(
                "AUDIT",
                audit_id=entry_id,
                clinic_id=clinic_id,
                user_id=actor.user_id,
                action=entry["action"],
                resource=f"{entry['resource_type']}:{resource_id}",
                modified_fields=entry.get("modified_fields"),
            )
        return entry_id

    def _fallback_log(self, entry: Dict[str, Any]) -> None:
        """Emit the full entry on the CRITICAL channel when the store is unavailable."""
        logger.critical("AUDIT_FALLBACK: %s", json.dumps(entry, default=str))

    async def log_view(
        self,
        clinic_id: str,
        actor: Actor,
        resource_type: str,
        resource_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        return await self.append(
            clinic_id, actor, AuditAction.VIEW, resource_type, resource_id, details=details
        )

    async def log_create(
        self,
        clinic_id: str,
        actor: Actor,
        resource_type: str,
        resource_id: str,
        data: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        return await self.append(
            clinic_id,
            actor,
            AuditAction.CREATE,
            resource_type,
            resource_id,
            new_values=data,
            details=details,
        )

    async def log_update(
        self,
        clinic_id: str,
        actor: Actor,
        resource_type: str,
        resource_id: str,
        previous_values: Dict[str, Any],
        new_values: Dict[str, Any],
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Log an update; modified fields are the keys of ``new_values``."""
        return await self.append(
            clinic_id,
            actor,
            AuditAction.UPDATE,
            resource_type,
            resource_id,
            modified_fields=list(new_values.keys()),
            previous_values=previous_values,
            new_values=new_values,
            details=details,
        )

    async def log_delete(
        self,
        clinic_id: str,
        actor: Actor,
        resource_type: str,
        resource_id: str,
        previous_values: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        return await self.append(
            clinic_id,
            actor,
            AuditAction.DELETE,
            resource_type,
            resource_id,
            previous_values=previous_values,
            details=details,
        )

    async def log_export(
        self,
        clinic_id: str,
        actor: Actor,
        resource_type: str,
        resource_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        return await self.append(
            clinic_id, actor, AuditAction.EXPORT, resource_type, resource_id, details=details
        )

    async def log_data_request(
        self,
        clinic_id: str,
        actor: Actor,
        patient_id: str,
        request_type: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Log a data-subject request (access, portability, deletion) for a patient."""
        return await self.append(
            clinic_id,
            actor,
            AuditAction.DATA_REQUEST,
            AuditResourceType.PATIENT,
            patient_id,
            details={"request_type": request_type, **(details or {})},
        )
