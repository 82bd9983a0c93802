"""
Medical record manager.

Orchestrates reads and mutations of live record documents. Every update
snapshots the pre-update state into the VersionStore before the live write,
and every mutation appends one audit entry after it.
"""

import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from ...domain.entities.record import MedicalRecord, RecordAttachment, RecordVersion
from ...domain.enums.audit import AuditResourceType
from ...domain.enums.records import AttachmentKind, RecordType
from ...domain.errors import NotFoundError, RecordNotFoundError, ValidationFailedError
from ...domain.value_objects.actor import Actor
from ...domain.value_objects.clinic_id import require_clinic_id
from ..collections import records_path
from ..dto.record_dto import AttachmentInput, CreateRecordInput, RecordUpdate
from ..dto.validation import parse_input
from ..ports.document_store import SERVER_TIMESTAMP, DocumentStore, OrderBy, QueryFilter
from ..read_models import to_record
from .audit_log_writer import AuditLogWriter
from .subscriptions import ErrorCallback, live_view
from .version_store import VersionStore

logger = logging.getLogger(__name__)

_RESOURCE = AuditResourceType.MEDICAL_RECORD


class RecordManager:
    """Live record operations with version trail and audit obligations."""

    def __init__(self, store: DocumentStore, versions: VersionStore, audit: AuditLogWriter):
        self._store = store
        self._versions = versions
        self._audit = audit

    async def create(
        self, clinic_id: str, actor: Actor, data: Union[CreateRecordInput, Dict[str, Any]]
    ) -> MedicalRecord:
        require_clinic_id(clinic_id)
        record_input = parse_input(CreateRecordInput, data)
        document = record_input.to_fields()
        document.update(
            {
                "date": SERVER_TIMESTAMP,
                "version": 1,
                "attachments": [],
                "created_by": actor.user_id,
            }
        )
        record_id = await self._store.add(records_path(clinic_id), document)
        logger.info(
            "Created %s record %s for patient %s (clinic=%s)",
            record_input.type,
            record_id,
            record_input.patient_id,
            clinic_id,
        )

        await self._audit.log_create(
            clinic_id,
            actor,
            _RESOURCE,
            record_id,
            data={"type": record_input.type, "patient_id": record_input.patient_id},
        )

        stored = await self._store.get(records_path(clinic_id), record_id)
        if stored is None:
            raise RecordNotFoundError(clinic_id, record_id)
        return to_record(stored.id, stored.data)

    async def get_by_id(
        self, clinic_id: str, record_id: str, actor: Optional[Actor] = None
    ) -> Optional[MedicalRecord]:
        """Read a record; when an actor is given the access is audited as a view."""
        require_clinic_id(clinic_id)
        snapshot = await self._store.get(records_path(clinic_id), record_id)
        if snapshot is None:
            return None
        if actor is not None:
            await self._audit.log_view(
                clinic_id, actor, _RESOURCE, record_id, details={"patient_id": snapshot.get("patient_id")}
            )
        return to_record(snapshot.id, snapshot.data)

    async def list_by_patient(
        self, clinic_id: str, patient_id: str, record_type: Optional[RecordType] = None
    ) -> List[MedicalRecord]:
        """Records for a patient, newest first."""
        require_clinic_id(clinic_id)
        filters = [QueryFilter("patient_id", "==", patient_id)]
        if record_type is not None:
            filters.append(QueryFilter("type", "==", RecordType(record_type).value))
        return await self._list(clinic_id, filters)

    async def list_all(
        self, clinic_id: str, record_type: Optional[RecordType] = None
    ) -> List[MedicalRecord]:
        """One-shot read of every record in the clinic, newest first."""
        require_clinic_id(clinic_id)
        filters = []
        if record_type is not None:
            filters.append(QueryFilter("type", "==", RecordType(record_type).value))
        return await self._list(clinic_id, filters)

    async def _list(self, clinic_id: str, filters: List[QueryFilter]) -> List[MedicalRecord]:
        snapshots = await self._store.query(
            records_path(clinic_id), filters=filters, order_by=[OrderBy("date", descending=True)]
        )
        return [to_record(s.id, s.data) for s in snapshots]

    async def export_patient_records(
        self, clinic_id: str, patient_id: str, actor: Actor
    ) -> List[MedicalRecord]:
        """All records of a patient for an export, audited as one export entry."""
        records = await self.list_by_patient(clinic_id, patient_id)
        await self._audit.log_export(
            clinic_id,
            actor,
            AuditResourceType.PATIENT,
            patient_id,
            details={"record_count": len(records), "record_ids": [r.id for r in records]},
        )
        return records

    async def update(
        self,
        clinic_id: str,
        record_id: str,
        changes: Union[RecordUpdate, Dict[str, Any]],
        actor: Actor,
        change_reason: Optional[str] = None,
    ) -> int:
        """Apply a partial update as a new version; returns the new version number."""
        require_clinic_id(clinic_id)
        fields = parse_input(RecordUpdate, changes).to_fields()
        if not fields:
            raise ValidationFailedError("Record update contains no fields")
        return await self._versioned_update(clinic_id, record_id, fields, actor, change_reason)

    async def _versioned_update(
        self,
        clinic_id: str,
        record_id: str,
        fields: Dict[str, Any],
        actor: Actor,
        change_reason: Optional[str] = None,
        audit_details: Optional[Dict[str, Any]] = None,
    ) -> int:
        current = await self._store.get(records_path(clinic_id), record_id)
        if current is None:
            raise RecordNotFoundError(clinic_id, record_id)

        current_version = current.data.get("version") or 1
        new_version = current_version + 1

        # Snapshot first; a failed snapshot aborts the live write
        await self._versions.save_version(
            clinic_id, record_id, current.data, current_version, actor.user_id, change_reason
        )
        await self._store.update(
            records_path(clinic_id),
            record_id,
            {
                **fields,
                "version": new_version,
                "updated_at": SERVER_TIMESTAMP,
                "updated_by": actor.user_id,
            },
        )
        logger.info(
            "Updated record %s to version %s (clinic=%s)", record_id, new_version, clinic_id
        )

        await self._audit.log_update(
            clinic_id,
            actor,
            _RESOURCE,
            record_id,
            previous_values={key: current.data.get(key) for key in fields},
            new_values=fields,
            details=audit_details,
        )
        return new_version

    async def delete(self, clinic_id: str, record_id: str, actor: Actor) -> None:
        """Delete the live document. The version trail is kept."""
        require_clinic_id(clinic_id)
        current = await self._store.get(records_path(clinic_id), record_id)
        if current is None:
            raise RecordNotFoundError(clinic_id, record_id)

        await self._store.delete(records_path(clinic_id), record_id)
        logger.info("Deleted record %s (clinic=%s)", record_id, clinic_id)

        # The live version is not in the trail, so the audit entry keeps it
        await self._audit.log_delete(
            clinic_id,
            actor,
            _RESOURCE,
            record_id,
            previous_values={**current.data, "version": current.data.get("version") or 1},
        )

    async def add_attachment(
        self,
        clinic_id: str,
        record_id: str,
        attachment: Union[AttachmentInput, Dict[str, Any]],
        actor: Actor,
    ) -> RecordAttachment:
        require_clinic_id(clinic_id)
        attachment_input = parse_input(AttachmentInput, attachment)
        current = await self._store.get(records_path(clinic_id), record_id)
        if current is None:
            raise RecordNotFoundError(clinic_id, record_id)

        new_attachment = RecordAttachment(
            id=str(uuid.uuid4()),
            url=attachment_input.url,
            name=attachment_input.name,
            size=attachment_input.size,
            kind=AttachmentKind(attachment_input.kind),
            uploaded_by=actor.user_id,
        )
        stored_attachment = {
            "id": new_attachment.id,
            "url": new_attachment.url,
            "name": new_attachment.name,
            "size": new_attachment.size,
            "kind": new_attachment.kind.value,
            "uploaded_at": SERVER_TIMESTAMP,
            "uploaded_by": actor.user_id,
        }
        attachments = list(current.data.get("attachments") or []) + [stored_attachment]
        await self._versioned_update(
            clinic_id,
            record_id,
            {"attachments": attachments},
            actor,
            change_reason=f"Attachment added: {new_attachment.name}",
            audit_details={"attachment_id": new_attachment.id},
        )
        return new_attachment

    async def remove_attachment(
        self, clinic_id: str, record_id: str, attachment_id: str, actor: Actor
    ) -> None:
        require_clinic_id(clinic_id)
        current = await self._store.get(records_path(clinic_id), record_id)
        if current is None:
            raise RecordNotFoundError(clinic_id, record_id)

        attachments = list(current.data.get("attachments") or [])
        remaining = [a for a in attachments if a.get("id") != attachment_id]
        if len(remaining) == len(attachments):
            raise NotFoundError(
                f"Attachment '{attachment_id}' not found on record '{record_id}'",
                {"record_id": record_id, "attachment_id": attachment_id},
            )
        removed_name = next(a.get("name") for a in attachments if a.get("id") == attachment_id)
        await self._versioned_update(
            clinic_id,
            record_id,
            {"attachments": remaining},
            actor,
            change_reason=f"Attachment removed: {removed_name}",
            audit_details={"attachment_id": attachment_id},
        )

    # Version trail

    async def get_version_history(self, clinic_id: str, record_id: str) -> List[RecordVersion]:
        return await self._versions.get_history(clinic_id, record_id)

    async def get_version(
        self, clinic_id: str, record_id: str, version_number: int
    ) -> Optional[RecordVersion]:
        return await self._versions.get_version(clinic_id, record_id, version_number)

    async def restore_version(
        self, clinic_id: str, record_id: str, version_number: int, actor: Actor
    ) -> int:
        return await self._versions.restore(clinic_id, record_id, version_number, actor)

    # Live views

    def watch(
        self, clinic_id: str, on_error: Optional[ErrorCallback] = None, limit: Optional[int] = None
    ) -> AsyncIterator[List[MedicalRecord]]:
        """Live list of the clinic's records, newest first."""
        return live_view(
            lambda: self._store.subscribe(
                records_path(clinic_id), order_by=[OrderBy("date", descending=True)], limit=limit
            ),
            lambda s: to_record(s.id, s.data),
            on_error,
            description=f"records of clinic {clinic_id}",
        )

    def watch_by_patient(
        self, clinic_id: str, patient_id: str, on_error: Optional[ErrorCallback] = None
    ) -> AsyncIterator[List[MedicalRecord]]:
        return live_view(
            lambda: self._store.subscribe(
                records_path(clinic_id),
                filters=[QueryFilter("patient_id", "==", patient_id)],
                order_by=[OrderBy("date", descending=True)],
            ),
            lambda s: to_record(s.id, s.data),
            on_error,
            description=f"records of patient {patient_id}",
        )
