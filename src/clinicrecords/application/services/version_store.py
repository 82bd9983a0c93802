"""
Append-only version history for medical records.

The live record document is version N; ``clinics/{cid}/records/{rid}/versions``
holds the pre-update states tagged 1..N-1. Snapshots are never updated or
deleted. Restore adds to the history instead of rewriting it.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from ...domain.entities.record import RecordVersion
from ...domain.enums.audit import AuditResourceType
from ...domain.errors import RecordNotFoundError, VersionNotFoundError
from ...domain.value_objects.actor import Actor
from ...domain.value_objects.clinic_id import require_clinic_id
from ..collections import records_path, versions_path
from ..ports.document_store import SERVER_TIMESTAMP, DocumentStore, OrderBy, QueryFilter
from ..read_models import to_record_version
from .audit_log_writer import AuditLogWriter

logger = logging.getLogger(__name__)

# Bookkeeping fields that are not part of a record's content
_LIVE_ONLY_FIELDS = ("version", "updated_at", "updated_by")


def snapshot_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Field copy stored in a snapshot."""
    return copy.deepcopy(data)


class VersionStore:
    """Per-record append-only snapshot history."""

    def __init__(self, store: DocumentStore, audit: AuditLogWriter):
        self._store = store
        self._audit = audit

    async def save_version(
        self,
        clinic_id: str,
        record_id: str,
        snapshot_data: Dict[str, Any],
        version_number: int,
        saved_by: str,
        change_reason: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> str:
        """Append one snapshot of a record's pre-mutation state.

        Store failures propagate so the caller never writes the live
        document without its matching snapshot.
        """
        require_clinic_id(clinic_id)
        document: Dict[str, Any] = {
            "record_id": record_id,
            "version": version_number,
            "data": snapshot_fields(snapshot_data),
            "saved_at": SERVER_TIMESTAMP,
            "saved_by": saved_by,
        }
        if change_reason:
            document["change_reason"] = change_reason

        version_id = await self._store.add(versions_path(clinic_id, record_id), document)
        logger.debug(
            "Saved version %s of record %s (clinic=%s)", version_number, record_id, clinic_id
        )

        if actor is not None:
            await self._audit.log_create(
                clinic_id,
                actor,
                AuditResourceType.RECORD_VERSION,
                version_id,
                data={"record_id": record_id, "version": version_number},
                details={"change_reason": change_reason} if change_reason else None,
            )
        return version_id

    async def get_history(self, clinic_id: str, record_id: str) -> List[RecordVersion]:
        """All snapshots of a record, newest version first."""
        require_clinic_id(clinic_id)
        snapshots = await self._store.query(
            versions_path(clinic_id, record_id),
            order_by=[OrderBy("version", descending=True), OrderBy("saved_at", descending=True)],
        )
        return [to_record_version(s.id, record_id, s.data) for s in snapshots]

    async def get_version(
        self, clinic_id: str, record_id: str, version_number: int
    ) -> Optional[RecordVersion]:
        """Snapshot tagged ``version_number``; the latest saved one wins on duplicates."""
        require_clinic_id(clinic_id)
        snapshots = await self._store.query(
            versions_path(clinic_id, record_id),
            filters=[QueryFilter("version", "==", version_number)],
            order_by=[OrderBy("saved_at", descending=True)],
            limit=1,
        )
        if not snapshots:
            return None
        return to_record_version(snapshots[0].id, record_id, snapshots[0].data)

    async def restore(
        self, clinic_id: str, record_id: str, version_number: int, actor: Actor
    ) -> int:
        """Make snapshot ``version_number`` the live state as a new version.

        The steps are not atomic: a failure after the snapshot write leaves
        an extra historical snapshot with no matching restore.
        """
        require_clinic_id(clinic_id)
        target = await self.get_version(clinic_id, record_id, version_number)
        if target is None:
            raise VersionNotFoundError(clinic_id, record_id, version_number)

        current = await self._store.get(records_path(clinic_id), record_id)
        if current is None:
            raise RecordNotFoundError(clinic_id, record_id)

        current_version = current.data.get("version") or 1
        new_version = current_version + 1

        await self.save_version(
            clinic_id,
            record_id,
            current.data,
            current_version,
            actor.user_id,
            change_reason=f"Restored from version {version_number}",
        )

        restored = {k: v for k, v in target.data.items() if k not in _LIVE_ONLY_FIELDS}
        restored.update(
            {
                "version": new_version,
                "updated_at": SERVER_TIMESTAMP,
                "updated_by": actor.user_id,
            }
        )
        await self._store.put(records_path(clinic_id), record_id, restored)
        logger.info(
            "Restored record %s to version %s as version %s (clinic=%s)",
            record_id,
            version_number,
            new_version,
            clinic_id,
        )

        await self._audit.log_update(
            clinic_id,
            actor,
            AuditResourceType.MEDICAL_RECORD,
            record_id,
            previous_values={"version": current_version, "restored_from_version": version_number},
            new_values={"version": new_version, "action": "restore", "restored_by": actor.user_id},
        )
        return new_version
