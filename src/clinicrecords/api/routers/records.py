"""
Medical record endpoints: versioned CRUD, attachments and version history.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...application.dto.record_dto import AttachmentInput, CreateRecordInput, RecordUpdate
from ...application.services.audit_log_writer import AuditLogWriter
from ...application.services.record_manager import RecordManager
from ...domain.enums.records import RecordType
from ...domain.errors import RecordNotFoundError, VersionNotFoundError
from ...domain.value_objects.actor import Actor
from ..deps import get_actor, get_audit_writer, get_record_manager
from ..schemas.common import ApiResponse
from ..schemas.records import DataRequestBody, VersionResponse
from ..utils.responses import ok

router = APIRouter(prefix="/clinics/{clinic_id}", tags=["Medical Records"])


@router.post("/records", response_model=ApiResponse[Any], status_code=status.HTTP_201_CREATED)
async def create_record(
    request: Request,
    clinic_id: str,
    body: CreateRecordInput,
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    record = await records.create(clinic_id, actor, body)
    return ok(request, data=record, message="Record created")


@router.get("/records", response_model=ApiResponse[Any])
async def list_records(
    request: Request,
    clinic_id: str,
    patient_id: Optional[str] = Query(None, min_length=1),
    record_type: Optional[RecordType] = Query(None, alias="type"),
    records: RecordManager = Depends(get_record_manager),
):
    if patient_id is None:
        items = await records.list_all(clinic_id, record_type)
    else:
        items = await records.list_by_patient(clinic_id, patient_id, record_type)
    return ok(request, data=items)


@router.get("/records/{record_id}", response_model=ApiResponse[Any])
async def get_record(
    request: Request,
    clinic_id: str,
    record_id: str,
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    record = await records.get_by_id(clinic_id, record_id, actor=actor)
    if record is None:
        raise RecordNotFoundError(clinic_id, record_id)
    return ok(request, data=record)


@router.patch("/records/{record_id}", response_model=ApiResponse[VersionResponse])
async def update_record(
    request: Request,
    clinic_id: str,
    record_id: str,
    body: RecordUpdate,
    change_reason: Optional[str] = Query(None),
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    version = await records.update(clinic_id, record_id, body, actor, change_reason)
    return ok(request, data=VersionResponse(record_id=record_id, version=version), message="Record updated")


@router.delete("/records/{record_id}", response_model=ApiResponse[Any])
async def delete_record(
    request: Request,
    clinic_id: str,
    record_id: str,
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    await records.delete(clinic_id, record_id, actor)
    return ok(request, data={"record_id": record_id}, message="Record deleted")


@router.post("/records/{record_id}/attachments", response_model=ApiResponse[Any], status_code=status.HTTP_201_CREATED)
async def add_attachment(
    request: Request,
    clinic_id: str,
    record_id: str,
    body: AttachmentInput,
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    attachment = await records.add_attachment(clinic_id, record_id, body, actor)
    return ok(request, data=attachment, message="Attachment added")


@router.delete("/records/{record_id}/attachments/{attachment_id}", response_model=ApiResponse[Any])
async def remove_attachment(
    request: Request,
    clinic_id: str,
    record_id: str,
    attachment_id: str,
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    await records.remove_attachment(clinic_id, record_id, attachment_id, actor)
    return ok(request, data={"attachment_id": attachment_id}, message="Attachment removed")


@router.get("/records/{record_id}/versions", response_model=ApiResponse[Any])
async def get_version_history(
    request: Request,
    clinic_id: str,
    record_id: str,
    records: RecordManager = Depends(get_record_manager),
):
    history = await records.get_version_history(clinic_id, record_id)
    return ok(request, data=history)


@router.get("/records/{record_id}/versions/{version}", response_model=ApiResponse[Any])
async def get_version(
    request: Request,
    clinic_id: str,
    record_id: str,
    version: int,
    records: RecordManager = Depends(get_record_manager),
):
    snapshot = await records.get_version(clinic_id, record_id, version)
    if snapshot is None:
        raise VersionNotFoundError(clinic_id, record_id, version)
    return ok(request, data=snapshot)


@router.post("/records/{record_id}/versions/{version}/restore", response_model=ApiResponse[VersionResponse])
async def restore_version(
    request: Request,
    clinic_id: str,
    record_id: str,
    version: int,
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    new_version = await records.restore_version(clinic_id, record_id, version, actor)
    return ok(
        request,
        data=VersionResponse(record_id=record_id, version=new_version),
        message=f"Restored from version {version}",
    )


@router.get("/patients/{patient_id}/records/export", response_model=ApiResponse[Any])
async def export_patient_records(
    request: Request,
    clinic_id: str,
    patient_id: str,
    actor: Actor = Depends(get_actor),
    records: RecordManager = Depends(get_record_manager),
):
    items = await records.export_patient_records(clinic_id, patient_id, actor)
    return ok(request, data=items)


@router.post("/patients/{patient_id}/data-requests", response_model=ApiResponse[Any], status_code=status.HTTP_202_ACCEPTED)
async def register_data_request(
    request: Request,
    clinic_id: str,
    patient_id: str,
    body: DataRequestBody,
    actor: Actor = Depends(get_actor),
    audit: AuditLogWriter = Depends(get_audit_writer),
):
    details = {"notes": body.notes} if body.notes else None
    entry_id = await audit.log_data_request(clinic_id, actor, patient_id, body.request_type, details)
    return ok(request, data={"audit_id": entry_id}, message="Data request registered")
