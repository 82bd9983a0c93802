"""
Prescription lifecycle endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...application.dto.prescription_dto import (
    CancelInput,
    FillInput,
    PrescriptionUpdate,
    SendInput,
    SignatureInput,
)
from ...application.services.prescription_workflow import PrescriptionWorkflowEngine
from ...domain.enums.prescription import PrescriptionStatus
from ...domain.errors import PrescriptionNotFoundError
from ...domain.value_objects.actor import Actor
from ..deps import get_actor, get_prescription_engine
from ..errors import NotFoundError
from ..schemas.common import ApiResponse
from ..schemas.prescriptions import CreatePrescriptionRequest, SweepResponse
from ..utils.responses import ok

router = APIRouter(prefix="/clinics/{clinic_id}/prescriptions", tags=["Prescriptions"])


@router.post("", response_model=ApiResponse[Any], status_code=status.HTTP_201_CREATED)
async def create_prescription(
    request: Request,
    clinic_id: str,
    body: CreatePrescriptionRequest,
    actor: Actor = Depends(get_actor),
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.create(clinic_id, actor, body.professional, body.prescription)
    return ok(request, data=prescription, message="Prescription created")


@router.get("", response_model=ApiResponse[Any])
async def list_prescriptions(
    request: Request,
    clinic_id: str,
    status_filter: Optional[PrescriptionStatus] = Query(None, alias="status"),
    patient_id: Optional[str] = Query(None),
    professional_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    items = await engine.list(clinic_id, status_filter, patient_id, professional_id, limit)
    return ok(request, data=items)


@router.get("/validate/{validation_code}", response_model=ApiResponse[Any])
async def validate_prescription(
    request: Request,
    clinic_id: str,
    validation_code: str,
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.get_by_validation_code(clinic_id, validation_code)
    if prescription is None:
        raise NotFoundError(
            f"No prescription with validation code '{validation_code}'",
            {"validation_code": validation_code},
        )
    return ok(request, data=prescription)


@router.post("/expire-sweep", response_model=ApiResponse[SweepResponse])
async def sweep_expired(
    request: Request,
    clinic_id: str,
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    expired = await engine.sweep_expired(clinic_id)
    return ok(request, data=SweepResponse(clinic_id=clinic_id, expired=expired))


@router.get("/{prescription_id}", response_model=ApiResponse[Any])
async def get_prescription(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.get_by_id(clinic_id, prescription_id)
    if prescription is None:
        raise PrescriptionNotFoundError(clinic_id, prescription_id)
    return ok(request, data=prescription)


@router.patch("/{prescription_id}", response_model=ApiResponse[Any])
async def update_prescription(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    body: PrescriptionUpdate,
    actor: Actor = Depends(get_actor),
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.update(clinic_id, prescription_id, body, actor)
    return ok(request, data=prescription, message="Prescription updated")


@router.post("/{prescription_id}/submit", response_model=ApiResponse[Any])
async def submit_for_signature(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    actor: Actor = Depends(get_actor),
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.submit_for_signature(clinic_id, prescription_id, actor)
    return ok(request, data=prescription, message="Prescription awaiting signature")


@router.post("/{prescription_id}/sign", response_model=ApiResponse[Any])
async def sign_prescription(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    body: SignatureInput,
    actor: Actor = Depends(get_actor),
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.sign(clinic_id, prescription_id, body, actor)
    return ok(request, data=prescription, message="Prescription signed")


@router.post("/{prescription_id}/send", response_model=ApiResponse[Any])
async def send_to_patient(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    body: SendInput,
    actor: Actor = Depends(get_actor),
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.send_to_patient(clinic_id, prescription_id, body.method, actor)
    return ok(request, data=prescription, message="Prescription sent")


@router.post("/{prescription_id}/view", response_model=ApiResponse[Any])
async def mark_as_viewed(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.mark_as_viewed(clinic_id, prescription_id)
    return ok(request, data=prescription)


@router.post("/{prescription_id}/fill", response_model=ApiResponse[Any])
async def mark_as_filled(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    body: FillInput,
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.mark_as_filled(clinic_id, prescription_id, body.pharmacy_name)
    return ok(request, data=prescription, message="Prescription filled")


@router.post("/{prescription_id}/cancel", response_model=ApiResponse[Any])
async def cancel_prescription(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    body: CancelInput,
    actor: Actor = Depends(get_actor),
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    prescription = await engine.cancel(clinic_id, prescription_id, body.reason, actor)
    return ok(request, data=prescription, message="Prescription canceled")


@router.get("/{prescription_id}/logs", response_model=ApiResponse[Any])
async def get_prescription_logs(
    request: Request,
    clinic_id: str,
    prescription_id: str,
    engine: PrescriptionWorkflowEngine = Depends(get_prescription_engine),
):
    logs = await engine.get_logs(clinic_id, prescription_id)
    return ok(request, data=logs)
