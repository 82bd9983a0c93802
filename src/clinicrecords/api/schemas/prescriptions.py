"""
Request schemas for prescription endpoints.
"""

from pydantic import BaseModel

from ...application.dto.prescription_dto import CreatePrescriptionInput, ProfessionalInfo


class CreatePrescriptionRequest(BaseModel):
    professional: ProfessionalInfo
    prescription: CreatePrescriptionInput


class SweepResponse(BaseModel):
    clinic_id: str
    expired: int
