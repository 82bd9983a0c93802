"""
Request and response schemas for medical record endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field


class VersionResponse(BaseModel):
    record_id: str
    version: int


class DataRequestBody(BaseModel):
    """Data-subject request registered against a patient."""

    request_type: str = Field(..., min_length=1, description="access, portability, deletion or correction")
    notes: Optional[str] = None
