"""
Health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ...application.ports.document_store import DocumentStore
from ...core.config import get_settings
from ..deps import get_document_store
from ..schemas.common import ApiResponse
from ..utils.responses import ok

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    timestamp: datetime
    version: str
    service: str


@router.get("/", response_model=ApiResponse[HealthResponse])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns the current status of the service.
    """
    settings = get_settings()
    return ok(request, data=HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
        service=settings.app_name,
    ), message="OK")


@router.get("/ready", response_model=ApiResponse[dict])
async def readiness_check(request: Request, store: DocumentStore = Depends(get_document_store)):
    """
    Readiness check endpoint.

    Issues a bounded read against the document store.
    """
    settings = get_settings()
    await store.query("clinics", limit=1)
    return ok(
        request,
        data={"ready": True, "checks": {"document_store": settings.store.backend}},
        message="Ready",
    )
