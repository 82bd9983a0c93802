"""FastAPI dependency providers."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, Request

from ..application.ports.document_store import DocumentStore
from ..application.services.audit_log_writer import AuditLogWriter
from ..application.services.prescription_workflow import PrescriptionWorkflowEngine
from ..application.services.record_manager import RecordManager
from ..application.services.version_store import VersionStore
from ..core.config import Settings, get_settings
from ..domain.errors import ValidationFailedError
from ..domain.value_objects.actor import Actor
from .errors import UnauthorizedError


@lru_cache()
def get_app_settings() -> Settings:
    """Get application settings instance."""
    return get_settings()


def get_document_store(request: Request) -> DocumentStore:
    """Document store opened by the application lifespan."""
    return request.app.state.document_store


def get_audit_writer(
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_app_settings),
) -> AuditLogWriter:
    return AuditLogWriter(store, mirror_to_app_log=settings.audit.mirror_to_app_log)


def get_version_store(
    store: DocumentStore = Depends(get_document_store),
    audit: AuditLogWriter = Depends(get_audit_writer),
) -> VersionStore:
    return VersionStore(store, audit)


def get_record_manager(
    store: DocumentStore = Depends(get_document_store),
    versions: VersionStore = Depends(get_version_store),
    audit: AuditLogWriter = Depends(get_audit_writer),
) -> RecordManager:
    return RecordManager(store, versions, audit)


def get_prescription_engine(
    store: DocumentStore = Depends(get_document_store),
    audit: AuditLogWriter = Depends(get_audit_writer),
) -> PrescriptionWorkflowEngine:
    return PrescriptionWorkflowEngine(store, audit)


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> Actor:
    """Caller identity from X-User-ID / X-User-Name headers."""
    if not x_user_id:
        raise UnauthorizedError("X-User-ID header is required")
    try:
        return Actor(user_id=x_user_id, user_name=x_user_name or x_user_id)
    except ValidationFailedError as e:
        raise UnauthorizedError(e.message) from e
