"""
Domain-specific error types for business rule violations.

Four kinds surface to callers: not-found, invalid workflow state, rejected
input and store failure. None of them is swallowed by the core.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(DomainError):
    """Requested entity does not exist."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "NOT_FOUND", details)


class RecordNotFoundError(NotFoundError):
    """Medical record not found."""

    def __init__(self, clinic_id: str, record_id: str) -> None:
        super().__init__(
            f"Record with ID '{record_id}' not found",
            {"clinic_id": clinic_id, "record_id": record_id},
        )
        self.error_code = "RECORD_NOT_FOUND"


class VersionNotFoundError(NotFoundError):
    """Requested record version does not exist."""

    def __init__(self, clinic_id: str, record_id: str, version: int) -> None:
        super().__init__(
            f"Version {version} of record '{record_id}' not found",
            {"clinic_id": clinic_id, "record_id": record_id, "version": version},
        )
        self.error_code = "VERSION_NOT_FOUND"


class PrescriptionNotFoundError(NotFoundError):
    """Prescription not found."""

    def __init__(self, clinic_id: str, prescription_id: str) -> None:
        super().__init__(
            f"Prescription with ID '{prescription_id}' not found",
            {"clinic_id": clinic_id, "prescription_id": prescription_id},
        )
        self.error_code = "PRESCRIPTION_NOT_FOUND"


class InvalidStateError(DomainError):
    """Workflow transition attempted from a state that forbids it."""

    def __init__(self, operation: str, current_status: str, allowed: Optional[list] = None) -> None:
        message = f"Cannot {operation} a prescription in status '{current_status}'"
        super().__init__(
            message,
            "INVALID_STATE",
            {
                "operation": operation,
                "current_status": current_status,
                "allowed_from": allowed or [],
            },
        )


class ValidationFailedError(DomainError):
    """Input shape rejected before any write."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "VALIDATION_FAILED", details)


class StoreFailureError(DomainError):
    """The underlying document store rejected a read or write."""

    def __init__(self, operation: str, path: str, cause: Optional[BaseException] = None) -> None:
        message = f"Document store failed during {operation} on '{path}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, "STORE_FAILURE", {"operation": operation, "path": path})
