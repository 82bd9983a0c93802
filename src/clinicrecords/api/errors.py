"""HTTP-level errors and the domain error to status code mapping."""

from ..domain.errors import (
    DomainError,
    InvalidStateError,
    NotFoundError as DomainNotFoundError,
    StoreFailureError,
    ValidationFailedError,
)


class APIError(Exception):
    def __init__(self, code: str, message: str, http_status: int = 400, details: dict = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details


class NotFoundError(APIError):
    def __init__(self, message: str, details: dict = None):
        super().__init__("NOT_FOUND", message, 404, details)


class UnauthorizedError(APIError):
    def __init__(self, message: str = "Unauthorized", details: dict = None):
        super().__init__("UNAUTHORIZED", message, 401, details)


def status_for_domain_error(exc: DomainError) -> int:
    if isinstance(exc, DomainNotFoundError):
        return 404
    if isinstance(exc, InvalidStateError):
        return 409
    if isinstance(exc, ValidationFailedError):
        return 422
    if isinstance(exc, StoreFailureError):
        return 503
    return 400
