"""
Exception handling for infrastructure concerns.

Domain rule violations live in ``clinicrecords.domain.errors``; this module
covers failures of the application wiring itself.
"""

from typing import Any, Dict, Optional


class ClinicRecordsException(Exception):
    """Base exception class for infrastructure failures."""

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


class ConfigurationError(ClinicRecordsException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "CONFIG_ERROR", details)
