"""
Clinic identifier validation.

The clinic is the tenancy boundary: every store path is built under
``clinics/{clinic_id}``, so an id that is empty or contains a path
separator would escape its tenant.
"""

from dataclasses import dataclass

from ..errors import ValidationFailedError


@dataclass(frozen=True)
class ClinicId:
    """Immutable clinic identifier value object."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValidationFailedError("Clinic ID cannot be empty")
        if "/" in self.value:
            raise ValidationFailedError(
                "Clinic ID cannot contain '/'", {"clinic_id": self.value}
            )

    def __str__(self) -> str:
        return self.value


def require_clinic_id(clinic_id: str) -> str:
    """Validate a raw clinic id and return it unchanged."""
    return ClinicId(clinic_id).value


def require_document_id(value: str, label: str) -> str:
    """Validate a document id used as a path segment."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailedError(f"{label} cannot be empty")
    if "/" in value:
        raise ValidationFailedError(f"{label} cannot contain '/'", {label: value})
    return value
