"""
Value objects package.
"""

from .actor import Actor
from .clinic_id import ClinicId, require_clinic_id, require_document_id

__all__ = ["Actor", "ClinicId", "require_clinic_id", "require_document_id"]
