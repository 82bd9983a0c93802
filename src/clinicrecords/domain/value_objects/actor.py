"""
Actor value object: the caller-supplied identity for every core operation.
"""

from dataclasses import dataclass

from ..errors import ValidationFailedError


@dataclass(frozen=True)
class Actor:
    """Immutable identity of the user performing an operation."""

    user_id: str
    user_name: str

    def __post_init__(self) -> None:
        if not self.user_id or not isinstance(self.user_id, str):
            raise ValidationFailedError("Actor user_id cannot be empty")
        if not isinstance(self.user_name, str):
            raise ValidationFailedError("Actor user_name must be a string")

    def __str__(self) -> str:
        return f"{self.user_name} ({self.user_id})"

    @classmethod
    def system(cls) -> "Actor":
        """Identity used by scheduled jobs such as the expiry sweep."""
        return cls(user_id="system", user_name="System")

    @classmethod
    def patient(cls, patient_id: str, patient_name: str = "Patient") -> "Actor":
        return cls(user_id=patient_id, user_name=patient_name)

    @classmethod
    def pharmacy(cls, pharmacy_name: str) -> "Actor":
        return cls(user_id="pharmacy", user_name=pharmacy_name)
