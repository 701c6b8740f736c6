"""
This file contains custom, application-specific exceptions.

Every error carries the HTTP status it maps to, so the FastAPI layer can
render it without the services knowing about HTTP.
"""
from typing import Any, Optional


class AcademyError(Exception):
    """Base class for all domain errors raised by the ledger engine."""
    status_code: int = 500
    error_kind: str = "AcademyError"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.detail, "error": self.error_kind}


class ValidationError(AcademyError):
    """Raised for missing fields, empty weekly patterns or non-positive counts."""
    status_code = 400
    error_kind = "ValidationError"


class InsufficientCreditError(ValidationError):
    """Raised when a new lesson would need a credit the student does not have."""
    error_kind = "InsufficientCreditError"


class StateError(AcademyError):
    """Raised when a status transition or edit is not permitted from the current state."""
    status_code = 409
    error_kind = "StateError"


class ConflictError(AcademyError):
    """
    Raised when a slot is double-booked or a concurrent writer changed
    the row first. Carries the colliding lessons for a human to resolve.
    """
    status_code = 409
    error_kind = "ConflictError"

    def __init__(self, detail: str, conflicts: Optional[list[dict[str, Any]]] = None):
        super().__init__(detail)
        self.conflicts = conflicts or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["conflicts"] = self.conflicts
        return data


class NotFoundError(AcademyError):
    """Raised when a student, teacher, package or lesson ID is unknown."""
    status_code = 404
    error_kind = "NotFoundError"
