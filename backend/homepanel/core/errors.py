"""
Domain error taxonomy.

Services raise these; the API layer renders them as
{"error": kind, "message": ..., **details} with a fixed HTTP status.
"""

from typing import Any, Dict, Optional


class HomePanelError(Exception):
    """Base class for every error reported back to a caller."""

    kind = "Error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, **self.details}


class UnauthenticatedError(HomePanelError):
    """No principal could be resolved from the request."""
    kind = "Unauthenticated"
    status_code = 401


class NotFoundError(HomePanelError):
    """Entity id does not resolve."""
    kind = "NotFound"
    status_code = 404


class ForbiddenError(HomePanelError):
    """Entity belongs to a different house."""
    kind = "Forbidden"
    status_code = 403


class UnauthorizedError(HomePanelError):
    """Role insufficient for the operation."""
    kind = "Unauthorized"
    status_code = 403


class NotApprovedError(HomePanelError):
    """Device has not been approved for control."""
    kind = "NotApproved"
    status_code = 403


class InvalidInputError(HomePanelError):
    """Missing or malformed field."""
    kind = "InvalidInput"
    status_code = 400


class InvalidTypeError(InvalidInputError):
    """Attribute operation on the wrong device type."""
    kind = "InvalidType"


class OutOfRangeError(InvalidInputError):
    """Numeric value outside its allowed bounds."""
    kind = "OutOfRange"


class ConflictError(HomePanelError):
    """Uniqueness violation or lost concurrent update."""
    kind = "Conflict"
    status_code = 409
