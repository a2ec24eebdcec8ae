"""
Error taxonomy shared by the service layer and the storage layer.

Service errors carry the HTTP status they map to; the API renders them as
`{"error": message}`. Storage errors are raised by repositories and are
translated by services.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail or {}


class AuthenticationError(ServiceError):
    """Missing, invalid, expired or wrong-type credential (401)."""
    status_code = 401
    error_code = "unauthorized"


class ForbiddenError(ServiceError):
    """Identity resolved but no role grants access (403)."""
    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    """Requested resource not found (404)."""
    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """Uniqueness conflict, e.g. email or username taken (409)."""
    status_code = 409
    error_code = "conflict"


class ConstraintViolation(Exception):
    """Raised when a storage-layer uniqueness or FK constraint is violated.

    `detail["column"]` names the colliding column when it can be determined.
    """

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    @property
    def column(self) -> Optional[str]:
        return self.detail.get("column")


__all__ = [
    "ServiceError",
    "AuthenticationError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ConstraintViolation",
]
