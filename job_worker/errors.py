"""Error taxonomy raised by the job worker services."""

from __future__ import annotations

from typing import Dict, Optional


class JobWorkerError(Exception):
    """Base class for errors the API layer turns into an error envelope."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "success": False,
            "message": self.message,
            "kind": self.kind,
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload


class JobWorkerValidationError(JobWorkerError):
    """Raised when the payload provided by the client is invalid."""

    status_code = 400
    kind = "validation"

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        if message is None:
            message = next(iter(errors.values()), "Validation failed.") if len(errors) == 1 else "Validation failed."
        super().__init__(message, errors)


class NotFoundError(JobWorkerError):
    status_code = 404
    kind = "not_found"


class ConflictError(JobWorkerError):
    status_code = 409
    kind = "conflict"


class BusinessRuleError(JobWorkerError):
    status_code = 400
    kind = "business_rule"


class UnauthenticatedError(JobWorkerError):
    status_code = 401
    kind = "unauthenticated"


class UnauthorizedError(JobWorkerError):
    status_code = 403
    kind = "unauthorized"
