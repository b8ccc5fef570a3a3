"""
Custom Exception Classes for the VidTube API.

Every failure a request handler can produce is raised as a subclass of
`VidTubeAPIException` and caught once, at the outermost layer, where it is
turned into the uniform error envelope `{status, message, errors}`.

Key Components:
- `VidTubeAPIException`: Base class carrying a message, an error code, the
  HTTP status it maps to and an optional list of per-field error details.
- `ValidationError`, `AuthenticationError`, `ForbiddenError`,
  `NotFoundError`, `ConflictError`, `InternalError`, `MediaStorageError`:
  one class per error kind the API distinguishes.
- `to_error_payload`: Builds the JSON error envelope for an exception.
"""

from typing import Optional, Dict, Any, List


class VidTubeAPIException(Exception):
    """Base exception class for the VidTube API"""

    status_code = 500
    error_code = "VIDTUBE_API_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(VidTubeAPIException):
    """Raised when an identifier is malformed or a required field is missing"""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        errors = []
        if field is not None:
            errors.append({"field": field, "value": None if value is None else str(value)})
        super().__init__(message, errors=errors)


class AuthenticationError(VidTubeAPIException):
    """Raised when a route requires an acting user and none is present"""

    status_code = 401
    error_code = "AUTHENTICATION_ERROR"


class ForbiddenError(VidTubeAPIException):
    """Raised when the acting user does not own the resource being mutated"""

    status_code = 403
    error_code = "FORBIDDEN"


class NotFoundError(VidTubeAPIException):
    """Raised when a referenced entity does not exist"""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found"
        errors = []
        if entity_id is not None:
            errors.append({"entity": entity, "id": str(entity_id)})
        super().__init__(message, errors=errors)


class ConflictError(VidTubeAPIException):
    """Raised when a persistence operation conflicts unexpectedly"""

    status_code = 500
    error_code = "CONFLICT"


class InternalError(VidTubeAPIException):
    """Raised (or substituted) for unexpected failures"""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)


class MediaStorageError(VidTubeAPIException):
    """Raised when the media storage provider fails"""

    status_code = 502
    error_code = "MEDIA_STORAGE_ERROR"

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Media storage operation '{operation}' failed: {reason}",
            errors=[{"operation": operation, "reason": reason}],
        )


def to_error_payload(exc: VidTubeAPIException) -> Dict[str, Any]:
    """Build the error envelope for an application exception"""
    return {
        "status": exc.status_code,
        "message": exc.message,
        "errors": exc.errors,
    }

