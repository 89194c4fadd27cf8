"""
Application Error Taxonomy

Every failure a caller can observe maps to one of these exceptions.
Services raise them; the exception handlers in ``preplate.main`` turn them
into ``{"error": message}`` JSON bodies with the matching HTTP status.

    ValidationError      400  malformed or missing input
    AuthenticationError  401  missing, invalid or expired token / credentials
    AuthorizationError   403  valid identity, not allowed on this resource
    NotFoundError        404  resource does not exist
    ConflictError        409  duplicate email, favorite, review, order number
    InternalError        500  unexpected failure, generic message to caller
"""

from typing import Optional


class PrePlateError(Exception):
    """Base class for errors that carry an HTTP status and a caller-safe message."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PrePlateError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(PrePlateError):
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(PrePlateError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(PrePlateError):
    status_code = 404
    default_message = "Not found"


class ConflictError(PrePlateError):
    status_code = 409
    default_message = "Conflict"


class InternalError(PrePlateError):
    status_code = 500
    default_message = "Internal server error"


class ConfigurationError(RuntimeError):
    """Raised at startup when the deployment is misconfigured."""
