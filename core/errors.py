"""
core/errors.py -- Error taxonomy shared by every layer.

Each AppError carries the HTTP status and machine-readable code it maps to.
Services raise these; api/main.py turns them into the ErrorResponse envelope.
Infrastructure failures (status 500) are logged server-side and answered
with a generic message so internal error text never reaches the client.

Layer rule: core/ is the kernel. No imports from api/, auth/ or posts/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for classified application errors."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not own this resource."


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


# ---------------------------------------------------------------------------
# Infrastructure failures -- always 500, message never shown to the client
# ---------------------------------------------------------------------------


class InfrastructureError(AppError):
    status_code = 500
    code = "internal_error"


class HashingError(InfrastructureError):
    default_message = "Password hashing failed."


class MalformedHashError(InfrastructureError):
    """A stored password hash could not be parsed (data corruption)."""

    default_message = "Stored password hash is malformed."


class StoreUnavailableError(InfrastructureError):
    default_message = "Session store unavailable."
