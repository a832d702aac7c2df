"""
Error kinds surfaced by services and API handlers.

Raise these anywhere inside a request; the handlers registered in
``create_app`` turn them into the JSON envelope with the matching status.
"""
from __future__ import annotations

from typing import Any


class ApiError(Exception):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"

    def __init__(self, message: str | None = None, *, details: Any = None, code: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details
        if code:
            self.code = code


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid payload"


class Unauthorized(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action."


class NotFound(ApiError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"

    @classmethod
    def for_resource(cls, resource: str) -> "NotFound":
        return cls(f"{resource} not found")


class TooManyRequests(ApiError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"
    default_message = "Too many requests"


def raise_for_errors(errors: list[str]) -> None:
    """Raise a ValidationError carrying every message collected by a validator."""
    if errors:
        raise ValidationError(errors[0] if len(errors) == 1 else "Invalid payload", details=errors)
