"""Error taxonomy shared by the domain, persistence and route layers.

Every class carries the HTTP status it maps to so that the route boundary
(:func:`routes.api_utils.handle_api_errors`) can translate failures without
inspecting messages or driver codes.
"""

from __future__ import annotations

from typing import Any


class APIError(Exception):
    """Base class for API errors that includes an HTTP status code."""

    status_code: int = 500
    message: str = "An unexpected error occurred."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self) -> dict[str, Any]:
        data = {"error": self.message}
        data.update(self.payload)
        return data


class ValidationError(APIError):
    status_code = 400
    message = "Invalid request."


class UnauthorizedError(APIError):
    status_code = 401
    message = "Invalid username or password"


class NotFoundError(APIError):
    status_code = 404
    message = "Resource not found."


class PayloadTooLargeError(APIError):
    status_code = 413
    message = "ไฟล์รูปใหญ่เกิน 10MB"


class DuplicateError(APIError):
    """Unique-constraint violation on insert."""

    status_code = 400
    message = "Email already exists"


class ReferentialConstraintError(APIError):
    """Delete blocked because other rows still reference the target."""

    status_code = 400
    message = (
        "Cannot delete game, it is referenced by other data "
        "(e.g., in user library or cart)"
    )


class ImageDecodeError(APIError):
    # Caused by client input but reported as an internal failure.
    status_code = 500
    message = "Invalid image data"


class RemoteStoreError(APIError):
    status_code = 500
    message = "Image upload failed"


class DatabaseError(APIError):
    status_code = 500
    message = "Database error"


__all__ = [
    "APIError",
    "DatabaseError",
    "DuplicateError",
    "ImageDecodeError",
    "NotFoundError",
    "PayloadTooLargeError",
    "ReferentialConstraintError",
    "RemoteStoreError",
    "UnauthorizedError",
    "ValidationError",
]
