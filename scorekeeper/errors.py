from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    """Error with an HTTP status and a stable machine-readable code."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, id: Optional[str] = None, details: Optional[Any] = None):
        message = f"{resource} with id '{id}' not found" if id else f"{resource} not found"
        super().__init__(message, details=details)
        self.resource = resource
        self.id = id


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
