"""Application error types and the JSON error envelope.

Every error response has the shape
``{"error": {"code": ..., "message": ..., "details": ...}}``.
"""
from typing import Any

from fastapi import status


class AppError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    details: Any | None = None

    def __init__(self, message: str | None = None, *, code: str | None = None, details: Any | None = None):
        self.message = message or self.message
        self.code = code or self.code
        if details is not None:
            self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    message = "Validation error"


class AuthError(AppError):
    code = "AUTH_ERROR"
    message = "Authentication failed"
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionError(AppError):  # type: ignore[override]
    code = "PERMISSION_DENIED"
    message = "Insufficient permissions"
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    code = "CONFLICT_ERROR"
    message = "Resource conflict"
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    code = "INTERNAL_ERROR"
    message = "Internal server error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UpstreamError(AppError):
    """The identity provider failed or timed out."""

    code = "UPSTREAM_ERROR"
    message = "Upstream service unavailable"
    status_code = status.HTTP_502_BAD_GATEWAY


class AuthUnavailableError(AppError):
    """The session gate could not settle (timeout or profile lookup failure)."""

    code = "AUTH_UNAVAILABLE"
    message = "Authentication service unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


_ERRORS_BY_STATUS: dict[int, type[AppError]] = {
    cls.status_code: cls
    for cls in (
        ValidationError,
        AuthError,
        PermissionError,
        NotFoundError,
        ConflictError,
        UpstreamError,
        AuthUnavailableError,
    )
}
_ERRORS_BY_STATUS[status.HTTP_422_UNPROCESSABLE_ENTITY] = ValidationError


def error_payload(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "details": details}}


def error_for_status(status_code: int) -> type[AppError]:
    """AppError class whose code and safe message stand in for a bare HTTP status."""
    if status_code in _ERRORS_BY_STATUS:
        return _ERRORS_BY_STATUS[status_code]
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return InternalError
    return AppError
