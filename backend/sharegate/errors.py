"""
Application errors and their wire form.

Services raise these; the API layer turns them into

    {"error": {"code": ..., "message": ..., "details": ...}}

with the class's HTTP status. Share link refusals put a short machine-readable
reason into details so recipients can tell the cases apart.
"""
from typing import Any

from fastapi import status


class AppError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    details: Any | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        if details is not None:
            self.details = details

        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return error_payload(self.code, self.message, self.details)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    message = "Invalid request"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class AuthError(AppError):
    code = "AUTH_ERROR"
    message = "Authentication required"
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionError(AppError):  # type: ignore[override]
    code = "PERMISSION_DENIED"
    message = "Insufficient permissions"
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(AppError):
    code = "CONFLICT_ERROR"
    message = "Resource conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidStateError(AppError):
    """The resource exists but cannot undergo the operation in its current state."""

    code = "INVALID_STATE"
    message = "Operation not allowed in the current state"
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    code = "INTERNAL_ERROR"
    message = "Internal server error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class _ShareLinkRefusal:
    reason: str

    def _attach_reason(self, reason: str) -> dict[str, str]:
        self.reason = reason
        return {"reason": reason}


class ShareLinkDenied(_ShareLinkRefusal, PermissionError):
    """A share link that exists but may not be used right now."""

    def __init__(self, message: str, *, reason: str):
        super().__init__(message, details=self._attach_reason(reason))


class ShareLinkPasswordRejected(_ShareLinkRefusal, AuthError):
    """Missing or wrong password on a protected share link."""

    def __init__(self, message: str, *, reason: str):
        super().__init__(message, details=self._attach_reason(reason))


# Several classes share 409; the plain conflict code wins for bare HTTP errors.
_CODE_BY_STATUS: dict[int, str] = {
    cls.status_code: cls.code
    for cls in (ValidationError, AuthError, PermissionError, NotFoundError, ConflictError)
}
_CODE_BY_STATUS[status.HTTP_422_UNPROCESSABLE_ENTITY] = ValidationError.code


def error_payload(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "details": details}}


def resolve_error_code(status_code: int) -> str:
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return InternalError.code
    return _CODE_BY_STATUS.get(status_code, "UNKNOWN_ERROR")
