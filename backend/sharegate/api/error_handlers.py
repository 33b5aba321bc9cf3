"""
Maps every failure to the JSON error envelope.

Framework HTTP errors keep their status but get a fixed public message; the
raw detail still goes into details so auth failures remain diagnosable.
"""
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import (
    AppError,
    AuthError,
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionError,
    ValidationError,
    error_payload,
    resolve_error_code,
)

logger = logging.getLogger("sharegate.api")

_PUBLIC_MESSAGES: dict[int, str] = {
    cls.status_code: cls.message
    for cls in (ValidationError, AuthError, PermissionError, NotFoundError, ConflictError)
}
_PUBLIC_MESSAGES[status.HTTP_422_UNPROCESSABLE_ENTITY] = ValidationError.message


def _public_message(status_code: int) -> str:
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return InternalError.message
    return _PUBLIC_MESSAGES.get(status_code, "Request failed")


def _respond(
    request: Request,
    status_code: int,
    payload: dict[str, Any],
    *,
    exc: Exception | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error = payload["error"]
    line = "request_failed code=%s status=%s path=%s request_id=%s message=%s"
    args = (
        error["code"],
        status_code,
        request.url.path,
        request.headers.get("x-request-id", "n/a"),
        error["message"],
    )
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(line, *args, exc_info=exc)
    else:
        logger.warning(line, *args)
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


async def _on_app_error(request: Request, exc: AppError) -> JSONResponse:
    return _respond(request, exc.status_code, exc.to_payload(), exc=exc)


async def _on_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    payload = error_payload(
        resolve_error_code(exc.status_code), _public_message(exc.status_code), exc.detail
    )
    return _respond(request, exc.status_code, payload, headers=getattr(exc, "headers", None))


async def _on_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    # ctx can hold exception objects, which are not JSON serialisable
    errors = [{k: v for k, v in item.items() if k != "ctx"} for item in exc.errors()]
    payload = error_payload(ValidationError.code, "Request validation failed", errors)
    return _respond(request, status.HTTP_422_UNPROCESSABLE_ENTITY, payload)


async def _on_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    payload = error_payload(ConflictError.code, "Request conflicts with existing data")
    return _respond(request, status.HTTP_409_CONFLICT, payload, exc=exc)


async def _on_unexpected(request: Request, exc: Exception) -> JSONResponse:
    payload = error_payload(InternalError.code, InternalError.message)
    return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, payload, exc=exc)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _on_app_error)
    app.add_exception_handler(StarletteHTTPException, _on_http_error)
    app.add_exception_handler(RequestValidationError, _on_request_validation)
    app.add_exception_handler(IntegrityError, _on_integrity_error)
    app.add_exception_handler(Exception, _on_unexpected)
