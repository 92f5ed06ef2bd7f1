"""Error kinds surfaced by the API and the handlers that render them.

Every error response has the shape ``{"error": kind, "message": ..., "statusCode": ...}``;
validation errors additionally carry ``details`` with one entry per offending field.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    status_code = 400
    kind = "ValidationError"


class AuthenticationError(AppError):
    status_code = 401
    kind = "AuthenticationError"


class AuthorizationError(AppError):
    status_code = 403
    kind = "AuthorizationError"


class NotFoundError(AppError):
    status_code = 404
    kind = "NotFoundError"


class InternalError(AppError):
    pass


_KIND_BY_STATUS = {
    400: ValidationError.kind,
    401: AuthenticationError.kind,
    403: AuthorizationError.kind,
    404: NotFoundError.kind,
}


def error_body(kind: str, message: str, status_code: int, details: list | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": kind, "message": message, "statusCode": status_code}
    if details is not None:
        body["details"] = details
    return body


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for err in exc.errors():
        # drop the "body"/"path"/"query" prefix FastAPI puts in front of the field path
        loc = [str(part) for part in err.get("loc", ())[1:]] or [str(p) for p in err.get("loc", ())]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message, exc.status_code, exc.details),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_body(ValidationError.kind, "Invalid request data", 400, _field_errors(exc)),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = _KIND_BY_STATUS.get(exc.status_code, "HTTPError" if exc.status_code < 500 else InternalError.kind)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(kind, str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(InternalError.kind, "An unexpected error occurred", 500),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
