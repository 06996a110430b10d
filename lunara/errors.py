from __future__ import annotations

import logging
import re

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config

logger = logging.getLogger(__name__)


class LunaraError(Exception):
    """Domain error carrying the HTTP status it maps to."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(LunaraError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(LunaraError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(LunaraError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(LunaraError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(LunaraError):
    status_code = status.HTTP_409_CONFLICT


_SENSITIVE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"password", r"token", r"secret", r"key", r"connection", r"database", r"env")
]


def public_error_message(exc: Exception) -> str:
    """Message safe to return for an unexpected error."""
    if config.IS_PRODUCTION:
        return "Internal server error"
    original = str(exc) or exc.__class__.__name__
    if any(p.search(original) for p in _SENSITIVE_PATTERNS):
        return "Internal server error (sensitive details hidden)"
    return original


def error_response(status_code: int, message: str, headers: dict | None = None, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


async def lunara_error_handler(request: Request, exc: LunaraError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.message}")
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, str):
        return error_response(exc.status_code, exc.detail, headers=headers)
    return error_response(exc.status_code, "Request failed", headers=headers, errors=exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path")), "message": e.get("msg")}
        for e in exc.errors()
    ]
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid data", errors=errors)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} - unhandled error")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, public_error_message(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LunaraError, lunara_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
