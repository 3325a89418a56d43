"""
Error taxonomy and the JSON error envelope.

Every error derives from ``HTTPException`` so services can raise them and
FastAPI renders them unchanged; non-HTTP callers can still catch the
specific class. Store failures (``SQLAlchemyError``) are not
part of this module: they propagate untouched and abort the request.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

log = structlog.get_logger()

# Never names the role or rule that was missing.
FORBIDDEN_MESSAGE = "You do not have permission to perform this action"
UNAUTHENTICATED_MESSAGE = "You must be logged in to perform this action"

_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_FAILED",
}


class UnauthenticatedError(HTTPException):
    """No actor identity is attached to the request."""

    def __init__(self, detail: str = UNAUTHENTICATED_MESSAGE):
        super().__init__(
            status_code=401,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(HTTPException):
    """The actor is known but no role grants the requested action."""

    def __init__(self, detail: str = FORBIDDEN_MESSAGE):
        super().__init__(status_code=403, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class MembershipConflictError(HTTPException):
    """An add was attempted for a membership that is already active."""

    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail)


class PolicyError(Exception):
    """The policy rule file could not be loaded or parsed."""


def _envelope(status_code: int, message, **extra) -> dict:
    return {
        "error": {
            "code": _ERROR_CODES.get(status_code, "ERROR"),
            "message": message,
            "status": status_code,
            **extra,
        }
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed path, query or body input, in the same envelope."""
    fields = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type")}
        for err in exc.errors()
    ]
    log.info("request.validation_failed", path=request.url.path, errors=len(fields))
    return JSONResponse(
        status_code=422,
        content=_envelope(422, "Request validation failed", fields=fields),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
