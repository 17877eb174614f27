"""
HTTP error boundary.

Every failure leaves the API in one envelope:

    {"statusCode": 404, "timestamp": "...", "path": "/users/x",
     "method": "GET", "error": "Not Found", "message": "User not found"}

Services raise DomainError subclasses; nothing below this module
builds a response by hand.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from useradmin.core.errors import DomainError
from useradmin.core.utils import utc_now

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_response(
    request: Request,
    status_code: int,
    message: str | list[str],
    error: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the envelope and log the failure."""
    if status_code >= 400:
        logger.warning(f"{request.method} {request.url.path} - {status_code} - {message}")

    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content={
            "statusCode": status_code,
            "timestamp": utc_now().isoformat(),
            "path": request.url.path,
            "method": request.method,
            "error": error or _reason(status_code),
            "message": message,
        },
    )


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        # Drop the "body"/"query" prefix pydantic adds to the location
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        prefix = ".".join(location)
        text = str(err.get("msg", "Invalid value"))
        messages.append(f"{prefix}: {text}" if prefix else text)
    return messages


# =============================================================================
# Handlers
# =============================================================================


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(request, exc.status_code, exc.message, exc.error, headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        request,
        exc.status_code,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, 400, _validation_messages(exc))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(request, 500, INTERNAL_ERROR_MESSAGE)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
