"""Exception handlers.

Every error response has the same envelope: error, message, status_code and
request_id, plus code (and field) where one is known. Server side failures
answer with a fixed message; the detail only goes to the logs.
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursemart.core.context import get_request_id
from coursemart.core.errors import AppError, error_payload
from coursemart.core.logging import get_logger


logger = get_logger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or get_request_id()


def _respond(request: Request, status_code: int, message: str, **extra: Any) -> ORJSONResponse:
    body = {
        "error": True,
        "message": message,
        "status_code": status_code,
        "request_id": _request_id(request),
        **extra,
    }
    return ORJSONResponse(status_code=status_code, content=body)


async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
    log = logger.error if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.info
    log(
        "app_error",
        code=exc.code,
        status_code=exc.status_code,
        error_message=exc.message,
        method=request.method,
        path=request.url.path,
    )
    return ORJSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc, _request_id(request)),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> ORJSONResponse:
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=str(exc.detail),
        method=request.method,
        path=request.url.path,
    )
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return _respond(request, exc.status_code, "Internal server error")
    return _respond(request, exc.status_code, str(exc.detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """422 with one entry per failing field."""
    errors = exc.errors()
    logger.warning(
        "validation_error",
        errors=errors,
        method=request.method,
        path=request.url.path,
    )
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
        }
        for err in errors
    ]
    return _respond(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        code="validation_error",
        details=details,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        method=request.method,
        path=request.url.path,
    )
    return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, UNEXPECTED_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
