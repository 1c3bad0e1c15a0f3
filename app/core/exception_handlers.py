"""Global exception handlers mapping every failure to one response envelope.

Design:
- AppError subclasses → status from the error type (400/429/500/upstream)
- FastAPI request validation errors → 400 (bad or missing userQuery)
- Starlette HTTP exceptions (404, 405) → their own status, same envelope
- Unexpected Exception → generic 500; details are logged, never returned
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import (
    AppError,
    ConfigurationAppError,
    LLMAppError,
    QuotaExceededAppError,
    StoreAppError,
    UpstreamAppError,
    ValidationAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Ha ocurrido un error interno en el servidor."


def status_code_for(exc: AppError) -> int:
    """HTTP status for a domain error.

    Examples:
        >>> status_code_for(ValidationAppError(code="x", message="y"))
        400
        >>> status_code_for(UpstreamAppError(code="x", message="y", status_code=503))
        503
    """
    if isinstance(exc, UpstreamAppError):
        return exc.status_code
    if isinstance(exc, QuotaExceededAppError):
        return 429
    if isinstance(exc, (ConfigurationAppError, StoreAppError, LLMAppError)):
        return 500
    return 400


def _envelope(status_code: int, code: str, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "code": code, "request_id": get_request_id()},
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error.

    Client errors are logged at warning level, server-side failures at error
    level with their hint. Hints stay in the logs: callers only get ``message``.
    """
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "details": exc.details or {},
            "request_path": request.url.path,
        },
    )

    headers = exc.headers if isinstance(exc, QuotaExceededAppError) else None
    return _envelope(status_code, exc.code, exc.message, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Turn body validation failures into a 400 without echoing the input."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()})
    logger.warning(
        "request_validation_failed",
        extra={
            "status_code": 400,
            "fields": fields,
            "error_types": sorted({err.get("type", "") for err in exc.errors()}),
            "request_path": request.url.path,
        },
    )
    return _envelope(400, "invalid_request", "Falta el parámetro userQuery.")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (404/405) in the common envelope."""
    message = exc.detail if isinstance(exc.detail, str) else "Error"
    return _envelope(
        exc.status_code,
        message.lower().replace(" ", "_"),
        message,
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the exception with traceback for operators while returning a generic
    message (no exception text, stack traces or secrets reach the caller).
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return _envelope(500, "internal_server_error", GENERIC_ERROR_MESSAGE)


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
