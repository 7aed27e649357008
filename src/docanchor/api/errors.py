"""Exception handlers translating service errors into JSON responses.

Every error body has the shape ``{"success": false, "message": ..., "error": ...,
"requestId": ...}``; validation failures add an ``errors`` list with one
``{"field", "message"}`` entry per violated constraint.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from docanchor.services.exceptions import ServiceError, ValidationFailedError

logger = structlog.get_logger()

_VALUE_ERROR_PREFIX = "Value error, "


def error_response(
    request: Request, status_code: int, message: str, **extra: Any
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "message": message, **extra}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["requestId"] = request_id
    return JSONResponse(status_code=status_code, content=body)


def _field_name(loc: tuple) -> str:
    # ("body", "cid") -> "cid"; ("query", "limit") -> "limit"; ("body",) -> "body"
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) if parts else str(loc[0]) if loc else "request"


def format_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into ``[{"field", "message"}]``."""
    formatted = []
    for err in errors:
        field = _field_name(tuple(err.get("loc", ())))
        if err.get("type") == "missing":
            message = f"{field} is required"
        else:
            message = str(err.get("msg", "Invalid value"))
            if message.startswith(_VALUE_ERROR_PREFIX):
                message = message[len(_VALUE_ERROR_PREFIX) :]
        formatted.append({"field": field, "message": message})
    return formatted


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map ServiceError subclasses onto their HTTP status and public message."""
    extra: dict[str, Any] = {"error": exc.error_code}
    if isinstance(exc, ValidationFailedError):
        extra["errors"] = exc.errors

    log_kwargs = {
        "status_code": exc.status_code,
        "error_type": type(exc).__name__,
        "error": str(exc),
        "path": request.url.path,
    }
    if exc.status_code >= 500:
        # Upstream and configuration failures: full detail in logs, generic body.
        logger.error("request.failed", **log_kwargs)
    else:
        logger.info("request.rejected", **log_kwargs)

    return error_response(request, exc.status_code, exc.public_message, **extra)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report every violated constraint with 400 (not FastAPI's default 422)."""
    errors = format_validation_errors(list(exc.errors()))
    return await service_error_handler(request, ValidationFailedError(errors))


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return error_response(request, exc.status_code, "Route not found", error="NotFound")
    return error_response(request, exc.status_code, str(exc.detail))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "request.unhandled_exception",
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=exc,
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        error="InternalError",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, request_validation_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        StarletteHTTPException, http_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
