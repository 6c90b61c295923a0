"""Map domain errors onto HTTP responses.

Domain exceptions are registered with ``add_exception_handler``; anything
unexpected is logged with full context and answered with a generic 500.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError

from pickups.errors import InvalidStateError, NotFoundError, PermissionDenied, PickupError

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An internal error occurred. Please try again later."


def _error(status_code: int, error: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, "details": details})


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(400, "validation_error", "Invalid request", details=exc.messages)


async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(404, "not_found", exc.message)


async def _handle_invalid_state(request: Request, exc: InvalidStateError) -> JSONResponse:
    return _error(409, "invalid_state", exc.message)


async def _handle_permission_denied(request: Request, exc: PermissionDenied) -> JSONResponse:
    return _error(403, "permission_denied", exc.message)


async def _handle_pickup_error(request: Request, exc: PickupError) -> JSONResponse:
    logger.error(
        "Request failed",
        method=request.method,
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
        **exc.context,
    )
    return _error(500, "internal_error", GENERIC_ERROR_MESSAGE)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", method=request.method, path=request.url.path, exc_info=exc)
    return _error(500, "internal_error", GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, _handle_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidStateError, _handle_invalid_state)  # type: ignore[arg-type]
    app.add_exception_handler(PermissionDenied, _handle_permission_denied)  # type: ignore[arg-type]
    app.add_exception_handler(PickupError, _handle_pickup_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected)
