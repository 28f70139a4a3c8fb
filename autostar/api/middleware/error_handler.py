"""Exception handlers for AutoStar applications.

Converts the binding pipeline's exceptions into the wire error document
``{"error": ..., "details": [...]}`` and logs them with request context.
Exceptions raised by user handlers are not handled here; they propagate to
Starlette's own error handling unchanged.
"""

from loguru import logger
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import Response

from autostar.api.constants import (
    HTTP_400_BAD_REQUEST,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    PARSE_ERROR_MESSAGE,
    RESPONSE_VALIDATION_ERROR_MESSAGE,
    VALIDATION_ERROR_MESSAGE,
)
from autostar.api.schemas.errors import ErrorResponse
from autostar.api.utils.responses import ORJSONResponse
from autostar.core.exceptions import (
    AutoStarError,
    ParseError,
    RequestValidationError,
    ResponseValidationError,
)


def _render(status_code: int, error: ErrorResponse) -> Response:
    return ORJSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json", exclude_none=True),
    )


async def parse_error_handler(request: Request, exc: Exception) -> Response:
    """Handle ParseError: 400 with the single failing field.

    Raises:
        TypeError: If exc is not a ParseError instance
    """
    # Type narrowing - this handler only receives ParseError
    if not isinstance(exc, ParseError):
        raise TypeError(f"Expected ParseError, got {type(exc).__name__}")

    logger.warning(
        "Request parsing failed: {message}",
        message=exc.message,
        field=exc.field,
        source=exc.source,
        method=request.method,
        path=request.url.path,
    )

    return _render(
        HTTP_400_BAD_REQUEST,
        ErrorResponse.from_field_errors(PARSE_ERROR_MESSAGE, exc.details),
    )


async def request_validation_error_handler(
    request: Request, exc: Exception
) -> Response:
    """Handle RequestValidationError: 422 with every field failure.

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    logger.warning(
        "Request validation failed",
        fields=[detail.field for detail in exc.details],
        method=request.method,
        path=request.url.path,
    )

    return _render(
        HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorResponse.from_field_errors(VALIDATION_ERROR_MESSAGE, exc.details),
    )


async def response_validation_error_handler(
    request: Request, exc: Exception
) -> Response:
    """Handle ResponseValidationError: 500, the invalid payload is never sent.

    The handler returned data that contradicts the route's declared response
    schema, so this is logged at ERROR level.

    Raises:
        TypeError: If exc is not a ResponseValidationError instance
    """
    if not isinstance(exc, ResponseValidationError):
        raise TypeError(f"Expected ResponseValidationError, got {type(exc).__name__}")

    logger.error(
        "Response validation failed for {method} {path}",
        method=request.method,
        path=request.url.path,
        fields=[detail.field for detail in exc.details],
        fingerprint=exc.fingerprint,
    )

    return _render(
        HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse.from_field_errors(RESPONSE_VALIDATION_ERROR_MESSAGE, exc.details),
    )


async def autostar_error_handler(request: Request, exc: Exception) -> Response:
    """Handle any other AutoStarError as an internal error.

    Raises:
        TypeError: If exc is not an AutoStarError instance
    """
    if not isinstance(exc, AutoStarError):
        raise TypeError(f"Expected AutoStarError, got {type(exc).__name__}")

    logger.error(
        "Handling {exception_type}: {message}",
        exception_type=type(exc).__name__,
        message=exc.message,
        error_code=exc.error_code,
        method=request.method,
        path=request.url.path,
    )

    details = exc.details
    error = (
        ErrorResponse.from_field_errors(exc.message, details)
        if details
        else ErrorResponse(error=exc.message)
    )
    return _render(HTTP_500_INTERNAL_SERVER_ERROR, error)


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException in the same error shape.

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    logger.warning(
        "HTTP exception",
        status=exc.status_code,
        detail=exc.detail,
        method=request.method,
        path=request.url.path,
    )

    response = _render(exc.status_code, ErrorResponse(error=str(exc.detail)))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def register_exception_handlers(app: Starlette) -> None:
    """Register the AutoStar exception handlers on a Starlette application.

    Args:
        app: The Starlette application instance
    """
    app.add_exception_handler(ParseError, parse_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(
        ResponseValidationError, response_validation_error_handler
    )
    app.add_exception_handler(AutoStarError, autostar_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    logger.info("Exception handlers registered")
