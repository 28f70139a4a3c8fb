"""Standalone parsing and response helpers.

These expose the adapter's building blocks for routes that want to parse in
middleware and read the record later, or to validate and encode a response
by hand::

    @app.post("/login", middleware=[parse_request(LoginRequest, app.validator)])
    async def login(request: Request) -> Response:
        req = get_parsed_request(request, LoginRequest)
        ...
        return validate_and_encode(user, UserResponse, app.validator)
"""

from typing import Any

from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import Response

from autostar.api.utils.responses import ORJSONResponse
from autostar.binding.copier import to_primitive
from autostar.binding.extractor import extract
from autostar.binding.validator import Validator
from autostar.core.constants import PARSED_REQUEST_STATE_KEY
from autostar.core.exceptions import RequestValidationError, ResponseValidationError
from autostar.core.types import Endpoint, RouteMiddleware


async def parse_and_validate[T: BaseModel](
    request: Request, model: type[T], validator: Validator
) -> T:
    """Extract ``model`` from the request, validate it and store it on the request.

    Raises:
        ParseError: If extraction fails.
        RequestValidationError: If the record violates its rules.
    """
    record = await extract(request, model)
    errors = validator.validate(record)
    if errors:
        raise RequestValidationError(errors)
    setattr(request.state, PARSED_REQUEST_STATE_KEY, record)
    return record


def parse_request(
    schema: type[BaseModel], validator: Validator | None = None
) -> RouteMiddleware:
    """Route middleware that parses and validates ``schema`` before the handler runs.

    Args:
        schema: The input record type.
        validator: Validator to use; a fresh one when omitted.

    Returns:
        RouteMiddleware: The middleware.

    Raises:
        RegistrationError: If ``schema`` declares an unknown rule.
    """
    checker = validator or Validator()
    checker.prepare(schema)

    async def middleware(request: Request, call_next: Endpoint) -> Response:
        await parse_and_validate(request, schema, checker)
        return await call_next(request)

    return middleware


def get_parsed_request[T: BaseModel](
    request: Request, model: type[T] | None = None
) -> T | None:
    """Return the record stored by the adapter or ``parse_request``.

    Returns ``None`` when nothing was parsed, or when ``model`` is given and
    the stored record is not an instance of it.
    """
    record = getattr(request.state, PARSED_REQUEST_STATE_KEY, None)
    if record is None:
        return None
    if model is not None and not isinstance(record, model):
        return None
    return record


def validate_and_encode(
    data: Any,  # noqa: ANN401
    response_schema: Any,  # noqa: ANN401
    validator: Validator,
) -> Response:
    """Validate ``data`` against ``response_schema`` and encode it as JSON.

    Raises:
        ResponseValidationError: If the data violates the response schema.
    """
    if response_schema is not None:
        errors = validator.validate_response(data, response_schema)
        if errors:
            raise ResponseValidationError(errors)
    return ORJSONResponse(to_primitive(data))
