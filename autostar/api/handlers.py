"""Handler adapter.

User handlers come in exactly two shapes, sync or async::

    def handler(request): ...             # no input record
    def handler(request, req: T): ...     # T is the input record type

The shape is checked once at registration; anything else is a
``RegistrationError``. At request time the adapter runs, in order:
extract, validate, call, validate the response, encode. Returning a
Starlette ``Response`` bypasses response validation and encoding, and
exceptions raised by the handler propagate unchanged.
"""

import inspect
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, get_type_hints

from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from autostar.api.parsing import parse_and_validate, validate_and_encode
from autostar.binding.coercion import is_record
from autostar.binding.validator import Validator
from autostar.core.exceptions import RegistrationError
from autostar.core.types import Endpoint, Handler, RouteMiddleware

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)

_SHAPE_HINT = "expected handler(request) or handler(request, req)"


@dataclass(frozen=True, slots=True)
class HandlerShape:
    """Result of inspecting a handler at registration."""

    request_schema: type[BaseModel] | None
    is_async: bool

    @property
    def takes_record(self) -> bool:
        return self.request_schema is not None


def _is_async(handler: Handler) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    call = getattr(handler, "__call__", None)  # noqa: B004
    return call is not None and inspect.iscoroutinefunction(call)


def _annotated_schema(handler: Handler, parameter: inspect.Parameter) -> Any:  # noqa: ANN401
    target = handler
    if not (inspect.isfunction(handler) or inspect.ismethod(handler)):
        target = getattr(handler, "__call__", handler)  # noqa: B004
    try:
        hints = get_type_hints(target)
    except (NameError, TypeError):
        hints = {}
    annotation = hints.get(parameter.name, parameter.annotation)
    if annotation is inspect.Parameter.empty or isinstance(annotation, str):
        return None
    return annotation


def inspect_handler(
    handler: Handler,
    request_schema: type[BaseModel] | None = None,
    route: str | None = None,
) -> HandlerShape:
    """Check a handler's shape and resolve its input record type.

    Args:
        handler: The user handler.
        request_schema: Explicit input record type, if any.
        route: ``METHOD path`` used in error messages.

    Returns:
        HandlerShape: The resolved shape.

    Raises:
        RegistrationError: If the handler matches neither supported shape.
    """
    if not callable(handler):
        raise RegistrationError("handler is not callable", route=route)
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError) as e:
        raise RegistrationError(
            f"cannot inspect handler signature: {e}", route=route, cause=e
        ) from e

    parameters = list(signature.parameters.values())
    for parameter in parameters:
        if parameter.kind not in _POSITIONAL_KINDS:
            raise RegistrationError(
                f"unsupported parameter {parameter.name!r}; {_SHAPE_HINT}",
                route=route,
            )
    if len(parameters) not in (1, 2):
        raise RegistrationError(
            f"handler takes {len(parameters)} parameters; {_SHAPE_HINT}",
            route=route,
        )

    is_async = _is_async(handler)
    if len(parameters) == 1:
        if request_schema is not None:
            raise RegistrationError(
                f"request_schema {request_schema.__name__} given but the handler "
                "takes no request record",
                route=route,
            )
        return HandlerShape(request_schema=None, is_async=is_async)

    schema = request_schema or _annotated_schema(handler, parameters[1])
    if not is_record(schema):
        raise RegistrationError(
            f"cannot resolve the request record type of parameter "
            f"{parameters[1].name!r}; annotate it with a BaseModel subclass "
            "or pass request_schema",
            route=route,
        )
    return HandlerShape(request_schema=schema, is_async=is_async)


def build_endpoint(
    handler: Handler,
    shape: HandlerShape,
    response_schema: Any,  # noqa: ANN401
    validator: Validator,
) -> Endpoint:
    """Wrap a handler into a Starlette endpoint."""

    async def call(*args: Any) -> Any:  # noqa: ANN401
        if shape.is_async:
            result = await handler(*args)
        else:
            result = await run_in_threadpool(handler, *args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def endpoint(request: Request) -> Response:
        if shape.request_schema is not None:
            record = await parse_and_validate(request, shape.request_schema, validator)
            result = await call(request, record)
        else:
            result = await call(request)

        if isinstance(result, Response):
            return result
        return validate_and_encode(result, response_schema, validator)

    return endpoint


def _chain(middleware: RouteMiddleware, call_next: Endpoint) -> Endpoint:
    async def run(request: Request) -> Response:
        return await middleware(request, call_next)

    return run


def compose(endpoint: Endpoint, middleware: Sequence[RouteMiddleware]) -> Endpoint:
    """Wrap ``endpoint`` in route middleware; the first one listed runs outermost."""
    for item in reversed(middleware):
        endpoint = _chain(item, endpoint)
    return endpoint
