"""Route options and the immutable route descriptors built from them."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from autostar.api.constants import ALL_METHODS, HTTP_METHODS
from autostar.core.types import RouteMiddleware


@dataclass(slots=True)
class RouteOptions:
    """Per-route options accepted by the registrars.

    Attributes:
        request_schema: Input record type; defaults to the handler's second
            parameter annotation.
        response_schema: Declared response type (``T`` or ``list[T]``),
            used for documentation and response validation.
        middleware: Route middleware, run in the order given.
        description: Operation description for the generated document.
        tags: Operation tags for the generated document.
    """

    request_schema: type[BaseModel] | None = None
    response_schema: Any = None
    middleware: list[RouteMiddleware] = field(default_factory=list)
    description: str = ""
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RouteDescriptor:
    """A registered route as seen by the documentation builder.

    ``path`` keeps the router syntax (``/users/:id``); the documentation
    builder normalises it.
    """

    method: str
    path: str
    request_schema: type[BaseModel] | None = None
    response_schema: Any = None
    description: str = ""
    tags: tuple[str, ...] = ()
    middleware: tuple[RouteMiddleware, ...] = ()

    @property
    def methods(self) -> tuple[str, ...]:
        """Concrete verbs; ``ALL`` expands to every supported verb."""
        if self.method == ALL_METHODS:
            return HTTP_METHODS
        return (self.method,)

    @property
    def route(self) -> str:
        return f"{self.method} {self.path}"
