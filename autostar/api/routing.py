"""Per-method registrars shared by applications and groups."""

import re
import weakref
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from autostar.api.constants import ALL_METHODS
from autostar.api.options import RouteDescriptor, RouteOptions
from autostar.core.types import Handler, RouteMiddleware

if TYPE_CHECKING:
    from autostar.api.app import AutoStar

type Registration = RouteDescriptor | Callable[[Handler], Handler]

_COLON_PARAM = re.compile(r"(^|/):([^/]+)")


def join_paths(prefix: str, path: str) -> str:
    """Join a group prefix and a route path into an absolute path."""
    parts = [part.strip("/") for part in (prefix, path)]
    return "/" + "/".join(part for part in parts if part)


def to_router_path(path: str) -> str:
    """Convert ``:name`` segments to Starlette's ``{name}`` syntax."""
    return _COLON_PARAM.sub(r"\1{\2}", path)


class RouterMixin(ABC):
    """``get``/``post``/... registrars on top of ``add_route``.

    Each registrar either registers ``handler`` immediately and returns the
    route descriptor, or, when called without a handler, returns a
    decorator::

        @app.get("/users/:user_id", response_schema=UserResponse)
        async def get_user(request: Request, req: GetUser) -> UserResponse: ...
    """

    @abstractmethod
    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        options: RouteOptions | None = None,
    ) -> RouteDescriptor:
        """Register ``handler`` for ``method`` and ``path``."""

    def _register(  # noqa: PLR0913
        self,
        method: str,
        path: str,
        handler: Handler | None,
        *,
        request_schema: type[BaseModel] | None,
        response_schema: Any,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None,
        description: str,
        tags: Sequence[str] | None,
    ) -> Registration:
        options = RouteOptions(
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=list(middleware or []),
            description=description,
            tags=list(tags or []),
        )
        if handler is not None:
            return self.add_route(method, path, handler, options)

        def decorator(func: Handler) -> Handler:
            self.add_route(method, path, func, options)
            return func

        return decorator

    def get(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        return self._register(
            "GET",
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )

    def post(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        return self._register(
            "POST",
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )

    def put(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        return self._register(
            "PUT",
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )

    def delete(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        return self._register(
            "DELETE",
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )

    def patch(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        return self._register(
            "PATCH",
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )

    def head(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        return self._register(
            "HEAD",
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )

    def options(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        return self._register(
            "OPTIONS",
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )

    def all(  # noqa: PLR0913
        self,
        path: str,
        handler: Handler | None = None,
        *,
        request_schema: type[BaseModel] | None = None,
        response_schema: Any = None,  # noqa: ANN401
        middleware: Sequence[RouteMiddleware] | None = None,
        description: str = "",
        tags: Sequence[str] | None = None,
    ) -> Registration:
        """Register the handler for every supported verb."""
        return self._register(
            ALL_METHODS,
            path,
            handler,
            request_schema=request_schema,
            response_schema=response_schema,
            middleware=middleware,
            description=description,
            tags=tags,
        )


class AutoStarGroup(RouterMixin):
    """Routes sharing a path prefix and a middleware list.

    A group only weakly refers to its application. Middleware added with
    ``use`` applies to routes registered on the group (and its subgroups)
    afterwards, after the application's middleware and before the route's own.
    """

    def __init__(
        self,
        app: "AutoStar",
        prefix: str,
        middleware: Sequence[RouteMiddleware] = (),
        parent: "AutoStarGroup | None" = None,
    ) -> None:
        self._app = weakref.ref(app)
        self.prefix = join_paths(parent.prefix if parent else "", prefix)
        self.middleware: list[RouteMiddleware] = list(middleware)
        self.parent = parent

    @property
    def app(self) -> "AutoStar":
        app = self._app()
        if app is None:
            raise RuntimeError("the application owning this group no longer exists")
        return app

    def use(self, *middleware: RouteMiddleware) -> "AutoStarGroup":
        self.middleware.extend(middleware)
        return self

    def group(self, prefix: str, *middleware: RouteMiddleware) -> "AutoStarGroup":
        """Create a nested group below this one."""
        return AutoStarGroup(self.app, prefix, middleware, parent=self)

    def middleware_chain(self) -> list[RouteMiddleware]:
        """Middleware of the enclosing groups then this group, outermost first."""
        chain = self.parent.middleware_chain() if self.parent else []
        return [*chain, *self.middleware]

    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        options: RouteOptions | None = None,
    ) -> RouteDescriptor:
        options = options or RouteOptions()
        options = replace(
            options, middleware=[*self.middleware_chain(), *options.middleware]
        )
        return self.app.add_route(
            method, join_paths(self.prefix, path), handler, options
        )
