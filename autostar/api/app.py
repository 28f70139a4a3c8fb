"""AutoStar application.

``AutoStar`` owns a Starlette application, the shared validator and the
documentation builder. Routes registered through it are adapted (extract,
validate, call, validate response, encode), recorded for documentation and
installed in the Starlette router::

    app = AutoStar(title="Users API", version="1.0.0")

    @app.post("/auth/login", response_schema=UserResponse)
    async def login(request: Request, req: LoginRequest) -> UserResponse: ...

    app.serve_docs("/openapi.json")
    app.serve_swagger_ui("/docs", "/openapi.json")
"""

from collections.abc import Sequence
from typing import Any, Self

import uvicorn
from loguru import logger
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route
from starlette.types import ExceptionHandler, Lifespan, Receive, Scope, Send

from autostar.api.constants import (
    ALL_METHODS,
    DEFAULT_HOST,
    DEFAULT_PORT,
    HTTP_METHODS,
)
from autostar.api.handlers import build_endpoint, compose, inspect_handler
from autostar.api.middleware.error_handler import register_exception_handlers
from autostar.api.options import RouteDescriptor, RouteOptions
from autostar.api.parsing import parse_request
from autostar.api.routing import AutoStarGroup, RouterMixin, to_router_path
from autostar.api.utils.responses import ORJSONResponse
from autostar.binding.coercion import schema_model
from autostar.binding.validator import Validator
from autostar.core.config import Settings, get_settings
from autostar.core.constants import DEFAULT_API_TITLE, DEFAULT_API_VERSION
from autostar.core.exceptions import RegistrationError
from autostar.core.logging import UVICORN_LOG_CONFIG, setup_logging
from autostar.core.types import Handler, RouteMiddleware
from autostar.docs.builder import DocsBuilder
from autostar.docs.models import (
    OpenAPIContact,
    OpenAPIInfo,
    OpenAPILicense,
    OpenAPIServer,
    OpenAPISpec,
)
from autostar.docs.swagger import swagger_ui_html


class AutoStar(RouterMixin):
    """Typed, validated and documented routes on top of Starlette.

    Args:
        title: API title for the generated document.
        description: API description.
        version: API version.
        contact: Contact information.
        license: License information.
        servers: Servers listed in the generated document.
        validator: Shared validator; a fresh one when omitted.
        debug: Starlette debug mode.
        middleware: ASGI middleware for the Starlette application.
        lifespan: Starlette lifespan context.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        title: str = DEFAULT_API_TITLE,
        description: str | None = None,
        version: str = DEFAULT_API_VERSION,
        contact: OpenAPIContact | None = None,
        license: OpenAPILicense | None = None,  # noqa: A002
        servers: Sequence[OpenAPIServer] | None = None,
        validator: Validator | None = None,
        debug: bool = False,
        middleware: Sequence[Middleware] | None = None,
        lifespan: Lifespan[Starlette] | None = None,
    ) -> None:
        self.validator = validator or Validator()
        self.docs = DocsBuilder(
            info=OpenAPIInfo(
                title=title,
                description=description,
                version=version,
                contact=contact,
                license=license,
            ),
            servers=list(servers or []),
        )
        self.app = Starlette(debug=debug, middleware=middleware, lifespan=lifespan)
        register_exception_handlers(self.app)
        self.middleware: list[RouteMiddleware] = []
        self._routes: list[RouteDescriptor] = []
        self.settings: Settings | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> Self:  # noqa: ANN401
        """Create an application from ``Settings``.

        Configures logging, maps the documentation settings to the document
        info and mounts the documentation routes (an empty URL disables one).

        Args:
            settings: Settings instance. If not provided, will use get_settings().
            **kwargs: Extra constructor arguments (validator, middleware, lifespan).

        Returns:
            The configured application.
        """
        if settings is None:
            settings = get_settings()

        setup_logging(settings)

        docs = settings.docs_config
        contact = None
        if docs.contact_name or docs.contact_url or docs.contact_email:
            contact = OpenAPIContact(
                name=docs.contact_name, url=docs.contact_url, email=docs.contact_email
            )
        license_info = None
        if docs.license_name:
            license_info = OpenAPILicense(name=docs.license_name, url=docs.license_url)

        application = cls(
            title=docs.title,
            description=docs.description,
            version=docs.version,
            contact=contact,
            license=license_info,
            servers=[
                OpenAPIServer(url=server.url, description=server.description)
                for server in docs.servers
            ],
            debug=settings.debug,
            **kwargs,
        )
        application.settings = settings

        if settings.openapi_url:
            application.serve_docs(settings.openapi_url)
            if settings.docs_url:
                application.serve_swagger_ui(settings.docs_url, settings.openapi_url)

        logger.info(
            "Application configured - {} v{}",
            settings.app_name,
            settings.app_version,
        )
        return application

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.app(scope, receive, send)

    @property
    def routes(self) -> list[RouteDescriptor]:
        """Descriptors of every route registered through this application."""
        return list(self._routes)

    def use(self, *middleware: RouteMiddleware) -> Self:
        """Add route middleware for routes registered afterwards."""
        self.middleware.extend(middleware)
        return self

    def add_middleware(self, middleware_class: Any, *args: Any, **kwargs: Any) -> None:  # noqa: ANN401
        """Add ASGI middleware to the underlying Starlette application."""
        self.app.add_middleware(middleware_class, *args, **kwargs)

    def add_exception_handler(
        self, exc_class_or_status_code: int | type[Exception], handler: ExceptionHandler
    ) -> None:
        self.app.add_exception_handler(exc_class_or_status_code, handler)

    def group(self, prefix: str, *middleware: RouteMiddleware) -> AutoStarGroup:
        """Create a group of routes sharing ``prefix`` and ``middleware``."""
        return AutoStarGroup(self, prefix, middleware)

    def parse_request(self, schema: type[Any]) -> RouteMiddleware:
        """``parse_request`` bound to this application's validator."""
        return parse_request(schema, self.validator)

    def _prepare_schemas(self, request_schema: Any, response_schema: Any, route: str) -> None:  # noqa: ANN401
        response_model, _ = schema_model(response_schema)
        for model in (request_schema, response_model):
            if model is None:
                continue
            try:
                self.validator.prepare(model)
            except RegistrationError as e:
                raise RegistrationError(e.message, route=route, cause=e) from e

    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        options: RouteOptions | None = None,
    ) -> RouteDescriptor:
        """Register ``handler`` for ``method`` and ``path``.

        The handler shape is checked, the route is forwarded to the
        documentation builder, then the adapted endpoint is installed.

        Args:
            method: HTTP verb, or ``ALL``.
            path: Route path; ``:name`` and ``{name}`` parameters are accepted.
            handler: The user handler.
            options: Route options.

        Returns:
            RouteDescriptor: The registered route.

        Raises:
            RegistrationError: If the method, path or handler is not acceptable.
        """
        options = options or RouteOptions()
        method = method.upper()
        route = f"{method} {path}"
        if method != ALL_METHODS and method not in HTTP_METHODS:
            raise RegistrationError(f"unsupported HTTP method {method!r}", route=route)
        if not path.startswith("/"):
            raise RegistrationError("path must start with '/'", route=route)

        shape = inspect_handler(handler, options.request_schema, route)
        self._prepare_schemas(shape.request_schema, options.response_schema, route)

        descriptor = RouteDescriptor(
            method=method,
            path=path,
            request_schema=shape.request_schema,
            response_schema=options.response_schema,
            description=options.description,
            tags=tuple(options.tags),
            middleware=(*self.middleware, *options.middleware),
        )
        self.docs.add_route(descriptor)

        endpoint = compose(
            build_endpoint(handler, shape, options.response_schema, self.validator),
            descriptor.middleware,
        )
        self.app.router.routes.append(
            Route(to_router_path(path), endpoint, methods=list(descriptor.methods))
        )
        self._routes.append(descriptor)

        logger.debug(
            "Registered route {} {}",
            method,
            path,
            request_schema=getattr(shape.request_schema, "__name__", None),
            middleware=len(descriptor.middleware),
        )
        return descriptor

    def openapi(self) -> OpenAPISpec:
        """Generate the OpenAPI document for the registered routes."""
        return self.docs.generate()

    def openapi_json(self) -> bytes:
        return self.docs.to_json()

    def serve_docs(self, path: str = "/openapi.json") -> None:
        """Serve the OpenAPI document at ``path``; the route itself is undocumented."""

        async def openapi_endpoint(_request: Request) -> Response:
            return ORJSONResponse(self.docs.to_dict())

        self.app.router.routes.append(
            Route(path, openapi_endpoint, methods=["GET"], include_in_schema=False)
        )

    def serve_swagger_ui(
        self, path: str = "/docs", docs_path: str = "/openapi.json"
    ) -> None:
        """Serve a Swagger UI page at ``path`` loading the document at ``docs_path``."""
        html = swagger_ui_html(docs_path, title=f"{self.docs.info.title} - Swagger UI")

        async def swagger_endpoint(_request: Request) -> Response:
            return HTMLResponse(html)

        self.app.router.routes.append(
            Route(path, swagger_endpoint, methods=["GET"], include_in_schema=False)
        )

    def listen(
        self,
        host: str | None = None,
        port: int | None = None,
        **kwargs: Any,  # noqa: ANN401
    ) -> None:
        """Run the application with uvicorn, logging through loguru.

        ``host`` and ``port`` default to ``api_host`` and ``api_port`` of the
        settings the application was built from, if any.
        """
        if host is None:
            host = self.settings.api_host if self.settings else DEFAULT_HOST
        if port is None:
            port = self.settings.api_port if self.settings else DEFAULT_PORT
        logger.info("Starting server on {}:{}", host, port)
        uvicorn.run(self, host=host, port=port, log_config=UVICORN_LOG_CONFIG, **kwargs)
