"""OpenAPI 3.0 document builder.

Every registered route is forwarded here as a ``RouteDescriptor``. Request
and response record types are converted to component schemas and referenced
with ``$ref``; the document itself is generated on demand from the recorded
routes.

Placement rules for the fields of a request record:

- path-bound fields refine the parameters taken from the URL
- query, header and cookie fields become parameters; ``header:Authorization``
  becomes a bearer security requirement instead
- body fields (and auto fields on POST/PUT/PATCH) make the operation carry a
  JSON request body referencing the record's schema
- form fields produce an urlencoded request body
- auto fields on other methods become query parameters
"""

import re
import threading
from collections.abc import Callable, Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, get_args, get_origin
from uuid import UUID

import orjson
from loguru import logger
from pydantic import BaseModel

from autostar.api.constants import (
    FORM_URLENCODED,
    JSON_MEDIA_TYPE,
    REQUEST_BODY_METHODS,
)
from autostar.api.options import RouteDescriptor
from autostar.binding.annotations import (
    EXCLUDED_JSON_NAME,
    FieldPlan,
    Source,
    record_plan,
)
from autostar.binding.coercion import (
    is_record,
    record_type,
    schema_model,
    sequence_item_type,
    unwrap_optional,
)
from autostar.core.constants import (
    AUTHORIZATION_HEADER,
    BEARER_SCHEME_NAME,
    DEFAULT_API_TITLE,
    DEFAULT_API_VERSION,
)
from autostar.docs.models import (
    OpenAPIComponents,
    OpenAPIInfo,
    OpenAPIMediaType,
    OpenAPIOperation,
    OpenAPIParameter,
    OpenAPIRequestBody,
    OpenAPIResponse,
    OpenAPISchema,
    OpenAPIServer,
    OpenAPISpec,
    OpenAPITag,
)

# Maps a field to its property name in a schema, or None to leave it out
type Converter = Callable[[FieldPlan], str | None]

SCHEMA_REF_PREFIX = "#/components/schemas/"

BEARER_SECURITY_SCHEME = {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")
_TYPED_PARAM = re.compile(r"\{([^}:]+):[^}]*\}")
_COLON_PARAM = re.compile(r"(^|/):([^/]+)")
_PATH_PARAM = re.compile(r"\{([^}]+)\}")


def to_openapi_path(path: str) -> str:
    """Normalise ``:name``, ``{name}`` and ``{name:conv}`` to ``{name}``."""
    path = _TYPED_PARAM.sub(r"{\1}", path)
    return _COLON_PARAM.sub(r"\1{\2}", path)


def operation_id(method: str, path: str) -> str:
    """Deterministic operation id, e.g. ``get_users_id`` for ``GET /users/:id``."""
    clean = to_openapi_path(path).replace("/", "_")
    clean = re.sub(r"[{}:]", "", clean).removeprefix("_")
    return f"{method.lower()}_{clean}"


def schema_ref(name: str) -> OpenAPISchema:
    return OpenAPISchema(ref=SCHEMA_REF_PREFIX + name)


def _generic_origin(model: type[BaseModel]) -> type[BaseModel] | None:
    metadata = getattr(model, "__pydantic_generic_metadata__", None)
    if not metadata:
        return None
    return metadata.get("origin")


def is_generic_instance(model: type[BaseModel]) -> bool:
    return _generic_origin(model) is not None


def _innermost_record(annotation: Any) -> type[BaseModel] | None:  # noqa: ANN401
    while annotation is not None:
        model = record_type(annotation)
        if model is not None:
            return model
        annotation = sequence_item_type(annotation)
    return None


def schema_name(model: type[BaseModel]) -> str:
    """Stable component name restricted to ``[A-Za-z0-9_]``.

    Generic instantiations are named after their origin followed by the
    names of their record-valued fields: ``Page[User]`` becomes ``Page_User``.
    """
    origin = _generic_origin(model)
    if origin is None:
        name = model.__name__
    else:
        name = origin.__name__
        for info in model.model_fields.values():
            nested = _innermost_record(info.annotation)
            if nested is not None:
                name += "_" + nested.__name__
    return _UNSAFE_NAME_CHARS.sub("_", name)


def path_parameters(path: str) -> list[OpenAPIParameter]:
    """Parameters declared by the URL itself, all typed as strings."""
    return [
        OpenAPIParameter(
            name=name,
            in_=Source.PATH.value,
            required=True,
            description=f"Path parameter: {name}",
            schema_=OpenAPISchema(type="string"),
        )
        for name in _PATH_PARAM.findall(to_openapi_path(path))
    ]


def request_field_name(field: FieldPlan) -> str | None:
    """Body property name of a request field.

    Explicitly bound fields appear only when bound to the body (auto binds
    included). Unbound fields use their JSON name, else the field name; an
    explicitly empty or excluded JSON name leaves them out.
    """
    if field.bound:
        if field.source in (Source.BODY, Source.AUTO):
            return field.key
        return None
    if field.json_name in ("", EXCLUDED_JSON_NAME):
        return None
    return field.wire_name


def response_field_name(field: FieldPlan) -> str | None:
    """Property name of a response field: JSON name, else camelCase."""
    if field.excluded:
        return None
    return field.response_name


def error_schema() -> OpenAPISchema:
    """Inline schema of the wire error document."""
    detail = OpenAPISchema(
        type="object",
        properties={
            "field": OpenAPISchema(type="string"),
            "message": OpenAPISchema(type="string"),
            "tag": OpenAPISchema(type="string"),
        },
        required=["field", "message"],
    )
    return OpenAPISchema(
        type="object",
        properties={
            "error": OpenAPISchema(type="string"),
            "details": OpenAPISchema(type="array", items=detail),
        },
        required=["error"],
    )


def _error_response(description: str) -> OpenAPIResponse:
    return OpenAPIResponse(
        description=description,
        content={JSON_MEDIA_TYPE: OpenAPIMediaType(schema_=error_schema())},
    )


def _enum_type(values: list[Any]) -> str:
    if values and all(isinstance(value, bool) for value in values):
        return "boolean"
    if values and all(isinstance(value, int) for value in values):
        return "integer"
    if values and all(isinstance(value, (int, float)) for value in values):
        return "number"
    return "string"


class DocsBuilder:
    """Accumulates routes and component schemas and renders the document.

    All mutation and generation happen under one re-entrant lock, so routes
    may also be registered after the server has started.
    """

    def __init__(
        self,
        info: OpenAPIInfo | None = None,
        servers: list[OpenAPIServer] | None = None,
    ) -> None:
        self.info = info or OpenAPIInfo(
            title=DEFAULT_API_TITLE, version=DEFAULT_API_VERSION
        )
        self.servers = list(servers or [])
        self._routes: list[RouteDescriptor] = []
        self._schemas: dict[str, OpenAPISchema] = {}
        self._tags: dict[str, OpenAPITag] = {}
        self._lock = threading.RLock()

    @property
    def routes(self) -> list[RouteDescriptor]:
        with self._lock:
            return list(self._routes)

    @property
    def schemas(self) -> dict[str, OpenAPISchema]:
        with self._lock:
            return dict(self._schemas)

    def add_route(self, descriptor: RouteDescriptor) -> None:
        """Record a route and register its request and response schemas."""
        with self._lock:
            self._routes.append(descriptor)
            request_model = record_type(descriptor.request_schema)
            if request_model is not None:
                self.register_schema(request_model, request_field_name)
            response_model, _ = schema_model(descriptor.response_schema)
            if response_model is not None:
                self.register_schema(response_model, response_field_name)
            for tag in descriptor.tags:
                self._tags.setdefault(tag, OpenAPITag(name=tag))

    def register_schema(self, model: type[BaseModel], converter: Converter) -> str:
        """Register ``model`` under its schema name; a known name is kept as is."""
        name = schema_name(model)
        with self._lock:
            if name in self._schemas:
                return name
            # Placeholder so self-referencing records terminate
            self._schemas[name] = OpenAPISchema(type="object")
            self._schemas[name] = self.convert_record(model, converter)
        logger.debug("Registered schema {}", name, schema=name)
        return name

    def convert_record(
        self, model: type[BaseModel], converter: Converter
    ) -> OpenAPISchema:
        """Convert a record to an object schema using ``converter`` for names."""
        properties: dict[str, OpenAPISchema] = {}
        required: list[str] = []
        for field in record_plan(model).leaves():
            name = converter(field)
            if name is None:
                continue
            schema = self.field_schema(field.annotation, converter)
            if field.description:
                schema.description = field.description
            if field.example is not None:
                schema.example = field.example
            properties[name] = schema
            if field.required:
                required.append(name)
        return OpenAPISchema(
            type="object",
            properties=properties or None,
            required=required or None,
        )

    def field_schema(  # noqa: C901, PLR0911
        self,
        annotation: Any,  # noqa: ANN401
        converter: Converter = request_field_name,
    ) -> OpenAPISchema:
        """Convert a field annotation to a schema.

        Nested records are registered and referenced; nested generic
        instantiations are inlined.
        """
        inner, _ = unwrap_optional(annotation)
        if is_record(inner):
            if is_generic_instance(inner):
                return self.convert_record(inner, converter)
            return schema_ref(self.register_schema(inner, converter))

        origin = get_origin(inner)
        if origin is Literal:
            values = list(get_args(inner))
            return OpenAPISchema(type=_enum_type(values), enum=values)

        item_type = sequence_item_type(inner)
        if item_type is not None:
            return OpenAPISchema(
                type="array", items=self.field_schema(item_type, converter)
            )
        if origin in (dict, Mapping) or inner in (dict, Mapping):
            return OpenAPISchema(type="object")

        if isinstance(inner, type):
            if issubclass(inner, Enum):
                values = [member.value for member in inner]
                return OpenAPISchema(type=_enum_type(values), enum=values)
            if issubclass(inner, bool):
                return OpenAPISchema(type="boolean")
            if issubclass(inner, int):
                return OpenAPISchema(type="integer")
            if issubclass(inner, (float, Decimal)):
                return OpenAPISchema(type="number")
            if issubclass(inner, datetime):
                return OpenAPISchema(type="string", format="date-time")
            if issubclass(inner, date):
                return OpenAPISchema(type="string", format="date")
            if issubclass(inner, UUID):
                return OpenAPISchema(type="string", format="uuid")
        return OpenAPISchema(type="string")

    def _parameter(self, field: FieldPlan, location: Source) -> OpenAPIParameter:
        schema = self.field_schema(field.annotation)
        if field.example is not None:
            schema.example = field.example
        return OpenAPIParameter(
            name=field.key,
            in_=location.value,
            description=field.description,
            required=True if field.required else None,
            schema_=schema,
        )

    def _refine_path_parameter(
        self, parameter: OpenAPIParameter, field: FieldPlan
    ) -> None:
        parameter.schema_ = self.field_schema(field.annotation)
        if field.description:
            parameter.description = field.description

    def _form_schema(self, fields: list[FieldPlan]) -> OpenAPISchema:
        properties = {field.key: self.field_schema(field.annotation) for field in fields}
        required = [field.key for field in fields if field.required]
        return OpenAPISchema(
            type="object", properties=properties, required=required or None
        )

    def _inputs(
        self, route: RouteDescriptor, method: str
    ) -> tuple[list[OpenAPIParameter], OpenAPIRequestBody | None, bool]:
        """Parameters, request body and bearer flag of one operation."""
        parameters = path_parameters(route.path)
        model = record_type(route.request_schema)
        if model is None:
            return parameters, None, False

        by_name = {parameter.name: parameter for parameter in parameters}
        allows_body = method in REQUEST_BODY_METHODS
        needs_body = False
        needs_bearer = False
        form_fields: list[FieldPlan] = []

        for field in record_plan(model).leaves():
            match field.source:
                case Source.PATH:
                    if field.key in by_name:
                        self._refine_path_parameter(by_name[field.key], field)
                case Source.QUERY | Source.COOKIE:
                    parameters.append(self._parameter(field, field.source))
                case Source.HEADER:
                    if field.key.lower() == AUTHORIZATION_HEADER:
                        needs_bearer = True
                    else:
                        parameters.append(self._parameter(field, Source.HEADER))
                case Source.BODY:
                    needs_body = True
                case Source.FORM:
                    form_fields.append(field)
                case Source.AUTO:
                    if field.key in by_name:
                        self._refine_path_parameter(by_name[field.key], field)
                    elif allows_body:
                        needs_body = needs_body or request_field_name(field) is not None
                    else:
                        parameters.append(self._parameter(field, Source.QUERY))

        if not allows_body:
            return parameters, None, needs_bearer

        content: dict[str, OpenAPIMediaType] = {}
        if needs_body:
            name = self.register_schema(model, request_field_name)
            content[JSON_MEDIA_TYPE] = OpenAPIMediaType(schema_=schema_ref(name))
        if form_fields:
            content[FORM_URLENCODED] = OpenAPIMediaType(
                schema_=self._form_schema(form_fields)
            )
        body = OpenAPIRequestBody(required=True, content=content) if content else None
        return parameters, body, needs_bearer

    def _responses(self, route: RouteDescriptor) -> dict[str, OpenAPIResponse]:
        success = OpenAPIResponse(description="Successful operation")
        model, is_list = schema_model(route.response_schema)
        if model is not None:
            ref = schema_ref(schema_name(model))
            schema = OpenAPISchema(type="array", items=ref) if is_list else ref
            success.content = {JSON_MEDIA_TYPE: OpenAPIMediaType(schema_=schema)}

        responses = {"200": success, "400": _error_response("Bad Request")}
        if route.request_schema is not None:
            responses["422"] = _error_response("Validation Error")
        responses["500"] = _error_response("Internal Server Error")
        return responses

    def build_operation(
        self, route: RouteDescriptor, method: str
    ) -> tuple[OpenAPIOperation, bool]:
        """Build the operation for one verb of a route; also report bearer use."""
        parameters, body, needs_bearer = self._inputs(route, method)
        operation = OpenAPIOperation(
            tags=list(route.tags) or None,
            summary=route.description or None,
            description=route.description or None,
            operation_id=operation_id(method, route.path),
            parameters=parameters or None,
            request_body=body,
            responses=self._responses(route),
            security=[{BEARER_SCHEME_NAME: []}] if needs_bearer else None,
        )
        return operation, needs_bearer

    def generate(self) -> OpenAPISpec:
        """Render the document from every recorded route."""
        with self._lock:
            paths: dict[str, dict[str, OpenAPIOperation]] = {}
            needs_bearer = False
            for route in self._routes:
                path = to_openapi_path(route.path)
                for method in route.methods:
                    operation, bearer = self.build_operation(route, method)
                    needs_bearer = needs_bearer or bearer
                    paths.setdefault(path, {})[method.lower()] = operation

            components = OpenAPIComponents(
                schemas=dict(self._schemas) or None,
                security_schemes=(
                    {BEARER_SCHEME_NAME: dict(BEARER_SECURITY_SCHEME)}
                    if needs_bearer
                    else None
                ),
            )
            return OpenAPISpec(
                info=self.info,
                servers=list(self.servers) or None,
                paths=paths,
                components=components,
                tags=list(self._tags.values()) or None,
            )

    def to_dict(self) -> dict[str, Any]:
        return self.generate().dump()

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2)
