"""Unit tests for the OpenAPI document builder."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Generic, Literal, TypeVar
from uuid import UUID

import orjson
import pytest
from pydantic import BaseModel, Field

from autostar.api.options import RouteDescriptor
from autostar.binding.annotations import Embed, Tag, record_plan
from autostar.docs.builder import (
    DocsBuilder,
    is_generic_instance,
    operation_id,
    path_parameters,
    request_field_name,
    response_field_name,
    schema_name,
    to_openapi_path,
)
from autostar.docs.models import OpenAPIInfo, OpenAPIServer

T = TypeVar("T")


class Priority(Enum):
    LOW = 1
    HIGH = 2


class GetUser(BaseModel):
    user_id: Annotated[
        int, Tag(bind="path:user_id,required", description="User identifier")
    ] = 0
    name: Annotated[str, Tag(bind="query:name", example="John")] = ""


class UserResponse(BaseModel):
    id: int = 0
    email: Annotated[str, Tag(json="email", validate="required,email")] = ""
    FirstName: str = ""
    password: Annotated[str, Tag(json="-")] = ""


class CreateUserRequest(BaseModel):
    org_id: Annotated[int, Tag(bind="path:org_id,required")] = 0
    role: Annotated[
        str, Tag(bind="query:role,required", validate="required,oneof=admin user")
    ] = ""
    api_key: Annotated[str, Tag(bind="header:X-API-Key,required")] = ""
    email: Annotated[str, Tag(bind="body:email", validate="required,email")] = ""
    password: Annotated[str, Tag(bind="body:password", validate="required,min=6")] = ""
    name: Annotated[str, Tag(bind="body:name", validate="required")] = ""


class AuthRequest(BaseModel):
    authorization: Annotated[str, Tag(bind="header:Authorization,required")] = ""


class SearchRequest(BaseModel):
    query: Annotated[str, Tag(json="q")] = ""
    hidden: Annotated[str, Tag(json="")] = ""
    session: Annotated[str, Tag(bind="cookie:session")] = ""


class UploadForm(BaseModel):
    username: Annotated[str, Tag(bind="form:username,required")] = ""
    age: Annotated[int, Tag(bind="form:age")] = 0


class Audit(BaseModel):
    created_by: Annotated[str, Tag(json="createdBy")] = ""


class Article(BaseModel):
    title: Annotated[str, Tag(json="title")] = ""
    audit: Annotated[Audit, Embed()] = Field(default_factory=Audit)


class Node(BaseModel):
    name: str = ""
    children: list["Node"] = Field(default_factory=list)


class Page(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    total: int = 0


class Feed(BaseModel):
    page: Page[UserResponse] = Field(default_factory=Page[UserResponse])


@pytest.fixture
def builder() -> DocsBuilder:
    """Provide an empty documentation builder."""
    return DocsBuilder(
        info=OpenAPIInfo(title="Test API", version="2.0.0"),
        servers=[OpenAPIServer(url="https://api.example.com")],
    )


def _operation(builder: DocsBuilder, path: str, method: str) -> dict[str, Any]:
    return builder.to_dict()["paths"][path][method]


@pytest.mark.unit
class TestHelpers:
    """Test path, naming and field placement helpers."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/users/:id", "/users/{id}"),
            ("/users/{id}", "/users/{id}"),
            ("/users/{id:int}", "/users/{id}"),
            ("/orgs/:org_id/users/:user_id", "/orgs/{org_id}/users/{user_id}"),
            ("/files/a:b", "/files/a:b"),
            ("/", "/"),
        ],
    )
    def test_to_openapi_path(self, path: str, expected: str) -> None:
        """Router parameter syntaxes are normalised to ``{name}``."""
        assert to_openapi_path(path) == expected

    @pytest.mark.parametrize(
        ("method", "path", "expected"),
        [
            ("GET", "/users/:id", "get_users_id"),
            ("POST", "/auth/login", "post_auth_login"),
            ("DELETE", "/orgs/{org_id}/users", "delete_orgs_org_id_users"),
        ],
    )
    def test_operation_id(self, method: str, path: str, expected: str) -> None:
        """Operation ids are derived from method and path only."""
        assert operation_id(method, path) == expected

    def test_schema_name(self) -> None:
        """Plain records use their name; generic instances append record args."""
        assert schema_name(UserResponse) == "UserResponse"
        assert schema_name(Page[UserResponse]) == "Page_UserResponse"
        assert is_generic_instance(Page[UserResponse]) is True
        assert is_generic_instance(UserResponse) is False

    def test_path_parameters(self) -> None:
        """Every path segment parameter becomes a required string parameter."""
        parameters = path_parameters("/users/:id/posts/{post_id}")

        assert [parameter.dump() for parameter in parameters] == [
            {
                "name": "id",
                "in": "path",
                "required": True,
                "description": "Path parameter: id",
                "schema": {"type": "string"},
            },
            {
                "name": "post_id",
                "in": "path",
                "required": True,
                "description": "Path parameter: post_id",
                "schema": {"type": "string"},
            },
        ]

    def test_request_field_names(self) -> None:
        """Only body-bound and unbound fields with a usable name are properties."""
        query, hidden, session = record_plan(SearchRequest).fields
        org_id, _, _, email, _, _ = record_plan(CreateUserRequest).fields

        assert request_field_name(query) == "q"
        assert request_field_name(hidden) is None
        assert request_field_name(session) is None
        assert request_field_name(org_id) is None
        assert request_field_name(email) == "email"

    def test_response_field_names(self) -> None:
        """Response properties use the JSON name, else a camelCase name."""
        id_, email, first_name, password = record_plan(UserResponse).fields

        assert response_field_name(id_) == "id"
        assert response_field_name(email) == "email"
        assert response_field_name(first_name) == "firstName"
        assert response_field_name(password) is None


@pytest.mark.unit
class TestFieldSchema:
    """Test conversion of field annotations to schemas."""

    @pytest.mark.parametrize(
        ("annotation", "expected"),
        [
            (str, {"type": "string"}),
            (int, {"type": "integer"}),
            (int | None, {"type": "integer"}),
            (bool, {"type": "boolean"}),
            (float, {"type": "number"}),
            (Decimal, {"type": "number"}),
            (datetime, {"type": "string", "format": "date-time"}),
            (date, {"type": "string", "format": "date"}),
            (UUID, {"type": "string", "format": "uuid"}),
            (list[int], {"type": "array", "items": {"type": "integer"}}),
            (dict[str, int], {"type": "object"}),
            (Literal["a", "b"], {"type": "string", "enum": ["a", "b"]}),
            (Priority, {"type": "integer", "enum": [1, 2]}),
            (bytes, {"type": "string"}),
        ],
    )
    def test_scalar_schemas(
        self, builder: DocsBuilder, annotation: Any, expected: dict[str, Any]
    ) -> None:
        """Static types map to OpenAPI types and formats."""
        assert builder.field_schema(annotation).dump() == expected

    def test_nested_record_is_referenced(self, builder: DocsBuilder) -> None:
        """Nested records are registered once and referenced."""
        schema = builder.field_schema(list[UserResponse], response_field_name)

        assert schema.dump() == {
            "type": "array",
            "items": {"$ref": "#/components/schemas/UserResponse"},
        }
        assert "UserResponse" in builder.schemas

    def test_recursive_record_terminates(self, builder: DocsBuilder) -> None:
        """Self-referencing records reference themselves."""
        builder.register_schema(Node, response_field_name)

        node = builder.schemas["Node"].dump()
        assert node["properties"]["children"] == {
            "type": "array",
            "items": {"$ref": "#/components/schemas/Node"},
        }

    def test_nested_generic_is_inlined(self, builder: DocsBuilder) -> None:
        """Generic instantiations nested in a record are inlined."""
        builder.register_schema(Feed, response_field_name)

        feed = builder.schemas["Feed"].dump()
        assert feed["properties"]["page"]["type"] == "object"
        assert feed["properties"]["page"]["properties"]["items"] == {
            "type": "array",
            "items": {"$ref": "#/components/schemas/UserResponse"},
        }
        assert "Page_UserResponse" not in builder.schemas

    def test_embedded_fields_are_flattened(self, builder: DocsBuilder) -> None:
        """Embedded record fields appear at the outer level."""
        builder.register_schema(Article, response_field_name)

        article = builder.schemas["Article"].dump()
        assert list(article["properties"]) == ["title", "createdBy"]
        assert "Audit" not in builder.schemas


@pytest.mark.unit
class TestOperations:
    """Test placement of request fields and response documentation."""

    def test_path_and_query_parameters(self, builder: DocsBuilder) -> None:
        """Path fields refine URL parameters; query fields become parameters."""
        builder.add_route(
            RouteDescriptor("GET", "/users/:user_id", request_schema=GetUser)
        )

        operation = _operation(builder, "/users/{user_id}", "get")

        assert operation["parameters"] == [
            {
                "name": "user_id",
                "in": "path",
                "required": True,
                "description": "User identifier",
                "schema": {"type": "integer"},
            },
            {
                "name": "name",
                "in": "query",
                "schema": {"type": "string", "example": "John"},
            },
        ]
        assert "requestBody" not in operation
        assert operation["operationId"] == "get_users_user_id"

    def test_mixed_sources(self, builder: DocsBuilder) -> None:
        """Path, query and header fields are parameters; body fields a $ref body."""
        builder.add_route(
            RouteDescriptor(
                "POST", "/orgs/:org_id/users", request_schema=CreateUserRequest
            )
        )

        document = builder.to_dict()
        operation = document["paths"]["/orgs/{org_id}/users"]["post"]

        assert [(p["name"], p["in"]) for p in operation["parameters"]] == [
            ("org_id", "path"),
            ("role", "query"),
            ("X-API-Key", "header"),
        ]
        assert operation["requestBody"] == {
            "required": True,
            "content": {
                "application/json": {
                    "schema": {"$ref": "#/components/schemas/CreateUserRequest"}
                }
            },
        }
        schema = document["components"]["schemas"]["CreateUserRequest"]
        assert list(schema["properties"]) == ["email", "password", "name"]
        assert schema["required"] == ["email", "password", "name"]

    def test_authorization_header_is_bearer_security(
        self, builder: DocsBuilder
    ) -> None:
        """``header:Authorization`` becomes a bearer requirement, not a parameter."""
        builder.add_route(RouteDescriptor("GET", "/me", request_schema=AuthRequest))
        builder.add_route(RouteDescriptor("PUT", "/me", request_schema=AuthRequest))

        document = builder.to_dict()

        for method in ("get", "put"):
            operation = document["paths"]["/me"][method]
            assert operation["security"] == [{"bearerAuth": []}]
            assert "parameters" not in operation
        assert document["components"]["securitySchemes"] == {
            "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
        }

    def test_no_security_scheme_without_authorization(
        self, builder: DocsBuilder
    ) -> None:
        """The bearer scheme is only emitted when some route uses it."""
        builder.add_route(
            RouteDescriptor("GET", "/users/:user_id", request_schema=GetUser)
        )

        assert "securitySchemes" not in builder.to_dict()["components"]

    def test_auto_fields_follow_the_method(self, builder: DocsBuilder) -> None:
        """Auto fields are query parameters without a body and properties with one."""
        builder.add_route(
            RouteDescriptor("GET", "/search", request_schema=SearchRequest)
        )
        builder.add_route(
            RouteDescriptor("POST", "/search", request_schema=SearchRequest)
        )

        document = builder.to_dict()
        get = document["paths"]["/search"]["get"]
        post = document["paths"]["/search"]["post"]

        assert [(p["name"], p["in"]) for p in get["parameters"]] == [
            ("q", "query"),
            ("hidden", "query"),
            ("session", "cookie"),
        ]
        assert "requestBody" not in get
        assert [(p["name"], p["in"]) for p in post["parameters"]] == [
            ("session", "cookie"),
        ]
        assert post["requestBody"]["content"]["application/json"]["schema"] == {
            "$ref": "#/components/schemas/SearchRequest"
        }
        schema = document["components"]["schemas"]["SearchRequest"]
        assert list(schema["properties"]) == ["q"]

    def test_form_fields(self, builder: DocsBuilder) -> None:
        """Form fields produce an urlencoded body."""
        builder.add_route(RouteDescriptor("POST", "/upload", request_schema=UploadForm))

        body = _operation(builder, "/upload", "post")["requestBody"]

        assert body["content"] == {
            "application/x-www-form-urlencoded": {
                "schema": {
                    "type": "object",
                    "properties": {
                        "username": {"type": "string"},
                        "age": {"type": "integer"},
                    },
                    "required": ["username"],
                }
            }
        }

    def test_all_methods(self, builder: DocsBuilder) -> None:
        """``ALL`` documents every verb; only POST, PUT and PATCH carry a body."""
        builder.add_route(
            RouteDescriptor("ALL", "/items", request_schema=SearchRequest)
        )

        operations = builder.to_dict()["paths"]["/items"]

        assert set(operations) == {
            "get",
            "post",
            "put",
            "delete",
            "patch",
            "head",
            "options",
        }
        with_body = {method for method, op in operations.items() if "requestBody" in op}
        assert with_body == {"post", "put", "patch"}

    def test_responses(self, builder: DocsBuilder) -> None:
        """Success responses reference the response schema; errors are inline."""
        builder.add_route(
            RouteDescriptor(
                "GET",
                "/users/:user_id",
                request_schema=GetUser,
                response_schema=UserResponse,
            )
        )
        builder.add_route(
            RouteDescriptor("GET", "/users", response_schema=list[UserResponse])
        )

        document = builder.to_dict()
        single = document["paths"]["/users/{user_id}"]["get"]["responses"]
        many = document["paths"]["/users"]["get"]["responses"]

        assert single["200"] == {
            "description": "Successful operation",
            "content": {
                "application/json": {
                    "schema": {"$ref": "#/components/schemas/UserResponse"}
                }
            },
        }
        assert many["200"]["content"]["application/json"]["schema"] == {
            "type": "array",
            "items": {"$ref": "#/components/schemas/UserResponse"},
        }
        assert set(single) == {"200", "400", "422", "500"}
        assert set(many) == {"200", "400", "500"}
        error = single["400"]["content"]["application/json"]["schema"]
        assert set(error["properties"]) == {"error", "details"}
        user = document["components"]["schemas"]["UserResponse"]
        assert list(user["properties"]) == [
            "id",
            "email",
            "firstName",
        ]

    def test_generic_response_schema_name(self, builder: DocsBuilder) -> None:
        """Generic response types are registered under a sanitised name."""
        builder.add_route(
            RouteDescriptor("GET", "/feed", response_schema=Page[UserResponse])
        )

        schemas = builder.to_dict()["components"]["schemas"]

        assert set(schemas) == {"Page_UserResponse", "UserResponse"}

    def test_description_and_tags(self, builder: DocsBuilder) -> None:
        """Descriptions fill summary and description; tags keep first-seen order."""
        builder.add_route(
            RouteDescriptor("GET", "/users", description="List users", tags=("users",))
        )
        builder.add_route(
            RouteDescriptor(
                "POST", "/login", description="Log in", tags=("auth", "users")
            )
        )

        document = builder.to_dict()
        operation = document["paths"]["/users"]["get"]

        assert operation["summary"] == "List users"
        assert operation["description"] == "List users"
        assert operation["tags"] == ["users"]
        assert document["tags"] == [{"name": "users"}, {"name": "auth"}]


@pytest.mark.unit
class TestDocument:
    """Test document-level output."""

    def test_empty_document(self, builder: DocsBuilder) -> None:
        """An empty builder still renders a valid document skeleton."""
        document = builder.to_dict()

        assert document["openapi"] == "3.0.0"
        assert document["info"] == {"title": "Test API", "version": "2.0.0"}
        assert document["servers"] == [{"url": "https://api.example.com"}]
        assert document["paths"] == {}

    def test_each_schema_is_registered_once(self, builder: DocsBuilder) -> None:
        """Reusing a record across routes registers one component."""
        for method in ("GET", "DELETE"):
            builder.add_route(
                RouteDescriptor(method, "/users/:user_id", response_schema=UserResponse)
            )

        assert list(builder.schemas) == ["UserResponse"]
        assert len(builder.routes) == 2

    def test_first_registration_wins(self, builder: DocsBuilder) -> None:
        """A record used for requests and responses keeps its first schema."""
        builder.add_route(RouteDescriptor("POST", "/a", request_schema=SearchRequest))
        builder.add_route(RouteDescriptor("GET", "/b", response_schema=SearchRequest))

        properties = builder.schemas["SearchRequest"].dump()["properties"]

        assert list(properties) == ["q"]

    def test_no_colon_parameters_in_paths(self, builder: DocsBuilder) -> None:
        """Router ``:name`` syntax never reaches the document."""
        builder.add_route(RouteDescriptor("GET", "/a/:x/b/:y"))

        assert list(builder.to_dict()["paths"]) == ["/a/{x}/b/{y}"]

    def test_to_json(self, builder: DocsBuilder) -> None:
        """The JSON rendering decodes to the dict rendering."""
        builder.add_route(
            RouteDescriptor("GET", "/users", response_schema=UserResponse)
        )

        assert orjson.loads(builder.to_json()) == builder.to_dict()
