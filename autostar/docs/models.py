"""Pydantic models for the emitted OpenAPI 3.0 document.

Field names that are not valid or not safe Python identifiers (``$ref``,
``in``, ``schema``, ``operationId``...) are declared with aliases; documents
are always dumped with ``by_alias=True, exclude_none=True``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from autostar.core.constants import OPENAPI_VERSION


class OpenAPIModel(BaseModel):
    """Base class for document nodes."""

    model_config = ConfigDict(populate_by_name=True)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class OpenAPISchema(OpenAPIModel):
    type: str | None = None
    format: str | None = None
    description: str | None = None
    required: list[str] | None = None
    properties: dict[str, "OpenAPISchema"] | None = None
    items: "OpenAPISchema | None" = None
    enum: list[Any] | None = None
    ref: str | None = Field(default=None, alias="$ref")
    example: Any = None


class OpenAPIContact(OpenAPIModel):
    name: str | None = None
    url: str | None = None
    email: str | None = None


class OpenAPILicense(OpenAPIModel):
    name: str
    url: str | None = None


class OpenAPIServer(OpenAPIModel):
    url: str
    description: str | None = None


class OpenAPIInfo(OpenAPIModel):
    title: str
    description: str | None = None
    version: str
    contact: OpenAPIContact | None = None
    license: OpenAPILicense | None = None


class OpenAPIParameter(OpenAPIModel):
    name: str
    in_: str = Field(alias="in")
    description: str | None = None
    required: bool | None = None
    schema_: OpenAPISchema | None = Field(default=None, alias="schema")


class OpenAPIMediaType(OpenAPIModel):
    schema_: OpenAPISchema | None = Field(default=None, alias="schema")


class OpenAPIRequestBody(OpenAPIModel):
    description: str | None = None
    required: bool | None = None
    content: dict[str, OpenAPIMediaType]


class OpenAPIResponse(OpenAPIModel):
    description: str
    content: dict[str, OpenAPIMediaType] | None = None


class OpenAPIOperation(OpenAPIModel):
    tags: list[str] | None = None
    summary: str | None = None
    description: str | None = None
    operation_id: str | None = Field(default=None, alias="operationId")
    parameters: list[OpenAPIParameter] | None = None
    request_body: OpenAPIRequestBody | None = Field(default=None, alias="requestBody")
    responses: dict[str, OpenAPIResponse]
    security: list[dict[str, list[str]]] | None = None


class OpenAPIComponents(OpenAPIModel):
    schemas: dict[str, OpenAPISchema] | None = None
    security_schemes: dict[str, dict[str, str]] | None = Field(
        default=None, alias="securitySchemes"
    )


class OpenAPITag(OpenAPIModel):
    name: str
    description: str | None = None


class OpenAPISpec(OpenAPIModel):
    """The complete document; ``paths`` maps path -> lowercase verb -> operation."""

    openapi: str = OPENAPI_VERSION
    info: OpenAPIInfo
    servers: list[OpenAPIServer] | None = None
    paths: dict[str, dict[str, OpenAPIOperation]] = Field(default_factory=dict)
    components: OpenAPIComponents = Field(default_factory=OpenAPIComponents)
    tags: list[OpenAPITag] | None = None
