"""Wire schemas for error responses.

Every error produced by the binding pipeline is rendered as::

    {"error": "<message>", "details": [{"field": "...", "message": "...", "tag": "..."}]}

The shape is part of the public contract and is documented inline in the
generated OpenAPI responses.
"""

from pydantic import BaseModel, Field

from autostar.core.exceptions import FieldError


class FieldErrorDetail(BaseModel):
    """A single field-level failure."""

    field: str = Field(
        ...,
        description="Dotted path of wire keys naming the failing field",
        examples=["email", "address.city", "items[0].name", "body"],
    )

    message: str = Field(
        ...,
        description="Human-readable description of the failure",
        examples=["email must be a valid email address", "field is required"],
    )

    tag: str | None = Field(
        default=None,
        description="Failing rule name, or 'parse' for extraction failures",
        examples=["required", "min", "email", "parse"],
    )

    @classmethod
    def from_field_error(cls, error: FieldError) -> "FieldErrorDetail":
        return cls(field=error.field, message=error.message, tag=error.tag)


class ErrorResponse(BaseModel):
    """Error document returned for parse, validation and response failures."""

    error: str = Field(
        ...,
        description="Summary of the failure",
        examples=["Invalid request", "Validation failed", "Response validation failed"],
    )

    details: list[FieldErrorDetail] | None = Field(
        default=None,
        description="Field-level failures, when the error concerns specific fields",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": "Invalid request",
                    "details": [
                        {
                            "field": "body",
                            "message": "Request body is required for JSON requests",
                            "tag": "parse",
                        }
                    ],
                },
                {
                    "error": "Validation failed",
                    "details": [
                        {
                            "field": "email",
                            "message": "email must be a valid email address",
                            "tag": "email",
                        },
                        {
                            "field": "password",
                            "message": "password must be at least 6 characters long",
                            "tag": "min",
                        },
                    ],
                },
                {"error": "Not Found"},
            ]
        }
    }

    @classmethod
    def from_field_errors(
        cls, message: str, errors: list[FieldError]
    ) -> "ErrorResponse":
        return cls(
            error=message,
            details=[FieldErrorDetail.from_field_error(error) for error in errors],
        )
