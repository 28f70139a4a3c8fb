"""AutoStar: typed, validated and self-documenting HTTP endpoints on Starlette.

Declare request and response shapes once as pydantic records with ``Tag``
annotations; AutoStar extracts inputs from every HTTP source, validates
requests and responses, calls plain handlers and emits an OpenAPI 3.0
document from the same type information.
"""

from autostar.api.app import AutoStar
from autostar.api.options import RouteDescriptor, RouteOptions
from autostar.api.parsing import get_parsed_request, parse_request, validate_and_encode
from autostar.api.routing import AutoStarGroup
from autostar.binding.annotations import Embed, Source, Tag
from autostar.binding.validator import Validator
from autostar.core.config import Settings, get_settings
from autostar.core.exceptions import (
    AutoStarError,
    CoercionError,
    FieldError,
    ParseError,
    RegistrationError,
    RequestValidationError,
    ResponseValidationError,
)
from autostar.core.logging import setup_logging

__all__ = [
    "AutoStar",
    "AutoStarError",
    "AutoStarGroup",
    "CoercionError",
    "Embed",
    "FieldError",
    "ParseError",
    "RegistrationError",
    "RequestValidationError",
    "ResponseValidationError",
    "RouteDescriptor",
    "RouteOptions",
    "Settings",
    "Source",
    "Tag",
    "Validator",
    "get_parsed_request",
    "get_settings",
    "parse_request",
    "setup_logging",
    "validate_and_encode",
]
