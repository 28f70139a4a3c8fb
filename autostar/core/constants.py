"""Core constants shared by the binding, routing and documentation layers."""

# Security and redaction
REDACTED = "[REDACTED]"

# OpenAPI document defaults
OPENAPI_VERSION = "3.0.0"
DEFAULT_API_TITLE = "AutoStar API"
DEFAULT_API_VERSION = "1.0.0"
SWAGGER_UI_VERSION = "4.5.0"

# Security scheme emitted for fields bound to header:Authorization
BEARER_SCHEME_NAME = "bearerAuth"
AUTHORIZATION_HEADER = "authorization"

# Leading acronyms lowercased as a unit when deriving response field names
CAMEL_CASE_ACRONYMS = (
    "API",
    "HTTP",
    "JSON",
    "URL",
    "ID",
    "SQL",
    "XML",
    "HTML",
    "CSS",
    "JS",
)

# Request state attribute holding the parsed request record
PARSED_REQUEST_STATE_KEY = "parsed_request"
