"""API-related constants."""

# HTTP status codes used by the adapter and the error handlers
HTTP_400_BAD_REQUEST = 400
HTTP_422_UNPROCESSABLE_ENTITY = 422
HTTP_500_INTERNAL_SERVER_ERROR = 500

# HTTP methods
HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
ALL_METHODS = "ALL"
REQUEST_BODY_METHODS = {"POST", "PUT", "PATCH"}

# Content types
JSON_CONTENT_TYPES = {"application/json", "text/json"}
JSON_SUFFIX = "+json"
FORM_CONTENT_TYPES = {"application/x-www-form-urlencoded", "multipart/form-data"}
FORM_URLENCODED = "application/x-www-form-urlencoded"
JSON_MEDIA_TYPE = "application/json"

# Wire error messages
PARSE_ERROR_MESSAGE = "Invalid request"
VALIDATION_ERROR_MESSAGE = "Validation failed"
RESPONSE_VALIDATION_ERROR_MESSAGE = "Response validation failed"

# Server address used by listen() when neither arguments nor settings give one
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
