"""OpenAPI 3.0 documentation for registered routes.

- **models**: pydantic models of the emitted document
- **builder**: ``DocsBuilder``, the route and schema registry
- **swagger**: the Swagger UI page
"""
