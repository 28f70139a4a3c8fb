"""HTTP layer of AutoStar, built on Starlette.

Key components:
- **app**: ``AutoStar``, the application owning the router, validator and
  documentation builder
- **routing**: per-method registrars and route groups
- **handlers**: handler shape checks and the request-time adapter
- **parsing**: parse-only middleware and response encoding helpers
- **middleware**: exception handlers rendering the wire error document
- **schemas**: pydantic models of the wire error document
- **utils**: orjson-based JSON responses
"""
