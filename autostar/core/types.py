"""Type aliases for dynamic data structures and callables used across AutoStar.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning and documentation for these types.

The type aliases serve several purposes:
- **Documentation**: Clear intent about what kind of data is expected
- **Type safety**: Enable static type checkers to catch misuse
- **Maintainability**: Single source of truth for type definitions
"""

from collections.abc import Awaitable, Callable
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

# A Starlette request/response endpoint
type Endpoint = Callable[[Request], Awaitable[Response]]

# Per-route middleware: receives the request and the next endpoint in the chain
type RouteMiddleware = Callable[[Request, Endpoint], Awaitable[Response]]

# Custom validation predicate: (field value, rule parameter) -> passed
type ValidatorFunc = Callable[[Any, str], bool]

# A user handler in either supported shape, sync or async
type Handler = Callable[..., Any]
