"""Shared fixtures for unit tests."""

from collections.abc import Callable
from typing import Any

import pytest
from starlette.requests import Request
from starlette.types import Message

type RequestFactory = Callable[..., Request]


@pytest.fixture
def make_request() -> RequestFactory:
    """Provide a factory building Starlette requests without a server.

    Returns:
        RequestFactory: ``make_request(method, path, query=..., headers=...,
            body=..., path_params=...)``.
    """

    def factory(
        method: str = "GET",
        path: str = "/",
        *,
        query: bytes = b"",
        headers: dict[str, str] | None = None,
        body: bytes = b"",
        path_params: dict[str, Any] | None = None,
    ) -> Request:
        raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ]
        scope = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query,
            "headers": raw_headers,
            "path_params": path_params or {},
        }

        async def receive() -> Message:
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return factory
