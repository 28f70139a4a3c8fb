"""Shared fixtures for integration tests.

The ``app`` fixture assembles a small users API exercising every binding
source; ``client`` talks to it in-process through httpx's ASGI transport.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel
from starlette.requests import Request

from autostar.api.app import AutoStar
from autostar.binding.annotations import Tag


class LoginRequest(BaseModel):
    email: Annotated[str, Tag(json="email", validate="required,email")] = ""
    password: Annotated[str, Tag(json="password", validate="required,min=6")] = ""


class UserResponse(BaseModel):
    id: Annotated[int, Tag(json="id")] = 0
    email: Annotated[str, Tag(json="email", validate="required,email")] = ""
    name: Annotated[str, Tag(json="name")] = ""


class GetUser(BaseModel):
    user_id: Annotated[
        int, Tag(bind="path:user_id,required", description="User identifier")
    ] = 0
    name: Annotated[str, Tag(bind="query:name", example="John")] = ""


class CreateUserRequest(BaseModel):
    org_id: Annotated[int, Tag(bind="path:org_id,required")] = 0
    role: Annotated[
        str, Tag(bind="query:role,required", validate="oneof=admin user")
    ] = ""
    api_key: Annotated[str, Tag(bind="header:X-API-Key,required")] = ""
    email: Annotated[
        str, Tag(bind="body:email,required", validate="required,email")
    ] = ""
    password: Annotated[
        str, Tag(bind="body:password,required", validate="required,min=6")
    ] = ""
    name: Annotated[str, Tag(bind="body:name,required", validate="required")] = ""


class MeRequest(BaseModel):
    authorization: Annotated[str, Tag(bind="header:Authorization,required")] = ""


async def login(request: Request, req: LoginRequest) -> UserResponse:
    return UserResponse(id=1, email=req.email)


async def get_user(request: Request, req: GetUser) -> dict[str, object]:
    return {"user_id": req.user_id, "name": req.name}


async def create_user(request: Request, req: CreateUserRequest) -> UserResponse:
    return UserResponse(id=req.org_id, email=req.email, name=req.name)


async def me(request: Request, req: MeRequest) -> dict[str, str]:
    return {"token": req.authorization.removeprefix("Bearer ")}


def build_app() -> AutoStar:
    """Assemble the users API used across the integration suite."""
    app = AutoStar(title="Users API", version="1.0.0")
    app.post(
        "/auth/login",
        login,
        response_schema=UserResponse,
        description="Log in",
        tags=["auth"],
    )
    app.get("/users/:user_id", get_user, tags=["users"])
    app.post(
        "/orgs/:org_id/users",
        create_user,
        response_schema=UserResponse,
        tags=["users"],
    )
    app.get("/me", me, tags=["auth"])
    app.serve_docs("/openapi.json")
    app.serve_swagger_ui("/docs", "/openapi.json")
    return app


@pytest.fixture
def app() -> AutoStar:
    """Provide a freshly assembled application."""
    return build_app()


@pytest.fixture
async def client(app: AutoStar) -> AsyncGenerator[AsyncClient]:
    """Provide an async HTTP client bound to the application."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as test_client:
        yield test_client
