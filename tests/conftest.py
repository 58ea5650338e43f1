"""
Shared test fixtures and helpers for the docroute test suite.
"""

from typing import Callable, List, Optional

import pytest
from pydantic import BaseModel, EmailStr, Field
from starlette.requests import Request
from starlette.responses import JSONResponse

from docroute.controller.registry import ControllerRegistry


# ============================================================================
# Schemas
# ============================================================================


class LoginInput(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)


class UserParams(BaseModel):
    id: int = Field(description="User ID")


class SearchQuery(BaseModel):
    page: int = 1
    limit: int = Field(default=10, ge=1, le=100)
    name: Optional[str] = None
    tags: List[str] = []


# ============================================================================
# Middleware helpers
# ============================================================================


def marker(name: str, calls: list) -> Callable:
    """Middleware that records ``name`` and continues the chain."""
    async def middleware(request: Request, call_next):
        calls.append(name)
        return await call_next(request)

    middleware.__name__ = f"marker_{name}"
    return middleware


async def deny(request: Request, call_next):
    """Middleware that short-circuits with 401."""
    return JSONResponse({"success": False, "message": "Unauthorized"}, status_code=401)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def registry() -> ControllerRegistry:
    return ControllerRegistry()


@pytest.fixture
def calls() -> list:
    return []


@pytest.fixture
def users_controller(registry, calls):
    """A small users/auth controller covering every metadata kind."""

    @registry.controller("/users", tags=["Users"])
    class UsersController:
        @registry.get(
            "/profile",
            summary="Get profile",
            bearer_auth=True,
            responses={200: "Profile returned", 401: "Unauthorized"},
        )
        async def profile(self, request):
            return {"success": True, "data": {"email": "user@example.com"}}

        @registry.post("/login", body=LoginInput, responses={200: "Logged in", 400: "Invalid input"})
        async def login(self, request):
            body = request.state.validated.body
            return {"success": True, "email": body.email}

        @registry.get("/{id:int}", params=UserParams)
        @registry.use(marker("first", calls), marker("second", calls))
        @registry.use(marker("third", calls))
        async def get_user(self, request):
            """Fetch one user.

            Returns the user record.
            """
            return {"id": request.state.validated.params.id, "calls": list(calls)}

        @registry.get("/search", query=SearchQuery, tags=["Search"])
        def search(self, request):
            query = request.state.validated.query
            return {"page": query.page, "tags": query.tags}

        def helper(self):
            return "not a route"

    return UsersController
