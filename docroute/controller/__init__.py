"""
docroute Controller System

Declare a controller once, materialize it twice: as a mountable
Starlette router and as an OpenAPI fragment.

Example:
    from pydantic import BaseModel, EmailStr, Field
    from docroute.controller import ControllerRegistry

    registry = ControllerRegistry()

    class LoginInput(BaseModel):
        email: EmailStr
        password: str = Field(min_length=8)

    @registry.controller("/auth", tags=["Auth"])
    class AuthController:
        @registry.post("/login", body=LoginInput, responses={200: "Logged in", 400: "Invalid input"})
        async def login(self, request):
            data = request.state.validated.body
            ...

    router = materialize_router(registry, AuthController())
    fragment = materialize_docs(registry, AuthController(), "/api/v1")
"""

from .metadata import (
    HttpMethod,
    ValidationSchemas,
    DocFields,
    RouteMetadata,
    ControllerMetadata,
    RouteFragment,
    ControllerFragment,
)
from .registry import (
    ControllerRegistry,
    ResolvedRoute,
    controller_key,
)
from .validation import (
    FieldError,
    ValidatedData,
    validate_request,
    validation_error_response,
)
from .router import (
    RouterMaterializer,
    materialize_router,
    check_conflicts,
    route_table,
)
from .openapi import (
    DocumentationMaterializer,
    OpenAPIFragment,
    OpenAPIConfig,
    OpenAPIGenerator,
    materialize_docs,
    render_swagger_ui,
)

__all__ = [
    # Metadata
    "HttpMethod",
    "ValidationSchemas",
    "DocFields",
    "RouteMetadata",
    "ControllerMetadata",
    "RouteFragment",
    "ControllerFragment",

    # Registry
    "ControllerRegistry",
    "ResolvedRoute",
    "controller_key",

    # Validation
    "FieldError",
    "ValidatedData",
    "validate_request",
    "validation_error_response",

    # Routing
    "RouterMaterializer",
    "materialize_router",
    "check_conflicts",
    "route_table",

    # Documentation
    "DocumentationMaterializer",
    "OpenAPIFragment",
    "OpenAPIConfig",
    "OpenAPIGenerator",
    "materialize_docs",
    "render_swagger_ui",
]
