"""
docroute - declare controllers once, get routes and OpenAPI docs.

Example:
    from docroute import ControllerRegistry, AppSpec, create_app

    registry = ControllerRegistry()

    @registry.controller("/users", tags=["Users"])
    class UsersController:
        @registry.get("/profile", bearer_auth=True, responses={200: "Profile", 401: "Unauthorized"})
        async def profile(self, request):
            return {"success": True}

    app = create_app(AppSpec(registry).mount("/api/v1", UsersController()))
"""

__version__ = "0.1.0"

from .faults import (
    Fault,
    FaultDomain,
    ControllerNotRegisteredFault,
    InvalidMetadataFault,
    RouteConflictFault,
    ConfigFault,
)
from .controller import (
    HttpMethod,
    ValidationSchemas,
    DocFields,
    RouteMetadata,
    ControllerMetadata,
    RouteFragment,
    ControllerFragment,
    ControllerRegistry,
    ResolvedRoute,
    FieldError,
    ValidatedData,
    RouterMaterializer,
    materialize_router,
    check_conflicts,
    route_table,
    DocumentationMaterializer,
    OpenAPIFragment,
    OpenAPIConfig,
    OpenAPIGenerator,
    materialize_docs,
    render_swagger_ui,
)
from .app import AppSpec, create_app
from .config import DocsSettings
from .logging import configure_logging

__all__ = [
    "__version__",
    # Faults
    "Fault",
    "FaultDomain",
    "ControllerNotRegisteredFault",
    "InvalidMetadataFault",
    "RouteConflictFault",
    "ConfigFault",
    # Controller
    "HttpMethod",
    "ValidationSchemas",
    "DocFields",
    "RouteMetadata",
    "ControllerMetadata",
    "RouteFragment",
    "ControllerFragment",
    "ControllerRegistry",
    "ResolvedRoute",
    "FieldError",
    "ValidatedData",
    "RouterMaterializer",
    "materialize_router",
    "check_conflicts",
    "route_table",
    "DocumentationMaterializer",
    "OpenAPIFragment",
    "OpenAPIConfig",
    "OpenAPIGenerator",
    "materialize_docs",
    "render_swagger_ui",
    # App
    "AppSpec",
    "create_app",
    "DocsSettings",
    "configure_logging",
]
