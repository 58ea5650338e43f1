"""
Application bootstrap.

Mounts materialized controller routers into a Starlette application and
serves the generated OpenAPI document plus a Swagger UI page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import BaseRoute, Route

from .controller.openapi import OpenAPIConfig, OpenAPIGenerator, render_swagger_ui
from .controller.registry import ControllerRegistry
from .controller.router import RouterMaterializer

logger = logging.getLogger("docroute.app")


@dataclass
class AppSpec:
    """
    Everything needed to build the application: the registry, the
    ``(mount_prefix, controller_instance)`` pairs and the docs config.
    """
    registry: ControllerRegistry
    mounts: List[Tuple[str, Any]] = field(default_factory=list)
    config: OpenAPIConfig = field(default_factory=OpenAPIConfig)

    def mount(self, prefix: str, controller: Any) -> "AppSpec":
        self.mounts.append((prefix, controller))
        return self


def docs_routes(spec: AppSpec) -> List[BaseRoute]:
    """Routes serving the JSON document and the Swagger UI page."""
    generator = OpenAPIGenerator(spec.config)
    document = generator.generate(spec.registry, spec.mounts)
    page = render_swagger_ui(spec.config)

    async def openapi_json(request: Request) -> JSONResponse:
        return JSONResponse(document)

    async def swagger_ui(request: Request) -> HTMLResponse:
        return HTMLResponse(page)

    return [
        Route(spec.config.openapi_json_path, openapi_json, methods=["GET"], name="openapi_json"),
        Route(spec.config.docs_path, swagger_ui, methods=["GET"], name="swagger_ui"),
    ]


def build_routes(spec: AppSpec) -> List[BaseRoute]:
    """
    Materialize every mounted controller.

    The mount prefix is resolved into each route path, so served paths
    are exactly the documented ones (a root route under ``/api`` is
    ``/api``, not ``/api/``).
    """
    materializer = RouterMaterializer(spec.registry)
    routes: List[BaseRoute] = []
    for prefix, controller in spec.mounts:
        router = materializer.materialize(controller, prefix)
        routes.extend(router.routes)
        logger.info(
            "Mounted %s at %s (%d routes)",
            type(controller).__name__, prefix or "/", len(router.routes),
        )
    return routes


def create_app(
    spec: AppSpec,
    *,
    debug: bool = False,
    serve_docs: bool = True,
    extra_routes: Optional[Sequence[BaseRoute]] = None,
) -> Starlette:
    """
    Build the Starlette application for ``spec``.

    Docs are generated once at startup from the same registry the
    routers were built from.
    """
    for name in spec.registry.unsealed():
        logger.warning(
            "Route metadata on %s was never sealed; decorate its class with @registry.controller()",
            name,
        )
    routes = build_routes(spec)
    if serve_docs:
        routes.extend(docs_routes(spec))
    if extra_routes:
        routes.extend(extra_routes)
    return Starlette(debug=debug, routes=routes)
