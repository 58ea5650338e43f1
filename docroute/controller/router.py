"""
Router Materializer - turns a controller instance into a Starlette Router.

Each route gets a handler chain:

    method middlewares (declaration order) -> validation -> bound handler

Middlewares follow the ``async def mw(request, call_next) -> Response``
convention and short-circuit the chain by returning a response without
calling ``call_next``.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, Router

from ..faults import InvalidMetadataFault, RouteConflictFault
from .registry import ControllerRegistry, ResolvedRoute, controller_key
from .validation import validate_request, validation_error_response

logger = logging.getLogger("docroute.router")

Handler = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, Handler], Awaitable[Response]]


def find_conflicts(routes: List[ResolvedRoute]) -> List[Dict[str, Any]]:
    """Group resolved routes sharing a (method, path) pair."""
    seen: Dict[Tuple[str, str], List[str]] = {}
    for route in routes:
        seen.setdefault(route.key, []).append(route.handler_name)

    return [
        {"method": method, "path": path, "handlers": handlers}
        for (method, path), handlers in seen.items()
        if len(handlers) > 1
    ]


def check_conflicts(registry: ControllerRegistry, controller: Any, mount_prefix: str = "") -> List[Dict[str, Any]]:
    """Pre-flight duplicate check; returns an empty list when clean."""
    return find_conflicts(registry.resolve(controller, mount_prefix))


def route_table(registry: ControllerRegistry, controller: Any, mount_prefix: str = "") -> List[Tuple[str, str]]:
    """``(METHOD, path)`` pairs the router would register, in order."""
    return [route.key for route in registry.resolve(controller, mount_prefix)]


def jsonable(value: Any) -> Any:
    """Convert handler return values (pydantic models included) to JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


async def _call_handler(endpoint: Callable[..., Any], request: Request) -> Any:
    if inspect.iscoroutinefunction(endpoint):
        return await endpoint(request)
    result = await run_in_threadpool(endpoint, request)
    if inspect.isawaitable(result):
        result = await result
    return result


def _to_response(result: Any, status_code: int) -> Response:
    if isinstance(result, Response):
        return result
    if result is None and status_code == 204:
        return Response(status_code=204)
    return JSONResponse(jsonable(result), status_code=status_code)


class RouterMaterializer:
    """
    Builds mountable Starlette routers from registry metadata.

    Usage::

        router = RouterMaterializer(registry).materialize(UsersController(), "/api/v1")
        app = Starlette(routes=router.routes)
    """

    def __init__(self, registry: ControllerRegistry):
        self.registry = registry

    def materialize(self, controller: Any, mount_prefix: str = "") -> Router:
        """
        Build a Router for ``controller``.

        Raises:
            InvalidMetadataFault: ``controller`` is a class, not an instance
            RouteConflictFault: two methods resolve to the same (method, path)
        """
        if isinstance(controller, type):
            raise InvalidMetadataFault(
                f"Router materialization needs an instance of {controller.__qualname__}",
                controller=controller_key(controller),
            )

        resolved = self.registry.resolve(controller, mount_prefix)
        conflicts = find_conflicts(resolved)
        if conflicts:
            fault = RouteConflictFault(controller_key(controller), conflicts)
            logger.error(str(fault))
            raise fault

        routes = []
        for route in resolved:
            routes.append(Route(
                route.full_path,
                endpoint=self.build_chain(route),
                methods=[route.http_method.value],
                name=f"{route.controller_name}.{route.handler_name}",
            ))
            logger.debug(
                "Registered %s %s -> %s.%s",
                route.http_method.value, route.full_path, route.controller_name, route.handler_name,
            )

        self.registry.mark_materialized(controller)
        return Router(routes=routes)

    def build_chain(self, route: ResolvedRoute) -> Handler:
        """Compose middlewares, validation and the handler into one endpoint."""
        meta = route.metadata
        validation = meta.validation
        endpoint = route.endpoint

        async def final(request: Request) -> Response:
            if validation is not None and not validation.is_empty:
                validated, errors = await validate_request(request, validation)
                if errors:
                    return validation_error_response(errors)
                request.state.validated = validated
            result = await _call_handler(endpoint, request)
            return _to_response(result, meta.status_code)

        handler: Handler = final
        # Wrap in reverse order so the first middleware is outermost
        for middleware in reversed(meta.middlewares):
            handler = self._wrap_middleware(middleware, handler)

        async def chain(request: Request) -> Response:
            return await handler(request)

        chain.__name__ = route.handler_name
        chain.__qualname__ = f"{route.controller_name}.{route.handler_name}"
        return chain

    @staticmethod
    def _wrap_middleware(middleware: Middleware, next_handler: Handler) -> Handler:
        async def wrapped(request: Request) -> Response:
            result = middleware(request, next_handler)
            if inspect.isawaitable(result):
                result = await result
            return result

        return wrapped


def materialize_router(registry: ControllerRegistry, controller: Any, mount_prefix: str = "") -> Router:
    """Shortcut for ``RouterMaterializer(registry).materialize(...)``."""
    return RouterMaterializer(registry).materialize(controller, mount_prefix)
