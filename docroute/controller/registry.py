"""
Controller Registry

Explicit owner of all controller metadata. The application bootstrap
creates one registry, declares controllers against it, and hands it to
the router and documentation materializers.

Metadata is written while controller classes are being defined and is
read-only afterwards. Attaching metadata to a class after it has been
materialized is unsupported: already built routers and documents are
not updated and the effect on them is undefined.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel

from ..faults import ControllerNotRegisteredFault, InvalidMetadataFault
from .decorators import ControllerDecorator, RouteDecorator, route_fragment
from .metadata import (
    ControllerFragment,
    ControllerMetadata,
    HttpMethod,
    RouteFragment,
    RouteMetadata,
    ValidationSchemas,
    join_paths,
)

logger = logging.getLogger("docroute.registry")


def controller_key(controller: Any) -> str:
    """Import path of a controller class or instance: ``module:QualName``."""
    cls = controller if isinstance(controller, type) else type(controller)
    return f"{cls.__module__}:{cls.__qualname__}"


@dataclass(frozen=True)
class ResolvedRoute:
    """
    One route of a controller after base path and mount prefix have
    been applied. Both materializers consume these.
    """
    controller_name: str
    http_method: HttpMethod
    full_path: str
    metadata: RouteMetadata
    tags: Tuple[str, ...]
    endpoint: Callable[..., Any]

    @property
    def handler_name(self) -> str:
        return self.metadata.handler_name

    @property
    def key(self) -> Tuple[str, str]:
        return (self.http_method.value, self.full_path)


class ControllerRegistry:
    """
    Registry of controller and route metadata.

    Usage::

        registry = ControllerRegistry()

        @registry.controller("/users", tags=["Users"])
        class UsersController:
            @registry.get("/profile", bearer_auth=True, responses={200: "OK", 401: "Unauthorized"})
            async def profile(self, request):
                ...

    The same metadata can be attached without decorators::

        registry.attach_controller(UsersController, ControllerFragment(base_path="/users"))
        registry.attach_route(UsersController, "profile", RouteFragment(http_method="GET", path="/profile"))
    """

    def __init__(self):
        self._controllers: Dict[str, ControllerMetadata] = {}
        self._pending: Dict[Callable[..., Any], List[RouteFragment]] = {}
        self._materialized: set[str] = set()

    # ------------------------------------------------------------------
    # Attachment
    # ------------------------------------------------------------------

    def attach_controller(self, controller_cls: type, fragment: ControllerFragment) -> ControllerMetadata:
        """Merge a class-level fragment into the class record."""
        key = controller_key(controller_cls)
        self._warn_if_materialized(key)
        record = self._controllers.get(key) or ControllerMetadata(controller_key=key)
        record = fragment.apply_to(record)
        self._controllers[key] = record
        return record

    def attach_route(self, controller_cls: type, handler_name: str, fragment: RouteFragment) -> RouteMetadata:
        """Merge a method-level fragment into the method record."""
        handler = inspect.getattr_static(controller_cls, handler_name, None)
        if handler is None or not callable(getattr(controller_cls, handler_name, None)):
            raise InvalidMetadataFault(
                f"{controller_cls.__qualname__}.{handler_name} is not a method",
                controller=controller_key(controller_cls),
                handler=handler_name,
            )

        key = controller_key(controller_cls)
        self._warn_if_materialized(key)
        record = self._controllers.get(key) or ControllerMetadata(controller_key=key)

        current = record.routes.get(handler_name) or RouteMetadata(handler_name=handler_name)
        updated = fragment.apply_to(current)

        routes = dict(record.routes)
        routes[handler_name] = updated
        order = _declaration_order(controller_cls)
        ordered = sorted(routes.items(), key=lambda item: order.get(item[0], len(order)))
        self._controllers[key] = ControllerMetadata(
            controller_key=key,
            base_path=record.base_path,
            tags=record.tags,
            routes=MappingProxyType(dict(ordered)),
        )
        return updated

    def add_pending(self, func: Callable[..., Any], fragment: RouteFragment) -> None:
        """
        Record a fragment for a function whose class is not sealed yet.

        Fragments stay pending until the class decorator runs. A function
        whose class is never decorated keeps them here; see ``unsealed``.
        """
        self._pending.setdefault(func, []).append(fragment)

    def unsealed(self) -> List[str]:
        """Qualified names of functions whose route fragments were never sealed."""
        return sorted(
            f"{getattr(func, '__module__', '?')}:{getattr(func, '__qualname__', repr(func))}"
            for func in self._pending
        )

    def seal(self, controller_cls: type, fragment: ControllerFragment) -> ControllerMetadata:
        """
        Attach the class fragment and every pending method fragment.

        Re-sealing a class with the same import path replaces the
        previous metadata. Routes registered for base classes are
        inherited before the class's own fragments are applied.
        """
        key = controller_key(controller_cls)
        if self._controllers.pop(key, None) is not None:
            logger.debug("Replacing metadata for re-declared controller %s", key)
        self._materialized.discard(key)

        self.attach_controller(controller_cls, fragment)

        for base in reversed(controller_cls.__mro__[1:]):
            inherited = self._controllers.get(controller_key(base))
            if inherited is None:
                continue
            for route in inherited.routes.values():
                self._inherit_route(controller_cls, route)

        for name, value in vars(controller_cls).items():
            fragments = self._take_pending(value)
            # decorators run bottom-up; restore source order
            for pending in reversed(fragments):
                self.attach_route(controller_cls, name, pending)

        record = self._controllers[key]
        logger.debug(
            "Registered controller %s (%d routes)", key, len(record.declared_routes)
        )
        return record

    def _inherit_route(self, controller_cls: type, route: RouteMetadata) -> None:
        key = controller_key(controller_cls)
        record = self._controllers[key]
        routes = dict(record.routes)
        routes.setdefault(route.handler_name, route)
        self._controllers[key] = ControllerMetadata(
            controller_key=key,
            base_path=record.base_path,
            tags=record.tags,
            routes=MappingProxyType(routes),
        )

    def _take_pending(self, value: Any) -> List[RouteFragment]:
        target = value.__func__ if isinstance(value, (staticmethod, classmethod)) else value
        while target is not None:
            if target in self._pending:
                return self._pending.pop(target)
            target = getattr(target, "__wrapped__", None)
        return []

    def _warn_if_materialized(self, key: str) -> None:
        if key in self._materialized:
            logger.warning(
                "Metadata for %s changed after materialization; "
                "existing routers and documents are not updated",
                key,
            )

    # ------------------------------------------------------------------
    # Decorator sugar
    # ------------------------------------------------------------------

    def controller(self, base_path: str = "", *, tags: Optional[Iterable[str]] = None) -> ControllerDecorator:
        """Class decorator declaring a controller and its base path."""
        return ControllerDecorator(self, ControllerFragment(base_path=base_path, tags=tuple(tags or ())))

    def route(self, method: str, path: str = "/", **kwargs: Any) -> RouteDecorator:
        """Generic route decorator: ``@registry.route("GET", "/items")``."""
        return RouteDecorator(self, route_fragment(method, path, **kwargs))

    def get(self, path: str = "/", **kwargs: Any) -> RouteDecorator:
        return self.route("GET", path, **kwargs)

    def post(self, path: str = "/", **kwargs: Any) -> RouteDecorator:
        return self.route("POST", path, **kwargs)

    def put(self, path: str = "/", **kwargs: Any) -> RouteDecorator:
        return self.route("PUT", path, **kwargs)

    def patch(self, path: str = "/", **kwargs: Any) -> RouteDecorator:
        return self.route("PATCH", path, **kwargs)

    def delete(self, path: str = "/", **kwargs: Any) -> RouteDecorator:
        return self.route("DELETE", path, **kwargs)

    def use(self, *middlewares: Callable[..., Any]) -> RouteDecorator:
        """Append middlewares to a method's chain, in the order given."""
        return RouteDecorator(self, RouteFragment(middlewares=tuple(middlewares)))

    def validate(
        self,
        *,
        body: Optional[type[BaseModel]] = None,
        params: Optional[type[BaseModel]] = None,
        query: Optional[type[BaseModel]] = None,
    ) -> RouteDecorator:
        """Attach request validation schemas."""
        schemas = ValidationSchemas(body=body, params=params, query=query)
        return RouteDecorator(self, RouteFragment(validation=schemas))

    def doc(
        self,
        *,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        responses: Optional[Mapping[int, str]] = None,
        bearer_auth: Optional[bool] = None,
    ) -> RouteDecorator:
        """Attach documentation fields."""
        return RouteDecorator(self, route_fragment(
            summary=summary,
            description=description,
            tags=tags,
            responses=responses,
            bearer_auth=bearer_auth,
        ))

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def metadata_for(self, controller: Any) -> ControllerMetadata:
        """Return the metadata of a controller class or instance."""
        key = controller_key(controller)
        try:
            return self._controllers[key]
        except KeyError:
            raise ControllerNotRegisteredFault(key) from None

    def is_registered(self, controller: Any) -> bool:
        return controller_key(controller) in self._controllers

    @property
    def controllers(self) -> Mapping[str, ControllerMetadata]:
        return MappingProxyType(self._controllers)

    def resolve(self, controller: Any, mount_prefix: str = "") -> List[ResolvedRoute]:
        """
        Resolve the routes of a controller.

        Applies ``mount_prefix`` and the class base path, binds handlers
        to ``controller`` and skips methods that carry no HTTP verb.
        Routes come back in declaration order.
        """
        record = self.metadata_for(controller)
        cls = controller if isinstance(controller, type) else type(controller)
        resolved: List[ResolvedRoute] = []

        for route in record.routes.values():
            if not route.is_route:
                logger.debug(
                    "Skipping %s.%s: no HTTP method declared", cls.__qualname__, route.handler_name
                )
                continue
            resolved.append(ResolvedRoute(
                controller_name=cls.__name__,
                http_method=route.http_method,
                full_path=join_paths(mount_prefix, record.base_path, route.path),
                metadata=route,
                tags=tuple(dict.fromkeys(record.tags + route.doc.tags)),
                endpoint=getattr(controller, route.handler_name),
            ))

        return resolved

    def mark_materialized(self, controller: Any) -> None:
        self._materialized.add(controller_key(controller))


def _declaration_order(controller_cls: type) -> Dict[str, int]:
    """Attribute names in class-definition order, base classes first."""
    order: Dict[str, int] = {}
    for klass in reversed(controller_cls.__mro__):
        for name in vars(klass):
            order.setdefault(name, len(order))
    return order
