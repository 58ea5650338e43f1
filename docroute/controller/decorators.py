"""
Controller Method Decorators

Registry-bound decorators for controller classes and methods.
Method decorators only record a pending fragment; nothing is attached
until the class decorator seals the class.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional, TypeVar

from pydantic import BaseModel

from .metadata import ControllerFragment, RouteFragment, ValidationSchemas

if TYPE_CHECKING:
    from .registry import ControllerRegistry


F = TypeVar('F', bound=Callable[..., Any])
C = TypeVar('C', bound=type)


class RouteDecorator:
    """
    Base method decorator.

    Records a ``RouteFragment`` for the decorated function on the
    owning registry and returns the function unchanged.
    """

    def __init__(self, registry: "ControllerRegistry", fragment: RouteFragment):
        self.registry = registry
        self.fragment = fragment

    def __call__(self, func: F) -> F:
        self.registry.add_pending(func, self.fragment)
        return func


class ControllerDecorator:
    """
    Class decorator.

    Attaches the class-level fragment and seals every pending method
    fragment of the class into the registry.
    """

    def __init__(self, registry: "ControllerRegistry", fragment: ControllerFragment):
        self.registry = registry
        self.fragment = fragment

    def __call__(self, cls: C) -> C:
        self.registry.seal(cls, self.fragment)
        return cls


def route_fragment(
    method: Optional[str] = None,
    path: Optional[str] = None,
    *,
    summary: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    responses: Optional[Mapping[int, str]] = None,
    bearer_auth: Optional[bool] = None,
    status_code: Optional[int] = None,
    middlewares: Optional[Iterable[Callable[..., Any]]] = None,
    body: Optional[type[BaseModel]] = None,
    params: Optional[type[BaseModel]] = None,
    query: Optional[type[BaseModel]] = None,
) -> RouteFragment:
    """Build a fragment from decorator keyword arguments."""
    validation = None
    if body is not None or params is not None or query is not None:
        validation = ValidationSchemas(body=body, params=params, query=query)

    return RouteFragment(
        http_method=method,
        path=path,
        middlewares=tuple(middlewares or ()),
        validation=validation,
        summary=summary,
        description=description,
        tags=tuple(tags or ()),
        responses=responses,
        bearer_auth=bearer_auth,
        status_code=status_code,
    )
