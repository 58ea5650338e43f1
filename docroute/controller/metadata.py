"""
Controller Metadata

Canonical metadata records shared by the router and documentation
materializers, plus the fragment types used to build them.

A fragment is a partial record where ``None`` means "not specified".
Merging a fragment into a record never mutates the record; it returns
a new frozen instance.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import BaseModel

from ..faults import InvalidMetadataFault


class HttpMethod(str, Enum):
    """Supported HTTP verbs."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: Any) -> "HttpMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise InvalidMetadataFault(
                f"Unsupported HTTP method {value!r}; expected one of "
                f"{', '.join(m.value for m in cls)}",
                method=value,
            ) from None


# Starlette path placeholder: {name} or {name:convertor}
PATH_PARAM_RE = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)(?::([a-zA-Z_][a-zA-Z0-9_]*))?\}")


def path_params(path: str) -> list[tuple[str, Optional[str]]]:
    """Return ``(name, convertor)`` pairs for every placeholder in ``path``."""
    return [(m.group(1), m.group(2)) for m in PATH_PARAM_RE.finditer(path)]


def join_paths(*parts: str) -> str:
    """
    Join path segments with single slashes.

    Empty and "/" segments contribute nothing; the result always starts
    with "/" and never ends with one (except the root itself).
    """
    segments = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/" + "/".join(segments) if segments else "/"


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return tuple(seen)


def _check_model(part: str, schema: Any) -> None:
    if schema is not None and not (isinstance(schema, type) and issubclass(schema, BaseModel)):
        raise InvalidMetadataFault(
            f"Validation schema for {part} must be a pydantic BaseModel subclass, got {schema!r}",
            part=part,
        )


# ============================================================================
# Records
# ============================================================================

@dataclass(frozen=True)
class ValidationSchemas:
    """
    Body / path-params / query-string schemas for one route.

    Each part is a pydantic model class or None (no validation).
    """
    body: Optional[type[BaseModel]] = None
    params: Optional[type[BaseModel]] = None
    query: Optional[type[BaseModel]] = None

    def __post_init__(self):
        for part in ("body", "params", "query"):
            _check_model(part, getattr(self, part))

    @property
    def is_empty(self) -> bool:
        return self.body is None and self.params is None and self.query is None

    def merged(self, other: "ValidationSchemas") -> "ValidationSchemas":
        """Per-part merge; parts set on ``other`` win."""
        return ValidationSchemas(
            body=other.body if other.body is not None else self.body,
            params=other.params if other.params is not None else self.params,
            query=other.query if other.query is not None else self.query,
        )


@dataclass(frozen=True)
class DocFields:
    """
    Documentation attributes of one route.

    Attributes:
        summary: Short operation summary
        description: Long operation description
        tags: Method-level tags (class tags are prepended at doc time)
        responses: (status code, description) pairs in declaration order
        bearer_auth: Operation requires a bearer token
    """
    summary: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()
    responses: Tuple[Tuple[int, str], ...] = ()
    bearer_auth: bool = False

    @property
    def response_map(self) -> Dict[int, str]:
        return dict(self.responses)


@dataclass(frozen=True)
class RouteMetadata:
    """
    Metadata for one controller method.

    A record without ``http_method`` is not a route; materializers skip it.
    """
    handler_name: str
    http_method: Optional[HttpMethod] = None
    path: str = "/"
    middlewares: Tuple[Callable[..., Any], ...] = ()
    validation: Optional[ValidationSchemas] = None
    doc: DocFields = field(default_factory=DocFields)
    status_code: int = 200

    @property
    def is_route(self) -> bool:
        return self.http_method is not None


@dataclass(frozen=True)
class ControllerMetadata:
    """
    Complete metadata for a controller class.

    Attributes:
        controller_key: Import path of the class ("module:QualName")
        base_path: Prefix prepended to every route path
        tags: Class-level documentation tags
        routes: Route records keyed by handler name, in declaration order
    """
    controller_key: str
    base_path: str = ""
    tags: Tuple[str, ...] = ()
    routes: Mapping[str, RouteMetadata] = field(default_factory=dict)

    @property
    def declared_routes(self) -> list[RouteMetadata]:
        """Routed methods only, in declaration order."""
        return [r for r in self.routes.values() if r.is_route]

    def get_route(self, method: str, path: str) -> Optional[RouteMetadata]:
        """Find route by method and path (relative to base_path)."""
        for route in self.declared_routes:
            if route.http_method.value == method.upper() and route.path == path:
                return route
        return None


# ============================================================================
# Fragments
# ============================================================================

@dataclass(frozen=True)
class RouteFragment:
    """
    Partial route metadata produced by one annotation.

    ``None`` means "not specified"; ``middlewares`` and ``tags``
    accumulate instead of overriding.
    """
    http_method: Optional[str] = None
    path: Optional[str] = None
    middlewares: Tuple[Callable[..., Any], ...] = ()
    validation: Optional[ValidationSchemas] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    responses: Optional[Mapping[int, str]] = None
    bearer_auth: Optional[bool] = None
    status_code: Optional[int] = None

    def __post_init__(self):
        for mw in self.middlewares:
            if not callable(mw):
                raise InvalidMetadataFault(f"Middleware {mw!r} is not callable")
        if self.http_method is not None:
            object.__setattr__(self, "http_method", HttpMethod.parse(self.http_method))
        if self.responses is not None:
            object.__setattr__(
                self,
                "responses",
                {int(code): desc or "" for code, desc in dict(self.responses).items()},
            )

    def apply_to(self, record: RouteMetadata) -> RouteMetadata:
        """Merge this fragment into ``record`` and return the new record."""
        doc = record.doc
        responses = dict(doc.responses)
        if self.responses:
            responses.update(self.responses)

        new_doc = replace(
            doc,
            summary=self.summary if self.summary is not None else doc.summary,
            description=self.description if self.description is not None else doc.description,
            tags=_unique(doc.tags + tuple(self.tags)),
            responses=tuple(responses.items()),
            bearer_auth=self.bearer_auth if self.bearer_auth is not None else doc.bearer_auth,
        )

        validation = record.validation
        if self.validation is not None:
            validation = validation.merged(self.validation) if validation else self.validation

        return replace(
            record,
            http_method=self.http_method if self.http_method is not None else record.http_method,
            path=self.path if self.path is not None else record.path,
            middlewares=record.middlewares + tuple(self.middlewares),
            validation=validation,
            doc=new_doc,
            status_code=self.status_code if self.status_code is not None else record.status_code,
        )


@dataclass(frozen=True)
class ControllerFragment:
    """Partial class-level metadata: base path and tags."""
    base_path: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def apply_to(self, record: ControllerMetadata) -> ControllerMetadata:
        return replace(
            record,
            base_path=self.base_path if self.base_path is not None else record.base_path,
            tags=_unique(record.tags + tuple(self.tags)),
        )
