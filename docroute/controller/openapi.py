"""
OpenAPI 3.0 Generation for docroute controllers.

Two layers:

- ``DocumentationMaterializer`` turns one controller's metadata into an
  ``OpenAPIFragment`` (path items + component schemas). It reads the
  same resolved routes as the router materializer, so both always agree
  on which (method, path) pairs exist.
- ``OpenAPIGenerator`` merges the fragments of several mounted
  controllers into a complete document with info, servers, tags and
  the bearer security scheme, and ``render_swagger_ui`` renders the
  Swagger UI page for it.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from jinja2 import Environment, PackageLoader, select_autoescape
from pydantic import BaseModel

from .metadata import PATH_PARAM_RE, path_params
from .registry import ControllerRegistry, ResolvedRoute
from .schema import REF_PREFIX, SchemaTranslator
from .validation import VALIDATION_ERROR_MESSAGE

logger = logging.getLogger("docroute.openapi")

OPENAPI_VERSION = "3.0.3"

BEARER_SCHEME = {
    "type": "http",
    "scheme": "bearer",
    "bearerFormat": "JWT",
}

ERROR_SCHEMA_NAME = "Error"
ERROR_REF = {"$ref": f"{REF_PREFIX}{ERROR_SCHEMA_NAME}"}

ERROR_SCHEMA = {
    "type": "object",
    "properties": {
        "success": {"type": "boolean", "example": False},
        "message": {"type": "string", "example": VALIDATION_ERROR_MESSAGE},
        "errors": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "field": {"type": "string", "example": "body.email"},
                    "message": {"type": "string"},
                },
            },
        },
    },
}

_STATUS_DESCRIPTIONS: Dict[int, str] = {
    200: "Successful response",
    201: "Resource created",
    202: "Accepted for processing",
    204: "No content",
    301: "Moved permanently",
    302: "Found (redirect)",
    304: "Not modified",
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    405: "Method not allowed",
    409: "Conflict",
    422: "Unprocessable entity",
    429: "Too many requests",
    500: "Internal server error",
}

_VALIDATION_EXAMPLE: Dict[str, Any] = {
    "success": False,
    "message": VALIDATION_ERROR_MESSAGE,
    "errors": [{"field": "body.email", "message": "value is not a valid email address"}],
}

_ERROR_EXAMPLES: Dict[int, Dict[str, Any]] = {
    401: {"success": False, "message": "Authentication required"},
    403: {"success": False, "message": "Insufficient permissions"},
    404: {"success": False, "message": "Resource not found"},
    500: {"success": False, "message": "Internal server error"},
}

_CONVERTOR_SCHEMAS: Dict[str, Dict[str, str]] = {
    "str": {"type": "string"},
    "path": {"type": "string"},
    "int": {"type": "integer"},
    "float": {"type": "number"},
    "uuid": {"type": "string", "format": "uuid"},
}


def openapi_path(path: str) -> str:
    """Strip Starlette convertors: ``/users/{id:int}`` -> ``/users/{id}``."""
    return PATH_PARAM_RE.sub(lambda m: "{" + m.group(1) + "}", path)


def _model_field(model: Optional[type[BaseModel]], name: str):
    if model is None:
        return None
    for field_name, info in model.model_fields.items():
        if (info.alias or field_name) == name:
            return info
    return None


# ─── Fragment ─────────────────────────────────────────────────────────────────

@dataclass
class OpenAPIFragment:
    """
    Mergeable piece of an OpenAPI document.

    Attributes:
        paths: OpenAPI ``paths`` object
        schemas: ``components/schemas`` referenced from ``paths``
        tags: Tag names in first-seen order
        uses_bearer: Some operation requires bearer auth
    """
    paths: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    schemas: Dict[str, Any] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    uses_bearer: bool = False

    def operations(self) -> Set[Tuple[str, str]]:
        """``(METHOD, path)`` pairs described by this fragment."""
        return {
            (method.upper(), path)
            for path, item in self.paths.items()
            for method in item
        }

    def merge(self, other: "OpenAPIFragment") -> "OpenAPIFragment":
        """Return a new fragment holding both; ``other`` wins on collisions."""
        paths = {path: dict(item) for path, item in self.paths.items()}
        for path, item in other.paths.items():
            target = paths.setdefault(path, {})
            for method, operation in item.items():
                if method in target:
                    logger.warning("Documentation for %s %s defined twice; keeping the later one",
                                   method.upper(), path)
                target[method] = operation

        for name, schema in other.schemas.items():
            if name in self.schemas and self.schemas[name] != schema:
                logger.warning("Component schema %s defined twice with different shapes; "
                               "keeping the later one", name)

        return OpenAPIFragment(
            paths=paths,
            schemas={**self.schemas, **other.schemas},
            tags=list(dict.fromkeys(self.tags + other.tags)),
            uses_bearer=self.uses_bearer or other.uses_bearer,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"paths": self.paths}
        if self.schemas:
            result["components"] = {"schemas": self.schemas}
        return result


# ─── Documentation Materializer ──────────────────────────────────────────────

class DocumentationMaterializer:
    """
    Builds OpenAPI path items from registry metadata.

    Missing optional metadata degrades to minimal but valid
    operations; it never raises for a registered controller.
    """

    def __init__(self, registry: ControllerRegistry):
        self.registry = registry

    def materialize(
        self,
        controller: Any,
        mount_prefix: str = "",
        translator: Optional[SchemaTranslator] = None,
    ) -> OpenAPIFragment:
        """
        Document ``controller``.

        Pass one ``translator`` for several controllers to share a single
        component namespace; same-named models then get distinct names.
        """
        if translator is None:
            translator = SchemaTranslator(reserved=(ERROR_SCHEMA_NAME,))
        fragment = OpenAPIFragment(schemas=translator.schemas)

        for route in self.registry.resolve(controller, mount_prefix):
            path = openapi_path(route.full_path)
            method = route.http_method.value.lower()
            fragment.paths.setdefault(path, {})[method] = self.build_operation(route, translator)
            for tag in route.tags:
                if tag not in fragment.tags:
                    fragment.tags.append(tag)
            if route.metadata.doc.bearer_auth:
                fragment.uses_bearer = True

        self.registry.mark_materialized(controller)
        return fragment

    def build_operation(self, route: ResolvedRoute, translator: SchemaTranslator) -> Dict[str, Any]:
        """Build a complete OpenAPI operation object."""
        meta = route.metadata
        doc = meta.doc

        controller_name = route.controller_name.replace("Controller", "") or route.controller_name
        summary = doc.summary
        if not summary:
            handler_doc = inspect.getdoc(route.endpoint) or ""
            summary = handler_doc.strip().split("\n", 1)[0] if handler_doc else ""

        operation: Dict[str, Any] = {
            "operationId": f"{controller_name}_{meta.handler_name}",
            "summary": summary,
            "tags": list(route.tags),
        }
        if doc.description:
            operation["description"] = doc.description

        parameters = self._parameters(route, translator)
        if parameters:
            operation["parameters"] = parameters

        validation = meta.validation
        if validation is not None and validation.body is not None:
            operation["requestBody"] = {
                "required": True,
                "content": {
                    "application/json": {"schema": translator.ref(validation.body)},
                },
            }

        operation["responses"] = self._responses(route, translator)

        if doc.bearer_auth:
            operation["security"] = [{"bearerAuth": []}]

        return operation

    def _parameters(self, route: ResolvedRoute, translator: SchemaTranslator) -> List[Dict[str, Any]]:
        validation = route.metadata.validation
        params_model = validation.params if validation else None
        query_model = validation.query if validation else None
        parameters: List[Dict[str, Any]] = []

        for name, convertor in path_params(route.full_path):
            info = _model_field(params_model, name)
            if info is not None:
                schema = self._safe_field_schema(translator, info)
            else:
                schema = dict(_CONVERTOR_SCHEMAS.get(convertor or "str", {"type": "string"}))
            param: Dict[str, Any] = {"name": name, "in": "path", "required": True, "schema": schema}
            if info is not None and info.description:
                param["description"] = info.description
            parameters.append(param)

        if query_model is not None:
            for field_name, info in query_model.model_fields.items():
                param = {
                    "name": info.alias or field_name,
                    "in": "query",
                    "required": info.is_required(),
                    "schema": self._safe_field_schema(translator, info),
                }
                if info.description:
                    param["description"] = info.description
                parameters.append(param)

        return parameters

    @staticmethod
    def _safe_field_schema(translator: SchemaTranslator, info: Any) -> Dict[str, Any]:
        try:
            return translator.field_schema(info)
        except Exception as exc:
            logger.warning("Could not document parameter schema: %s", exc)
            return {"type": "string"}

    @staticmethod
    def _responses(route: ResolvedRoute, translator: SchemaTranslator) -> Dict[str, Any]:
        declared = route.metadata.doc.responses
        if not declared:
            return {"default": {"description": "Default response"}}

        validation = route.metadata.validation
        validated = validation is not None and not validation.is_empty
        responses: Dict[str, Any] = {}
        for code, description in declared:
            response: Dict[str, Any] = {
                "description": description or _STATUS_DESCRIPTIONS.get(code, f"HTTP {code}"),
            }
            if code >= 400:
                # error responses share the envelope schema
                translator.schemas.setdefault(ERROR_SCHEMA_NAME, ERROR_SCHEMA)
                content: Dict[str, Any] = {"schema": dict(ERROR_REF)}
                example = _VALIDATION_EXAMPLE if code == 400 and validated else _ERROR_EXAMPLES.get(code)
                if example is not None:
                    content["example"] = example
                response["content"] = {"application/json": content}
            responses[str(code)] = response
        return responses


def materialize_docs(registry: ControllerRegistry, controller: Any, mount_prefix: str = "") -> OpenAPIFragment:
    """Shortcut for ``DocumentationMaterializer(registry).materialize(...)``."""
    return DocumentationMaterializer(registry).materialize(controller, mount_prefix)


# ─── OpenAPI Configuration ────────────────────────────────────────────────────

@dataclass
class OpenAPIConfig:
    """Configuration for full document generation and the docs endpoints."""
    # Info
    title: str = "docroute API"
    version: str = "1.0.0"
    description: str = ""
    contact_name: str = ""
    contact_email: str = ""
    contact_url: str = ""
    license_name: str = ""
    license_url: str = ""

    # Servers
    servers: List[Dict[str, str]] = field(default_factory=list)

    # Paths
    docs_path: str = "/api-docs"
    openapi_json_path: str = "/api-docs.json"

    # Tag name -> description for the document-level tag list
    tag_descriptions: Dict[str, str] = field(default_factory=dict)

    # Apply bearer auth to every operation by default
    global_security: bool = False

    # Swagger UI
    site_title: str = ""
    swagger_ui_config: Dict[str, Any] = field(default_factory=lambda: {
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "filter": True,
    })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpenAPIConfig":
        """Create config from a dict, ignoring unknown and private keys."""
        config = cls()
        for key, value in data.items():
            if key.startswith("_"):
                continue
            if hasattr(config, key):
                setattr(config, key, value)
        return config


# ─── Main Generator ──────────────────────────────────────────────────────────

class OpenAPIGenerator:
    """
    Assembles a complete OpenAPI 3.0 document from mounted controllers.

    Usage::

        generator = OpenAPIGenerator(OpenAPIConfig(title="My API"))
        spec = generator.generate(registry, [("/api/v1", UsersController())])
    """

    def __init__(self, config: Optional[OpenAPIConfig] = None):
        self.config = config or OpenAPIConfig()

    def collect(self, registry: ControllerRegistry, mounts: Iterable[Tuple[str, Any]]) -> OpenAPIFragment:
        """Document every mount against one shared component namespace."""
        materializer = DocumentationMaterializer(registry)
        translator = SchemaTranslator(reserved=(ERROR_SCHEMA_NAME,))
        combined = OpenAPIFragment()
        for prefix, controller in mounts:
            combined = combined.merge(materializer.materialize(controller, prefix, translator))
        return combined

    def generate(self, registry: ControllerRegistry, mounts: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
        """Generate the full OpenAPI specification."""
        fragment = self.collect(registry, mounts)

        spec: Dict[str, Any] = {
            "openapi": OPENAPI_VERSION,
            "info": self._build_info(),
            "servers": self.config.servers or [{"url": "/", "description": "Current server"}],
            "paths": fragment.paths,
        }

        if fragment.tags:
            spec["tags"] = [self._build_tag(tag) for tag in fragment.tags]

        components: Dict[str, Any] = {
            "schemas": {**fragment.schemas, ERROR_SCHEMA_NAME: ERROR_SCHEMA},
        }
        if fragment.uses_bearer or self.config.global_security:
            components["securitySchemes"] = {"bearerAuth": dict(BEARER_SCHEME)}
        spec["components"] = components

        if self.config.global_security:
            spec["security"] = [{"bearerAuth": []}]

        return spec

    def _build_tag(self, name: str) -> Dict[str, str]:
        tag = {"name": name}
        description = self.config.tag_descriptions.get(name)
        if description:
            tag["description"] = description
        return tag

    def _build_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "title": self.config.title,
            "version": self.config.version,
        }
        if self.config.description:
            info["description"] = self.config.description

        contact: Dict[str, str] = {}
        if self.config.contact_name:
            contact["name"] = self.config.contact_name
        if self.config.contact_email:
            contact["email"] = self.config.contact_email
        if self.config.contact_url:
            contact["url"] = self.config.contact_url
        if contact:
            info["contact"] = contact

        if self.config.license_name:
            info["license"] = {"name": self.config.license_name}
            if self.config.license_url:
                info["license"]["url"] = self.config.license_url

        return info


# ─── Swagger UI HTML ─────────────────────────────────────────────────────────

SWAGGER_UI_VERSION = "5.18.2"

@lru_cache(maxsize=1)
def _template_env() -> Environment:
    return Environment(
        loader=PackageLoader("docroute", "templates"),
        autoescape=select_autoescape(["html"]),
    )


def render_swagger_ui(config: OpenAPIConfig) -> str:
    """Render the Swagger UI page pointing at the JSON document."""
    template = _template_env().get_template("swagger_ui.html")
    return template.render(
        title=config.site_title or f"{config.title} - API Documentation",
        version=SWAGGER_UI_VERSION,
        spec_url=config.openapi_json_path,
        ui_config=config.swagger_ui_config,
    )
