"""
Pydantic model -> OpenAPI 3.0 schema translation.

Structural translation of validation models into documentation
schemas: required/optional fields, primitive types, containers, enums,
nullability, string formats and the common length/range constraints.
Nested models become ``$ref`` entries under ``components/schemas``.
"""

from __future__ import annotations

import datetime
import decimal
import inspect
import logging
import uuid
from enum import Enum
from types import UnionType
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Set, Tuple, Union, get_args, get_origin

from pydantic import AnyUrl, BaseModel, EmailStr
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

logger = logging.getLogger("docroute.openapi")

REF_PREFIX = "#/components/schemas/"


# ─── Type → JSON Schema mapping ──────────────────────────────────────────────

_PYTHON_TYPE_MAP: Dict[type, Dict[str, str]] = {
    str: {"type": "string"},
    int: {"type": "integer"},
    float: {"type": "number", "format": "double"},
    bool: {"type": "boolean"},
    bytes: {"type": "string", "format": "binary"},
    decimal.Decimal: {"type": "number"},
    uuid.UUID: {"type": "string", "format": "uuid"},
    datetime.datetime: {"type": "string", "format": "date-time"},
    datetime.date: {"type": "string", "format": "date"},
    datetime.time: {"type": "string", "format": "time"},
}

# (attribute on constraint metadata, schema keyword)
_CONSTRAINTS: Tuple[Tuple[str, str], ...] = (
    ("min_length", "minLength"),
    ("max_length", "maxLength"),
    ("pattern", "pattern"),
    ("ge", "minimum"),
    ("le", "maximum"),
    ("multiple_of", "multipleOf"),
)


def _apply_constraints(schema: Dict[str, Any], metadata: List[Any]) -> None:
    is_array = schema.get("type") == "array"
    for item in metadata:
        for attr, keyword in _CONSTRAINTS:
            value = getattr(item, attr, None)
            if value is None:
                continue
            if is_array and keyword in ("minLength", "maxLength"):
                keyword = "minItems" if keyword == "minLength" else "maxItems"
            schema[keyword] = value
        # OpenAPI 3.0 expresses exclusive bounds as booleans
        gt = getattr(item, "gt", None)
        if gt is not None:
            schema["minimum"] = gt
            schema["exclusiveMinimum"] = True
        lt = getattr(item, "lt", None)
        if lt is not None:
            schema["maximum"] = lt
            schema["exclusiveMaximum"] = True


def _jsonable_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)):
        return value
    return PydanticUndefined


def _enum_schema(values: List[Any]) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"enum": values}
    kinds = {type(v) for v in values}
    if kinds == {str}:
        schema["type"] = "string"
    elif kinds <= {int}:
        schema["type"] = "integer"
    elif kinds <= {int, float}:
        schema["type"] = "number"
    elif kinds == {bool}:
        schema["type"] = "boolean"
    return schema


class SchemaTranslator:
    """
    Translates pydantic models into OpenAPI 3.0 schemas.

    Every translated model is stored in ``schemas`` under its class name;
    references to it are emitted as ``{"$ref": "#/components/schemas/Name"}``.
    A different model with an already taken name is stored as ``Name_2``,
    ``Name_3`` and so on.
    """

    def __init__(self, schemas: Optional[Dict[str, Any]] = None, reserved: Iterable[str] = ()):
        self.schemas: Dict[str, Any] = schemas if schemas is not None else {}
        self.names: Dict[type, str] = {}
        self.reserved = frozenset(reserved)

    def component_name(self, model: type[BaseModel]) -> str:
        """Stable, unique component name for ``model``."""
        if model in self.names:
            return self.names[model]
        base = model.__name__
        name, n = base, 1
        while name in self.schemas or name in self.reserved:
            n += 1
            name = f"{base}_{n}"
        if name != base:
            logger.debug("Schema name %s already taken; documenting %s as %s", base, model.__qualname__, name)
        self.names[model] = name
        return name

    def ref(self, model: type[BaseModel]) -> Dict[str, str]:
        """Register ``model`` (and its nested models) and return a reference."""
        if model in self.names:
            return {"$ref": f"{REF_PREFIX}{self.names[model]}"}
        name = self.component_name(model)
        # placeholder first so self-referencing models terminate
        self.schemas[name] = {"type": "object"}
        self.schemas[name] = self.model_schema(model)
        return {"$ref": f"{REF_PREFIX}{name}"}

    def model_schema(self, model: type[BaseModel]) -> Dict[str, Any]:
        """Inline object schema for ``model``."""
        properties: Dict[str, Any] = {}
        required: List[str] = []

        for name, field in model.model_fields.items():
            key = field.alias or name
            try:
                properties[key] = self.field_schema(field)
            except Exception as exc:
                logger.warning("Could not document %s.%s: %s", model.__name__, name, exc)
                properties[key] = {}
            if field.is_required():
                required.append(key)

        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required

        doc = model.__dict__.get("__doc__")
        if doc:
            schema["description"] = inspect.cleandoc(doc)

        return schema

    def field_schema(self, field: FieldInfo) -> Dict[str, Any]:
        """Schema for one model field, constraints and default included."""
        schema = self.type_schema(field.annotation)
        if "$ref" not in schema:
            _apply_constraints(schema, list(field.metadata))

        if field.description:
            schema = self._with_keyword(schema, "description", field.description)

        if not field.is_required() and field.default is not PydanticUndefined:
            default = _jsonable_default(field.default)
            if default is not PydanticUndefined:
                schema = self._with_keyword(schema, "default", default)

        return schema

    @staticmethod
    def _with_keyword(schema: Dict[str, Any], keyword: str, value: Any) -> Dict[str, Any]:
        # siblings of $ref are ignored in OpenAPI 3.0; wrap it
        if "$ref" in schema:
            return {"allOf": [schema], keyword: value}
        schema[keyword] = value
        return schema

    def type_schema(self, tp: Any) -> Dict[str, Any]:
        """Convert a Python type annotation to a schema fragment."""
        if tp is None or tp is type(None):
            return {"nullable": True}
        if tp is Any or tp is inspect.Parameter.empty:
            return {}

        if tp is EmailStr:
            return {"type": "string", "format": "email"}

        if isinstance(tp, type):
            if issubclass(tp, BaseModel):
                return self.ref(tp)
            if issubclass(tp, Enum):
                return _enum_schema([member.value for member in tp])
            if issubclass(tp, AnyUrl):
                return {"type": "string", "format": "uri"}
            for base, mapped in _PYTHON_TYPE_MAP.items():
                if tp is base:
                    return dict(mapped)
            # subclasses (e.g. datetime before date) resolved by MRO order
            for klass in tp.__mro__:
                if klass in _PYTHON_TYPE_MAP:
                    return dict(_PYTHON_TYPE_MAP[klass])

        origin = get_origin(tp)
        args = get_args(tp)

        # Annotated[X, ...] → unwrap and apply constraint metadata
        if origin is Annotated:
            schema = self.type_schema(args[0])
            if "$ref" not in schema:
                _apply_constraints(schema, list(args[1:]))
            return schema

        # Optional[X] → nullable
        if origin is Union or origin is UnionType:
            non_none = [a for a in args if a is not type(None)]
            nullable = len(non_none) < len(args)
            if len(non_none) == 1:
                schema = self.type_schema(non_none[0])
            else:
                schema = {"anyOf": [self.type_schema(a) for a in non_none]}
            if nullable:
                schema = self._with_keyword(schema, "nullable", True)
            return schema

        if origin is Literal:
            return _enum_schema(list(args))

        if origin in (list, List):
            return {"type": "array", "items": self.type_schema(args[0]) if args else {}}

        if origin in (set, Set, frozenset):
            return {
                "type": "array",
                "items": self.type_schema(args[0]) if args else {},
                "uniqueItems": True,
            }

        if origin in (tuple, Tuple):
            if len(args) == 2 and args[1] is Ellipsis:
                return {"type": "array", "items": self.type_schema(args[0])}
            if args:
                return {
                    "type": "array",
                    "items": {"anyOf": [self.type_schema(a) for a in args]} if len(set(args)) > 1
                    else self.type_schema(args[0]),
                    "minItems": len(args),
                    "maxItems": len(args),
                }
            return {"type": "array"}

        if origin in (dict, Dict):
            val_schema = self.type_schema(args[1]) if len(args) > 1 else {}
            return {"type": "object", "additionalProperties": val_schema or True}

        if tp in (list, tuple, set, frozenset):
            return {"type": "array", "items": {}}
        if tp is dict:
            return {"type": "object"}

        return {"type": "object"}
