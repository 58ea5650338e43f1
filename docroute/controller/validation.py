"""
Request validation step.

Validates body, path params and query string of a request against the
route's pydantic schemas. Errors from all three parts are aggregated so
the client sees every failing field in one response.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from types import UnionType
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from .metadata import ValidationSchemas

logger = logging.getLogger("docroute.validation")

VALIDATION_ERROR_MESSAGE = "Validation error"

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset)


def _is_sequence(annotation: Any) -> bool:
    """True for list-like annotations, looking through Annotated and Optional/Union."""
    origin = get_origin(annotation)
    if origin is Annotated:
        return _is_sequence(get_args(annotation)[0])
    if origin is Union or origin is UnionType:
        return any(_is_sequence(arg) for arg in get_args(annotation) if arg is not type(None))
    return origin in _SEQUENCE_ORIGINS or annotation in _SEQUENCE_ORIGINS


def _fields_by_key(model: type[BaseModel]) -> Dict[str, Any]:
    """Model fields keyed by the name clients send: alias first, then field name."""
    keyed: Dict[str, Any] = {}
    for name, info in model.model_fields.items():
        keyed.setdefault(name, info)
        if info.alias:
            keyed[info.alias] = info
    return keyed


@dataclass(frozen=True)
class FieldError:
    """One failing field, e.g. ``FieldError("body.email", "value is not a valid email address")``."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidatedData:
    """
    Validated request parts, exposed to handlers as
    ``request.state.validated``. Parts without a schema are None.
    """
    body: Optional[BaseModel] = None
    params: Optional[BaseModel] = None
    query: Optional[BaseModel] = None


def _field_errors(part: str, exc: ValidationError) -> List[FieldError]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        errors.append(FieldError(f"{part}.{loc}" if loc else part, err.get("msg", "Invalid value")))
    return errors


def _validate_part(part: str, model: type[BaseModel], data: Any) -> Tuple[Optional[BaseModel], List[FieldError]]:
    try:
        return model.model_validate(data), []
    except ValidationError as exc:
        return None, _field_errors(part, exc)


def query_to_dict(request: Request, model: type[BaseModel]) -> Dict[str, Any]:
    """
    Flatten the query string for ``model``.

    Keys whose model field is a sequence keep every value; all others
    keep the last one.
    """
    data: Dict[str, Any] = {}
    fields = _fields_by_key(model)
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        field = fields.get(key)
        if field is not None and _is_sequence(field.annotation):
            data[key] = values
        else:
            data[key] = values[-1]
    return data


async def _read_body(request: Request) -> Tuple[Any, Optional[FieldError]]:
    raw = await request.body()
    if not raw.strip():
        return {}, None
    try:
        return json.loads(raw), None
    except (ValueError, UnicodeDecodeError):
        return None, FieldError("body", "Invalid JSON body")


async def validate_request(
    request: Request,
    schemas: ValidationSchemas,
) -> Tuple[Optional[ValidatedData], List[FieldError]]:
    """
    Validate ``request`` against ``schemas``.

    Returns:
        ``(ValidatedData, [])`` on success, ``(None, errors)`` otherwise.
    """
    errors: List[FieldError] = []
    body = params = query = None

    if schemas.body is not None:
        data, parse_error = await _read_body(request)
        if parse_error is not None:
            errors.append(parse_error)
        else:
            body, part_errors = _validate_part("body", schemas.body, data)
            errors.extend(part_errors)

    if schemas.params is not None:
        params, part_errors = _validate_part("params", schemas.params, dict(request.path_params))
        errors.extend(part_errors)

    if schemas.query is not None:
        query, part_errors = _validate_part("query", schemas.query, query_to_dict(request, schemas.query))
        errors.extend(part_errors)

    if errors:
        logger.info(
            "Rejected %s %s: %d validation error(s)",
            request.method, request.url.path, len(errors),
        )
        return None, errors

    return ValidatedData(body=body, params=params, query=query), []


def validation_error_response(errors: List[FieldError]) -> JSONResponse:
    """The 400 envelope returned when validation fails."""
    return JSONResponse(
        {
            "success": False,
            "message": VALIDATION_ERROR_MESSAGE,
            "errors": [e.to_dict() for e in errors],
        },
        status_code=400,
    )
