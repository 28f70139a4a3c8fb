"""Multi-source request extraction.

``extract`` allocates a fresh record and fills it from a Starlette request:

1. On POST, PUT and PATCH the body is decoded first. JSON bodies populate
   ``body`` and ``auto`` fields by key; form bodies populate ``body``,
   ``auto`` and ``form`` fields.
2. The record plan is then walked in declaration order. Every non-body field
   reads its string value from its source (``auto`` tries path, then query).
   An empty value fails when the field is required, falls back to the
   default when one is declared, and otherwise leaves the field untouched.
   Non-empty values are coerced to the field's static type.

``auto`` never falls back to the body at this stage: a non-empty path or
query value overrides what the body provided, an empty one keeps it. A
field explicitly bound to ``auto`` that the body did not provide is treated
like any other source: empty and required is an error, empty with a default
takes the default. Unbound fields are left to validation.
"""

from collections.abc import Mapping
from typing import Any

import orjson
from pydantic import BaseModel
from starlette.datastructures import FormData
from starlette.requests import Request

from autostar.api.constants import (
    FORM_CONTENT_TYPES,
    JSON_CONTENT_TYPES,
    JSON_SUFFIX,
    REQUEST_BODY_METHODS,
)
from autostar.binding.annotations import FieldPlan, RecordPlan, Source, record_plan
from autostar.binding.coercion import coerce, sequence_item_type
from autostar.binding.copier import construct, convert, initial_values
from autostar.core.exceptions import CoercionError, ParseError

# A string, a list of strings, an uploaded file or None
type RawValue = Any

BODY_FIELD = "body"


def media_type(request: Request) -> str:
    """Return the request's lowercased media type without parameters."""
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower()


def is_json_media_type(value: str) -> bool:
    return value in JSON_CONTENT_TYPES or value.endswith(JSON_SUFFIX)


def _is_empty(raw: RawValue) -> bool:
    return raw is None or raw == "" or raw == []


def _body_error(message: str, cause: Exception | None = None) -> ParseError:
    return ParseError(BODY_FIELD, Source.BODY.value, message, cause=cause)


async def _decode_json(request: Request) -> dict[str, Any]:
    body = await request.body()
    if not body.strip():
        raise _body_error("Request body is required for JSON requests")
    try:
        payload = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise _body_error(f"Invalid request body: {e}", cause=e) from e
    if not isinstance(payload, dict):
        raise _body_error(
            f"Invalid request body: expected a JSON object, got {type(payload).__name__}"
        )
    return payload


def _fill_from_body(
    plan: RecordPlan,
    values: dict[str, Any],
    data: Mapping[str, Any],
    sources: frozenset[Source],
    filled: set[int],
    *,
    strict: bool,
) -> None:
    for field in plan.fields:
        if field.embedded is not None:
            _fill_from_body(
                field.embedded,
                values[field.name],
                data,
                sources,
                filled,
                strict=strict,
            )
            continue
        if field.source not in sources or (field.excluded and not field.bound):
            continue
        if field.key not in data:
            continue
        raw = data[field.key]
        if not strict and isinstance(data, FormData) and _is_list(field):
            raw = data.getlist(field.key)
        try:
            values[field.name] = convert(raw, field.annotation, strict=strict)
        except CoercionError as e:
            raise ParseError(field.key, Source.BODY.value, e.message, cause=e) from e
        filled.add(id(field))


async def _read_body(
    request: Request,
    plan: RecordPlan,
    values: dict[str, Any],
    filled: set[int],
) -> FormData | None:
    """Decode the request body into ``values``; return form data when present.

    Fields populated from the body are recorded in ``filled``.
    """
    content_type = media_type(request)
    if is_json_media_type(content_type):
        payload = await _decode_json(request)
        _fill_from_body(
            plan,
            values,
            payload,
            frozenset({Source.BODY, Source.AUTO}),
            filled,
            strict=True,
        )
        return None

    if content_type in FORM_CONTENT_TYPES:
        form = await request.form()
        _fill_from_body(
            plan,
            values,
            form,
            frozenset({Source.BODY, Source.AUTO, Source.FORM}),
            filled,
            strict=False,
        )
        return form

    if await request.body():
        raise _body_error(
            f"Invalid request body: unsupported content type {content_type or 'none'!r}"
        )
    return None


def _is_list(field: FieldPlan) -> bool:
    return sequence_item_type(field.annotation) is not None


def _read_source(
    field: FieldPlan, source: Source, request: Request, form: FormData | None
) -> RawValue:
    key = field.key
    match source:
        case Source.QUERY:
            if _is_list(field):
                return request.query_params.getlist(key)
            return request.query_params.get(key)
        case Source.PATH:
            value = request.path_params.get(key)
            return None if value is None else str(value)
        case Source.HEADER:
            return request.headers.get(key)
        case Source.COOKIE:
            return request.cookies.get(key)
        case Source.FORM:
            if form is None:
                return None
            if _is_list(field):
                return form.getlist(key)
            return form.get(key)
        case Source.AUTO:
            value = _read_source(field, Source.PATH, request, form)
            if _is_empty(value):
                value = _read_source(field, Source.QUERY, request, form)
            return value
    return None


def _coerce_field(field: FieldPlan, raw: RawValue) -> Any:  # noqa: ANN401
    try:
        return coerce(raw, field.annotation)
    except CoercionError as e:
        raise ParseError(field.key, field.source.value, e.message, cause=e) from e


def _extract_fields(
    plan: RecordPlan,
    values: dict[str, Any],
    request: Request,
    form: FormData | None,
    filled: set[int],
) -> None:
    for field in plan.fields:
        if field.embedded is not None:
            _extract_fields(field.embedded, values[field.name], request, form, filled)
            continue
        if field.source is Source.BODY:
            continue

        raw = _read_source(field, field.source, request, form)
        if _is_empty(raw):
            if field.source is Source.AUTO and (
                not field.bound or id(field) in filled
            ):
                continue
            if field.required:
                raise ParseError(field.key, field.source.value, "field is required")
            if field.has_default:
                values[field.name] = _coerce_field(field, field.default)
            continue
        values[field.name] = _coerce_field(field, raw)


async def extract[T: BaseModel](request: Request, model: type[T]) -> T:
    """Build a ``model`` instance from the request.

    Args:
        request: The incoming request.
        model: The input record type.

    Returns:
        A freshly allocated, populated record. It has not been validated.

    Raises:
        ParseError: If the body cannot be decoded or a field is missing or
            cannot be converted.
    """
    plan = record_plan(model)
    values = initial_values(plan)
    form: FormData | None = None
    filled: set[int] = set()
    if request.method in REQUEST_BODY_METHODS:
        form = await _read_body(request, plan, values, filled)
    _extract_fields(plan, values, request, form, filled)
    return construct(plan, values)  # type: ignore[return-value]
