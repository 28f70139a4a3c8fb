"""Copies between dynamic mappings and typed records.

Used for decoded JSON bodies (nested records and lists of records), for
validating mapping-shaped handler return values against a declared response
schema, and for turning records into JSON-ready primitives.
"""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from autostar.binding.annotations import FieldPlan, RecordPlan, record_plan
from autostar.binding.coercion import (
    coerce,
    record_type,
    sequence_item_type,
    unwrap_optional,
    zero_value,
)
from autostar.core.exceptions import CoercionError


def initial_values(plan: RecordPlan) -> dict[str, Any]:
    """Initial attribute values for a freshly allocated record.

    Declared pydantic defaults win over zero values. Embedded records get a
    nested dict of their own initial values.
    """
    values: dict[str, Any] = {}
    for field in plan.fields:
        if field.embedded is not None:
            values[field.name] = initial_values(field.embedded)
            continue
        info = plan.model.model_fields[field.name]
        if info.is_required():
            values[field.name] = zero_value(field.annotation)
        else:
            values[field.name] = info.get_default(call_default_factory=True)
    return values


def construct(plan: RecordPlan, values: dict[str, Any]) -> BaseModel:
    """Materialise a record from attribute values without re-validating."""
    attrs: dict[str, Any] = {}
    for field in plan.fields:
        value = values.get(field.name)
        if field.embedded is not None and isinstance(value, dict):
            value = construct(field.embedded, value)
        attrs[field.name] = value
    return plan.model.model_construct(**attrs)


def _lookup(field: FieldPlan, data: Mapping[str, Any]) -> tuple[bool, Any]:
    for key in (field.wire_name, field.name, field.response_name):
        if key in data:
            return True, data[key]
    return False, None


def convert(value: Any, annotation: Any, *, strict: bool = False) -> Any:  # noqa: ANN401
    """Convert a decoded value to ``annotation``, building records from mappings.

    Raises:
        CoercionError: If the value cannot be converted.
    """
    model = record_type(annotation)
    if model is not None:
        if value is None:
            return None
        if isinstance(value, model):
            return value
        if isinstance(value, Mapping):
            return from_map(model, value, strict=strict)
        raise CoercionError(
            f"cannot convert {type(value).__name__} to {model.__name__}",
            target=model.__name__,
            value=value,
        )

    item_type = sequence_item_type(annotation)
    if item_type is not None and record_type(item_type) is not None:
        if value is None:
            inner, optional = unwrap_optional(annotation)
            return None if optional else zero_value(inner)
        if not isinstance(value, (list, tuple)):
            raise CoercionError(
                f"expected a list, got {type(value).__name__}", value=value
            )
        return [convert(item, item_type, strict=strict) for item in value]

    return coerce(value, annotation, strict=strict)


def _fill(
    plan: RecordPlan,
    values: dict[str, Any],
    data: Mapping[str, Any],
    *,
    strict: bool,
) -> None:
    for field in plan.fields:
        if field.embedded is not None:
            _fill(field.embedded, values[field.name], data, strict=strict)
            continue
        if field.excluded:
            continue
        found, raw = _lookup(field, data)
        if found:
            try:
                values[field.name] = convert(raw, field.annotation, strict=strict)
            except CoercionError as e:
                raise CoercionError(
                    f"{field.wire_name}: {e.message}", target=e.target, value=raw
                ) from e


def from_map(
    model: type[BaseModel], data: Mapping[str, Any], *, strict: bool = False
) -> BaseModel:
    """Build a ``model`` instance from a mapping keyed by wire names.

    Args:
        model: Target record type.
        data: Source mapping; keys are JSON names, else field names.
        strict: Require JSON types to match the field types.

    Returns:
        BaseModel: The populated record. Missing keys keep their initial value.

    Raises:
        CoercionError: If a value cannot be converted; the message names the key.
    """
    plan = record_plan(model)
    values = initial_values(plan)
    _fill(plan, values, data, strict=strict)
    return construct(plan, values)


def _wire_map(record: BaseModel, out: dict[str, Any]) -> dict[str, Any]:
    for field in record_plan(type(record)).fields:
        value = getattr(record, field.name, None)
        if field.embedded is not None:
            if value is not None:
                _wire_map(value, out)
            continue
        out[field.wire_name] = value
    return out


def from_object(model: type[BaseModel], data: Any) -> BaseModel:  # noqa: ANN401
    """Build a ``model`` instance from a mapping or from another record.

    Raises:
        CoercionError: For any other kind of source value.
    """
    if isinstance(data, Mapping):
        return from_map(model, data)
    if isinstance(data, BaseModel):
        return from_map(model, _wire_map(data, {}))
    raise CoercionError(
        f"unsupported data type: {type(data).__name__}", target=model.__name__
    )


def _record_to_primitive(record: BaseModel, out: dict[str, Any]) -> dict[str, Any]:
    for field in record_plan(type(record)).fields:
        value = getattr(record, field.name, None)
        if field.embedded is not None:
            if value is not None:
                _record_to_primitive(value, out)
            continue
        if field.excluded:
            continue
        out[field.response_name] = to_primitive(value)
    return out


def to_primitive(value: Any) -> Any:  # noqa: ANN401, PLR0911
    """Convert records and containers to JSON-ready primitives.

    Records become dicts keyed by their response names, so the encoded
    output matches the documented response schema.
    """
    if isinstance(value, BaseModel):
        return _record_to_primitive(value, {})
    if isinstance(value, Enum):
        return to_primitive(value.value)
    if isinstance(value, Mapping):
        return {str(key): to_primitive(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_primitive(item) for item in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value
