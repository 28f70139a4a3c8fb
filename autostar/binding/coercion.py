"""Conversions from raw request values to the static types of record fields.

Values arrive either as strings (query, path, header, cookie and form
sources) or as decoded JSON values (body). ``coerce`` converts both kinds to
a field's annotated type. The four scalar kinds follow request-string rules:

- strings pass through, other scalars are stringified (booleans as
  ``true``/``false``)
- integers accept decimal strings, native integers and finite numbers
  truncated toward zero
- booleans accept ``"true"``/``"1"`` as true and any other string as false
- floats accept decimal strings and numbers

Containers of those scalars are converted item by item. Every other target
(decimals, dates, UUIDs, enums, literals and containers of them) is
validated by a cached pydantic ``TypeAdapter``.

Strict mode is used for JSON bodies and only accepts values whose JSON type
already matches the target.
"""

import math
import re
import types
from collections.abc import Mapping, Sequence
from collections.abc import Set as AbstractSet
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import (
    BaseModel,
    PydanticSchemaGenerationError,
    TypeAdapter,
    ValidationError,
)

from autostar.core.exceptions import CoercionError

_INT_PATTERN = re.compile(r"^[+-]?\d+$")

_SEQUENCE_ORIGINS: dict[Any, type] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    Sequence: list,
    AbstractSet: set,
}
_MAPPING_ORIGINS = (dict, Mapping)


def type_name(tp: Any) -> str:  # noqa: ANN401
    """Human-readable name of a type annotation.

    Unions are named by their arms, e.g. ``int or Color``.
    """
    tp = strip_annotated(tp)
    if _is_union(tp):
        return " or ".join(type_name(arm) for arm in get_args(tp))
    if get_origin(tp) is not None:
        return repr(tp).removeprefix("typing.")
    return getattr(tp, "__name__", None) or repr(tp)


def strip_annotated(annotation: Any) -> Any:  # noqa: ANN401
    """Remove ``Annotated`` wrappers from an annotation."""
    while get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    return annotation


def _is_union(annotation: Any) -> bool:  # noqa: ANN401
    return get_origin(annotation) in (Union, types.UnionType)


def unwrap_optional(annotation: Any) -> tuple[Any, bool]:  # noqa: ANN401
    """Split ``T | None`` into ``(T, True)``.

    Unions with more than one non-None arm are returned unchanged (minus
    ``None``).
    """
    annotation = strip_annotated(annotation)
    if not _is_union(annotation):
        return annotation, False
    args = get_args(annotation)
    arms = tuple(arg for arg in args if arg is not type(None))
    optional = len(arms) != len(args)
    if len(arms) == 1:
        return strip_annotated(arms[0]), optional
    return Union[arms], optional  # noqa: UP007


def is_record(annotation: Any) -> bool:  # noqa: ANN401
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def record_type(annotation: Any) -> type[BaseModel] | None:  # noqa: ANN401
    """Return the record class behind ``T`` or ``T | None``, if any."""
    inner, _ = unwrap_optional(annotation)
    return inner if is_record(inner) else None


def sequence_item_type(annotation: Any) -> Any | None:  # noqa: ANN401
    """Return the element type of a list-like annotation, or None."""
    inner, _ = unwrap_optional(annotation)
    origin = get_origin(inner)
    if origin in _SEQUENCE_ORIGINS:
        args = get_args(inner)
        return strip_annotated(args[0]) if args else Any
    if inner in _SEQUENCE_ORIGINS:
        return Any
    return None


def zero_value(annotation: Any) -> Any:  # noqa: ANN401
    """Return the value a field holds in a freshly allocated record."""
    inner, optional = unwrap_optional(annotation)
    if optional or inner is Any:
        return None
    origin = get_origin(inner) or inner
    if origin in _SEQUENCE_ORIGINS:
        return _SEQUENCE_ORIGINS[origin]()
    if origin in _MAPPING_ORIGINS:
        return {}
    if not isinstance(inner, type) or issubclass(inner, (Enum, BaseModel)):
        return None
    for kind, zero in ((bool, False), (int, 0), (float, 0.0), (str, "")):
        if issubclass(inner, kind):
            return zero
    if issubclass(inner, Decimal):
        return Decimal(0)
    return None


def _fail(value: Any, target: Any) -> CoercionError:  # noqa: ANN401
    name = type_name(target)
    return CoercionError(
        f"cannot convert {value!r} to {name}", target=name, value=value
    )


def _to_str(value: Any, *, strict: bool) -> str:  # noqa: ANN401
    if isinstance(value, str):
        return value
    if strict or isinstance(value, (Mapping, list, tuple, set)):
        raise _fail(value, str)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_int(value: Any, *, strict: bool) -> int:  # noqa: ANN401
    if isinstance(value, bool):
        raise _fail(value, int)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if not math.isfinite(value) or (strict and value != int(value)):
            raise _fail(value, int)
        return int(value)
    if isinstance(value, str) and not strict and _INT_PATTERN.match(value):
        return int(value)
    raise _fail(value, int)


def _to_bool(value: Any, *, strict: bool) -> bool:  # noqa: ANN401
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and not strict:
        return value in ("true", "1")
    raise _fail(value, bool)


def _to_float(value: Any, *, strict: bool) -> float:  # noqa: ANN401
    if isinstance(value, bool):
        raise _fail(value, float)
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str) and not strict:
        try:
            return float(value)
        except ValueError as e:
            raise _fail(value, float) from e
    raise _fail(value, float)


_SCALAR_RULES = {bool: _to_bool, int: _to_int, float: _to_float, str: _to_str}


@lru_cache(maxsize=512)
def _adapter(target: Any) -> TypeAdapter[Any] | None:  # noqa: ANN401
    """Cached adapter for ``target``; None if pydantic has no schema for it."""
    try:
        return TypeAdapter(target)
    except PydanticSchemaGenerationError:
        return None


def _choices(target: Any) -> list[Any]:  # noqa: ANN401
    if isinstance(target, type) and issubclass(target, Enum):
        return list(target)
    if get_origin(target) is Literal:
        return list(get_args(target))
    return []


def _match_choice(value: str, target: Any) -> Any:  # noqa: ANN401
    """Map a request string onto the enum member or literal it spells."""
    for choice in _choices(target):
        raw = choice.value if isinstance(choice, Enum) else choice
        if str(raw) == value:
            return choice
    return value


def _reject(value: Any, target: Any) -> CoercionError:  # noqa: ANN401
    choices = _choices(target)
    if not choices:
        return _fail(value, target)
    allowed = ", ".join(
        str(choice.value if isinstance(choice, Enum) else choice) for choice in choices
    )
    return CoercionError(
        f"{value!r} is not one of [{allowed}]", target=type_name(target), value=value
    )


def _validate(value: Any, target: Any, *, strict: bool) -> Any:  # noqa: ANN401
    if not strict and isinstance(value, str):
        value = _match_choice(value, target)
    adapter = _adapter(target)
    if adapter is None:
        if isinstance(target, type) and isinstance(value, target):
            return value
        raise _fail(value, target)
    # Decoded JSON carries dates, UUIDs and decimals as strings, so only
    # literals are matched strictly.
    literal_strict = strict if get_origin(target) is Literal else None
    try:
        return adapter.validate_python(value, strict=literal_strict)
    except ValidationError as e:
        raise _reject(value, target) from e


def _uses_scalar_rules(target: Any) -> bool:  # noqa: ANN401
    """Report whether converting ``target`` involves a request-string rule."""
    inner, _ = unwrap_optional(target)
    if inner in _SCALAR_RULES or get_origin(inner) is Literal:
        return True
    args = get_args(inner)
    if (get_origin(inner) or inner) in _MAPPING_ORIGINS:
        args = args[1:]
    return any(_uses_scalar_rules(arg) for arg in args if arg is not Ellipsis)


def _as_items(value: Any, target: Any, *, strict: bool) -> list[Any]:  # noqa: ANN401
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    if strict:
        raise _fail(value, target)
    return [value]


def _to_sequence(items: list[Any], target: Any, *, strict: bool) -> Any:  # noqa: ANN401
    origin = get_origin(target) or target
    container = _SEQUENCE_ORIGINS[origin]
    args = get_args(target)
    item_type = strip_annotated(args[0]) if args else Any
    return container(coerce(item, item_type, strict=strict) for item in items)


def _to_mapping(
    value: Any,  # noqa: ANN401
    target: Any,  # noqa: ANN401
    *,
    strict: bool,
) -> dict[Any, Any]:
    if not isinstance(value, Mapping):
        raise _fail(value, target)
    args = get_args(target)
    value_type = strip_annotated(args[1]) if len(args) == 2 else Any  # noqa: PLR2004
    return {key: coerce(item, value_type, strict=strict) for key, item in value.items()}


def _coerce_union(value: Any, target: Any, *, strict: bool) -> Any:  # noqa: ANN401
    for arm in get_args(target):
        try:
            return coerce(value, arm, strict=strict)
        except CoercionError:
            continue
    raise _fail(value, target)


def coerce(  # noqa: PLR0911
    value: Any,  # noqa: ANN401
    target: Any,  # noqa: ANN401
    *,
    strict: bool = False,
) -> Any:  # noqa: ANN401
    """Convert a raw value to ``target``.

    Args:
        value: A string from the request or a decoded JSON value.
        target: The field's static type.
        strict: Only accept values whose JSON type matches the target.

    Returns:
        The converted value. ``None`` becomes ``None`` for optional targets
        and the zero value otherwise.

    Raises:
        CoercionError: If the value cannot be converted.
    """
    target = strip_annotated(target)
    if target is Any or target is object:
        return value
    inner, optional = unwrap_optional(target)
    if value is None:
        return None if optional else zero_value(inner)
    if _is_union(inner):
        return _coerce_union(value, inner, strict=strict)

    rule = _SCALAR_RULES.get(inner)
    if rule is not None:
        return rule(value, strict=strict)

    origin = get_origin(inner) or inner
    if origin in _SEQUENCE_ORIGINS:
        items = _as_items(value, inner, strict=strict)
        if _uses_scalar_rules(inner):
            return _to_sequence(items, inner, strict=strict)
        return _validate(items, inner, strict=strict)
    if origin in _MAPPING_ORIGINS and _uses_scalar_rules(inner):
        return _to_mapping(value, inner, strict=strict)
    return _validate(value, inner, strict=strict)


def schema_model(schema: Any) -> tuple[type[BaseModel] | None, bool]:  # noqa: ANN401
    """Resolve a declared schema to ``(record type, is_list)``.

    ``User`` gives ``(User, False)``, ``list[User]`` gives ``(User, True)``;
    anything that is not record-shaped gives ``(None, False)``.
    """
    model = record_type(schema)
    if model is not None:
        return model, False
    item_type = sequence_item_type(schema)
    if item_type is not None:
        model = record_type(item_type)
        if model is not None:
            return model, True
    return None, False
