"""Structural validation of request and response records.

Rules are declared per field in ``Tag(validate=...)`` as a comma-separated
list such as ``required,min=6`` or ``omitempty,dive,email``. A single
``Validator`` instance is shared by the application; it holds the built-in
rule vocabulary plus any predicates registered with ``register``.

Failures are reported as a flat list of ``FieldError`` whose ``field`` is the
dotted path of wire keys (``address.city``, ``items[0].name``), ``message`` a
human-readable description and ``tag`` the failing rule. Validation of a
field stops at its first failing rule.
"""

import re
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any
from uuid import UUID

from loguru import logger
from pydantic import AnyUrl, BaseModel, TypeAdapter, ValidationError

from autostar.binding.annotations import RecordPlan, record_plan
from autostar.binding.coercion import record_type, schema_model, sequence_item_type
from autostar.binding.copier import from_map
from autostar.core.exceptions import CoercionError, FieldError, RegistrationError
from autostar.core.types import ValidatorFunc


@dataclass(frozen=True, slots=True)
class Rule:
    """A single parsed rule, e.g. ``min=6`` is ``Rule("min", "6")``."""

    name: str
    param: str = ""


@lru_cache(maxsize=1024)
def parse_rules(spec: str) -> tuple[Rule, ...]:
    """Parse a rule string into rules, in declaration order."""
    rules: list[Rule] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        name, _, param = part.partition("=")
        rules.append(Rule(name.strip(), param.strip()))
    return tuple(rules)


_EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
_ALPHANUM_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
_ALPHA_PATTERN = re.compile(r"^[a-zA-Z]+$")
_NUMERIC_PATTERN = re.compile(r"^[-+]?[0-9]+(?:\.[0-9]+)?$")

# Rules that control traversal rather than test a value
_CONTROL_RULES = frozenset({"omitempty", "dive"})
# Rules whose parameter is a number
_SIZE_RULES = frozenset({"min", "max", "len", "gte", "lte", "gt", "lt"})


def is_zero(value: Any) -> bool:  # noqa: ANN401
    """Report whether a value is the zero value of its kind."""
    if value is None:
        return True
    if isinstance(value, BaseModel):
        return False
    if isinstance(value, (str, list, tuple, set, frozenset, Mapping)):
        return len(value) == 0
    if isinstance(value, (bool, int, float, Decimal)):
        return value == 0
    return False


def _size(value: Any) -> float | None:  # noqa: ANN401
    """String length, container length or numeric value."""
    if isinstance(value, (str, list, tuple, set, frozenset, Mapping)):
        return float(len(value))
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    return None


def _as_text(value: Any) -> str:  # noqa: ANN401
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _size_check(compare: Callable[[float, float], bool]) -> ValidatorFunc:
    def check(value: Any, param: str) -> bool:  # noqa: ANN401
        size = _size(value)
        return size is not None and compare(size, float(param))

    return check


def _pattern_check(pattern: re.Pattern[str]) -> ValidatorFunc:
    def check(value: Any, _param: str) -> bool:  # noqa: ANN401
        return isinstance(value, str) and pattern.match(value) is not None

    return check


_URL_ADAPTER: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)
_UUID_ADAPTER: TypeAdapter[UUID] = TypeAdapter(UUID)


def _adapts(adapter: TypeAdapter[Any], value: Any) -> bool:  # noqa: ANN401
    try:
        adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def _is_url(value: Any, _param: str) -> bool:  # noqa: ANN401
    return isinstance(value, str) and _adapts(_URL_ADAPTER, value)


def _is_numeric(value: Any, _param: str) -> bool:  # noqa: ANN401
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return True
    return isinstance(value, str) and _NUMERIC_PATTERN.match(value) is not None


def _is_uuid(value: Any, _param: str) -> bool:  # noqa: ANN401
    return isinstance(value, (str, UUID)) and _adapts(_UUID_ADAPTER, value)


BUILTIN_RULES: dict[str, ValidatorFunc] = {
    "required": lambda value, _param: not is_zero(value),
    "min": _size_check(lambda size, limit: size >= limit),
    "max": _size_check(lambda size, limit: size <= limit),
    "len": _size_check(lambda size, limit: size == limit),
    "gte": _size_check(lambda size, limit: size >= limit),
    "lte": _size_check(lambda size, limit: size <= limit),
    "gt": _size_check(lambda size, limit: size > limit),
    "lt": _size_check(lambda size, limit: size < limit),
    "email": _pattern_check(_EMAIL_PATTERN),
    "url": _is_url,
    "oneof": lambda value, param: _as_text(value) in param.split(),
    "alphanum": _pattern_check(_ALPHANUM_PATTERN),
    "alpha": _pattern_check(_ALPHA_PATTERN),
    "numeric": _is_numeric,
    "uuid": _is_uuid,
}

_COMPARISONS = {
    "min": "at least",
    "max": "at most",
    "len": "exactly",
    "gte": "greater than or equal to",
    "lte": "less than or equal to",
    "gt": "greater than",
    "lt": "less than",
}

_FIXED_MESSAGES = {
    "required": "is required",
    "email": "must be a valid email address",
    "url": "must be a valid URL",
    "alphanum": "must contain only letters and digits",
    "alpha": "must contain only letters",
    "numeric": "must be a numeric value",
    "uuid": "must be a valid UUID",
}


def describe_failure(path: str, rule: Rule, value: Any) -> str:  # noqa: ANN401
    """Human-readable message for a failed rule."""
    name = path or "value"
    if rule.name in _FIXED_MESSAGES:
        return f"{name} {_FIXED_MESSAGES[rule.name]}"
    if rule.name == "oneof":
        return f"{name} must be one of [{rule.param}]"
    if rule.name in _COMPARISONS:
        comparison = _COMPARISONS[rule.name]
        if isinstance(value, str):
            return f"{name} must be {comparison} {rule.param} characters long"
        if isinstance(value, (list, tuple, set, frozenset, Mapping)):
            return f"{name} must contain {comparison} {rule.param} items"
        return f"{name} must be {comparison} {rule.param}"
    return f"{name} failed on the '{rule.name}' rule"


class Validator:
    """Shared rule evaluator.

    Custom predicates must be registered before the routes that use them,
    and must be safe to call concurrently.
    """

    def __init__(self) -> None:
        self._rules: dict[str, ValidatorFunc] = dict(BUILTIN_RULES)
        self._lock = threading.Lock()

    def register(self, name: str, func: ValidatorFunc) -> None:
        """Register a custom predicate ``func(value, param) -> bool``.

        Args:
            name: Rule name used in ``Tag(validate=...)``.
            func: The predicate.

        Raises:
            ValueError: If the name is empty, malformed or reserved.
        """
        if not name or any(ch in name for ch in ",= ") or name in _CONTROL_RULES:
            raise ValueError(f"invalid validation rule name: {name!r}")
        with self._lock:
            # Copy on write so concurrent readers never see a dict being resized
            rules = dict(self._rules)
            rules[name] = func
            self._rules = rules
        logger.debug("Registered validation rule {}", name, rule=name)

    def is_known(self, name: str) -> bool:
        return name in self._rules or name in _CONTROL_RULES

    def prepare(self, model: type[BaseModel]) -> None:
        """Check every rule declared on ``model`` and nested records.

        Raises:
            RegistrationError: On an unknown rule or a non-numeric size parameter.
        """
        self._prepare(record_plan(model), set())

    def _prepare(self, plan: RecordPlan, seen: set[type[BaseModel]]) -> None:
        if plan.model in seen:
            return
        seen.add(plan.model)
        for field in plan.leaves():
            location = f"{plan.model.__name__}.{field.name}"
            for rule in parse_rules(field.rules):
                if not self.is_known(rule.name):
                    raise RegistrationError(
                        f"unknown validation rule {rule.name!r} on {location}"
                    )
                if rule.name in _SIZE_RULES:
                    try:
                        float(rule.param)
                    except ValueError as e:
                        raise RegistrationError(
                            f"rule {rule.name!r} on {location} needs a numeric "
                            f"parameter, got {rule.param!r}",
                            cause=e,
                        ) from e
            nested = record_type(field.annotation) or record_type(
                sequence_item_type(field.annotation)
            )
            if nested is not None:
                self._prepare(record_plan(nested), seen)

    def validate(self, record: BaseModel, prefix: str = "") -> list[FieldError]:
        """Validate a record and its nested records.

        Args:
            record: The record to validate.
            prefix: Path prefix for reported fields.

        Returns:
            list[FieldError]: Every failure; empty when the record is valid.
        """
        errors: list[FieldError] = []
        self._validate_record(record, prefix, errors)
        return errors

    def validate_response(self, value: Any, schema: Any) -> list[FieldError]:  # noqa: ANN401
        """Validate a handler's return value against a declared response schema.

        Lists and tuples are validated element by element whether the schema
        is ``T`` or ``list[T]``, with paths such as ``[0].email``. Mappings
        are copied into the response type first. Other values are not
        validated.
        """
        model, _ = schema_model(schema)
        if model is None:
            return []
        if isinstance(value, (list, tuple)):
            errors: list[FieldError] = []
            for index, item in enumerate(value):
                errors.extend(self._validate_response_item(item, model, f"[{index}]."))
            return errors
        return self._validate_response_item(value, model, "")

    def _validate_response_item(
        self, item: Any, model: type[BaseModel], prefix: str  # noqa: ANN401
    ) -> list[FieldError]:
        if isinstance(item, BaseModel):
            return self.validate(item, prefix)
        if isinstance(item, Mapping):
            try:
                record = from_map(model, item)
            except CoercionError as e:
                return [
                    FieldError(
                        field=prefix.rstrip(".") or "response",
                        message=e.message,
                        tag="type",
                    )
                ]
            return self.validate(record, prefix)
        return []

    def _validate_record(
        self, record: BaseModel, prefix: str, errors: list[FieldError]
    ) -> None:
        for field in record_plan(type(record)).fields:
            value = getattr(record, field.name, None)
            if field.embedded is not None:
                if value is not None:
                    self._validate_record(value, prefix, errors)
                continue
            self._check(value, parse_rules(field.rules), prefix + field.key, errors)

    def _check(
        self,
        value: Any,  # noqa: ANN401
        rules: tuple[Rule, ...],
        path: str,
        errors: list[FieldError],
    ) -> None:
        for index, rule in enumerate(rules):
            if rule.name == "omitempty":
                if is_zero(value):
                    return
                continue
            if rule.name == "dive":
                self._dive(value, rules[index + 1 :], path, errors)
                return
            if value is None and rule.name != "required":
                return
            func = self._rules.get(rule.name)
            if func is None:
                raise RegistrationError(f"unknown validation rule {rule.name!r}")
            if not func(value, rule.param):
                errors.append(
                    FieldError(
                        field=path,
                        message=describe_failure(path, rule, value),
                        tag=rule.name,
                    )
                )
                return

        if isinstance(value, BaseModel):
            self._validate_record(value, f"{path}.", errors)

    def _dive(
        self,
        value: Any,  # noqa: ANN401
        rules: tuple[Rule, ...],
        path: str,
        errors: list[FieldError],
    ) -> None:
        if isinstance(value, Mapping):
            for key, item in value.items():
                self._check(item, rules, f"{path}[{key}]", errors)
        elif isinstance(value, (list, tuple, set, frozenset)):
            for index, item in enumerate(value):
                self._check(item, rules, f"{path}[{index}]", errors)
