"""Field annotation language and cached binding plans.

Record types are pydantic models whose fields carry ``typing.Annotated``
metadata describing where each value comes from on the wire::

    class GetUser(BaseModel):
        user_id: Annotated[int, Tag(bind="path:user_id,required")]
        name: Annotated[str, Tag(bind="query:name", validate="omitempty,min=2")]

The ``bind`` string follows the grammar ``source:key[,required][,default:literal]``.
Each record type is walked once into a ``RecordPlan``; request handling only
ever reads the cached plan.
"""

import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from autostar.binding.coercion import coerce, record_type, strip_annotated
from autostar.core.constants import CAMEL_CASE_ACRONYMS
from autostar.core.exceptions import CoercionError, RegistrationError


EXCLUDED_JSON_NAME = "-"


class Source(StrEnum):
    """Where a field value is read from."""

    BODY = "body"
    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    COOKIE = "cookie"
    FORM = "form"
    AUTO = "auto"


@dataclass(frozen=True, slots=True)
class Tag:
    """Per-field annotation.

    Attributes:
        bind: Binding in the form ``source:key[,required][,default:literal]``.
        json: JSON name. ``"-"`` excludes the field, ``""`` is an explicitly
            empty name.
        validate: Comma-separated validation rules, e.g. ``required,min=6``.
        description: Documentation text.
        example: Documentation example value.
    """

    bind: str | None = None
    json: str | None = None
    validate: str | None = None
    description: str | None = None
    example: Any = None


@dataclass(frozen=True, slots=True)
class Embed:
    """Marks a record-typed field whose fields contribute at the outer level."""


@dataclass(frozen=True, slots=True)
class Binding:
    """A parsed ``bind`` annotation."""

    source: Source
    key: str
    required: bool = False
    default: str | None = None


@dataclass(frozen=True, slots=True)
class FieldPlan:
    """Normalized binding plan for one record field."""

    name: str
    annotation: Any
    source: Source
    key: str
    json_name: str | None = None
    required: bool = False
    has_default: bool = False
    default: Any = None
    description: str | None = None
    example: Any = None
    rules: str = ""
    bound: bool = False
    embedded: "RecordPlan | None" = None

    @property
    def excluded(self) -> bool:
        return self.json_name == EXCLUDED_JSON_NAME

    @property
    def usable_json_name(self) -> str | None:
        if self.json_name in (None, "", EXCLUDED_JSON_NAME):
            return None
        return self.json_name

    @property
    def wire_name(self) -> str:
        """Name used when reading the field from a decoded mapping."""
        return self.usable_json_name or self.name

    @property
    def response_name(self) -> str:
        """Name used when encoding and documenting the field as response data."""
        return self.usable_json_name or to_camel_case(self.name)


@dataclass(frozen=True, slots=True)
class RecordPlan:
    """Ordered binding plans for a record type."""

    model: type[BaseModel]
    fields: tuple[FieldPlan, ...]

    def leaves(self) -> list[FieldPlan]:
        """Return leaf plans with embedded records flattened in place."""
        leaves: list[FieldPlan] = []
        for plan in self.fields:
            if plan.embedded is not None:
                leaves.extend(plan.embedded.leaves())
            else:
                leaves.append(plan)
        return leaves


def to_camel_case(name: str) -> str:
    """Derive the response name of a field without an explicit JSON name.

    Names of at most two characters are lowercased, a leading well-known
    acronym is lowercased as a unit, otherwise only the first character is
    lowercased. ``snake_case`` names are therefore returned unchanged.
    """
    if not name:
        return name
    if len(name) <= 2:  # noqa: PLR2004
        return name.lower()
    for acronym in CAMEL_CASE_ACRONYMS:
        if name.startswith(acronym):
            return acronym.lower() + name[len(acronym) :]
    return name[0].lower() + name[1:]


def parse_binding(spec: str, fallback_key: str) -> Binding:
    """Parse a ``source:key[,required][,default:literal]`` annotation.

    Args:
        spec: The raw annotation.
        fallback_key: Key used when the annotation names only a source.

    Returns:
        Binding: The parsed binding.

    Raises:
        RegistrationError: If the source is not one of the known sources.
    """
    head, *options = spec.split(",")
    source_name, _, key = head.partition(":")
    source_name = source_name.strip().lower()
    try:
        source = Source(source_name)
    except ValueError as e:
        raise RegistrationError(
            f"unknown binding source {source_name!r} in {spec!r}", cause=e
        ) from e

    required = False
    default: str | None = None
    for option in options:
        option = option.strip()
        if option == "required":
            required = True
        elif option.startswith("default:"):
            default = option.removeprefix("default:")

    return Binding(
        source=source,
        key=key.strip() or fallback_key,
        required=required,
        default=default,
    )


def field_tag(info: FieldInfo) -> Tag:
    """Return the ``Tag`` attached to a pydantic field, or an empty one."""
    for item in info.metadata:
        if isinstance(item, Tag):
            return item
    return Tag()


def _is_embedded(info: FieldInfo) -> bool:
    return any(isinstance(item, Embed) for item in info.metadata)


def _has_rule(rules: str, name: str) -> bool:
    return any(rule.strip().split("=", 1)[0] == name for rule in rules.split(","))


def _json_name(tag: Tag, info: FieldInfo) -> str | None:
    if tag.json is not None:
        return tag.json
    if info.exclude is True:
        return EXCLUDED_JSON_NAME
    return info.alias


def _example(tag: Tag, info: FieldInfo) -> Any:  # noqa: ANN401
    if tag.example is not None:
        return tag.example
    if info.examples:
        return info.examples[0]
    return None


def _build_field_plan(name: str, info: FieldInfo) -> FieldPlan:
    tag = field_tag(info)
    annotation = strip_annotated(info.annotation)
    json_name = _json_name(tag, info)
    usable_json = None if json_name in (None, "", EXCLUDED_JSON_NAME) else json_name
    rules = tag.validate or ""
    description = tag.description or info.description
    example = _example(tag, info)

    if _is_embedded(info):
        model = record_type(annotation)
        if model is None:
            raise RegistrationError(
                f"field {name!r} is marked Embed() but is not a record type"
            )
        return FieldPlan(
            name=name,
            annotation=annotation,
            source=Source.AUTO,
            key=usable_json or name,
            json_name=json_name,
            rules=rules,
            embedded=record_plan(model),
        )

    if tag.bind:
        binding = parse_binding(tag.bind, usable_json or name)
    else:
        binding = Binding(source=Source.AUTO, key=usable_json or name)

    has_default = binding.default is not None
    default: Any = binding.default
    if has_default:
        try:
            default = coerce(binding.default, annotation)
        except CoercionError:
            # Kept raw; surfaced as a parse error when applied
            default = binding.default

    return FieldPlan(
        name=name,
        annotation=annotation,
        source=binding.source,
        key=binding.key,
        json_name=json_name,
        required=binding.required or _has_rule(rules, "required"),
        has_default=has_default,
        default=default,
        description=description,
        example=example,
        rules=rules,
        bound=bool(tag.bind),
    )


_plans: dict[type[BaseModel], RecordPlan] = {}
_plans_lock = threading.RLock()


def record_plan(model: type[BaseModel]) -> RecordPlan:
    """Return the cached ``RecordPlan`` for a record type, building it once.

    Args:
        model: A pydantic model class.

    Returns:
        RecordPlan: Plans for every field in declaration order.

    Raises:
        RegistrationError: If ``model`` is not a pydantic model or a field
            annotation is malformed.
    """
    cached = _plans.get(model)
    if cached is not None:
        return cached

    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise RegistrationError(f"{model!r} is not a record type")

    with _plans_lock:
        cached = _plans.get(model)
        if cached is None:
            fields = tuple(
                _build_field_plan(name, info)
                for name, info in model.model_fields.items()
            )
            cached = RecordPlan(model=model, fields=fields)
            _plans[model] = cached
    return cached
