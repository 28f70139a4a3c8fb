"""Unit tests for raw value coercion."""

from datetime import date, datetime
from decimal import Decimal
from enum import IntEnum, StrEnum
from typing import Any, Literal
from uuid import UUID

import pytest
from pydantic import BaseModel

from autostar.binding.coercion import (
    coerce,
    schema_model,
    sequence_item_type,
    type_name,
    unwrap_optional,
    zero_value,
)
from autostar.core.exceptions import CoercionError


class Role(StrEnum):
    ADMIN = "admin"
    USER = "user"


class Priority(IntEnum):
    LOW = 1
    HIGH = 2


class User(BaseModel):
    name: str = ""


@pytest.mark.unit
class TestCoerce:
    """Test lenient conversion of request strings and JSON values."""

    @pytest.mark.parametrize(
        ("value", "target", "expected"),
        [
            ("42", int, 42),
            ("-7", int, -7),
            (3.9, int, 3),
            (-3.9, int, -3),
            ("true", bool, True),
            ("1", bool, True),
            ("yes", bool, False),
            ("2.5", float, 2.5),
            (2, float, 2.0),
            (5, str, "5"),
            (True, str, "true"),
            ("1.10", Decimal, Decimal("1.10")),
            ("2024-01-02", date, date(2024, 1, 2)),
            ("2024-01-02T03:04:05", datetime, datetime(2024, 1, 2, 3, 4, 5)),
            (
                "12345678-1234-5678-1234-567812345678",
                UUID,
                UUID("12345678-1234-5678-1234-567812345678"),
            ),
            ("admin", Role, Role.ADMIN),
            ("2", Priority, Priority.HIGH),
            (
                ["2024-01-02", "2024-01-03"],
                set[date],
                {date(2024, 1, 2), date(2024, 1, 3)},
            ),
            ({"start": "2024-01-02"}, dict[str, date], {"start": date(2024, 1, 2)}),
            ("1.5", Decimal | None, Decimal("1.5")),
            ("a", Literal["a", "b"], "a"),
            ("1", Literal[1, 2], 1),
            (["1", "2"], list[int], [1, 2]),
            ("3", list[int], [3]),
            ({"a": "1"}, dict[str, int], {"a": 1}),
            ("5", int | str, 5),
            ("x", int | str, "x"),
            ("anything", Any, "anything"),
        ],
    )
    def test_converts(self, value: Any, target: Any, expected: Any) -> None:
        """Values convert to the target type."""
        assert coerce(value, target) == expected

    @pytest.mark.parametrize(
        ("value", "target"),
        [
            ("abc", int),
            ("4.2", int),
            (True, int),
            ("nope", float),
            (["x"], str),
            ("root", Role),
            ("c", Literal["a", "b"]),
            ("x", dict[str, int]),
            ("not-a-date", date),
            ("not-a-uuid", UUID),
            (float("inf"), int),
            (float("-inf"), int),
            (float("nan"), int),
            (Decimal("Infinity"), int),
            ("3", Priority),
            (["2024-01-02", "nope"], list[date]),
        ],
    )
    def test_rejects(self, value: Any, target: Any) -> None:
        """Unconvertible values raise CoercionError."""
        with pytest.raises(CoercionError):
            coerce(value, target)

    def test_error_names_target_and_value(self) -> None:
        """The error carries the target type name and the raw value."""
        with pytest.raises(CoercionError) as exc_info:
            coerce("abc", int)

        assert exc_info.value.target == "int"
        assert exc_info.value.value == "abc"
        assert exc_info.value.message == "cannot convert 'abc' to int"

    def test_enum_error_lists_allowed_values(self) -> None:
        """Enum failures list the allowed values."""
        with pytest.raises(CoercionError, match=r"is not one of \[admin, user\]"):
            coerce("root", Role)

    def test_none_becomes_zero_or_none(self) -> None:
        """None is the zero value unless the target is optional."""
        assert coerce(None, int) == 0
        assert coerce(None, str) == ""
        assert coerce(None, int | None) is None

    @pytest.mark.parametrize(
        ("value", "target"),
        [
            ("42", int),
            (42, str),
            (4.5, int),
            ("true", bool),
            ("1.5", float),
            ("1", Literal[1, 2]),
            ("3", list[int]),
        ],
    )
    def test_strict_requires_matching_json_types(self, value: Any, target: Any) -> None:
        """Strict mode only accepts values whose JSON type matches."""
        with pytest.raises(CoercionError):
            coerce(value, target, strict=True)

    def test_strict_accepts_whole_floats_for_int(self) -> None:
        """JSON numbers without a fractional part are integers."""
        assert coerce(4.0, int, strict=True) == 4
        assert coerce([1, 2], list[int], strict=True) == [1, 2]

    def test_strict_rejects_non_finite_numbers(self) -> None:
        """Infinity and NaN never become integers."""
        with pytest.raises(CoercionError, match="cannot convert inf to int"):
            coerce(float("inf"), int, strict=True)

    def test_strict_accepts_json_strings_for_dates(self) -> None:
        """Dates, UUIDs and enums arrive as JSON strings."""
        assert coerce("2024-01-02", date, strict=True) == date(2024, 1, 2)
        assert coerce("user", Role, strict=True) is Role.USER
        assert coerce(["admin"], list[Role], strict=True) == [Role.ADMIN]

    def test_union_error_names_every_arm(self) -> None:
        """Union failures list the arms rather than the union type."""
        with pytest.raises(CoercionError) as exc_info:
            coerce("zzz", int | Priority)

        assert exc_info.value.message == "cannot convert 'zzz' to int or Priority"
        assert exc_info.value.target == "int or Priority"


@pytest.mark.unit
class TestTypeHelpers:
    """Test the annotation helpers used across the binding layer."""

    @pytest.mark.parametrize(
        ("annotation", "expected"),
        [
            (int, 0),
            (str, ""),
            (bool, False),
            (float, 0.0),
            (Decimal, Decimal(0)),
            (list[int], []),
            (set[str], set()),
            (dict[str, int], {}),
            (int | None, None),
            (Role, None),
            (User, None),
            (Any, None),
        ],
    )
    def test_zero_value(self, annotation: Any, expected: Any) -> None:
        """Fresh records hold the zero value of each field type."""
        assert zero_value(annotation) == expected

    def test_unwrap_optional(self) -> None:
        """Optional unions are split into the inner type and a flag."""
        assert unwrap_optional(int | None) == (int, True)
        assert unwrap_optional(int) == (int, False)

    def test_sequence_item_type(self) -> None:
        """List-like annotations report their element type."""
        assert sequence_item_type(list[int]) is int
        assert sequence_item_type(list[User] | None) is User
        assert sequence_item_type(list) is Any
        assert sequence_item_type(int) is None

    @pytest.mark.parametrize(
        ("schema", "expected"),
        [
            (User, (User, False)),
            (list[User], (User, True)),
            (User | None, (User, False)),
            (int, (None, False)),
            (list[int], (None, False)),
            (None, (None, False)),
        ],
    )
    def test_schema_model(self, schema: Any, expected: tuple[Any, bool]) -> None:
        """Declared schemas resolve to their record type and list flag."""
        assert schema_model(schema) == expected

    def test_type_name(self) -> None:
        """Types are named by their ``__name__``; unions by their arms."""
        assert type_name(int) == "int"
        assert type_name(User) == "User"
        assert type_name(int | Role) == "int or Role"
        assert type_name(list[int]) == "list[int]"
