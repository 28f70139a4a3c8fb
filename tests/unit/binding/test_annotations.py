"""Unit tests for the field annotation language and record plans."""

from typing import Annotated

import pytest
from pydantic import BaseModel, Field

from autostar.binding.annotations import (
    Binding,
    Embed,
    Source,
    Tag,
    field_tag,
    parse_binding,
    record_plan,
    to_camel_case,
)
from autostar.core.exceptions import RegistrationError


class Pagination(BaseModel):
    page: Annotated[int, Tag(bind="query:page,default:1")] = 0
    limit: Annotated[int, Tag(bind="query:limit,default:20", validate="max=100")] = 0


class ListUsers(BaseModel):
    org_id: Annotated[int, Tag(bind="path:org_id,required")] = 0
    pagination: Annotated[Pagination, Embed()] = Field(default_factory=Pagination)
    search: Annotated[str, Tag(bind="query", validate="omitempty,min=2")] = ""


class LoginRequest(BaseModel):
    email: Annotated[
        str,
        Tag(json="email", validate="required,email", description="User email"),
    ] = ""
    secret: Annotated[str, Tag(json="-")] = ""
    nickname: str = ""
    display_name: str = Field(default="", alias="displayName", examples=["Ann"])


class BrokenDefault(BaseModel):
    count: Annotated[int, Tag(bind="query:count,default:abc")] = 0


@pytest.mark.unit
class TestParseBinding:
    """Test parsing of ``source:key[,required][,default:literal]`` annotations."""

    @pytest.mark.parametrize(
        ("spec", "expected"),
        [
            ("path:user_id,required", Binding(Source.PATH, "user_id", True, None)),
            ("query:page,default:1", Binding(Source.QUERY, "page", False, "1")),
            ("header:X-API-Key", Binding(Source.HEADER, "X-API-Key")),
            ("cookie:session", Binding(Source.COOKIE, "session")),
            ("body:email, required", Binding(Source.BODY, "email", True, None)),
            ("form:file", Binding(Source.FORM, "file")),
            ("QUERY", Binding(Source.QUERY, "fallback")),
            ("auto:", Binding(Source.AUTO, "fallback")),
        ],
    )
    def test_parses_binding(self, spec: str, expected: Binding) -> None:
        """Each recognised form yields the expected binding."""
        assert parse_binding(spec, "fallback") == expected

    def test_unknown_source_is_rejected(self) -> None:
        """An unknown source is a registration error."""
        with pytest.raises(RegistrationError, match="unknown binding source 'bogus'"):
            parse_binding("bogus:x", "x")


@pytest.mark.unit
class TestToCamelCase:
    """Test derivation of response names."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("", ""),
            ("ID", "id"),
            ("Id", "id"),
            ("Name", "name"),
            ("UserID", "userID"),
            ("IDNumber", "idNumber"),
            ("APIKey", "apiKey"),
            ("HTTPServer", "httpServer"),
            ("URL", "url"),
            ("first_name", "first_name"),
        ],
    )
    def test_to_camel_case(self, name: str, expected: str) -> None:
        """Short names, leading acronyms and snake_case are handled."""
        assert to_camel_case(name) == expected


@pytest.mark.unit
class TestRecordPlan:
    """Test building and caching of record plans."""

    def test_plan_is_cached(self) -> None:
        """The same plan object is returned for repeated lookups."""
        assert record_plan(ListUsers) is record_plan(ListUsers)

    def test_embedded_fields_flatten_in_declaration_order(self) -> None:
        """Embedded record fields contribute at the outer level, in place."""
        plan = record_plan(ListUsers)

        assert [field.name for field in plan.fields] == [
            "org_id",
            "pagination",
            "search",
        ]
        assert [field.name for field in plan.leaves()] == [
            "org_id",
            "page",
            "limit",
            "search",
        ]
        assert plan.fields[1].embedded is record_plan(Pagination)

    def test_bound_field_plan(self) -> None:
        """A bind annotation sets source, key and required."""
        org_id = record_plan(ListUsers).fields[0]

        assert org_id.source is Source.PATH
        assert org_id.key == "org_id"
        assert org_id.required is True
        assert org_id.bound is True

    def test_default_is_coerced_to_field_type(self) -> None:
        """Default literals are converted once, when the plan is built."""
        page, limit = record_plan(Pagination).fields

        assert page.has_default is True
        assert page.default == 1
        assert limit.default == 20
        assert limit.rules == "max=100"

    def test_unconvertible_default_is_kept_raw(self) -> None:
        """A default that does not convert is kept for the extractor to report."""
        count = record_plan(BrokenDefault).fields[0]

        assert count.default == "abc"

    def test_key_falls_back_to_field_name(self) -> None:
        """A bind annotation naming only the source uses the field name."""
        search = record_plan(ListUsers).fields[2]

        assert search.source is Source.QUERY
        assert search.key == "search"
        assert search.required is False

    def test_unbound_fields_default_to_auto(self) -> None:
        """Fields without a bind annotation read from ``auto`` under their JSON name."""
        email, secret, nickname, display_name = record_plan(LoginRequest).fields

        assert email.source is Source.AUTO
        assert email.key == "email"
        assert email.required is True
        assert email.bound is False
        assert email.description == "User email"
        assert secret.excluded is True
        assert secret.wire_name == "secret"
        assert nickname.key == "nickname"
        assert nickname.response_name == "nickname"
        assert display_name.json_name == "displayName"
        assert display_name.key == "displayName"
        assert display_name.example == "Ann"

    def test_embed_on_non_record_is_rejected(self) -> None:
        """Only record-typed fields can be embedded."""

        class BadEmbed(BaseModel):
            value: Annotated[int, Embed()] = 0

        with pytest.raises(RegistrationError, match="marked Embed"):
            record_plan(BadEmbed)

    def test_non_record_is_rejected(self) -> None:
        """Plans are only built for pydantic models."""
        with pytest.raises(RegistrationError, match="is not a record type"):
            record_plan(dict)  # type: ignore[arg-type]


@pytest.mark.unit
def test_field_tag_defaults_to_empty_tag() -> None:
    """A field without a Tag gets an empty one."""
    assert field_tag(LoginRequest.model_fields["nickname"]) == Tag()
