"""Unit tests for the declarative parameter validation framework."""

from __future__ import annotations

from discord_mcp.core.errors.domain import ErrorKind
from discord_mcp.tools.param_schema import (
    AtLeastOne,
    Bool,
    Dict_,
    List_,
    Num,
    Snowflake,
    Str,
    validate_payload,
)

SNOWFLAKE = "123456789012345678"


def _assert_error(error, *, field):
    """Assert *error* is an invalid_input error naming *field*."""
    assert error is not None, "Expected a validation error, got None"
    assert error.kind is ErrorKind.INVALID_INPUT
    assert error.code == "INVALID_INPUT"
    assert error.details["field"] == field
    assert field in error.message


# ===================================================================
# Str
# ===================================================================


class TestStr:
    def test_required_present(self):
        assert validate_payload({"name": "hello"}, {"name": Str(required=True)}) is None

    def test_required_missing(self):
        _assert_error(validate_payload({}, {"name": Str(required=True)}), field="name")

    def test_empty_rejected_by_default(self):
        _assert_error(validate_payload({"name": "   "}, {"name": Str()}), field="name")

    def test_allow_empty(self):
        payload = {"topic": "  "}
        assert validate_payload(payload, {"topic": Str(allow_empty=True)}) is None
        assert payload["topic"] == ""

    def test_wrong_type(self):
        _assert_error(validate_payload({"name": 42}, {"name": Str()}), field="name")

    def test_optional_absent(self):
        assert validate_payload({}, {"name": Str()}) is None

    def test_strip_normalisation(self):
        payload = {"name": "  hello  "}
        assert validate_payload(payload, {"name": Str()}) is None
        assert payload["name"] == "hello"

    def test_strip_disabled(self):
        payload = {"content": "  indented"}
        assert validate_payload(payload, {"content": Str(strip=False)}) is None
        assert payload["content"] == "  indented"

    def test_max_length(self):
        schema = {"content": Str(max_length=5)}
        assert validate_payload({"content": "hello"}, schema) is None
        _assert_error(validate_payload({"content": "toolong"}, schema), field="content")

    def test_choices(self):
        schema = {"type": Str(choices=frozenset({"text", "voice"}))}
        assert validate_payload({"type": " voice "}, schema) is None
        error = validate_payload({"type": "stage"}, schema)
        _assert_error(error, field="type")
        assert "text, voice" in error.message

    def test_custom_remediation(self):
        error = validate_payload({}, {"x": Str(required=True, remediation="Pass x")})
        assert error.resolution == "Pass x"
        assert error.to_response().data["remediation"] == "Pass x"


# ===================================================================
# Snowflake
# ===================================================================


class TestSnowflake:
    def test_valid(self):
        payload = {"channel_id": f" {SNOWFLAKE} "}
        assert validate_payload(payload, {"channel_id": Snowflake(required=True)}) is None
        assert payload["channel_id"] == SNOWFLAKE

    def test_twenty_digits(self):
        assert validate_payload({"id": "1" * 20}, {"id": Snowflake()}) is None

    def test_too_short(self):
        _assert_error(validate_payload({"id": "12345"}, {"id": Snowflake()}), field="id")

    def test_not_digits(self):
        _assert_error(validate_payload({"id": "general"}, {"id": Snowflake()}), field="id")

    def test_integer_rejected(self):
        _assert_error(validate_payload({"id": int(SNOWFLAKE)}, {"id": Snowflake()}), field="id")


# ===================================================================
# Num
# ===================================================================


class TestNum:
    def test_default_applied(self):
        payload = {}
        assert validate_payload(payload, {"limit": Num(integer_only=True, default=50)}) is None
        assert payload["limit"] == 50

    def test_range(self):
        schema = {"limit": Num(integer_only=True, min_val=1, max_val=100)}
        assert validate_payload({"limit": 100}, schema) is None
        _assert_error(validate_payload({"limit": 0}, schema), field="limit")
        _assert_error(validate_payload({"limit": 101}, schema), field="limit")

    def test_bool_is_not_int(self):
        _assert_error(validate_payload({"limit": True}, {"limit": Num()}), field="limit")

    def test_integral_float_coerced(self):
        payload = {"limit": 10.0}
        assert validate_payload(payload, {"limit": Num(integer_only=True)}) is None
        assert payload["limit"] == 10
        assert isinstance(payload["limit"], int)

    def test_fractional_float_rejected(self):
        _assert_error(validate_payload({"limit": 2.5}, {"limit": Num(integer_only=True)}), field="limit")

    def test_choices(self):
        schema = {"days": Num(integer_only=True, choices=frozenset({60, 1440}))}
        assert validate_payload({"days": 60}, schema) is None
        _assert_error(validate_payload({"days": 30}, schema), field="days")


# ===================================================================
# Bool / List_ / Dict_
# ===================================================================


class TestBool:
    def test_default(self):
        payload = {}
        assert validate_payload(payload, {"private": Bool(default=False)}) is None
        assert payload["private"] is False

    def test_string_rejected(self):
        _assert_error(validate_payload({"private": "yes"}, {"private": Bool()}), field="private")


class TestList:
    def test_items_validated(self):
        schema = {"ids": List_(item=Snowflake())}
        error = validate_payload({"ids": [SNOWFLAKE, "nope"]}, schema)
        _assert_error(error, field="ids[1]")

    def test_bounds(self):
        schema = {"ids": List_(min_items=1, max_items=2)}
        _assert_error(validate_payload({"ids": []}, schema), field="ids")
        _assert_error(validate_payload({"ids": [1, 2, 3]}, schema), field="ids")

    def test_tuple_normalised_to_list(self):
        payload = {"names": (" a ", "b")}
        assert validate_payload(payload, {"names": List_(item=Str())}) is None
        assert payload["names"] == ["a", "b"]


class TestDict:
    def test_not_a_dict(self):
        _assert_error(validate_payload({"embed": []}, {"embed": Dict_()}), field="embed")


# ===================================================================
# Cross-field rules
# ===================================================================


class TestAtLeastOne:
    SCHEMA = {"content": Str(), "embeds": List_()}
    RULES = [AtLeastOne(("content", "embeds"))]

    def test_neither_present(self):
        error = validate_payload({}, self.SCHEMA, cross_field_rules=self.RULES)
        _assert_error(error, field="content")
        assert "content, embeds" in error.message

    def test_empty_list_counts_as_absent(self):
        error = validate_payload({"embeds": []}, self.SCHEMA, cross_field_rules=self.RULES)
        assert error is not None

    def test_one_present(self):
        assert validate_payload({"content": "hi"}, self.SCHEMA, cross_field_rules=self.RULES) is None

    def test_first_failing_field_wins(self):
        schema = {"a": Str(required=True), "b": Str(required=True)}
        _assert_error(validate_payload({}, schema), field="a")
