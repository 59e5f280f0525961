"""
Tests for fhir_mcp/elicitation/field_validator.py - answer coercion and constraint checks.
"""

import sys
from pathlib import Path

import pytest
from hypothesis import given, strategies as st

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fhir_mcp.elicitation.field_validator import (
    BOOLEAN_MESSAGE,
    FORMAT_MESSAGE,
    NUMBER_MESSAGE,
    REQUIRED_MESSAGE,
    format_bound,
    validate,
    validate_value,
)
from fhir_mcp.elicitation.schema_registry import DATE_PATTERN, field_for
from fhir_mcp.elicitation.types import ConstraintSet, Shape

REQUIRED = ConstraintSet(required=True)
OPTIONAL = ConstraintSet(required=False)


class TestEmptyInput:

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_required_field_rejects_empty(self, raw):
        result = validate_value(raw, Shape.STRING, REQUIRED)
        assert not result.valid
        assert result.kind == "required"
        assert result.messages == [REQUIRED_MESSAGE]

    def test_optional_field_accepts_empty(self):
        result = validate_value("", Shape.NUMBER, OPTIONAL)
        assert result.valid
        assert result.value == ""

    def test_empty_is_required_failure_for_every_shape(self):
        for shape in Shape:
            result = validate_value("", shape, REQUIRED)
            assert result.kind == "required", shape


class TestNumber:

    def test_integer(self):
        result = validate_value("42", Shape.NUMBER, REQUIRED)
        assert result.valid
        assert result.value == 42
        assert isinstance(result.value, int)

    def test_decimal(self):
        result = validate_value("3.5", Shape.NUMBER, REQUIRED)
        assert result.valid
        assert result.value == 3.5

    @pytest.mark.parametrize("raw", ["abc", "12abc", "nan", "inf", "1_0", "\u0662", "\uff11", "0x10"])
    def test_not_a_number(self, raw):
        result = validate_value(raw, Shape.NUMBER, REQUIRED)
        assert not result.valid
        assert result.kind == "type"
        assert result.messages == [NUMBER_MESSAGE]

    @pytest.mark.parametrize("raw,expected", [("1e2", 100), ("+7", 7), (" -0.5 ", -0.5), (".5", 0.5), ("5.", 5)])
    def test_plain_notation(self, raw, expected):
        result = validate_value(raw, Shape.NUMBER, REQUIRED)
        assert result.valid
        assert result.value == expected

    def test_below_minimum(self):
        result = validate_value("0", Shape.NUMBER, ConstraintSet(minimum=1, maximum=5))
        assert not result.valid
        assert result.kind == "range"
        assert result.messages == ["Value must be at least 1."]

    def test_above_maximum(self):
        result = validate_value("6", Shape.NUMBER, ConstraintSet(minimum=1, maximum=5))
        assert result.messages == ["Value must be at most 5."]

    def test_multiple_of(self):
        constraints = ConstraintSet(multiple_of=0.5)
        assert validate_value("1.5", Shape.NUMBER, constraints).valid
        result = validate_value("1.25", Shape.NUMBER, constraints)
        assert not result.valid
        assert result.messages == ["Value must be a multiple of 0.5."]

    @given(st.integers(min_value=-1000, max_value=1000))
    def test_range_check_matches_bounds(self, n):
        result = validate_value(str(n), Shape.NUMBER, ConstraintSet(minimum=-100, maximum=100))
        assert result.valid == (-100 <= n <= 100)


class TestBoolean:

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("Yes", True), ("1", True),
        ("false", False), ("NO", False), ("0", False),
    ])
    def test_tokens(self, raw, expected):
        result = validate_value(raw, Shape.BOOLEAN, REQUIRED)
        assert result.valid
        assert result.value is expected

    def test_rejects_other_text(self):
        result = validate_value("maybe", Shape.BOOLEAN, REQUIRED)
        assert not result.valid
        assert result.messages == [BOOLEAN_MESSAGE]


class TestArray:

    def test_json_array_takes_precedence(self):
        result = validate_value("[1, 2]", Shape.ARRAY, REQUIRED)
        assert result.value == [1, 2]

    def test_comma_separated(self):
        result = validate_value("a, b, ,c", Shape.ARRAY, REQUIRED)
        assert result.valid
        assert result.value == ["a", "b", "c"]

    def test_min_items(self):
        result = validate_value("a", Shape.ARRAY, ConstraintSet(min_length=2))
        assert not result.valid
        assert result.kind == "length"
        assert result.messages == ["Value must be at least 2 items."]

    def test_structured_answer_is_accepted(self):
        result = validate_value(["x", "y"], Shape.ARRAY, REQUIRED)
        assert result.valid
        assert result.value == ["x", "y"]


class TestObject:

    def test_json_object(self):
        result = validate_value('{"reference": "Patient/1"}', Shape.OBJECT, REQUIRED)
        assert result.value == {"reference": "Patient/1"}

    def test_free_text_is_wrapped(self):
        result = validate_value("blood pressure", Shape.OBJECT, REQUIRED)
        assert result.valid
        assert result.value == {"value": "blood pressure"}

    def test_json_non_object_is_wrapped(self):
        result = validate_value("[1]", Shape.OBJECT, REQUIRED)
        assert result.value == {"value": "[1]"}

    def test_dict_answer(self):
        result = validate_value({"a": 1}, Shape.OBJECT, REQUIRED)
        assert result.value == {"a": 1}


class TestString:

    def test_pattern_match(self):
        result = validate_value("1990-01-15", Shape.STRING, ConstraintSet(pattern=DATE_PATTERN))
        assert result.valid
        assert result.value == "1990-01-15"

    def test_pattern_mismatch(self):
        result = validate_value("15/01/1990", Shape.STRING, ConstraintSet(pattern=DATE_PATTERN))
        assert not result.valid
        assert result.kind == "format"
        assert result.messages == [FORMAT_MESSAGE]

    def test_enum(self):
        spec = field_for("Patient", "gender")
        result = validate("unknownx", spec)
        assert not result.valid
        assert result.messages == ["Value must be one of: male, female, other, unknown"]
        assert validate("female", spec).valid

    def test_length_bounds(self):
        constraints = ConstraintSet(min_length=3, max_length=5)
        assert validate_value("ab", Shape.STRING, constraints).messages == [
            "Value must be at least 3 characters long."
        ]
        assert validate_value("abcdef", Shape.STRING, constraints).messages == [
            "Value must be at most 5 characters long."
        ]

    def test_invalid_pattern_fails_instead_of_raising(self):
        result = validate_value("x", Shape.STRING, ConstraintSet(pattern="("))
        assert not result.valid
        assert result.kind == "format"


class TestNeverRaises:

    @given(st.text(), st.sampled_from(list(Shape)))
    def test_any_text_any_shape(self, raw, shape):
        result = validate_value(raw, shape, ConstraintSet(min_length=1, max_length=10, minimum=0, maximum=10))
        assert result.valid or result.failures


def test_format_bound():
    assert format_bound(1.0) == "1"
    assert format_bound(2.5) == "2.5"
    assert format_bound(3) == "3"
