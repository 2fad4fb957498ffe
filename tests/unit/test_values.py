"""
Unit tests for the JavaScript-compatible value semantics.
"""

import math

import pytest

from formrules.utils.values import loose_equals, stringify, strict_equals, to_number, truthy


class TestToNumber:
    """Test numeric coercion used by gt/gte/lt/lte."""

    def test_numbers_pass_through(self):
        assert to_number(5) == 5.0
        assert to_number(2.5) == 2.5

    def test_booleans(self):
        assert to_number(True) == 1.0
        assert to_number(False) == 0.0

    def test_numeric_strings(self):
        assert to_number(" 42 ") == 42.0
        assert to_number("1e3") == 1000.0

    @pytest.mark.parametrize("value", [None, "", "  ", "abc", [1], {"a": 1}])
    def test_non_numeric_is_nan(self, value):
        assert math.isnan(to_number(value))


class TestStrictEquals:
    """Test type-aware equality."""

    def test_same_strings(self):
        assert strict_equals("A", "A")
        assert not strict_equals("A", "B")

    def test_int_and_float(self):
        assert strict_equals(1, 1.0)

    def test_no_cross_type_coercion(self):
        assert not strict_equals(1, "1")
        assert not strict_equals(1, True)
        assert not strict_equals(0, None)
        assert not strict_equals("", None)

    def test_none(self):
        assert strict_equals(None, None)

    def test_nan_is_never_equal(self):
        assert not strict_equals(float("nan"), float("nan"))

    def test_lists_compare_structurally(self):
        assert strict_equals([1, 2], [1, 2])
        assert strict_equals([1, 2], (1, 2))
        assert not strict_equals([1, 2], [2, 1])


class TestLooseEquals:

    def test_numeric_coercion(self):
        assert loose_equals(1, "1")
        assert loose_equals(True, 1)

    def test_strings_are_not_coerced(self):
        assert not loose_equals("1.0", "1")

    def test_null_only_equals_null(self):
        assert loose_equals(None, None)
        assert not loose_equals(None, 0)


class TestTruthy:
    """Test JavaScript truthiness."""

    @pytest.mark.parametrize("value", [None, False, 0, 0.0, "", float("nan")])
    def test_falsy(self, value):
        assert truthy(value) is False

    @pytest.mark.parametrize("value", [True, 1, -1, "0", "false", [], {}])
    def test_truthy(self, value):
        assert truthy(value) is True


class TestStringify:
    """Test display rendering used by templates."""

    def test_none_is_empty(self):
        assert stringify(None) == ""

    def test_booleans(self):
        assert stringify(True) == "true"
        assert stringify(False) == "false"

    def test_integral_float(self):
        assert stringify(3.0) == "3"
        assert stringify(2.5) == "2.5"

    def test_special_floats(self):
        assert stringify(float("nan")) == "NaN"
        assert stringify(float("inf")) == "Infinity"

    def test_list_is_comma_joined(self):
        assert stringify(["a", 1, None]) == "a,1,"

    def test_dict_as_json(self):
        assert stringify({"a": 1}) == '{"a": 1}'
