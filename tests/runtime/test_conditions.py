"""
Unit tests for ConditionEvaluator - gate conditions against a data snapshot.
"""

import pytest

from formrules.expressions.errors import FailureKind
from formrules.runtime.conditions import ConditionEvaluator, compare_field_value
from formrules.schemas.dependencies import Operator


@pytest.fixture
def conditions(sandbox):
    return ConditionEvaluator(sandbox)


def field_value(field, operator, value=None):
    condition = {"type": "fieldValue", "field": field, "operator": operator}
    if value is not None:
        condition["value"] = value
    return condition


class TestFieldValueOperators:
    """Test exact operator semantics."""

    def test_not_empty_on_missing_field(self, conditions):
        """A missing field is empty."""
        assert conditions.evaluate(field_value("x", "notEmpty"), {"data": {}}) is False

    def test_equals(self, conditions):
        rule = field_value("status", "equals", "A")
        assert conditions.evaluate(rule, {"data": {"status": "A"}}) is True
        assert conditions.evaluate(rule, {"data": {"status": "B"}}) is False

    def test_equals_is_strict(self):
        assert compare_field_value("1", Operator.EQUALS, 1) is False
        assert compare_field_value(1, Operator.NOT_EQUALS, "1") is True

    def test_contains_sequence_and_text(self):
        assert compare_field_value(["a", "b"], Operator.CONTAINS, "b") is True
        assert compare_field_value("hello world", Operator.CONTAINS, "world") is True
        assert compare_field_value(42, Operator.CONTAINS, "4") is False
        assert compare_field_value(None, Operator.CONTAINS, "x") is False

    def test_not_contains_on_non_container(self):
        assert compare_field_value(42, Operator.NOT_CONTAINS, "4") is True
        assert compare_field_value(["a"], Operator.NOT_CONTAINS, "a") is False

    def test_numeric_comparisons_coerce(self):
        assert compare_field_value("10", Operator.GT, 9) is True
        assert compare_field_value(5, Operator.GTE, "5") is True
        assert compare_field_value(1, Operator.LT, 2) is True
        assert compare_field_value(2, Operator.LTE, 1) is False

    @pytest.mark.parametrize("operator", [Operator.GT, Operator.GTE, Operator.LT, Operator.LTE])
    def test_non_numeric_never_satisfies(self, operator):
        assert compare_field_value("abc", operator, 1) is False
        assert compare_field_value(None, operator, 0) is False
        assert compare_field_value("", operator, 0) is False

    def test_empty(self):
        assert compare_field_value("  ", Operator.EMPTY, None) is True
        assert compare_field_value(0, Operator.EMPTY, None) is False
        assert compare_field_value(False, Operator.NOT_EMPTY, None) is True

    def test_in_and_not_in(self):
        assert compare_field_value("CA", Operator.IN, ["CA", "NY"]) is True
        assert compare_field_value("TX", Operator.NOT_IN, ["CA", "NY"]) is True

    def test_in_with_non_sequence_value(self):
        assert compare_field_value("CA", Operator.IN, "CA") is False
        assert compare_field_value("CA", Operator.NOT_IN, "CA") is True

    def test_missing_operator_defaults_to_not_empty(self, conditions):
        rule = {"type": "fieldValue", "field": "a"}
        assert conditions.evaluate(rule, {"data": {"a": "x"}}) is True
        assert conditions.evaluate(rule, {"data": {}}) is False

    def test_nested_field_path(self, conditions):
        rule = field_value("address.country", "equals", "CH")
        assert conditions.evaluate(rule, {"data": {"address": {"country": "CH"}}}) is True


class TestExpressionConditions:
    """Test sandboxed expression and function conditions."""

    def test_expression(self, conditions):
        rule = {"type": "expression", "expression": "data.age >= 18 && data.country === 'US'"}
        assert conditions.evaluate(rule, {"data": {"age": 21, "country": "US"}}) is True

    def test_root_and_parent_bindings(self, conditions):
        rule = {"type": "expression", "expression": "rootData.plan === 'pro' && parentData.kind === 'row'"}
        context = {"data": {}, "rootData": {"plan": "pro"}, "parentData": {"kind": "row"}}
        assert conditions.evaluate(rule, context) is True

    def test_json_logic(self, conditions):
        rule = {"type": "expression", "expression": {"==": [{"var": "data.status"}, "A"]}}
        assert conditions.evaluate(rule, {"data": {"status": "A"}}) is True

    def test_failure_returns_default(self, conditions, observer):
        rule = {"type": "expression", "expression": "data.x.y.z.invalid((", "default": True}
        assert conditions.evaluate(rule, {"data": {}}) is True
        assert observer.failures[0].kind == FailureKind.SYNTAX_ERROR

    def test_failure_without_default_returns_none(self, conditions, observer):
        rule = {"type": "expression", "expression": "data.missing.deep"}
        assert conditions.evaluate(rule, {"data": {}}, slot="visible") is None
        assert observer.failures[0].slot == "visible"
        assert observer.failures[0].kind == FailureKind.TYPE_ERROR

    def test_registered_function(self, conditions, registry):
        registry.register("isAdult", lambda data, parent, root: (data.get("age") or 0) >= 18)
        rule = {"type": "function", "fnSource": "isAdult"}
        assert conditions.evaluate(rule, {"data": {"age": 30}}) is True

    def test_raising_function_returns_default(self, conditions, registry, observer):
        def broken(data, parent, root):
            raise KeyError("age")

        registry.register("broken", broken)
        rule = {"type": "function", "fnSource": "broken", "default": False}

        assert conditions.evaluate(rule, {"data": {}}) is False
        assert observer.failures[0].kind == FailureKind.CALLABLE_ERROR

    def test_inline_function_body(self, conditions):
        rule = {"type": "function", "fnSource": "return data.count > 2;"}
        assert conditions.evaluate(rule, {"data": {"count": 3}}) is True

    def test_no_condition(self, conditions):
        assert conditions.evaluate(None, {"data": {}}) is None
