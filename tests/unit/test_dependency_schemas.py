"""
Unit tests for the dependency rule models.
"""

import pytest
from pydantic import ValidationError

from formrules.schemas.dependencies import (
    ComponentDependencies,
    EffectiveState,
    EvaluationContext,
    ExpressionCondition,
    FieldValueCondition,
    FilterDependency,
    FunctionProperty,
    Operator,
    TemplateProperty,
    parse_condition,
    parse_dependencies,
    parse_dependencies_by_slot,
    parse_filters,
)


class TestConditionModels:
    """Test variant selection and lenient operator parsing."""

    def test_discriminated_on_type(self):
        assert isinstance(parse_condition({"type": "fieldValue", "field": "a"}), FieldValueCondition)
        assert isinstance(parse_condition({"type": "expression", "expression": "true"}), ExpressionCondition)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_condition({"type": "script", "source": "x"})

    def test_missing_operator_is_not_empty(self):
        condition = FieldValueCondition(field="a")
        assert condition.effective_operator == Operator.NOT_EMPTY

    def test_unknown_operator_falls_back(self):
        condition = parse_condition({"type": "fieldValue", "field": "a", "operator": "between"})
        assert condition.operator is None
        assert condition.effective_operator == Operator.NOT_EMPTY

    def test_json_logic_body_accepted(self):
        condition = parse_condition({"type": "expression", "expression": {"var": "data.a"}})
        assert condition.expression == {"var": "data.a"}


class TestComponentDependencies:
    """Test the aggregate rule bag."""

    def test_camel_case_aliases(self):
        deps = ComponentDependencies.model_validate({
            "label": {"type": "function", "fnSource": "makeLabel"},
            "filterBy": [{"sourceField": "country", "targetParam": "country_id"}],
            "resetOn": ["country"],
        })

        assert isinstance(deps.label, FunctionProperty)
        assert deps.label.fn_source == "makeLabel"
        assert deps.filters()[0].target_param == "country_id"
        assert deps.reset_on == ["country"]

    def test_single_filter_normalized_to_list(self):
        deps = ComponentDependencies.model_validate({
            "filterBy": {"sourceField": "a", "targetParam": "b"},
        })
        assert len(deps.filters()) == 1

    def test_slot_iteration_order(self):
        deps = ComponentDependencies.model_validate({
            "required": {"type": "fieldValue", "field": "a"},
            "disabled": {"type": "fieldValue", "field": "b"},
            "placeholder": {"type": "template", "template": "x"},
        })
        assert [slot for slot, _ in deps.conditions()] == ["disabled", "required"]
        assert [slot for slot, _ in deps.computed()] == ["placeholder"]

    def test_is_empty(self):
        assert ComponentDependencies().is_empty()
        assert ComponentDependencies.model_validate({"resetOn": None}).is_empty()
        assert not ComponentDependencies(reset_on=["a"]).is_empty()

    def test_round_trip_keeps_document_spelling(self):
        raw = {"value": {"type": "template", "template": "{data.a}"}, "resetOn": ["a"]}
        assert ComponentDependencies.model_validate(raw).to_dict() == raw

    def test_filter_requires_fields(self):
        with pytest.raises(ValidationError):
            parse_filters({"sourceField": "", "targetParam": "x"})


class TestParseBySlot:
    """Test slot-by-slot validation of raw rule bags."""

    def test_valid_bag(self):
        deps, errors = parse_dependencies_by_slot({
            "visible": {"type": "expression", "expression": "true"},
            "resetOn": ["a"],
        })
        assert errors == []
        assert isinstance(deps.visible, ExpressionCondition)
        assert deps.reset_on == ["a"]

    def test_bad_slot_is_dropped_alone(self):
        raw = {
            "visible": {"type": "fieldValue", "field": "a"},
            "disabled": {"type": "expresion"},
            "label": {"type": "template", "template": "{data.a}"},
        }
        deps, errors = parse_dependencies_by_slot(raw)

        assert [e.slot for e in errors] == ["disabled"]
        assert errors[0].raw == {"type": "expresion"}
        assert deps.disabled is None
        assert isinstance(deps.visible, FieldValueCondition)
        assert isinstance(deps.label, TemplateProperty)

    def test_filter_entries_checked_one_by_one(self):
        deps, errors = parse_dependencies_by_slot({
            "filterBy": [{"sourceField": "b"}, {"sourceField": "a", "targetParam": "a_id"}],
        })
        assert [e.slot for e in errors] == ["filterBy[0]"]
        assert [f.target_param for f in deps.filters()] == ["a_id"]

    def test_single_bad_filter(self):
        deps, errors = parse_dependencies_by_slot({"filterBy": {"targetParam": "x"}})
        assert [e.slot for e in errors] == ["filterBy"]
        assert deps.filters() == []

    def test_bad_reset_list(self):
        deps, errors = parse_dependencies_by_slot({"resetOn": "country"})
        assert [e.slot for e in errors] == ["resetOn"]
        assert deps.reset_on is None

    def test_non_object(self):
        deps, errors = parse_dependencies_by_slot("visible")
        assert deps.is_empty()
        assert errors[0].slot == "dependencies"

    def test_none_passes_through(self):
        assert parse_dependencies_by_slot(None) == (None, [])
        assert parse_dependencies(None) is None

    def test_lenient_parse_keeps_valid_slots(self):
        deps = parse_dependencies({"visible": {"type": "script"}, "resetOn": ["a"]})
        assert deps.visible is None
        assert deps.reset_on == ["a"]


class TestEvaluationContext:

    def test_root_defaults_to_data(self):
        ctx = EvaluationContext(data={"a": 1})
        assert ctx.bindings() == {"data": {"a": 1}, "parentData": {}, "rootData": {"a": 1}}

    def test_explicit_root_and_parent(self):
        ctx = EvaluationContext.model_validate({
            "data": {"a": 1},
            "parentData": {"p": 2},
            "rootData": {"r": 3},
        })
        assert ctx.bindings()["parentData"] == {"p": 2}
        assert ctx.effective_root == {"r": 3}

    def test_none_data_is_empty(self):
        assert EvaluationContext(data=None).data == {}


class TestEffectiveState:
    """Test that only produced slots are reported."""

    def test_only_set_slots_serialized(self):
        state = EffectiveState.model_validate({"enabled": False, "disabled": True})
        assert state.to_dict() == {"enabled": False, "disabled": True}
        assert state.has("disabled")
        assert not state.has("visible")

    def test_slot_set_to_none_is_kept(self):
        state = EffectiveState.model_validate({"label": None, "filterParams": {}})
        assert state.to_dict() == {"label": None, "filterParams": {}}
