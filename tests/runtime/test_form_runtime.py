"""
Unit tests for FormRuntime - re-evaluation, resets and computed cascades.
"""

import logging

import pytest

from formrules.config.settings import EngineConfig
from formrules.runtime.form_loader import parse_form
from formrules.runtime.form_runtime import FormRuntime, resolve_field_state
from formrules.schemas.dependencies import EffectiveState


@pytest.fixture
def runtime(address_form, evaluator):
    form = parse_form(address_form)
    return FormRuntime(form, {"country": "US", "state": "CA", "city": "LA"}, evaluator=evaluator)


def _computed_form():
    return parse_form([
        {"id": "qty", "props": {"dataKey": "qty"}},
        {"id": "price", "props": {"dataKey": "price"}},
        {
            "id": "total",
            "props": {
                "dataKey": "total",
                "dependencies": {"value": {"type": "expression", "expression": "data.qty * data.price"}},
            },
        },
        {
            "id": "grand",
            "props": {
                "dataKey": "grand",
                "dependencies": {
                    "value": {"type": "expression", "expression": "data.total ? data.total + 1 : 0"},
                },
            },
        },
    ])


class TestInitialization:

    def test_initial_states(self, runtime):
        assert runtime.state("state").to_dict() == {
            "visible": True,
            "filterParams": {"country_id": "US"},
        }
        assert runtime.state("city").to_dict() == {"enabled": True, "label": "City in CA"}
        assert runtime.state("country").to_dict() == {}

    def test_dependent_fields(self, runtime):
        assert runtime.dependent_fields("state") == {"country"}
        assert runtime.dependent_fields("city") == {"state"}
        assert runtime.dependent_fields("country") == set()

    def test_input_data_is_copied(self, address_form, evaluator):
        data = {"country": "US"}
        runtime = FormRuntime(parse_form(address_form), data, evaluator=evaluator)
        runtime.set_value("country", "MX")
        assert data == {"country": "US"}

    def test_computed_values_written_on_load(self, evaluator):
        runtime = FormRuntime(_computed_form(), {"qty": 2, "price": 5}, evaluator=evaluator)
        assert runtime.data["total"] == 10
        assert runtime.data["grand"] == 11
        assert runtime.last_update.converged is True
        assert "total" in runtime.last_update.computed_fields


class TestUpdates:
    """Test change propagation."""

    def test_affected_by(self, runtime):
        assert [f.id for f in runtime.affected_by(["country"])] == ["state"]
        assert [f.id for f in runtime.affected_by(["state.name"])] == ["city"]
        assert runtime.affected_by(["city"]) == []

    def test_reset_cascade(self, runtime):
        previous = runtime.data
        result = runtime.set_value("country", "CA")

        assert result.data == {"country": "CA", "state": None, "city": None}
        assert result.reset_fields == ["state", "city"]
        assert result.changed_fields == ["country", "state", "city"]
        assert result.evaluated == ["state", "city"]
        assert result.converged is True
        assert previous == {"country": "US", "state": "CA", "city": "LA"}

        assert runtime.state("state").visible is False
        assert runtime.state("city").to_dict() == {
            "enabled": False,
            "disabled": True,
            "label": "City in ",
        }

    def test_empty_values_are_not_reset(self, address_form, evaluator):
        runtime = FormRuntime(parse_form(address_form), {"country": "US"}, evaluator=evaluator)
        result = runtime.set_value("country", "CA")
        assert result.reset_fields == []

    def test_unchanged_value_is_a_no_op(self, runtime):
        result = runtime.set_value("country", "US")
        assert result.changed_fields == []
        assert result.passes == 0

    def test_computed_cascade(self, evaluator):
        runtime = FormRuntime(_computed_form(), {"qty": 2, "price": 5}, evaluator=evaluator)
        result = runtime.update({"qty": 3})

        assert runtime.data["total"] == 15
        assert runtime.data["grand"] == 16
        assert result.computed_fields == ["total", "grand"]
        assert result.changed_fields == ["qty", "total", "grand"]

    def test_cascade_limit(self, evaluator, caplog):
        form = parse_form([
            {
                "id": "n",
                "props": {
                    "dataKey": "n",
                    "dependencies": {"value": {"type": "expression", "expression": "data.n + 1"}},
                },
            }
        ])
        with caplog.at_level(logging.WARNING):
            runtime = FormRuntime(form, {"n": 0}, evaluator=evaluator, config=EngineConfig(max_cascade_passes=3))

        assert runtime.last_update.converged is False
        assert runtime.last_update.passes == 3
        assert runtime.data["n"] == 4
        assert "Cascade did not settle" in caplog.text

    def test_reset_matches_changed_key_exactly(self, evaluator):
        form = parse_form([
            {"id": "address", "props": {"dataKey": "address"}},
            {
                "id": "zip",
                "props": {"dataKey": "zip", "dependencies": {"resetOn": ["address"]}},
            },
            {
                "id": "district",
                "props": {"dataKey": "district", "dependencies": {"resetOn": ["address.city"]}},
            },
        ])
        runtime = FormRuntime(
            form,
            {"address": {"city": "Lima"}, "zip": "15001", "district": "Centro"},
            evaluator=evaluator,
        )

        result = runtime.set_value("address.city", "Cusco")
        assert result.reset_fields == ["district"]
        assert runtime.data["zip"] == "15001"

        result = runtime.set_value("address", {"city": "Arequipa"})
        assert result.reset_fields == ["zip"]
        assert runtime.data["zip"] is None

    def test_wrapped_value_rule_is_computed(self, evaluator):
        form = parse_form([
            {"id": "qty", "props": {"dataKey": {"value": "qty"}}},
            {
                "id": "total",
                "props": {
                    "dataKey": {"value": "total"},
                    "dependencies": {"value": {"type": "expression", "expression": "data.qty * 2"}},
                },
            },
        ])
        runtime = FormRuntime(form, {"qty": 4}, evaluator=evaluator)
        assert runtime.data["total"] == 8

        runtime.set_value("qty", 5)
        assert runtime.data["total"] == 10



class TestResolvedState:

    def test_rule_results_over_static_props(self, runtime):
        runtime.set_value("state", "")
        resolved = runtime.resolved_state("city")

        assert resolved.disabled is True
        assert resolved.visible is True
        assert resolved.label == "City in "
        assert resolved.value is None

    def test_static_props_without_rules(self, runtime):
        resolved = runtime.resolved_state("country")
        assert resolved.required is True
        assert resolved.label == "Country"
        assert resolved.value == "US"
        assert resolved.disabled is False

    def test_unknown_component(self, runtime):
        with pytest.raises(KeyError):
            runtime.resolved_state("nope")


class TestResolveFieldState:

    def test_explicit_disabled_wins_over_enabled(self):
        state = EffectiveState(enabled=True, disabled=True)
        assert resolve_field_state(state).disabled is True

    def test_enabled_decides_when_disabled_missing(self):
        assert resolve_field_state(EffectiveState(enabled=False)).disabled is True
        assert resolve_field_state(EffectiveState(enabled=True), {"disabled": True}).disabled is False

    def test_failed_rule_falls_back_to_default(self):
        state = EffectiveState(visible=None, label=None)
        resolved = resolve_field_state(state, {"label": "Static"})
        assert resolved.visible is True
        assert resolved.label == "Static"

    def test_no_state(self):
        assert resolve_field_state(None).to_dict() == {
            "visible": True,
            "disabled": False,
            "required": False,
            "label": None,
            "placeholder": None,
            "value": None,
            "options": None,
            "filter_params": {},
        }
