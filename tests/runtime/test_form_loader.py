"""
Unit tests for form document loading.
"""

import json
import logging

import pytest

from formrules.runtime.form_loader import (
    FormDocumentError,
    load_data,
    load_form,
    parse_form,
)


class TestParseForm:
    """Test the accepted document shapes and component flattening."""

    def test_export_document(self, address_form):
        form = parse_form(address_form)

        assert form.version == "1.0"
        assert form.metadata == {"name": "Address"}
        assert [f.id for f in form.fields] == ["country", "state", "address-group", "city"]
        assert form.get("city").parent_id == "address-group"
        assert form.get("country").required is True
        assert form.get("country").dependencies is None
        assert form.bound_fields() == {"country", "state", "city"}
        assert [f.id for f in form.with_dependencies()] == ["state", "city"]

    def test_builder_document_with_wrapped_props(self):
        document = {
            "form": {
                "children": [
                    {
                        "key": "email",
                        "type": "Input",
                        "props": {
                            "dataKey": {"value": "contact.email"},
                            "label": {"value": "Email"},
                            "required": {"value": True},
                            "dependencies": {
                                "value": {"visible": {"type": "expression", "expression": "true"}}
                            },
                        },
                    }
                ]
            }
        }
        form = parse_form(document)
        field = form.get("email")

        assert field.data_key == "contact.email"
        assert field.label == "Email"
        assert field.required is True
        assert field.has_dependencies
        assert "dependencies" not in field.props

    def test_bare_list_and_generated_ids(self):
        form = parse_form([
            {"type": "Container", "children": [{"type": "Input"}, {"type": "Input"}]},
        ])
        assert [f.id for f in form.fields] == ["root[0]", "root[0][0]", "root[0][1]"]
        assert form.version is None

    def test_components_shape(self):
        form = parse_form({"components": [{"id": "a", "props": {"dataKey": "a"}}]})
        assert form.get("a").type == "unknown"
        assert form.get("a").reference == "a"

    def test_invalid_dependencies_are_ignored(self, caplog):
        document = {"structure": [
            {"id": "a", "props": {"dependencies": {"visible": {"type": "script"}}}},
            {"id": "b", "props": {"dependencies": "not an object"}},
        ]}
        with caplog.at_level(logging.WARNING):
            form = parse_form(document)

        assert form.get("a").dependencies.is_empty()
        assert form.get("a").raw_dependencies == {"visible": {"type": "script"}}
        assert form.get("b").dependencies is None
        assert "Ignoring invalid rule 'visible' of 'a'" in caplog.text
        assert "Ignoring dependencies of 'b'" in caplog.text
        assert [f.id for f in form.with_dependencies()] == []
        assert [f.id for f in form.with_dependencies(include_invalid=True)] == ["a"]

    def test_invalid_slot_keeps_siblings(self, caplog):
        document = {"structure": [{
            "id": "a",
            "props": {"dependencies": {
                "visible": {"type": "fieldValue", "field": "x", "operator": "notEmpty"},
                "disabled": {"type": "expresion", "expression": "true"},
                "filterBy": [
                    {"sourceField": "x", "targetParam": "x_id"},
                    {"sourceField": "y"},
                ],
            }},
        }]}
        with caplog.at_level(logging.WARNING):
            field = parse_form(document).get("a")

        assert field.dependencies.visible.field == "x"
        assert field.dependencies.disabled is None
        assert [f.target_param for f in field.dependencies.filters()] == ["x_id"]
        assert field.raw_dependencies["disabled"] == {"type": "expresion", "expression": "true"}
        assert "Ignoring invalid rule 'disabled' of 'a'" in caplog.text
        assert "Ignoring invalid rule 'filterBy[1]' of 'a'" in caplog.text

    def test_valid_dependencies_keep_no_raw_copy(self, address_form):
        assert parse_form(address_form).get("state").raw_dependencies is None

    def test_value_rule_is_not_unwrapped(self):
        form = parse_form([{
            "id": "total",
            "props": {"dependencies": {"value": {"type": "expression", "expression": "data.qty * 2"}}},
        }])
        deps = form.get("total").dependencies
        assert deps.value.expression == "data.qty * 2"
        assert deps.visible is None

    def test_wrapped_bag_holding_value_rule(self):
        form = parse_form([{
            "id": "total",
            "props": {"dependencies": {
                "value": {"value": {"type": "expression", "expression": "data.qty * 2"}}
            }},
        }])
        assert form.get("total").dependencies.value.expression == "data.qty * 2"

    def test_non_boolean_flags_are_false(self):
        form = parse_form([{"id": "a", "props": {"disabled": "yes", "required": 1}}])
        assert form.get("a").disabled is False
        assert form.get("a").required is False

    def test_static_defaults(self):
        form = parse_form([{"id": "a", "props": {"label": "A", "options": ["x"], "disabled": True}}])
        assert form.get("a").static_defaults() == {
            "disabled": True,
            "required": False,
            "label": "A",
            "placeholder": None,
            "options": ["x"],
        }

    def test_unknown_component(self, address_form):
        assert parse_form(address_form).get("nope") is None

    @pytest.mark.parametrize("document", ["text", 42, {"fields": []}])
    def test_missing_component_list(self, document):
        with pytest.raises(FormDocumentError):
            parse_form(document)


class TestLoadFiles:

    def test_load_form(self, address_form_file):
        assert len(load_form(address_form_file).fields) == 4

    def test_missing_form_file(self, tmp_path):
        with pytest.raises(FormDocumentError, match="not found"):
            load_form(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "form.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(FormDocumentError, match="Invalid JSON"):
            load_form(path)

    def test_load_data(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"country": "US"}), encoding="utf-8")
        assert load_data(path) == {"country": "US"}

    def test_data_must_be_object(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(FormDocumentError, match="JSON object"):
            load_data(path)
