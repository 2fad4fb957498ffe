"""
Unit tests for DependentFieldExtractor - static dependency sets.
"""

import pytest

from formrules.expressions.references import WILDCARD
from formrules.runtime.extractor import DependentFieldExtractor, scan_source


@pytest.fixture
def extractor(sandbox):
    return DependentFieldExtractor(sandbox)


class TestExtract:
    """Test the conservative-superset guarantee across rule kinds."""

    def test_expression_roots_are_included(self, extractor):
        deps = {"visible": {"type": "expression", "expression": "data.a === 1 && data.b.c === 2"}}
        fields = extractor.extract(deps)
        assert {"a", "b"} <= fields
        assert "b.c" in fields

    def test_field_value_conditions(self, extractor):
        deps = {
            "disabled": {"type": "fieldValue", "field": "status", "operator": "equals", "value": "X"},
            "required": {"type": "fieldValue", "field": "address.zip"},
        }
        assert extractor.extract(deps) == {"status", "address", "address.zip"}

    def test_template_placeholders(self, extractor):
        deps = {"label": {"type": "template", "template": "{data.first} {last}"}}
        assert extractor.extract(deps) == {"first", "last"}

    def test_reset_on_and_filters(self, extractor):
        deps = {
            "filterBy": [
                {"sourceField": "country", "targetParam": "c"},
                {"sourceField": "state", "targetParam": "s", "transform": "value + data.suffix"},
            ],
            "resetOn": ["region"],
        }
        assert extractor.extract(deps) == {"country", "state", "suffix", "region"}

    def test_json_logic_vars(self, extractor):
        deps = {
            "visible": {
                "type": "expression",
                "expression": {"and": [{"var": "data.a"}, {"var": "rootData.b.c"}, {"var": "parentData.x"}]},
            },
        }
        assert extractor.extract(deps) == {"a", "b", "b.c"}

    def test_json_logic_whole_data_is_wildcard(self, extractor):
        deps = {"visible": {"type": "expression", "expression": {"var": "data"}}}
        assert extractor.extract(deps) == {WILDCARD}

    def test_registered_function_declares_inputs(self, extractor, registry):
        registry.register("isAdult", lambda d, p, r: True, depends_on=["person.age"])
        deps = {"visible": {"type": "function", "fnSource": "isAdult"}}
        assert extractor.extract(deps) == {"person", "person.age"}

    def test_inline_function_body(self, extractor):
        deps = {"value": {"type": "function", "fnSource": "return data.qty * data.price;"}}
        assert extractor.extract(deps) == {"qty", "price"}

    def test_uncompilable_source_falls_back_to_scan(self, extractor):
        deps = {"visible": {"type": "expression", "expression": "data.a.b === (data.c"}}
        assert {"a", "c"} <= extractor.extract(deps)

    def test_overlong_chain_falls_back_to_scan(self, extractor):
        deps = {"value": {"type": "expression", "expression": "data.a" + " + 1" * 3000}}
        assert extractor.extract(deps) == {"a"}

    def test_invalid_slot_does_not_hide_siblings(self, extractor):
        deps = {
            "visible": {"type": "fieldValue", "field": "country"},
            "disabled": {"type": "expresion", "expression": "data.locked"},
            "filterBy": [{"sourceField": "region"}, {"sourceField": "state", "targetParam": "s"}],
        }
        assert extractor.extract(deps) == {"country", "state"}

    def test_no_dependencies(self, extractor):
        assert extractor.extract(None) == set()
        assert extractor.extract({}) == set()


class TestScanSource:

    def test_pattern_scan(self):
        assert scan_source("if (data.a) { return rootData.b.c }") == {"a", "b", "b.c"}

    def test_identifier_suffix_is_not_data(self):
        assert scan_source("metadata.a + mydata.b") == set()
