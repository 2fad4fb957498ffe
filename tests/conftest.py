"""
Pytest fixtures and configuration for formrules tests.
Provides common test utilities and shared fixtures.
"""

import json

import pytest

from formrules.config.settings import EngineConfig
from formrules.expressions.functions import FunctionRegistry
from formrules.runtime.evaluator import DependencyEvaluator
from formrules.runtime.observer import CollectingFailureObserver
from formrules.runtime.sandbox import RuleSandbox


@pytest.fixture
def observer():
    """Failure observer that records every contained failure."""
    return CollectingFailureObserver()


@pytest.fixture
def registry():
    """Empty function registry, isolated from the process-wide default."""
    return FunctionRegistry()


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def sandbox(config, registry, observer):
    return RuleSandbox(config=config, registry=registry, observer=observer)


@pytest.fixture
def evaluator(sandbox):
    return DependencyEvaluator(sandbox=sandbox)


@pytest.fixture
def address_form():
    """Country/state/city cascade with computed label and a total."""
    return {
        "version": "1.0",
        "metadata": {"name": "Address"},
        "structure": [
            {
                "id": "country",
                "type": "Select",
                "props": {"dataKey": "country", "label": "Country", "required": True},
            },
            {
                "id": "state",
                "type": "Select",
                "props": {
                    "dataKey": "state",
                    "label": "State",
                    "dependencies": {
                        "visible": {
                            "type": "fieldValue",
                            "field": "country",
                            "operator": "equals",
                            "value": "US",
                        },
                        "filterBy": {"sourceField": "country", "targetParam": "country_id"},
                        "resetOn": ["country"],
                    },
                },
            },
            {
                "id": "address-group",
                "type": "Container",
                "props": {},
                "children": [
                    {
                        "id": "city",
                        "type": "Select",
                        "props": {
                            "dataKey": "city",
                            "label": "City",
                            "dependencies": {
                                "enabled": {
                                    "type": "fieldValue",
                                    "field": "state",
                                    "operator": "notEmpty",
                                },
                                "label": {
                                    "type": "template",
                                    "template": "City in {data.state}",
                                },
                                "resetOn": ["state"],
                            },
                        },
                    },
                ],
            },
        ],
    }


@pytest.fixture
def address_form_file(tmp_path, address_form):
    """Address form written to a JSON file."""
    path = tmp_path / "form.json"
    path.write_text(json.dumps(address_form), encoding="utf-8")
    return path
