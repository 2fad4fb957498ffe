"""
formrules - dependency and computed-property evaluation for form definitions.

Evaluates the declarative rules attached to form fields (visibility,
enablement, required-ness, computed labels/values/options and cascading
filter parameters) against a form-data snapshot, with every rule body
executed fail-safe in a bounded expression sandbox.
"""

__version__ = "0.1.0"

from formrules.config.settings import EngineConfig, load_engine_config
from formrules.expressions.functions import FunctionRegistry, default_registry
from formrules.runtime.evaluator import DependencyEvaluator, IDependencyEvaluator
from formrules.runtime.extractor import extract_dependent_fields
from formrules.runtime.form_loader import FormDocument, FormDocumentError, load_form, parse_form
from formrules.runtime.form_runtime import FormRuntime, resolve_field_state
from formrules.runtime.reset import should_reset_field
from formrules.schemas.dependencies import (
    ComponentDependencies,
    EffectiveState,
    EvaluationContext,
)

__all__ = [
    "ComponentDependencies",
    "DependencyEvaluator",
    "EffectiveState",
    "EngineConfig",
    "EvaluationContext",
    "FormDocument",
    "FormDocumentError",
    "FormRuntime",
    "FunctionRegistry",
    "IDependencyEvaluator",
    "default_registry",
    "extract_dependent_fields",
    "load_engine_config",
    "load_form",
    "parse_form",
    "resolve_field_state",
    "should_reset_field",
]
