"""
Runtime evaluation components for form dependency rules.

Leaves first:
1. RuleSandbox (sandbox) - fail-safe execution of rule bodies
2. ConditionEvaluator / ComputedPropertyEvaluator / TemplateEngine /
   FilterParameterBuilder - one rule variant each
3. DependentFieldExtractor (extractor) - static dependency sets
4. DependencyEvaluator (evaluator) - one EffectiveState per component
5. FormRuntime (form_runtime) - reference host with resets and cascades

Architecture follows SOLID principles:
- SRP: Each evaluator handles one rule family
- DIP: Hosts depend on IDependencyEvaluator and FailureObserver abstractions
"""

from formrules.runtime.computed import ComputedPropertyEvaluator
from formrules.runtime.conditions import ConditionEvaluator, compare_field_value
from formrules.runtime.evaluator import DependencyEvaluator, IDependencyEvaluator
from formrules.runtime.extractor import DependentFieldExtractor, extract_dependent_fields
from formrules.runtime.filters import FilterParameterBuilder
from formrules.runtime.form_loader import FormDocumentError, load_form, parse_form
from formrules.runtime.form_runtime import FormRuntime, ResolvedFieldState, resolve_field_state
from formrules.runtime.observer import (
    CollectingFailureObserver,
    FailureObserver,
    LoggingFailureObserver,
    RuleFailure,
)
from formrules.runtime.reset import changed_fields, should_reset_field
from formrules.runtime.sandbox import RuleSandbox
from formrules.runtime.templates import TemplateEngine, render_template

__all__ = [
    "CollectingFailureObserver",
    "ComputedPropertyEvaluator",
    "ConditionEvaluator",
    "DependencyEvaluator",
    "DependentFieldExtractor",
    "FailureObserver",
    "FilterParameterBuilder",
    "FormDocumentError",
    "FormRuntime",
    "IDependencyEvaluator",
    "LoggingFailureObserver",
    "ResolvedFieldState",
    "RuleFailure",
    "RuleSandbox",
    "TemplateEngine",
    "changed_fields",
    "compare_field_value",
    "extract_dependent_fields",
    "load_form",
    "parse_form",
    "render_template",
    "resolve_field_state",
    "should_reset_field",
]
