"""
Dependency Aggregator - consolidates every rule of one component.

Responsibility: Evaluate each present rule of a ComponentDependencies bag
independently and produce one EffectiveState per component per pass.

SOLID Principle: Dependency Inversion Principle (DIP)
The form runtime and CLI depend on the IDependencyEvaluator abstraction, not on
how individual rule variants are executed.

Cross-rule policy: if ``enabled`` evaluates to false, ``disabled`` is forced to
true regardless of any ``disabled`` rule. No other coupling exists.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Set, Union

from formrules.config.settings import EngineConfig
from formrules.expressions.errors import FailureKind
from formrules.expressions.functions import FunctionRegistry
from formrules.runtime.computed import ComputedPropertyEvaluator
from formrules.runtime.conditions import ConditionEvaluator
from formrules.runtime.extractor import DependentFieldExtractor
from formrules.runtime.filters import FilterParameterBuilder
from formrules.runtime.observer import ComponentScopedObserver, FailureObserver
from formrules.runtime.sandbox import RuleSandbox
from formrules.runtime.templates import TemplateEngine
from formrules.schemas.dependencies import (
    ComponentDependencies,
    EffectiveState,
    EvaluationContext,
    CONDITION_SLOTS,
    COMPUTED_SLOTS,
    parse_context,
    parse_dependencies_by_slot,
)
from formrules.utils.values import truthy

logger = logging.getLogger(__name__)

DependenciesInput = Union[ComponentDependencies, Mapping[str, Any], None]
ContextInput = Union[EvaluationContext, Mapping[str, Any], None]


class IDependencyEvaluator(ABC):
    """
    Abstract interface for component dependency evaluation.

    Stateless: accepts (Rules + Data) and returns (EffectiveState).
    """

    @abstractmethod
    def evaluate_all(
        self,
        dependencies: DependenciesInput,
        context: ContextInput,
        component_id: Optional[str] = None,
    ) -> EffectiveState:
        """
        Evaluate every rule of one component.

        Args:
            dependencies: Component's rule bag
            context: Current data snapshot
            component_id: Optional id used to tag failure reports

        Returns:
            EffectiveState with one entry per present rule
        """
        pass

    @abstractmethod
    def extract_dependent_fields(self, dependencies: DependenciesInput) -> Set[str]:
        """Fields whose change requires re-evaluating this component."""
        pass


class DependencyEvaluator(IDependencyEvaluator):
    """
    Concrete implementation wiring the condition, computed-property, template,
    filter and extraction components around one RuleSandbox.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        registry: Optional[FunctionRegistry] = None,
        observer: Optional[FailureObserver] = None,
        sandbox: Optional[RuleSandbox] = None,
    ):
        self.sandbox = sandbox or RuleSandbox(config=config, registry=registry, observer=observer)
        self.templates = TemplateEngine()
        self.conditions = ConditionEvaluator(self.sandbox)
        self.computed = ComputedPropertyEvaluator(self.sandbox, self.templates)
        self.filters = FilterParameterBuilder(self.sandbox)
        self.extractor = DependentFieldExtractor(self.sandbox)

    @property
    def config(self) -> EngineConfig:
        return self.sandbox.config

    # Single-rule entry points

    def evaluate_condition(self, condition: Any, context: ContextInput) -> Any:
        return self.conditions.evaluate(condition, context)

    def evaluate_computed_property(self, prop: Any, context: ContextInput) -> Any:
        return self.computed.evaluate(prop, context)

    def render_template(self, template: str, context: ContextInput) -> str:
        return self.templates.render(template, context)

    def build_filter_params(self, filter_by: Any, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        return self.filters.build_params(filter_by, data)

    def extract_dependent_fields(self, dependencies: DependenciesInput) -> Set[str]:
        return self.extractor.extract(dependencies)

    # Aggregate

    def evaluate_all(
        self,
        dependencies: DependenciesInput,
        context: ContextInput,
        component_id: Optional[str] = None,
    ) -> EffectiveState:
        """
        Evaluate all rules of one component.

        Each rule is evaluated independently; a failure in one never blocks
        another. Gate results are coerced to booleans, except that a rule
        producing no value (failure without default) stays None.

        Args:
            dependencies: Component's rule bag (model or raw mapping)
            context: Evaluation context or ``{"data": ...}`` mapping
            component_id: Optional id used to tag failure reports

        Returns:
            EffectiveState holding only the slots that had a rule
        """
        start_time = time.time()

        sandbox = self.sandbox
        if component_id:
            sandbox = sandbox.with_observer(ComponentScopedObserver(sandbox.observer, component_id))

        deps, invalid = parse_dependencies_by_slot(dependencies)
        if deps is None:
            return EffectiveState()

        ctx = parse_context(context)
        conditions = ConditionEvaluator(sandbox) if sandbox is not self.sandbox else self.conditions
        computed = (
            ComputedPropertyEvaluator(sandbox, self.templates)
            if sandbox is not self.sandbox
            else self.computed
        )
        filters = FilterParameterBuilder(sandbox) if sandbox is not self.sandbox else self.filters

        result: Dict[str, Any] = {}

        # Malformed slots yield their declared default; siblings still run.
        for error in invalid:
            sandbox.report(error.slot, FailureKind.INVALID_RULE, error.message, error.raw)
            if error.slot in CONDITION_SLOTS or error.slot in COMPUTED_SLOTS:
                result[error.slot] = error.raw.get("default") if isinstance(error.raw, Mapping) else None

        for slot, condition in deps.conditions():
            result[slot] = self._guarded(
                sandbox, slot, lambda c=condition, s=slot: conditions.evaluate(c, ctx, slot=s)
            )

        for slot in CONDITION_SLOTS:
            if result.get(slot) is not None:
                result[slot] = truthy(result[slot])

        if result.get("enabled") is False:
            result["disabled"] = True

        for slot, prop in deps.computed():
            result[slot] = self._guarded(
                sandbox, slot, lambda p=prop, s=slot: computed.evaluate(p, ctx, slot=s)
            )

        if deps.filter_by is not None:
            params = self._guarded(
                sandbox, "filterBy", lambda: filters.build_params(deps.filter_by, ctx.data)
            )
            result["filterParams"] = params if params is not None else {}

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"Evaluated {len(result)} rule(s) for {component_id or 'component'} in {elapsed_ms}ms"
        )

        return EffectiveState.model_validate(result)

    @staticmethod
    def _guarded(sandbox: RuleSandbox, slot: str, evaluate: Callable[[], Any]) -> Any:
        try:
            return evaluate()
        except Exception as e:
            # Evaluators contain rule failures themselves; this catches engine defects
            # so one slot still cannot take down its siblings.
            sandbox.report(slot, FailureKind.INTERNAL_ERROR, f"{type(e).__name__}: {e}")
            return None


def evaluate_all_dependencies(
    dependencies: DependenciesInput,
    context: ContextInput,
    evaluator: Optional[IDependencyEvaluator] = None,
) -> EffectiveState:
    """Convenience wrapper around DependencyEvaluator.evaluate_all."""
    return (evaluator or DependencyEvaluator()).evaluate_all(dependencies, context)
