"""
Fail-safe execution of author-supplied rule bodies.

Every expression, JSON Logic document, registered function and filter
transform runs through RuleSandbox. Whatever goes wrong (syntax, unresolved
identifiers, type errors, budget exhaustion, exceptions from registered
callables) is caught here, reported to the failure observer, and replaced by
the caller's fallback value. Nothing propagates to the evaluators.
"""

import logging
from typing import Any, Callable, Mapping, Optional

from formrules.config.settings import EngineConfig
from formrules.expressions.errors import (
    CallableError,
    ExpressionSyntaxError,
    ExpressionTypeError,
    FailureKind,
    RuleEvaluationError,
    UnknownFunctionError,
)
from formrules.expressions.functions import (
    EXPRESSION_HELPERS,
    FunctionRegistry,
    default_registry,
)
from formrules.expressions.interpreter import evaluate_node
from formrules.expressions.json_logic_adapter import apply_json_logic, is_json_logic
from formrules.expressions.nodes import Node
from formrules.expressions.parser import parse_expression
from formrules.runtime.observer import FailureObserver, LoggingFailureObserver, RuleFailure

logger = logging.getLogger(__name__)


def _describe_source(source: Any) -> Optional[str]:
    if source is None:
        return None
    text = source if isinstance(source, str) else repr(source)
    return text if len(text) <= 200 else f"{text[:197]}..."


class RuleSandbox:
    """
    Runs rule bodies with failure containment.

    Args:
        config: Evaluation limits (step budget, depth, timeout)
        registry: Named rule functions for the ``function`` variant
        observer: Receives every contained failure
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        registry: Optional[FunctionRegistry] = None,
        observer: Optional[FailureObserver] = None,
    ):
        self.config = config or EngineConfig()
        self.registry = registry if registry is not None else default_registry
        if observer is None:
            observer = LoggingFailureObserver(level=self.config.failure_log_level_value)
        self.observer = observer

    def with_observer(self, observer: FailureObserver) -> "RuleSandbox":
        """Same limits and registry, different failure observer."""
        return RuleSandbox(config=self.config, registry=self.registry, observer=observer)

    # Compilation

    def compile(self, source: str) -> Node:
        """
        Compile expression text with the configured depth limit.

        Raises:
            ExpressionSyntaxError: If the source does not compile
        """
        return parse_expression(source, self.config.max_depth)

    def _evaluate_source(self, source: Any, bindings: Mapping[str, Any]) -> Any:
        if is_json_logic(source):
            return apply_json_logic(source, bindings)
        if not isinstance(source, str):
            raise ExpressionTypeError(
                f"Rule body must be expression text or a JSON Logic document, got {type(source).__name__}"
            )
        node = self.compile(source)
        return evaluate_node(
            node,
            bindings,
            helpers=EXPRESSION_HELPERS,
            max_steps=self.config.max_steps,
            timeout_ms=self.config.timeout_ms,
        )

    # Execution

    def run_expression(
        self,
        source: Any,
        bindings: Mapping[str, Any],
        *,
        slot: str,
        fallback: Any = None,
    ) -> Any:
        """
        Evaluate an expression or JSON Logic body.

        An empty body is "no rule" and yields the fallback without a failure.

        Args:
            source: Expression text or JSON Logic document
            bindings: Names visible to the rule
            slot: Rule location, used in failure reports
            fallback: Value returned when the rule fails

        Returns:
            Rule result, or fallback on failure
        """
        if source is None or (isinstance(source, str) and not source.strip()):
            return fallback
        return self._guard(lambda: self._evaluate_source(source, bindings), source, slot, fallback)

    def run_function(
        self,
        fn_source: Optional[str],
        bindings: Mapping[str, Any],
        *,
        slot: str,
        fallback: Any = None,
    ) -> Any:
        """
        Run a function rule.

        ``fn_source`` selects a registered callable by name. When no callable is
        registered under that name, the text is compiled as a single-expression
        body (``return <expr>;`` is accepted). Anything else fails.
        """
        if fn_source is None or not fn_source.strip():
            return fallback

        entry = self.registry.get(fn_source)
        if entry is not None:
            def call_registered() -> Any:
                try:
                    return entry.func(
                        bindings.get("data", {}),
                        bindings.get("parentData", {}),
                        bindings.get("rootData", {}),
                    )
                except RuleEvaluationError:
                    raise
                except Exception as e:
                    raise CallableError(f"Function '{entry.name}' raised {type(e).__name__}: {e}") from e

            return self._guard(call_registered, fn_source, slot, fallback)

        def call_inline() -> Any:
            try:
                node = self.compile(fn_source)
            except ExpressionSyntaxError as e:
                raise UnknownFunctionError(
                    f"'{_describe_source(fn_source)}' is not a registered function "
                    f"and does not compile as an expression: {e}"
                ) from e
            return evaluate_node(
                node,
                bindings,
                helpers=EXPRESSION_HELPERS,
                max_steps=self.config.max_steps,
                timeout_ms=self.config.timeout_ms,
            )

        return self._guard(call_inline, fn_source, slot, fallback)

    def _guard(
        self,
        thunk: Callable[[], Any],
        source: Any,
        slot: str,
        fallback: Any,
    ) -> Any:
        try:
            return thunk()
        except RuleEvaluationError as e:
            self.report(slot, e.kind, str(e), source)
        except RecursionError as e:
            self.report(slot, FailureKind.BUDGET_EXCEEDED, f"Recursion limit reached: {e}", source)
        except Exception as e:
            self.report(slot, FailureKind.INTERNAL_ERROR, f"{type(e).__name__}: {e}", source)
        return fallback

    def report(self, slot: str, kind: FailureKind, message: str, source: Any = None) -> None:
        """Send a failure to the observer. Observer errors are logged, never raised."""
        failure = RuleFailure(
            slot=slot,
            kind=kind,
            message=message,
            source=_describe_source(source),
        )
        try:
            self.observer.on_rule_failure(failure)
        except Exception:
            logger.exception(f"Failure observer raised while reporting rule '{slot}'")
