"""
Gate condition evaluation (disabled / enabled / visible / required).

A condition is one of three variants:
- fieldValue: compare the value at ``field`` with ``value`` using ``operator``
- expression: evaluate a sandboxed expression over data/parentData/rootData
- function:   run a registered rule function

fieldValue comparisons are total (they never fail). Expression and function
bodies run in the RuleSandbox, so a broken rule yields its ``default``.
"""

import logging
import math
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel

from formrules.runtime.sandbox import RuleSandbox
from formrules.schemas.dependencies import (
    EvaluationContext,
    ExpressionCondition,
    FieldValueCondition,
    FunctionCondition,
    Operator,
    parse_condition,
    parse_context,
)
from formrules.utils.paths import get_path, is_empty
from formrules.utils.values import is_sequence, stringify, strict_equals, to_number

logger = logging.getLogger(__name__)


def _contains(container: Any, needle: Any) -> Optional[bool]:
    """Membership for sequences, substring for text, None when neither applies."""
    if is_sequence(container):
        return any(strict_equals(item, needle) for item in container)
    if isinstance(container, str):
        return stringify(needle) in container
    return None


def _compare(left: Any, right: Any, op: Operator) -> bool:
    a, b = to_number(left), to_number(right)
    if math.isnan(a) or math.isnan(b):
        return False
    if op == Operator.GT:
        return a > b
    if op == Operator.GTE:
        return a >= b
    if op == Operator.LT:
        return a < b
    return a <= b


def compare_field_value(field_value: Any, operator: Operator, compare_value: Any) -> bool:
    """
    Apply a fieldValue operator.

    Args:
        field_value: Resolved value of the condition's field (None when absent)
        operator: Comparison operator
        compare_value: The condition's ``value``

    Returns:
        Comparison result
    """
    if operator == Operator.EQUALS:
        return strict_equals(field_value, compare_value)
    if operator == Operator.NOT_EQUALS:
        return not strict_equals(field_value, compare_value)

    if operator == Operator.CONTAINS:
        result = _contains(field_value, compare_value)
        return False if result is None else result
    if operator == Operator.NOT_CONTAINS:
        result = _contains(field_value, compare_value)
        return True if result is None else not result

    if operator in (Operator.GT, Operator.GTE, Operator.LT, Operator.LTE):
        return _compare(field_value, compare_value, operator)

    if operator == Operator.EMPTY:
        return is_empty(field_value)
    if operator == Operator.NOT_EMPTY:
        return not is_empty(field_value)

    if operator == Operator.IN:
        if is_sequence(compare_value):
            return any(strict_equals(item, field_value) for item in compare_value)
        return False
    if operator == Operator.NOT_IN:
        if is_sequence(compare_value):
            return not any(strict_equals(item, field_value) for item in compare_value)
        return True

    return not is_empty(field_value)


class ConditionEvaluator:
    """Evaluates a single dependency condition against a data snapshot."""

    def __init__(self, sandbox: Optional[RuleSandbox] = None):
        self.sandbox = sandbox or RuleSandbox()

    def evaluate(
        self,
        condition: Union[BaseModel, Mapping[str, Any], None],
        context: Union[EvaluationContext, Mapping[str, Any], None],
        slot: str = "condition",
    ) -> Any:
        """
        Evaluate a condition.

        Args:
            condition: Condition model or raw mapping; None means no rule
            context: Evaluation context or ``{"data": ...}`` mapping
            slot: Rule location used in failure reports

        Returns:
            Boolean-ish result; the condition's ``default`` (or None) when the
            rule body fails
        """
        if condition is None:
            return None

        ctx = parse_context(context)
        cond = parse_condition(condition)

        if isinstance(cond, FieldValueCondition):
            field_value = get_path(ctx.data, cond.field or "")
            return compare_field_value(field_value, cond.effective_operator, cond.value)

        if isinstance(cond, ExpressionCondition):
            return self.sandbox.run_expression(
                cond.expression,
                ctx.bindings(),
                slot=slot,
                fallback=cond.default,
            )

        if isinstance(cond, FunctionCondition):
            return self.sandbox.run_function(
                cond.fn_source,
                ctx.bindings(),
                slot=slot,
                fallback=cond.default,
            )

        logger.warning(f"Unsupported condition type {type(cond).__name__} in '{slot}'")
        return getattr(cond, "default", None)
