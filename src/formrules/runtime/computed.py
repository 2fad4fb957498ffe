"""Computed property evaluation (label, placeholder, value, options)."""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel

from formrules.runtime.sandbox import RuleSandbox
from formrules.runtime.templates import TemplateEngine
from formrules.schemas.dependencies import (
    EvaluationContext,
    ExpressionProperty,
    FunctionProperty,
    TemplateProperty,
    parse_computed,
    parse_context,
)

logger = logging.getLogger(__name__)


class ComputedPropertyEvaluator:
    """Dispatches a computed property to the template engine or the sandbox."""

    def __init__(
        self,
        sandbox: Optional[RuleSandbox] = None,
        templates: Optional[TemplateEngine] = None,
    ):
        self.sandbox = sandbox or RuleSandbox()
        self.templates = templates or TemplateEngine()

    def evaluate(
        self,
        prop: Union[BaseModel, Mapping[str, Any], None],
        context: Union[EvaluationContext, Mapping[str, Any], None],
        slot: str = "property",
    ) -> Any:
        """
        Evaluate a computed property.

        Args:
            prop: Property model or raw mapping; None means no rule
            context: Evaluation context or ``{"data": ...}`` mapping
            slot: Rule location used in failure reports

        Returns:
            Computed value, or the property's ``default`` (else None) on failure
        """
        if prop is None:
            return None

        ctx = parse_context(context)
        computed = parse_computed(prop)

        if isinstance(computed, TemplateProperty):
            if computed.template is None:
                return computed.default
            return self.templates.render(computed.template, ctx)

        if isinstance(computed, ExpressionProperty):
            return self.sandbox.run_expression(
                computed.expression,
                ctx.bindings(),
                slot=slot,
                fallback=computed.default,
            )

        if isinstance(computed, FunctionProperty):
            return self.sandbox.run_function(
                computed.fn_source,
                ctx.bindings(),
                slot=slot,
                fallback=computed.default,
            )

        logger.warning(f"Unsupported computed property {type(computed).__name__} in '{slot}'")
        return getattr(computed, "default", None)
