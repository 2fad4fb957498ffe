"""
Whitelisted expression language for rule bodies.

Source text is tokenized and parsed into an immutable AST (parser), evaluated
against caller-supplied bindings under a step budget (interpreter), and
statically walked for the data paths it reads (references). Rule bodies may
also be JSON Logic documents (json_logic_adapter) or names of pre-registered
callables (functions).
"""

from formrules.expressions.errors import (
    CallableError,
    EvaluationBudgetExceeded,
    ExpressionSyntaxError,
    ExpressionTypeError,
    FailureKind,
    JsonLogicError,
    RuleEvaluationError,
    UnknownFunctionError,
    UnresolvedIdentifierError,
)
from formrules.expressions.functions import FunctionRegistry, RegisteredFunction, default_registry
from formrules.expressions.interpreter import Interpreter, evaluate_node
from formrules.expressions.parser import parse_expression
from formrules.expressions.references import WILDCARD, collect_references

__all__ = [
    "CallableError",
    "EvaluationBudgetExceeded",
    "ExpressionSyntaxError",
    "ExpressionTypeError",
    "FailureKind",
    "FunctionRegistry",
    "Interpreter",
    "JsonLogicError",
    "RegisteredFunction",
    "RuleEvaluationError",
    "UnknownFunctionError",
    "UnresolvedIdentifierError",
    "WILDCARD",
    "collect_references",
    "default_registry",
    "evaluate_node",
    "parse_expression",
]
