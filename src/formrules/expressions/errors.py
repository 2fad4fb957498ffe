"""Error taxonomy for rule-body compilation and execution.

All of these are contained by the sandbox: they are reported to the failure
observer and converted into the rule's declared default. None of them ever
reaches the caller of an evaluator.
"""

from enum import Enum


class FailureKind(str, Enum):
    """Stable codes for contained rule failures."""

    SYNTAX_ERROR = "SYNTAX_ERROR"
    UNRESOLVED_IDENTIFIER = "UNRESOLVED_IDENTIFIER"
    TYPE_ERROR = "TYPE_ERROR"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    UNKNOWN_FUNCTION = "UNKNOWN_FUNCTION"
    JSON_LOGIC_ERROR = "JSON_LOGIC_ERROR"
    INVALID_RULE = "INVALID_RULE"
    CALLABLE_ERROR = "CALLABLE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RuleEvaluationError(Exception):
    """Base class for failures while compiling or running a rule body."""

    kind = FailureKind.INTERNAL_ERROR


class ExpressionSyntaxError(RuleEvaluationError):
    """Raised when rule source text does not compile."""

    kind = FailureKind.SYNTAX_ERROR

    def __init__(self, message: str, position: int = -1):
        self.position = position
        if position >= 0:
            message = f"{message} (at position {position})"
        super().__init__(message)


class UnresolvedIdentifierError(RuleEvaluationError):
    """Raised when an expression names something other than a binding or helper."""

    kind = FailureKind.UNRESOLVED_IDENTIFIER


class ExpressionTypeError(RuleEvaluationError):
    """Raised for invalid operations, e.g. reading a member of null."""

    kind = FailureKind.TYPE_ERROR


class EvaluationBudgetExceeded(RuleEvaluationError):
    """Raised when an expression exceeds its step or time budget."""

    kind = FailureKind.BUDGET_EXCEEDED


class UnknownFunctionError(RuleEvaluationError):
    """Raised when a function rule names nothing registered and is not an expression."""

    kind = FailureKind.UNKNOWN_FUNCTION


class JsonLogicError(RuleEvaluationError):
    """Raised when a JSON Logic rule body cannot be applied."""

    kind = FailureKind.JSON_LOGIC_ERROR


class CallableError(RuleEvaluationError):
    """Raised when a registered rule function raises."""

    kind = FailureKind.CALLABLE_ERROR
