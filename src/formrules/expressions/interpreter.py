"""
Step-budgeted interpreter for compiled rule expressions.

Walks the AST produced by ``formrules.expressions.parser`` against a fixed set
of bindings (``data``, ``parentData``, ``rootData`` or the transform bindings).
Every node visit costs one step; the interpreter aborts with
EvaluationBudgetExceeded when the step budget or the wall-clock deadline runs out.
"""

import math
import time
from typing import Any, Callable, List, Mapping, Optional

from formrules.expressions.errors import (
    EvaluationBudgetExceeded,
    ExpressionTypeError,
    UnknownFunctionError,
    UnresolvedIdentifierError,
)
from formrules.expressions.nodes import (
    ArrayLiteral,
    Binary,
    Call,
    Conditional,
    Index,
    Literal,
    Logical,
    Member,
    Name,
    Node,
    ObjectLiteral,
    Unary,
)
from formrules.utils.values import (
    NAN,
    is_number,
    is_sequence,
    loose_equals,
    stringify,
    strict_equals,
    to_number,
    truthy,
)


DEFAULT_MAX_STEPS = 10_000

# Check the wall clock every N steps; time.monotonic() is not free.
_CLOCK_INTERVAL = 64


class Interpreter:
    """
    Evaluates one expression AST.

    Instances are single-use: the step counter starts at zero for every
    evaluation, so create one per call (the sandbox does this).
    """

    def __init__(
        self,
        bindings: Mapping[str, Any],
        helpers: Optional[Mapping[str, Callable[..., Any]]] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        timeout_ms: Optional[int] = None,
    ):
        self.bindings = bindings
        self.helpers = helpers or {}
        self.max_steps = max_steps
        self.steps = 0
        self.deadline = time.monotonic() + timeout_ms / 1000.0 if timeout_ms else None

    def run(self, node: Node) -> Any:
        return self._eval(node)

    def _tick(self, cost: int = 1) -> None:
        self.steps += cost
        if self.steps > self.max_steps:
            raise EvaluationBudgetExceeded(
                f"Expression exceeded step budget of {self.max_steps}"
            )
        if self.deadline is not None and self.steps % _CLOCK_INTERVAL < cost:
            if time.monotonic() > self.deadline:
                raise EvaluationBudgetExceeded("Expression exceeded its time budget")

    def _eval(self, node: Node) -> Any:
        self._tick()

        if isinstance(node, Literal):
            return node.value

        if isinstance(node, Name):
            if node.name in self.bindings:
                return self.bindings[node.name]
            raise UnresolvedIdentifierError(f"{node.name} is not defined")

        if isinstance(node, Member):
            obj = self._eval(node.obj)
            return self._member(obj, node.prop, node.optional)

        if isinstance(node, Index):
            obj = self._eval(node.obj)
            key = self._eval(node.index)
            return self._index(obj, key, node.optional)

        if isinstance(node, Logical):
            left = self._eval(node.left)
            if node.op == "&&":
                return self._eval(node.right) if truthy(left) else left
            if node.op == "||":
                return left if truthy(left) else self._eval(node.right)
            return left if left is not None else self._eval(node.right)

        if isinstance(node, Conditional):
            if truthy(self._eval(node.test)):
                return self._eval(node.consequent)
            return self._eval(node.alternate)

        if isinstance(node, Unary):
            return self._unary(node.op, self._eval(node.operand))

        if isinstance(node, Binary):
            return self._binary(node.op, self._eval(node.left), self._eval(node.right))

        if isinstance(node, Call):
            return self._call(node)

        if isinstance(node, ArrayLiteral):
            return [self._eval(item) for item in node.items]

        if isinstance(node, ObjectLiteral):
            return {key: self._eval(value) for key, value in node.entries}

        raise ExpressionTypeError(f"Unsupported node {type(node).__name__}")

    # Access

    def _member(self, obj: Any, prop: str, optional: bool) -> Any:
        if obj is None:
            if optional:
                return None
            raise ExpressionTypeError(f"Cannot read property '{prop}' of undefined")
        if isinstance(obj, Mapping):
            return obj.get(prop)
        if prop == "length" and isinstance(obj, (str, list, tuple)):
            return len(obj)
        if is_sequence(obj) and prop.isdigit():
            return self._index(obj, int(prop), optional)
        return None

    def _index(self, obj: Any, key: Any, optional: bool) -> Any:
        if obj is None:
            if optional:
                return None
            raise ExpressionTypeError(f"Cannot read property '{stringify(key)}' of undefined")
        if isinstance(obj, Mapping):
            if isinstance(key, str):
                return obj.get(key)
            return obj.get(stringify(key))
        if isinstance(obj, (str, list, tuple)):
            if isinstance(key, str):
                if key == "length":
                    return len(obj)
                if not key.isdigit():
                    return None
                key = int(key)
            if is_number(key) and float(key).is_integer():
                position = int(key)
                if 0 <= position < len(obj):
                    return obj[position]
        return None

    # Operators

    def _unary(self, op: str, value: Any) -> Any:
        if op == "!":
            return not truthy(value)
        number = value if is_number(value) else to_number(value)
        if op == "-":
            return -number
        return number

    def _binary(self, op: str, left: Any, right: Any) -> Any:
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)

        if op in ("<", "<=", ">", ">="):
            if isinstance(left, str) and isinstance(right, str):
                a, b = left, right
            else:
                a, b = to_number(left), to_number(right)
            if op == "<":
                return a < b
            if op == "<=":
                return a <= b
            if op == ">":
                return a > b
            return a >= b

        if op == "+":
            textual = (str, list, tuple, dict)
            if isinstance(left, textual) or isinstance(right, textual):
                return stringify(left) + stringify(right)
            if is_number(left) and is_number(right):
                return left + right
            return to_number(left) + to_number(right)

        a = left if is_number(left) else to_number(left)
        b = right if is_number(right) else to_number(right)
        if op == "-":
            return a - b
        if op == "*":
            return a * b
        if op == "/":
            return _divide(a, b)
        if op == "%":
            if b == 0 or math.isnan(a) or math.isnan(b) or math.isinf(a):
                return NAN
            return math.fmod(a, b)
        raise ExpressionTypeError(f"Unsupported operator {op}")

    # Calls

    def _call(self, node: Call) -> Any:
        callee = node.callee

        if isinstance(callee, Name):
            helper = self.helpers.get(callee.name)
            if helper is None:
                raise UnknownFunctionError(f"{callee.name} is not a function")
            args = [self._eval(arg) for arg in node.args]
            return helper(*args)

        if isinstance(callee, Member):
            target = self._eval(callee.obj)
            if target is None and callee.optional:
                return None
            args = [self._eval(arg) for arg in node.args]
            return self._method(target, callee.prop, args)

        raise ExpressionTypeError("Expression is not callable")

    def _method(self, target: Any, method: str, args: List[Any]) -> Any:
        arg = args[0] if args else None

        if isinstance(target, str):
            self._tick(max(1, len(target) // 64))
            if method == "includes":
                return stringify(arg) in target
            if method == "startsWith":
                return target.startswith(stringify(arg))
            if method == "endsWith":
                return target.endswith(stringify(arg))
            if method == "indexOf":
                return target.find(stringify(arg))
            if method == "toUpperCase":
                return target.upper()
            if method == "toLowerCase":
                return target.lower()
            if method == "trim":
                return target.strip()
            if method == "split":
                if arg is None:
                    return [target]
                separator = stringify(arg)
                return list(target) if separator == "" else target.split(separator)
            if method == "slice":
                return target[_slice(len(target), args)]

        elif is_sequence(target):
            self._tick(max(1, len(target)))
            if method == "includes":
                return any(strict_equals(item, arg) for item in target)
            if method == "indexOf":
                for position, item in enumerate(target):
                    if strict_equals(item, arg):
                        return position
                return -1
            if method == "join":
                separator = "," if arg is None else stringify(arg)
                return separator.join(stringify(item) for item in target)
            if method == "slice":
                return list(target[_slice(len(target), args)])

        if target is None:
            raise ExpressionTypeError(f"Cannot read property '{method}' of undefined")
        raise ExpressionTypeError(f"{type(target).__name__}.{method} is not a function")


def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return NAN
        return math.inf if (a > 0) == (math.copysign(1.0, b) > 0) else -math.inf
    return a / b


def _slice(length: int, args: List[Any]) -> slice:
    start = int(to_number(args[0])) if args and not math.isnan(to_number(args[0])) else 0
    end = length
    if len(args) > 1 and args[1] is not None and not math.isnan(to_number(args[1])):
        end = int(to_number(args[1]))
    return slice(start, end)


def evaluate_node(
    node: Node,
    bindings: Mapping[str, Any],
    helpers: Optional[Mapping[str, Callable[..., Any]]] = None,
    max_steps: int = DEFAULT_MAX_STEPS,
    timeout_ms: Optional[int] = None,
) -> Any:
    """Evaluate an AST node with a fresh step budget."""
    return Interpreter(bindings, helpers, max_steps=max_steps, timeout_ms=timeout_ms).run(node)

