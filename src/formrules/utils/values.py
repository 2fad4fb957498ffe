"""
Value semantics shared by every rule evaluator.

Form documents are authored against JavaScript-style semantics (strict equality,
Number() coercion, String() rendering, truthiness). These helpers reproduce those
semantics over plain Python values decoded from JSON so that a rule behaves the
same way regardless of which evaluator runs it.
"""

import json
import math
from typing import Any


NAN = float("nan")


def is_number(value: Any) -> bool:
    """True for int/float values, excluding booleans."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_sequence(value: Any) -> bool:
    """True for list/tuple values (strings are not sequences here)."""
    return isinstance(value, (list, tuple))


def to_number(value: Any) -> float:
    """
    Coerce a value to a float the way rule comparisons expect.

    Numbers pass through, booleans become 1/0, numeric strings are parsed.
    Everything else (None, empty or non-numeric strings, sequences, mappings)
    becomes NaN, which never satisfies an ordering relation. An empty string is
    NaN here, not 0, so an empty field never compares as zero.

    Args:
        value: Any JSON-like value

    Returns:
        Float value, possibly NaN
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return NAN
        try:
            return float(text)
        except ValueError:
            return NAN
    return NAN


def strict_equals(left: Any, right: Any) -> bool:
    """
    Type-aware equality.

    Booleans only equal booleans, numbers compare numerically (1 == 1.0, NaN never
    equal), strings only equal strings. Lists and mappings compare structurally.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if is_number(left) and is_number(right):
        return float(left) == float(right)
    if is_number(left) or is_number(right):
        return False
    if left is None or right is None:
        return left is None and right is None
    if type(left) is not type(right):
        if is_sequence(left) and is_sequence(right):
            return list(left) == list(right)
        return False
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    """Equality with numeric coercion between numbers, booleans and numeric strings."""
    if left is None or right is None:
        return left is None and right is None
    if strict_equals(left, right):
        return True
    scalars = (str, int, float, bool)
    if isinstance(left, scalars) and isinstance(right, scalars):
        if isinstance(left, str) and isinstance(right, str):
            return False
        return to_number(left) == to_number(right)
    return False


def truthy(value: Any) -> bool:
    """JavaScript truthiness: empty containers are truthy, NaN is falsy."""
    if value is None or value is False:
        return False
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def stringify(value: Any) -> str:
    """
    Render a value as display text.

    None renders as an empty string, booleans as ``true``/``false``, integral
    floats without a fractional part, sequences comma-joined and mappings as JSON.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return value
    if is_sequence(value):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)
