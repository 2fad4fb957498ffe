"""
Registry of named, pre-vetted rule functions and expression helpers.

Function rules (``{"type": "function", "fnSource": "<name>"}``) select a
callable registered here by name instead of carrying free-form source code.
Each entry may declare the data fields it reads so that dependency extraction
stays a conservative superset.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Tuple

from formrules.utils.paths import is_empty
from formrules.utils.values import NAN, stringify, to_number, truthy

logger = logging.getLogger(__name__)

RuleFunction = Callable[[Dict[str, Any], Dict[str, Any], Dict[str, Any]], Any]


def _js_round(value: Any) -> float:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return number
    return float(math.floor(number + 0.5))


def _numeric_reducer(reducer: Callable[..., float], empty: float) -> Callable[..., float]:
    def apply(*values: Any) -> float:
        numbers = [to_number(v) for v in values]
        if not numbers:
            return empty
        if any(math.isnan(n) for n in numbers):
            return NAN
        return reducer(numbers)
    return apply


# Helpers callable by bare name inside expressions.
EXPRESSION_HELPERS: Dict[str, Callable[..., Any]] = {
    "Number": to_number,
    "String": stringify,
    "Boolean": truthy,
    "isEmpty": is_empty,
    "abs": lambda value: abs(to_number(value)),
    "round": _js_round,
    "min": _numeric_reducer(min, math.inf),
    "max": _numeric_reducer(max, -math.inf),
}


@dataclass(frozen=True)
class RegisteredFunction:
    """A named rule function and the fields it declares as inputs."""

    name: str
    func: RuleFunction
    depends_on: Tuple[str, ...] = field(default_factory=tuple)


class FunctionRegistry:
    """
    Name -> callable table for function rules.

    Callables receive ``(data, parent_data, root_data)`` and return the rule
    result. Registration happens at application start-up; evaluation only reads.
    """

    def __init__(self) -> None:
        self._functions: Dict[str, RegisteredFunction] = {}

    def register(
        self,
        name: str,
        func: RuleFunction,
        depends_on: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Register a rule function.

        Args:
            name: Key referenced by ``fnSource``
            func: Callable taking (data, parent_data, root_data)
            depends_on: Data paths the function reads

        Raises:
            ValueError: If name is empty or already registered
        """
        if not name or not name.strip():
            raise ValueError("Function name must be a non-empty string")
        if name in self._functions:
            raise ValueError(f"Function '{name}' is already registered")
        self._functions[name] = RegisteredFunction(
            name=name,
            func=func,
            depends_on=tuple(depends_on or ()),
        )
        logger.debug(f"Registered rule function '{name}'")

    def function(self, name: str, depends_on: Optional[Iterable[str]] = None):
        """Decorator form of :meth:`register`."""
        def decorator(func: RuleFunction) -> RuleFunction:
            self.register(name, func, depends_on=depends_on)
            return func
        return decorator

    def unregister(self, name: str) -> None:
        self._functions.pop(name, None)

    def get(self, name: Optional[str]) -> Optional[RegisteredFunction]:
        if not name:
            return None
        return self._functions.get(name.strip())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)


default_registry = FunctionRegistry()
