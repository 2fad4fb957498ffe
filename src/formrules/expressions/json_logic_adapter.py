"""
JSON Logic rule bodies.

A rule body may be a JSON Logic document instead of expression text, e.g.
    {"and": [{"==": [{"var": "data.country"}, "US"]}, {"var": "data.state"}]}

Documents are applied with the json-logic library against the same bindings
expressions see, so variables are addressed as ``data.<path>``,
``parentData.<path>`` or ``rootData.<path>``.
"""

from typing import Any, Iterator, Mapping

try:
    from json_logic import jsonLogic
except ImportError:
    raise ImportError(
        "json-logic library not found. Install with: pip install json-logic-qubit"
    )

from formrules.expressions.errors import JsonLogicError


def is_json_logic(source: Any) -> bool:
    """True when a rule body is a JSON Logic document (single-operator mapping)."""
    return isinstance(source, Mapping) and len(source) == 1


def apply_json_logic(rule: Mapping[str, Any], bindings: Mapping[str, Any]) -> Any:
    """
    Apply a JSON Logic document.

    Args:
        rule: JSON Logic document
        bindings: Variables visible to ``var`` lookups

    Returns:
        Result of the rule

    Raises:
        JsonLogicError: If the library fails to apply the rule
    """
    try:
        return jsonLogic(dict(rule), dict(bindings))
    except Exception as e:
        raise JsonLogicError(f"JSON Logic evaluation failed: {e}") from e


def iter_json_logic_vars(node: Any) -> Iterator[str]:
    """
    Yield every variable name referenced by a JSON Logic document.

    Handles both ``{"var": "a.b"}`` and ``{"var": ["a.b", default]}`` forms.
    Computed variable names (a nested rule instead of a string) yield ``""``,
    which callers treat as "any field".
    """
    if isinstance(node, Mapping):
        for op, args in node.items():
            if op == "var":
                name = args[0] if isinstance(args, list) and args else args
                if isinstance(name, str):
                    yield name
                elif isinstance(name, (int, float)) and not isinstance(name, bool):
                    yield str(name)
                else:
                    yield ""
                if isinstance(args, list):
                    for arg in args[1:]:
                        yield from iter_json_logic_vars(arg)
            else:
                yield from iter_json_logic_vars(args)
    elif isinstance(node, list):
        for item in node:
            yield from iter_json_logic_vars(item)
