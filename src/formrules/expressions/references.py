"""
Static reference analysis for compiled expressions.

Collects the data paths an expression can read by walking its AST, so the host
knows which field changes require re-evaluation.
"""

from typing import Iterable, List, Optional, Set, Tuple

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

# Marker for "reads the whole data map", i.e. depends on every field.
WILDCARD = "*"

DATA_ROOTS = ("data", "rootData")


def _static_path(node: Node) -> Optional[Tuple[str, List[str]]]:
    if isinstance(node, Name):
        return node.name, []
    if isinstance(node, Member):
        base = _static_path(node.obj)
        if base is None:
            return None
        return base[0], base[1] + [node.prop]
    if isinstance(node, Index) and isinstance(node.index, Literal):
        key = node.index.value
        if isinstance(key, bool) or key is None:
            return None
        base = _static_path(node.obj)
        if base is None:
            return None
        return base[0], base[1] + [str(key)]
    return None


def _record(segments: List[str], found: Set[str]) -> None:
    if not segments:
        found.add(WILDCARD)
        return
    found.add(segments[0])
    found.add(".".join(segments))


def _walk(node: Node, roots: Tuple[str, ...], found: Set[str]) -> None:
    if isinstance(node, (Name, Member, Index)):
        static = _static_path(node)
        if static is not None:
            root, segments = static
            if root in roots:
                _record(segments, found)
            return
        # Computed index somewhere in the chain: keep walking the pieces.
        if isinstance(node, Member):
            _walk(node.obj, roots, found)
        elif isinstance(node, Index):
            _walk(node.obj, roots, found)
            _walk(node.index, roots, found)
        return

    if isinstance(node, Call):
        callee = node.callee
        if isinstance(callee, Member):
            # The method name is not a field; only the receiver is read.
            _walk(callee.obj, roots, found)
        for arg in node.args:
            _walk(arg, roots, found)
        return

    if isinstance(node, (Binary, Logical)):
        _walk(node.left, roots, found)
        _walk(node.right, roots, found)
    elif isinstance(node, Unary):
        _walk(node.operand, roots, found)
    elif isinstance(node, Conditional):
        _walk(node.test, roots, found)
        _walk(node.consequent, roots, found)
        _walk(node.alternate, roots, found)
    elif isinstance(node, ArrayLiteral):
        for item in node.items:
            _walk(item, roots, found)
    elif isinstance(node, ObjectLiteral):
        for _, value in node.entries:
            _walk(value, roots, found)


def collect_references(node: Node, roots: Iterable[str] = DATA_ROOTS) -> Set[str]:
    """
    Collect data paths read by an expression.

    Each static path contributes both its root segment and its full dotted
    path (``data.address.city`` -> ``{"address", "address.city"}``). A bare
    reference to a root binding contributes WILDCARD.

    Args:
        node: Compiled expression
        roots: Binding names whose paths count as data fields

    Returns:
        Set of referenced field paths
    """
    found: Set[str] = set()
    _walk(node, tuple(roots), found)
    return found
