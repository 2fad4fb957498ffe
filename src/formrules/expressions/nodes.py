"""Immutable AST nodes for compiled rule expressions."""

from dataclasses import dataclass
from typing import Any, Tuple


class Node:
    """Base class for expression nodes."""

    __slots__ = ()


@dataclass(frozen=True)
class Literal(Node):
    value: Any


@dataclass(frozen=True)
class Name(Node):
    name: str


@dataclass(frozen=True)
class Member(Node):
    obj: Node
    prop: str
    optional: bool = False


@dataclass(frozen=True)
class Index(Node):
    obj: Node
    index: Node
    optional: bool = False


@dataclass(frozen=True)
class Call(Node):
    callee: Node  # Name (helper) or Member (method)
    args: Tuple[Node, ...]


@dataclass(frozen=True)
class Unary(Node):
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary(Node):
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Logical(Node):
    op: str  # "&&", "||" or "??"
    left: Node
    right: Node


@dataclass(frozen=True)
class Conditional(Node):
    test: Node
    consequent: Node
    alternate: Node


@dataclass(frozen=True)
class ArrayLiteral(Node):
    items: Tuple[Node, ...]


@dataclass(frozen=True)
class ObjectLiteral(Node):
    entries: Tuple[Tuple[str, Node], ...]
