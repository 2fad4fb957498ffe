"""
Tokenizer and recursive-descent parser for rule expressions.

The grammar is a small, JavaScript-flavoured expression subset so that rule
bodies authored in the form designer compile unchanged:

    conditional := logical_or ("?" conditional ":" conditional)?
    logical_or  := logical_and (("||" | "??") logical_and)*
    logical_and := equality ("&&" equality)*
    equality    := relational (("===" | "!==" | "==" | "!=") relational)*
    relational  := additive (("<" | "<=" | ">" | ">=") additive)*
    additive    := multiplicative (("+" | "-") multiplicative)*
    multiplicative := unary (("*" | "/" | "%") unary)*
    unary       := ("!" | "-" | "+") unary | postfix
    postfix     := primary ("." IDENT | "?." IDENT | "[" expr "]" | "(" args ")")*
    primary     := NUMBER | STRING | IDENT | "(" expr ")" | array | object

No source text is ever handed to eval/exec: the result is an immutable AST that
the interpreter walks under a step budget.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List, Optional, Tuple

from formrules.expressions.errors import ExpressionSyntaxError
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


DEFAULT_MAX_DEPTH = 64

KEYWORD_LITERALS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
}

# Longest operators first so "===" wins over "==" and "=".
PUNCTUATORS = (
    "===", "!==", "?.",
    "==", "!=", "<=", ">=", "&&", "||", "??",
    "<", ">", "+", "-", "*", "/", "%", "!", "?", ":", ".", ",",
    "(", ")", "[", "]", "{", "}",
)

_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_RETURN_RE = re.compile(r"^\s*return\b")

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


@dataclass(frozen=True)
class Token:
    kind: str  # "num", "str", "ident", "op", "eof"
    value: object
    pos: int


def tokenize(source: str) -> List[Token]:
    """
    Split expression source into tokens.

    Raises:
        ExpressionSyntaxError: On unterminated strings or unexpected characters
    """
    tokens: List[Token] = []
    i = 0
    length = len(source)

    while i < length:
        ch = source[i]

        if ch.isspace():
            i += 1
            continue

        if ch in "'\"":
            value, i = _read_string(source, i)
            tokens.append(Token("str", value, i))
            continue

        if ch.isdigit() or (ch == "." and i + 1 < length and source[i + 1].isdigit()):
            match = _NUMBER_RE.match(source, i)
            text = match.group(0)
            if "." in text or "e" in text or "E" in text:
                number = float(text)
            else:
                number = int(text)
            tokens.append(Token("num", number, i))
            i = match.end()
            continue

        match = _IDENT_RE.match(source, i)
        if match:
            tokens.append(Token("ident", match.group(0), i))
            i = match.end()
            continue

        for punct in PUNCTUATORS:
            if source.startswith(punct, i):
                # "?." followed by a digit is a conditional with a decimal, not optional chaining
                if punct == "?." and i + 2 < length and source[i + 2].isdigit():
                    continue
                tokens.append(Token("op", punct, i))
                i += len(punct)
                break
        else:
            raise ExpressionSyntaxError(f"Unexpected character {ch!r}", i)

    tokens.append(Token("eof", None, length))
    return tokens


def _read_string(source: str, start: int) -> Tuple[str, int]:
    quote = source[start]
    chars: List[str] = []
    i = start + 1
    while i < len(source):
        ch = source[i]
        if ch == quote:
            return "".join(chars), i + 1
        if ch == "\\":
            i += 1
            if i >= len(source):
                break
            esc = source[i]
            if esc == "u" and i + 4 < len(source):
                try:
                    chars.append(chr(int(source[i + 1:i + 5], 16)))
                except ValueError:
                    raise ExpressionSyntaxError("Invalid unicode escape", i)
                i += 5
                continue
            chars.append(_ESCAPES.get(esc, esc))
            i += 1
            continue
        chars.append(ch)
        i += 1
    raise ExpressionSyntaxError("Unterminated string literal", start)


def normalize_source(source: str) -> str:
    """
    Strip function-body decoration from a single-expression source.

    Accepts "return <expr>;" as written in function-rule bodies and
    returns just "<expr>".
    """
    text = source.strip()
    text = _RETURN_RE.sub("", text, count=1).strip()
    while text.endswith(";"):
        text = text[:-1].rstrip()
    return text


class Parser:
    """Recursive-descent parser producing an immutable AST."""

    def __init__(self, source: str, max_depth: int = DEFAULT_MAX_DEPTH):
        self.source = source
        self.tokens = tokenize(source)
        self.pos = 0
        self.depth = 0
        self.max_depth = max_depth

    # Token helpers

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != "eof":
            self.pos += 1
        return token

    def _check(self, *ops: str) -> bool:
        token = self.current
        return token.kind == "op" and token.value in ops

    def _match(self, *ops: str) -> Optional[str]:
        if self._check(*ops):
            return self._advance().value
        return None

    def _expect(self, op: str) -> Token:
        if not self._check(op):
            raise ExpressionSyntaxError(
                f"Expected '{op}' but found {self._describe(self.current)}", self.current.pos
            )
        return self._advance()

    @staticmethod
    def _describe(token: Token) -> str:
        if token.kind == "eof":
            return "end of expression"
        return repr(token.value)

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise ExpressionSyntaxError(
                f"Expression nesting exceeds maximum depth of {self.max_depth}", self.current.pos
            )

    def _leave(self) -> None:
        self.depth -= 1

    # Grammar

    def parse(self) -> Node:
        if self.current.kind == "eof":
            raise ExpressionSyntaxError("Empty expression", 0)
        node = self._conditional()
        if self.current.kind != "eof":
            raise ExpressionSyntaxError(
                f"Unexpected {self._describe(self.current)}", self.current.pos
            )
        return node

    def _conditional(self) -> Node:
        self._enter()
        try:
            test = self._logical_or()
            if self._match("?"):
                consequent = self._conditional()
                self._expect(":")
                alternate = self._conditional()
                return Conditional(test, consequent, alternate)
            return test
        finally:
            self._leave()

    def _left_assoc(
        self,
        operand: Callable[[], Node],
        ops: Tuple[str, ...],
        build: Callable[[str, Node, Node], Node],
    ) -> Node:
        # Every operator in a chain nests the tree one level deeper.
        node = operand()
        links = 0
        try:
            while True:
                op = self._match(*ops)
                if op is None:
                    return node
                self._enter()
                links += 1
                node = build(op, node, operand())
        finally:
            self.depth -= links

    def _logical_or(self) -> Node:
        return self._left_assoc(self._logical_and, ("||", "??"), Logical)

    def _logical_and(self) -> Node:
        return self._left_assoc(self._equality, ("&&",), Logical)

    def _equality(self) -> Node:
        return self._left_assoc(self._relational, ("===", "!==", "==", "!="), Binary)

    def _relational(self) -> Node:
        return self._left_assoc(self._additive, ("<=", ">=", "<", ">"), Binary)

    def _additive(self) -> Node:
        return self._left_assoc(self._multiplicative, ("+", "-"), Binary)

    def _multiplicative(self) -> Node:
        return self._left_assoc(self._unary, ("*", "/", "%"), Binary)

    def _unary(self) -> Node:
        op = self._match("!", "-", "+")
        if op is None:
            return self._postfix()
        self._enter()
        try:
            return Unary(op, self._unary())
        finally:
            self._leave()

    def _postfix(self) -> Node:
        node = self._primary()
        links = 0
        try:
            while True:
                if not self._check(".", "?.", "[", "("):
                    return node
                self._enter()
                links += 1
                node = self._postfix_step(node)
        finally:
            self.depth -= links

    def _postfix_step(self, node: Node) -> Node:
        if self._match("."):
            return Member(node, self._property_name())
        if self._match("?."):
            if self._match("["):
                index = self._conditional()
                self._expect("]")
                return Index(node, index, optional=True)
            return Member(node, self._property_name(), optional=True)
        if self._match("["):
            index = self._conditional()
            self._expect("]")
            return Index(node, index)
        if not isinstance(node, (Name, Member)):
            raise ExpressionSyntaxError("Only helpers and methods can be called", self.current.pos)
        self._expect("(")
        return Call(node, self._arguments())

    def _property_name(self) -> str:
        token = self.current
        if token.kind != "ident":
            raise ExpressionSyntaxError(
                f"Expected property name but found {self._describe(token)}", token.pos
            )
        self._advance()
        return token.value

    def _arguments(self) -> Tuple[Node, ...]:
        args: List[Node] = []
        if self._match(")"):
            return ()
        while True:
            args.append(self._conditional())
            if self._match(")"):
                return tuple(args)
            self._expect(",")

    def _primary(self) -> Node:
        token = self.current

        if token.kind == "num" or token.kind == "str":
            self._advance()
            return Literal(token.value)

        if token.kind == "ident":
            self._advance()
            if token.value in KEYWORD_LITERALS:
                return Literal(KEYWORD_LITERALS[token.value])
            return Name(token.value)

        if self._match("("):
            self._enter()
            try:
                node = self._conditional()
            finally:
                self._leave()
            self._expect(")")
            return node

        if self._match("["):
            return self._array()

        if self._match("{"):
            return self._object()

        raise ExpressionSyntaxError(f"Unexpected {self._describe(token)}", token.pos)

    def _array(self) -> Node:
        self._enter()
        try:
            items: List[Node] = []
            if self._match("]"):
                return ArrayLiteral(())
            while True:
                items.append(self._conditional())
                if self._match("]"):
                    return ArrayLiteral(tuple(items))
                self._expect(",")
                if self._match("]"):
                    return ArrayLiteral(tuple(items))
        finally:
            self._leave()

    def _object(self) -> Node:
        self._enter()
        try:
            entries: List[Tuple[str, Node]] = []
            if self._match("}"):
                return ObjectLiteral(())
            while True:
                token = self.current
                if token.kind in ("ident", "str"):
                    key = str(token.value)
                elif token.kind == "num":
                    key = str(token.value)
                else:
                    raise ExpressionSyntaxError(
                        f"Expected object key but found {self._describe(token)}", token.pos
                    )
                self._advance()
                self._expect(":")
                entries.append((key, self._conditional()))
                if self._match("}"):
                    return ObjectLiteral(tuple(entries))
                self._expect(",")
                if self._match("}"):
                    return ObjectLiteral(tuple(entries))
        finally:
            self._leave()


@lru_cache(maxsize=2048)
def parse_expression(source: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """
    Compile expression source into an AST.

    Results are memoized per (source, max_depth), so repeated evaluation of the
    same rule only pays the parse cost once per process.

    Args:
        source: Expression text, optionally written as "return <expr>;"
        max_depth: Maximum nesting depth

    Returns:
        Root AST node

    Raises:
        ExpressionSyntaxError: If the source does not compile
    """
    text = normalize_source(source)
    return Parser(text, max_depth=max_depth).parse()
