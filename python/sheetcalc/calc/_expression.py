"""Recursive-descent parser for formula expressions.

Formula bodies are tokenized and parsed into an explicit tree of
:class:`Node` objects, then walked by :func:`evaluate_tree`. Nothing is
handed to a host-language ``eval``.

Precedence, lowest to highest::

    1. comparison      (==, !=, <>, =, <, >, <=, >=)
    2. additive        (+, -)
    3. multiplicative  (*, /, %)
    4. unary           (+x, -x)
    5. power           (^, right-associative)

Function calls are lexed as a single ``CALL`` token carrying the raw text
between the parentheses. The caller decides how to split and resolve the
arguments, so functions can treat a bare ``A1:B3`` argument as a range.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Union

from sheetcalc.calc._functions import CellError, first_error, power, to_number
from sheetcalc.calc._parser import CELL_TOKEN, REF_END, SHEET_PREFIX


class FormulaSyntaxError(ValueError):
    """Formula text that cannot be tokenized or parsed."""


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_REF_RE = re.compile(
    rf"((?:{SHEET_PREFIX})*)({CELL_TOKEN})(?:\s*:\s*({CELL_TOKEN}))?{REF_END}"
)
_CALL_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_.]*)\s*\(")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_DQ_STRING_RE = re.compile(r'"([^"]*)"')
_SQ_STRING_RE = re.compile(r"'([^']*)'")
_OPERATORS = (">=", "<=", "==", "!=", "<>", "+", "-", "*", "/", "^", "%", ">", "<", "=", "(", ")")


@dataclass(frozen=True)
class Token:
    kind: str  # NUMBER, STRING, BOOL, REF, RANGE, CALL, OP, END
    value: Any
    pos: int


def find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 1
    quote: str | None = None
    i = start + 1
    while i < len(expr):
        ch = expr[i]
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    length = len(text)
    while pos < length:
        ch = text[pos]
        if ch.isspace():
            pos += 1
            continue

        m = _DQ_STRING_RE.match(text, pos)
        if m:
            tokens.append(Token("STRING", m.group(1), pos))
            pos = m.end()
            continue

        m = _REF_RE.match(text, pos)
        if m:
            prefix, start, end = m.group(1), m.group(2), m.group(3)
            if end is None:
                tokens.append(Token("REF", f"{prefix}{start}", pos))
            else:
                tokens.append(Token("RANGE", f"{prefix}{start}:{end}", pos))
            pos = m.end()
            continue

        m = _CALL_RE.match(text, pos)
        if m:
            open_idx = m.end() - 1
            close_idx = find_matching_paren(text, open_idx)
            if close_idx < 0:
                raise FormulaSyntaxError(f"Unbalanced parenthesis after {m.group(1)!r}")
            tokens.append(Token("CALL", (m.group(1), text[open_idx + 1 : close_idx]), pos))
            pos = close_idx + 1
            continue

        m = _SQ_STRING_RE.match(text, pos)
        if m:
            tokens.append(Token("STRING", m.group(1), pos))
            pos = m.end()
            continue

        m = _NUMBER_RE.match(text, pos)
        if m:
            tokens.append(Token("NUMBER", m.group(0), pos))
            pos = m.end()
            continue

        m = _NAME_RE.match(text, pos)
        if m:
            name = m.group(0).upper()
            if name not in ("TRUE", "FALSE"):
                raise FormulaSyntaxError(f"Unknown name {m.group(0)!r} at {pos}")
            tokens.append(Token("BOOL", name == "TRUE", pos))
            pos = m.end()
            continue

        for op in _OPERATORS:
            if text.startswith(op, pos):
                tokens.append(Token("OP", op, pos))
                pos += len(op)
                break
        else:
            raise FormulaSyntaxError(f"Unexpected character {ch!r} at {pos}")

    tokens.append(Token("END", None, length))
    return tokens


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: int | float


@dataclass(frozen=True)
class String:
    value: str


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class CellRef:
    token: str


@dataclass(frozen=True)
class RangeRef:
    token: str


@dataclass(frozen=True)
class Call:
    name: str
    args_text: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Node


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Node
    right: Node


Node = Union[Number, String, Boolean, CellRef, RangeRef, Call, UnaryOp, BinaryOp]

_COMPARISON_OPS = ("==", "!=", "<>", "=", "<", ">", "<=", ">=")


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _next(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _at_op(self, *ops: str) -> bool:
        tok = self._peek()
        return tok.kind == "OP" and tok.value in ops

    def parse(self) -> Node:
        node = self._comparison()
        tok = self._peek()
        if tok.kind != "END":
            raise FormulaSyntaxError(f"Unexpected {tok.value!r} at {tok.pos}")
        return node

    def _comparison(self) -> Node:
        node = self._additive()
        while self._at_op(*_COMPARISON_OPS):
            op = self._next().value
            node = BinaryOp(op, node, self._additive())
        return node

    def _additive(self) -> Node:
        node = self._term()
        while self._at_op("+", "-"):
            op = self._next().value
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self._at_op("*", "/", "%"):
            op = self._next().value
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self._at_op("+", "-"):
            op = self._next().value
            return UnaryOp(op, self._unary())
        return self._power()

    def _power(self) -> Node:
        node = self._primary()
        if self._at_op("^"):
            self._next()
            return BinaryOp("^", node, self._unary())
        return node

    def _primary(self) -> Node:
        tok = self._next()
        if tok.kind == "NUMBER":
            text = tok.value
            if text.isdigit():
                return Number(int(text))
            return Number(float(text))
        if tok.kind == "STRING":
            return String(tok.value)
        if tok.kind == "BOOL":
            return Boolean(tok.value)
        if tok.kind == "REF":
            return CellRef(tok.value)
        if tok.kind == "RANGE":
            return RangeRef(tok.value)
        if tok.kind == "CALL":
            name, args_text = tok.value
            return Call(name.upper(), args_text)
        if tok.kind == "OP" and tok.value == "(":
            node = self._comparison()
            if not self._at_op(")"):
                raise FormulaSyntaxError(f"Expected ')' at {self._peek().pos}")
            self._next()
            return node
        if tok.kind == "END":
            raise FormulaSyntaxError("Unexpected end of formula")
        raise FormulaSyntaxError(f"Unexpected {tok.value!r} at {tok.pos}")


def parse_expression(text: str) -> Node:
    """Parse an expression (no leading ``=``) into a tree."""
    return _Parser(tokenize(text)).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

_ARITHMETIC: dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": operator.mod,
    "^": power,
}

_COMPARE: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "=": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float))


def _binary_op(op: str, left: Any, right: Any) -> Any:
    """Evaluate an arithmetic operation. Non-numeric operands raise."""
    err = first_error(left, right)
    if err is not None:
        return err
    if not _is_number(left) or not _is_number(right):
        raise TypeError(f"Cannot apply {op!r} to {left!r} and {right!r}")
    return _ARITHMETIC[op](left, right)


def _compare(op: str, left: Any, right: Any) -> Any:
    """Evaluate a comparison.

    Numbers compare numerically; numeric text is coerced; anything else is
    compared as case-insensitive text.
    """
    err = first_error(left, right)
    if err is not None:
        return err
    if not (_is_number(left) and _is_number(right)):
        try:
            left = left if _is_number(left) else float(left)
            right = right if _is_number(right) else float(right)
        except (ValueError, TypeError):
            left = str(left).lower() if left is not None else ""
            right = str(right).lower() if right is not None else ""
    return _COMPARE[op](left, right)


def evaluate_tree(
    node: Node,
    resolve_ref: Callable[[str], Any],
    call: Callable[[str, str], Any],
) -> Any:
    """Evaluate a parsed expression.

    *resolve_ref* maps a single-cell token to its raw value and *call*
    evaluates a function given its name and raw argument text. Cell values
    used as operands are coerced to numbers; errors stored in cells
    propagate.
    """
    if isinstance(node, (Number, String, Boolean)):
        return node.value
    if isinstance(node, CellRef):
        value = resolve_ref(node.token)
        if isinstance(value, CellError):
            return value
        return to_number(value)
    if isinstance(node, RangeRef):
        raise ValueError(f"Range {node.token!r} cannot be used as a single value")
    if isinstance(node, Call):
        return call(node.name, node.args_text)
    if isinstance(node, UnaryOp):
        value = evaluate_tree(node.operand, resolve_ref, call)
        if isinstance(value, CellError):
            return value
        if not _is_number(value):
            raise TypeError(f"Cannot apply unary {node.op!r} to {value!r}")
        return -value if node.op == "-" else +value
    if isinstance(node, BinaryOp):
        left = evaluate_tree(node.left, resolve_ref, call)
        right = evaluate_tree(node.right, resolve_ref, call)
        if node.op in _COMPARE:
            return _compare(node.op, left, right)
        return _binary_op(node.op, left, right)
    raise TypeError(f"Unknown node {node!r}")
