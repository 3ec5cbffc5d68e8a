"""Recursive-descent evaluator for tool formulas.

The evaluator computes values while it descends; no tree is built.  It is
deliberately total: malformed input never raises, it degrades to ``0``.

Grammar (lowest precedence first)::

    ternary     := comparison ( '?' ternary ( ':' ternary )? )?
    comparison  := addsub ( ('>' | '<' | '>=' | '<=' | '==' | '!=') addsub )*
    addsub      := muldiv ( ('+' | '-') muldiv )*
    muldiv      := unary ( ('*' | '/' | '%') unary )*
    unary       := '-' primary | primary
    primary     := number | identifier | '(' ternary ')'
"""

from __future__ import annotations

import math
from typing import Any, Callable, Mapping, Sequence

from calcblocks.formulas.tokenizer import Token, TokenKind, tokenize_cached

_COMPARISONS: dict[str, Callable[[float, float], bool]] = {
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}


def evaluate_formula(formula: str, variables: Mapping[str, Any]) -> float:
    """Evaluate *formula* against *variables* and return a finite float.

    Never raises.  Any internal failure, and any NaN or infinite result,
    yields ``0.0``.

    Args:
        formula: Formula text, e.g. ``"price * qty"``.
        variables: Mapping of identifier names to numbers.  Not mutated.

    Returns:
        The computed value, always finite.
    """
    try:
        result = _Parser(tokenize_cached(formula), variables).parse()
    except Exception:
        return 0.0
    if not math.isfinite(result):
        return 0.0
    # normalize -0.0
    return result + 0.0


def _truthy(value: float) -> bool:
    return value != 0 and not math.isnan(value)


def _lookup(variables: Mapping[str, Any], name: str) -> float:
    value = variables.get(name)
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _divide(left: float, right: float) -> float:
    if right == 0:
        return 0.0
    return left / right


def _remainder(left: float, right: float) -> float:
    """Truncated remainder (sign follows the dividend), ``0`` for a zero divisor."""
    if right == 0:
        return 0.0
    if math.isnan(right) or not math.isfinite(left):
        return math.nan
    if math.isinf(right):
        return left
    return math.fmod(left, right)


class _Parser:
    """Single-pass evaluator over a token sequence.

    One instance per evaluation; state is the cursor position only.
    """

    def __init__(self, tokens: Sequence[Token], variables: Mapping[str, Any]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._vars = variables

    def parse(self) -> float:
        return self._ternary()

    # -- cursor ------------------------------------------------------------

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _at(self, kind: TokenKind, *values: str) -> bool:
        token = self._peek()
        return token is not None and token.kind is kind and token.value in values

    # -- grammar rules -------------------------------------------------------

    def _ternary(self) -> float:
        condition = self._comparison()
        if not self._at(TokenKind.ternary, "?"):
            return condition
        self._advance()
        then_value = self._ternary()
        else_value = 0.0
        if self._at(TokenKind.ternary, ":"):
            self._advance()
            else_value = self._ternary()
        return then_value if _truthy(condition) else else_value

    def _comparison(self) -> float:
        left = self._addsub()
        while self._at(TokenKind.operator, *_COMPARISONS):
            compare = _COMPARISONS[self._advance().value]
            right = self._addsub()
            left = 1.0 if compare(left, right) else 0.0
        return left

    def _addsub(self) -> float:
        left = self._muldiv()
        while self._at(TokenKind.operator, "+", "-"):
            op = self._advance().value
            right = self._muldiv()
            left = left + right if op == "+" else left - right
        return left

    def _muldiv(self) -> float:
        left = self._unary()
        while self._at(TokenKind.operator, "*", "/", "%"):
            op = self._advance().value
            right = self._unary()
            if op == "*":
                left = left * right
            elif op == "/":
                left = _divide(left, right)
            else:
                left = _remainder(left, right)
        return left

    def _unary(self) -> float:
        if self._at(TokenKind.operator, "-"):
            self._advance()
            return -self._primary()
        return self._primary()

    def _primary(self) -> float:
        token = self._peek()
        if token is None:
            return 0.0

        self._advance()
        if token.kind is TokenKind.number:
            return token.value
        if token.kind is TokenKind.identifier:
            return _lookup(self._vars, token.value)
        if token.kind is TokenKind.paren and token.value == "(":
            result = self._ternary()
            # Unclosed parens are tolerated.
            if self._at(TokenKind.paren, ")"):
                self._advance()
            return result

        # Stray token where a value was expected.
        return 0.0
