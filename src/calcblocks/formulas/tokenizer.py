"""Lexer for tool formulas.

Scans a formula left to right and classifies each lexical unit.  The scan
never fails: characters outside the language are skipped without emitting
a token.
"""

from __future__ import annotations

import math
import re
import string
from enum import Enum
from functools import lru_cache
from typing import NamedTuple


class TokenKind(str, Enum):
    number = "number"
    identifier = "identifier"
    operator = "operator"
    paren = "paren"
    ternary = "ternary"


class Token(NamedTuple):
    """A classified lexical unit.

    ``value`` is a float for ``number`` tokens and the source text otherwise.
    """

    kind: TokenKind
    value: float | str


_DIGITS = frozenset(string.digits)
_NUMBER_CHARS = _DIGITS | {"."}
_IDENT_START = frozenset(string.ascii_letters + "_")
_IDENT_CHARS = _IDENT_START | _DIGITS

_TWO_CHAR_OPERATORS = frozenset({">=", "<=", "==", "!="})
_ARITHMETIC_OPERATORS = frozenset("+-*/%")
_COMPARISON_OPERATORS = frozenset("><")

# Longest leading numeric prefix of a digit/dot run ("1.2.3" -> "1.2").
_NUMBER_PREFIX_RE = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")


def _number_value(text: str) -> float:
    """Convert a digit/dot run to a float, NaN when no digits lead it."""
    m = _NUMBER_PREFIX_RE.match(text)
    if m is None:
        return math.nan
    return float(m.group(0))


def tokenize(formula: str) -> list[Token]:
    """Split *formula* into tokens.

    Rules are tried in priority order at each position: whitespace, number,
    identifier, two-character comparison, single-character operator, paren,
    ternary marker.  Anything else is dropped.

    Args:
        formula: Formula text, e.g. ``"revenue > 1000 ? 10 : 0"``.

    Returns:
        Ordered list of tokens.
    """
    tokens: list[Token] = []
    i = 0
    n = len(formula)

    while i < n:
        ch = formula[i]

        if ch.isspace():
            i += 1
            continue

        if ch in _NUMBER_CHARS:
            start = i
            while i < n and formula[i] in _NUMBER_CHARS:
                i += 1
            tokens.append(Token(TokenKind.number, _number_value(formula[start:i])))
            continue

        if ch in _IDENT_START:
            start = i
            while i < n and formula[i] in _IDENT_CHARS:
                i += 1
            tokens.append(Token(TokenKind.identifier, formula[start:i]))
            continue

        two = formula[i:i + 2]
        if two in _TWO_CHAR_OPERATORS:
            tokens.append(Token(TokenKind.operator, two))
            i += 2
            continue

        if ch in _ARITHMETIC_OPERATORS or ch in _COMPARISON_OPERATORS:
            tokens.append(Token(TokenKind.operator, ch))
        elif ch in "()":
            tokens.append(Token(TokenKind.paren, ch))
        elif ch in "?:":
            tokens.append(Token(TokenKind.ternary, ch))
        i += 1

    return tokens


@lru_cache(maxsize=1024)
def tokenize_cached(formula: str) -> tuple[Token, ...]:
    """Memoized :func:`tokenize` returning an immutable token tuple.

    Tool formulas are static per configuration, so repeated evaluation on
    every input change only pays for the scan once.
    """
    return tuple(tokenize(formula))
