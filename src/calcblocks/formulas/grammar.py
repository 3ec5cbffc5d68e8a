"""Lark-based strict grammar for tool formulas.

Used only by authoring checks (see :mod:`calcblocks.lint`).  It accepts the
same language as the runtime evaluator but rejects everything the runtime
silently tolerates: stray characters, unbalanced parens, dangling
operators, chained unary minus, malformed numbers.

The parse tree is inspected for references and never executed.
"""

from __future__ import annotations

from typing import Iterable

from lark import Lark, Token, Tree, Visitor
from lark.exceptions import UnexpectedEOF, UnexpectedInput

from calcblocks.formulas.errors import FormulaParseError, FormulaRefError

# Operator precedence (lowest to highest):
#   1. Ternary: ? :  (right-associative, else branch optional)
#   2. Comparison: > < >= <= == !=  (left fold)
#   3. Addition/subtraction: + -
#   4. Multiplication/division/modulo: * / %
#   5. Unary minus (applies to a single primary)
#   6. Atoms: number, identifier, parenthesized expr
GRAMMAR = r"""
?start: ternary

?ternary: comparison
    | comparison "?" ternary (":" ternary)?  -> cond

?comparison: addition
    | comparison ">" addition   -> gt
    | comparison "<" addition   -> lt
    | comparison ">=" addition  -> gte
    | comparison "<=" addition  -> lte
    | comparison "==" addition  -> eq
    | comparison "!=" addition  -> neq

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div
    | multiplication "%" unary  -> mod

?unary: atom
    | "-" atom  -> neg

?atom: NUMBER         -> number
    | NAME            -> ref
    | "(" ternary ")"

NUMBER: /[0-9]+(\.[0-9]*)?|\.[0-9]+/
NAME: /[A-Za-z_][A-Za-z0-9_]*/

%import common.WS
%ignore WS
"""

# Earley, not LALR: the optional else branch makes ``a ? b ? c : d``
# ambiguous, which matters for evaluation but never for checking.
_parser = Lark(GRAMMAR, parser="earley", lexer="basic", start="start")


def parse_formula(text: str) -> Tree:
    """Parse a formula string into a Lark tree, strictly.

    Args:
        text: The formula text, e.g. ``"revenue - costs"``.

    Returns:
        A Lark parse tree.

    Raises:
        FormulaParseError: If the formula is empty or has invalid syntax.
    """
    if not text.strip():
        raise FormulaParseError("Formula is empty", position=0)
    try:
        return _parser.parse(text)
    except UnexpectedInput as exc:
        pos = getattr(exc, "column", None)
        if isinstance(pos, int) and pos < 0:
            pos = None
        raise FormulaParseError(_describe(exc), position=pos) from exc


def _describe(exc: UnexpectedInput) -> str:
    token = getattr(exc, "token", None)
    if isinstance(exc, UnexpectedEOF) or getattr(token, "type", None) == "$END":
        return "unexpected end of formula"
    if token is not None:
        return f"unexpected {str(token)!r}"
    char = getattr(exc, "char", None)
    if char is not None:
        return f"unexpected character {char!r}"
    return str(exc).splitlines()[0]


class _RefCollector(Visitor):
    """Visitor that collects all identifier references from a parse tree."""

    def __init__(self) -> None:
        self.refs: set[str] = set()

    def ref(self, tree: Tree) -> None:
        token = tree.children[0]
        if isinstance(token, Token):
            self.refs.add(str(token))


def extract_refs(tree: Tree | Token) -> set[str]:
    """Extract all identifier names referenced by a parsed formula.

    Args:
        tree: A parse tree from ``parse_formula()``.

    Returns:
        Set of referenced names.
    """
    if not isinstance(tree, Tree):
        return set()
    collector = _RefCollector()
    collector.visit(tree)
    return collector.refs


def validate_formula(text: str, available: Iterable[str] | None = None) -> set[str]:
    """Strictly parse *text* and check its references.

    Args:
        text: Formula text.
        available: Names the formula may reference.  ``None`` skips the
            reference check.

    Returns:
        The set of referenced names.

    Raises:
        FormulaParseError: On invalid syntax.
        FormulaRefError: On the first (alphabetically) unavailable name.
    """
    refs = extract_refs(parse_formula(text))
    if available is not None:
        names = set(available)
        missing = sorted(refs - names)
        if missing:
            raise FormulaRefError(missing[0], available=sorted(names))
    return refs
