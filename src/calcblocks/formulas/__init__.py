"""Safe arithmetic formulas for interactive tools.

Public API::

    from calcblocks.formulas import evaluate_formula, parse_formula, extract_refs
"""

from calcblocks.formulas.errors import (
    FormulaError,
    FormulaParseError,
    FormulaRefError,
    ToolConfigError,
)
from calcblocks.formulas.evaluator import evaluate_formula
from calcblocks.formulas.grammar import extract_refs, parse_formula, validate_formula
from calcblocks.formulas.tokenizer import Token, TokenKind, tokenize, tokenize_cached

__all__ = [
    "FormulaError",
    "FormulaParseError",
    "FormulaRefError",
    "Token",
    "TokenKind",
    "ToolConfigError",
    "evaluate_formula",
    "extract_refs",
    "parse_formula",
    "tokenize",
    "tokenize_cached",
    "validate_formula",
]
