"""Display formatting for tool inputs and outputs.

Values produced by :func:`calcblocks.formulas.evaluate_formula` are always
finite; :func:`format_value` still guards so that callers passing raw
numbers get a placeholder instead of ``nan``.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, Literal

ValueFormat = Literal["currency", "number", "percentage"]

PLACEHOLDER = "—"

_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")


def _round(value: float, step: Decimal) -> Decimal:
    """Round half away from zero on the shortest decimal repr (1.005 -> 1.01)."""
    exact = Decimal(repr(value))
    with localcontext() as ctx:
        # room for every integer digit plus the fraction step
        ctx.prec = max(28, exact.adjusted() + 4)
        rounded = exact.quantize(step, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    return rounded


def format_value(value: float, fmt: ValueFormat) -> str:
    """Format *value* for display.

    Examples::

        format_value(1234.5, "currency")     # "$1,234.50"
        format_value(-12, "currency")        # "-$12.00"
        format_value(12.25, "percentage")    # "12.3%"
        format_value(1234.567, "number")     # "1,234.57"
    """
    if not math.isfinite(value):
        return PLACEHOLDER

    if fmt == "currency":
        amount = _round(abs(value), _CENTS)
        sign = "-" if value < 0 and amount != 0 else ""
        return f"{sign}${amount:,.2f}"
    if fmt == "percentage":
        return f"{_round(value, _TENTHS):.1f}%"
    if fmt == "number":
        text = f"{_round(value, _CENTS):,.2f}"
        return text.rstrip("0").rstrip(".")
    raise ValueError(f"Unknown value format: {fmt!r}")


def input_prefix(input_type: ValueFormat) -> str | None:
    return "$" if input_type == "currency" else None


def input_suffix(input_type: ValueFormat) -> str | None:
    return "%" if input_type == "percentage" else None


def has_any_input(raw_values: Iterable[str]) -> bool:
    """True once the user has typed anything other than blank or ``0``."""
    return any(v not in ("", "0") for v in raw_values)
