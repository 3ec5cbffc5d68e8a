"""Interactive tool configurations and output resolution.

A tool declares numeric inputs and an ordered list of outputs.  Outputs are
resolved in declaration order: each formula sees every input plus every
output declared before it.  A reference to a later output resolves to ``0``.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from pydantic import BaseModel

from calcblocks.formatting import PLACEHOLDER, ValueFormat, format_value, has_any_input
from calcblocks.formulas.evaluator import evaluate_formula


# ────────────────────────────────────────────────────────────────
# Configuration models
# ────────────────────────────────────────────────────────────────


class ToolInput(BaseModel):
    id: str
    label: str = ""
    type: ValueFormat = "number"
    placeholder: str | None = None
    default: float | None = None


class ToolOutput(BaseModel):
    id: str
    label: str = ""
    formula: str
    format: ValueFormat = "number"
    highlight: bool = False


class ToolConfig(BaseModel):
    """A named input/output definition attached to a lesson block."""

    tool_type: str = "calculator"
    title: str = ""
    description: str = ""
    inputs: list[ToolInput] = []
    outputs: list[ToolOutput] = []


class ComputedOutput(BaseModel):
    output: ToolOutput
    value: float
    formatted: str = PLACEHOLDER
    negative: bool = False


# ────────────────────────────────────────────────────────────────
# Input coercion
# ────────────────────────────────────────────────────────────────

# Leading numeric prefix, as browsers parse typed number fields.
_LEADING_NUMBER_RE = re.compile(
    r"\s*([+-]?(?:Infinity|(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?))"
)


def parse_input_value(raw: Any) -> float:
    """Convert one raw input value to a number.

    Strings contribute their leading numeric prefix (``"12abc"`` -> 12).
    Blank, unparseable and NaN values are ``0``.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        m = _LEADING_NUMBER_RE.match(str(raw))
        if m is None:
            return 0.0
        value = float(m.group(1).replace("Infinity", "inf"))
    return 0.0 if math.isnan(value) else value


def default_values(config: ToolConfig) -> dict[str, str]:
    """Initial raw input state: each declared default as text, else blank."""
    return {
        inp.id: ("" if inp.default is None else _default_text(inp.default))
        for inp in config.inputs
    }


def _default_text(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


def coerce_inputs(config: ToolConfig, raw_values: Mapping[str, Any] | None = None) -> dict[str, float]:
    """Build the numeric variable environment for *config*.

    Inputs missing from *raw_values* take their declared default.  Values
    for names that are not declared inputs are ignored.
    """
    state = _input_state(config, raw_values)
    return {inp.id: parse_input_value(state[inp.id]) for inp in config.inputs}


def _input_state(config: ToolConfig, raw_values: Mapping[str, Any] | None) -> dict[str, Any]:
    state: dict[str, Any] = dict(default_values(config))
    for inp in config.inputs:
        if raw_values is not None and inp.id in raw_values:
            state[inp.id] = raw_values[inp.id]
    return state


def tool_has_input(config: ToolConfig, raw_values: Mapping[str, Any] | None = None) -> bool:
    """True once any input holds something other than blank or ``0``."""
    state = _input_state(config, raw_values)
    return has_any_input(_raw_text(v) for v in state.values())


def _raw_text(raw: Any) -> str:
    """Text form of a raw value as a typed field would hold it."""
    if raw is None:
        return ""
    if isinstance(raw, (int, float)) and raw == 0:
        return "0"
    return str(raw)


# ────────────────────────────────────────────────────────────────
# Resolution
# ────────────────────────────────────────────────────────────────


def resolve_outputs(
    outputs: list[ToolOutput],
    inputs: Mapping[str, float],
) -> list[tuple[ToolOutput, float]]:
    """Evaluate *outputs* in declared order against *inputs*.

    Each computed value is added to the environment under the output's id
    before the next formula runs.  *inputs* is not mutated.

    Returns:
        ``(output, value)`` pairs in declaration order.
    """
    env: dict[str, float] = dict(inputs)
    results: list[tuple[ToolOutput, float]] = []
    for output in outputs:
        value = evaluate_formula(output.formula, env)
        env[output.id] = value
        results.append((output, value))
    return results


def compute_tool(
    config: ToolConfig,
    raw_values: Mapping[str, Any] | None = None,
) -> list[ComputedOutput]:
    """Coerce inputs, resolve outputs and format them for display.

    Until the user has entered something other than blank or ``0``, every
    output is shown as the placeholder and none is flagged negative.  An
    output is flagged negative only when its displayed text carries the
    sign, so values that round to zero are not.
    """
    env = coerce_inputs(config, raw_values)
    show = tool_has_input(config, raw_values)

    computed: list[ComputedOutput] = []
    for output, value in resolve_outputs(config.outputs, env):
        formatted = format_value(value, output.format) if show else PLACEHOLDER
        computed.append(ComputedOutput(
            output=output,
            value=value,
            formatted=formatted,
            negative=show and value < 0 and formatted.startswith("-"),
        ))
    return computed
