"""Tests for input coercion, ordered output resolution and display formatting."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from calcblocks.formatting import (
    PLACEHOLDER,
    format_value,
    has_any_input,
    input_prefix,
    input_suffix,
)
from calcblocks.tools import (
    ToolConfig,
    ToolOutput,
    coerce_inputs,
    compute_tool,
    default_values,
    parse_input_value,
    resolve_outputs,
    tool_has_input,
)


def _pricing() -> ToolConfig:
    return ToolConfig.model_validate({
        "title": "Pricing",
        "inputs": [
            {"id": "unit_cost", "type": "currency", "default": 20},
            {"id": "markup", "type": "percentage", "default": 50},
            {"id": "units", "default": 100},
        ],
        "outputs": [
            {"id": "price", "formula": "unit_cost * (1 + markup / 100)", "format": "currency"},
            {"id": "monthly_revenue", "formula": "price * units", "format": "currency"},
            {"id": "monthly_profit", "formula": "(price - unit_cost) * units", "format": "currency"},
        ],
    })


# ────────────────────────────────────────────────────────────────
# Input coercion
# ────────────────────────────────────────────────────────────────


class TestParseInputValue:
    @pytest.mark.parametrize("raw,expected", [
        ("", 0.0),
        (None, 0.0),
        ("abc", 0.0),
        ("12abc", 12.0),
        ("  3.5", 3.5),
        ("-2", -2.0),
        ("+4", 4.0),
        (".5", 0.5),
        ("1e3", 1000.0),
        ("1,000", 1.0),
        (7, 7.0),
        (2.25, 2.25),
    ])
    def test_values(self, raw: object, expected: float) -> None:
        assert parse_input_value(raw) == expected

    def test_nan_is_zero(self) -> None:
        assert parse_input_value(math.nan) == 0.0
        assert parse_input_value("NaN") == 0.0

    def test_infinity_passes_through(self) -> None:
        assert parse_input_value("Infinity") == math.inf
        assert parse_input_value("-Infinity") == -math.inf


class TestCoerceInputs:
    def test_defaults_as_text(self) -> None:
        assert default_values(_pricing()) == {"unit_cost": "20", "markup": "50", "units": "100"}

    def test_fractional_default_text(self) -> None:
        config = ToolConfig.model_validate({"inputs": [{"id": "rate", "default": 2.5}]})
        assert default_values(config) == {"rate": "2.5"}

    def test_missing_input_takes_default(self) -> None:
        env = coerce_inputs(_pricing(), {"units": "10"})
        assert env == {"unit_cost": 20.0, "markup": 50.0, "units": 10.0}

    def test_blank_overrides_default(self) -> None:
        env = coerce_inputs(_pricing(), {"unit_cost": ""})
        assert env["unit_cost"] == 0.0

    def test_undeclared_keys_ignored(self, profit_config: ToolConfig) -> None:
        env = coerce_inputs(profit_config, {"revenue": "5", "bogus": "9"})
        assert env == {"revenue": 5.0, "costs": 0.0}

    def test_has_input(self, profit_config: ToolConfig) -> None:
        assert not tool_has_input(profit_config)
        assert not tool_has_input(profit_config, {"revenue": "0", "costs": ""})
        assert tool_has_input(profit_config, {"revenue": "1"})
        assert tool_has_input(_pricing())


# ────────────────────────────────────────────────────────────────
# Ordered resolution
# ────────────────────────────────────────────────────────────────


class TestResolveOutputs:
    def test_later_outputs_see_earlier(self) -> None:
        outputs = [
            ToolOutput(id="profit", formula="revenue - costs"),
            ToolOutput(id="margin", formula="profit / revenue * 100"),
        ]
        results = resolve_outputs(outputs, {"revenue": 1000, "costs": 400})
        assert [(o.id, v) for o, v in results] == [("profit", 600), ("margin", 60)]

    def test_forward_reference_is_zero(self) -> None:
        outputs = [
            ToolOutput(id="margin", formula="profit / revenue * 100"),
            ToolOutput(id="profit", formula="revenue - costs"),
        ]
        results = resolve_outputs(outputs, {"revenue": 1000, "costs": 400})
        assert [(o.id, v) for o, v in results] == [("margin", 0), ("profit", 600)]

    def test_self_reference_is_zero(self) -> None:
        results = resolve_outputs([ToolOutput(id="x", formula="x + 1")], {})
        assert results[0][1] == 1

    def test_output_shadows_input(self) -> None:
        outputs = [
            ToolOutput(id="a", formula="a * 2"),
            ToolOutput(id="b", formula="a + 1"),
        ]
        results = resolve_outputs(outputs, {"a": 3})
        assert [v for _, v in results] == [6, 7]

    def test_inputs_not_mutated(self) -> None:
        inputs = {"a": 1.0}
        resolve_outputs([ToolOutput(id="b", formula="a + 1")], inputs)
        assert inputs == {"a": 1.0}

    def test_all_values_finite(self) -> None:
        outputs = [
            ToolOutput(id="a", formula="10 / 0"),
            ToolOutput(id="b", formula="big * big"),
            ToolOutput(id="c", formula="(((("),
        ]
        results = resolve_outputs(outputs, {"big": 1e300})
        assert all(math.isfinite(v) and v == 0 for _, v in results)


class TestComputeTool:
    def test_placeholder_until_input(self, profit_config: ToolConfig) -> None:
        computed = compute_tool(profit_config, {})
        assert [c.formatted for c in computed] == [PLACEHOLDER, PLACEHOLDER]
        assert not any(c.negative for c in computed)

    def test_formatted_outputs(self, profit_config: ToolConfig) -> None:
        computed = compute_tool(profit_config, {"revenue": "1000", "costs": "400"})
        assert [c.formatted for c in computed] == ["$600.00", "60.0%"]
        assert [c.value for c in computed] == [600, 60]

    def test_negative_flag(self, profit_config: ToolConfig) -> None:
        computed = compute_tool(profit_config, {"revenue": "500", "costs": "800"})
        assert computed[0].formatted == "-$300.00"
        assert computed[0].negative
        assert computed[1].negative

    def test_defaults_count_as_input(self) -> None:
        computed = compute_tool(_pricing())
        assert [c.formatted for c in computed] == ["$30.00", "$3,000.00", "$1,000.00"]

    def test_long_number_input(self, profit_config: ToolConfig) -> None:
        computed = compute_tool(profit_config, {"revenue": "1" + "0" * 27})
        assert computed[0].formatted.startswith("$1,000,000,000")
        assert computed[0].formatted.endswith(".00")
        assert computed[1].formatted == "100.0%"

    def test_negative_flag_follows_displayed_sign(self, profit_config: ToolConfig) -> None:
        computed = compute_tool(profit_config, {"revenue": "1", "costs": "1.001"})
        assert computed[0].value < 0
        assert computed[0].formatted == "$0.00"
        assert not computed[0].negative
        assert computed[1].formatted == "-0.1%"
        assert computed[1].negative

    def test_numeric_zero_is_not_input(self, profit_config: ToolConfig) -> None:
        assert not tool_has_input(profit_config, {"revenue": 0, "costs": 0.0})
        assert tool_has_input(profit_config, {"revenue": 0.5})
        computed = compute_tool(profit_config, {"revenue": 0, "costs": 0})
        assert [c.formatted for c in computed] == [PLACEHOLDER, PLACEHOLDER]

    def test_output_requires_formula(self) -> None:
        with pytest.raises(ValidationError):
            ToolConfig.model_validate({"outputs": [{"id": "x"}]})


# ────────────────────────────────────────────────────────────────
# Formatting
# ────────────────────────────────────────────────────────────────


class TestFormatting:
    @pytest.mark.parametrize("value,expected", [
        (1234.5, "$1,234.50"),
        (-12, "-$12.00"),
        (0, "$0.00"),
        (0.005, "$0.01"),
        (-0.004, "$0.00"),
        (1_000_000, "$1,000,000.00"),
    ])
    def test_currency(self, value: float, expected: str) -> None:
        assert format_value(value, "currency") == expected

    @pytest.mark.parametrize("value,expected", [
        (60, "60.0%"),
        (12.25, "12.3%"),
        (-5.25, "-5.3%"),
        (-0.04, "0.0%"),
    ])
    def test_percentage(self, value: float, expected: str) -> None:
        assert format_value(value, "percentage") == expected

    @pytest.mark.parametrize("value,expected", [
        (1234.567, "1,234.57"),
        (1000, "1,000"),
        (0.5, "0.5"),
        (-2.5, "-2.5"),
        (0, "0"),
        (10, "10"),
    ])
    def test_number(self, value: float, expected: str) -> None:
        assert format_value(value, "number") == expected

    @pytest.mark.parametrize("fmt,expected", [
        ("currency", "$1.01"),
        ("number", "1.01"),
    ])
    def test_half_up_on_decimal_repr(self, fmt: str, expected: str) -> None:
        assert format_value(1.005, fmt) == expected  # type: ignore[arg-type]
        assert format_value(0.05, "percentage") == "0.1%"

    @pytest.mark.parametrize("value,digits", [(1e27, 27), (1e300, 300)])
    def test_very_large_values(self, value: float, digits: int) -> None:
        whole = "1" + "0" * digits
        assert format_value(value, "number").replace(",", "") == whole
        assert format_value(value, "currency").replace(",", "") == f"${whole}.00"
        assert format_value(-value, "currency").replace(",", "") == f"-${whole}.00"
        assert format_value(value, "percentage") == f"{whole}.0%"

    def test_non_finite_placeholder(self) -> None:
        assert format_value(math.nan, "number") == PLACEHOLDER
        assert format_value(math.inf, "currency") == PLACEHOLDER

    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError, match="Unknown value format"):
            format_value(1.0, "bogus")  # type: ignore[arg-type]

    def test_input_adornments(self) -> None:
        assert input_prefix("currency") == "$"
        assert input_prefix("number") is None
        assert input_suffix("percentage") == "%"
        assert input_suffix("currency") is None

    def test_has_any_input(self) -> None:
        assert not has_any_input([])
        assert not has_any_input(["", "0"])
        assert has_any_input(["", "0.0"])
        assert has_any_input(["3"])
