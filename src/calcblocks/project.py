"""Project-level configuration, tool loading and scaffolding.

A project is a directory with an optional ``calcblocks.yaml`` and a
``tools/`` folder holding one YAML or JSON file per tool configuration.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from calcblocks.formulas.errors import ToolConfigError
from calcblocks.tools import ToolConfig


DEFAULT_CONFIG = {
    "lint_strict": False,
    "batch_max_rows": 100_000,
    "batch_max_workers": 1,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

CONFIG_FILENAME = "calcblocks.yaml"
TOOLS_DIRNAME = "tools"

_TOOL_SUFFIXES = (".yaml", ".yml", ".json")


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``calcblocks.yaml``, with defaults.

    Args:
        project_dir: Root of the calcblocks project.

    Returns:
        Merged configuration dict.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ToolConfigError(f"{config_path}: expected a mapping at top level")
        config.update(user_config)
    return config


def load_tool(path: Path) -> ToolConfig:
    """Read and validate a tool configuration file.

    ``.json`` files are parsed as JSON, anything else as YAML.

    Raises:
        ToolConfigError: If the file cannot be read, parsed or validated.
    """
    try:
        text = path.read_text()
    except OSError as exc:
        raise ToolConfigError(f"{path}: {exc}") from exc

    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ToolConfigError(f"{path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ToolConfigError(f"{path}: expected a mapping at top level")

    try:
        return ToolConfig.model_validate(data)
    except ValidationError as exc:
        raise ToolConfigError(f"{path}: {exc}") from exc


def list_tools(project_dir: Path) -> dict[str, Path]:
    """Map tool names (file stems) to their config files, sorted by name."""
    tools_dir = project_dir / TOOLS_DIRNAME
    if not tools_dir.is_dir():
        return {}
    found: dict[str, Path] = {}
    for path in sorted(tools_dir.iterdir()):
        if path.is_file() and path.suffix in _TOOL_SUFFIXES:
            found.setdefault(path.stem, path)
    return found


def find_tool(project_dir: Path, name: str) -> Path:
    """Return the config file for tool *name*.

    Raises:
        ToolConfigError: If the project has no such tool.
    """
    tools = list_tools(project_dir)
    if name not in tools:
        raise ToolConfigError(
            f"Tool {name!r} not found. Available: {sorted(tools)}"
        )
    return tools[name]


# ────────────────────────────────────────────────────────────────
# Scaffolding
# ────────────────────────────────────────────────────────────────

DEMO_CONFIG = """\
# calcblocks project config
lint_strict: false
batch_max_rows: 100000
batch_max_workers: 1
logging_fsync: false
"""

DEMO_PROFIT_TOOL = """\
tool_type: profit_calculator
title: Profit Calculator
description: See what you keep after costs.
inputs:
  - id: revenue
    label: Monthly revenue
    type: currency
    placeholder: "10000"
  - id: costs
    label: Monthly costs
    type: currency
    placeholder: "4000"
outputs:
  - id: profit
    label: Profit
    formula: revenue - costs
    format: currency
    highlight: true
  - id: margin
    label: Margin
    formula: "revenue > 0 ? profit / revenue * 100 : 0"
    format: percentage
"""

DEMO_PRICING_TOOL = """\
tool_type: pricing_calculator
title: Pricing Calculator
description: Work out a price from your cost and target markup.
inputs:
  - id: unit_cost
    label: Cost per unit
    type: currency
    default: 20
  - id: markup
    label: Markup
    type: percentage
    default: 50
  - id: units
    label: Units per month
    type: number
    default: 100
outputs:
  - id: price
    label: Price per unit
    formula: unit_cost * (1 + markup / 100)
    format: currency
    highlight: true
  - id: monthly_revenue
    label: Monthly revenue
    formula: price * units
    format: currency
  - id: monthly_profit
    label: Monthly profit
    formula: (price - unit_cost) * units
    format: currency
"""

DEMO_INPUTS_CSV = """\
revenue,costs
10000,4000
5000,6000
,
12500.50,abc
"""


def scaffold_project(target_dir: Path) -> Path:
    """Create a new calcblocks demo project at the target directory.

    Args:
        target_dir: Directory to create (must not already contain
            ``calcblocks.yaml``).

    Returns:
        Path to the created project directory.
    """
    target_dir = target_dir.resolve()
    target_dir.mkdir(parents=True, exist_ok=True)

    if (target_dir / CONFIG_FILENAME).exists():
        raise FileExistsError(f"{CONFIG_FILENAME} already exists in {target_dir}")

    (target_dir / CONFIG_FILENAME).write_text(DEMO_CONFIG)

    tools_dir = target_dir / TOOLS_DIRNAME
    tools_dir.mkdir(exist_ok=True)
    (tools_dir / "profit.yaml").write_text(DEMO_PROFIT_TOOL)
    (tools_dir / "pricing.yaml").write_text(DEMO_PRICING_TOOL)

    inputs_dir = target_dir / "inputs"
    inputs_dir.mkdir(exist_ok=True)
    (inputs_dir / "profit_sweep.csv").write_text(DEMO_INPUTS_CSV)

    (target_dir / "logs").mkdir(exist_ok=True)

    return target_dir
