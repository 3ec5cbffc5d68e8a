"""Shared fixtures for calcblocks tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from calcblocks.logging.events import clear_project_dir
from calcblocks.project import scaffold_project
from calcblocks.tools import ToolConfig


@pytest.fixture(autouse=True)
def _reset_event_sink():
    """Keep the module-level event sink from leaking between tests."""
    clear_project_dir()
    yield
    clear_project_dir()


@pytest.fixture
def profit_config() -> ToolConfig:
    return ToolConfig.model_validate({
        "tool_type": "profit_calculator",
        "title": "Profit Calculator",
        "description": "See what you keep.",
        "inputs": [
            {"id": "revenue", "label": "Revenue", "type": "currency"},
            {"id": "costs", "label": "Costs", "type": "currency"},
        ],
        "outputs": [
            {"id": "profit", "label": "Profit", "formula": "revenue - costs",
             "format": "currency", "highlight": True},
            {"id": "margin", "label": "Margin", "formula": "profit / revenue * 100",
             "format": "percentage"},
        ],
    })


@pytest.fixture
def demo_project(tmp_path: Path) -> Path:
    return scaffold_project(tmp_path / "proj")
