"""Tests for project config, tool loading and scaffolding."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from calcblocks.formulas.errors import ToolConfigError
from calcblocks.project import (
    DEFAULT_CONFIG,
    find_tool,
    list_tools,
    load_project_config,
    load_tool,
    scaffold_project,
)


class TestScaffold:
    def test_layout(self, demo_project: Path) -> None:
        assert (demo_project / "calcblocks.yaml").is_file()
        assert (demo_project / "tools" / "profit.yaml").is_file()
        assert (demo_project / "tools" / "pricing.yaml").is_file()
        assert (demo_project / "inputs" / "profit_sweep.csv").is_file()
        assert (demo_project / "logs").is_dir()

    def test_refuses_existing(self, demo_project: Path) -> None:
        with pytest.raises(FileExistsError):
            scaffold_project(demo_project)

    def test_demo_tools_load(self, demo_project: Path) -> None:
        profit = load_tool(demo_project / "tools" / "profit.yaml")
        assert profit.title == "Profit Calculator"
        assert [o.id for o in profit.outputs] == ["profit", "margin"]
        assert profit.outputs[0].highlight


class TestProjectConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        assert load_project_config(tmp_path) == DEFAULT_CONFIG

    def test_user_values_override(self, tmp_path: Path) -> None:
        (tmp_path / "calcblocks.yaml").write_text("batch_max_rows: 10\n")
        cfg = load_project_config(tmp_path)
        assert cfg["batch_max_rows"] == 10
        assert cfg["lint_strict"] is False

    def test_empty_file(self, tmp_path: Path) -> None:
        (tmp_path / "calcblocks.yaml").write_text("")
        assert load_project_config(tmp_path) == DEFAULT_CONFIG

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "calcblocks.yaml").write_text("- a\n- b\n")
        with pytest.raises(ToolConfigError, match="mapping"):
            load_project_config(tmp_path)


class TestToolLoading:
    def test_json_tool(self, tmp_path: Path) -> None:
        path = tmp_path / "t.json"
        path.write_text(json.dumps({
            "title": "T",
            "inputs": [{"id": "a", "default": 1}],
            "outputs": [{"id": "b", "formula": "a * 2", "format": "number"}],
        }))
        config = load_tool(path)
        assert config.inputs[0].default == 1
        assert config.outputs[0].formula == "a * 2"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ToolConfigError):
            load_tool(tmp_path / "nope.yaml")

    def test_bad_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("outputs: [unclosed\n")
        with pytest.raises(ToolConfigError):
            load_tool(path)

    def test_validation_error_names_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("outputs:\n  - id: x\n    format: money\n    formula: '1'\n")
        with pytest.raises(ToolConfigError, match="bad.yaml"):
            load_tool(path)

    def test_scalar_document(self, tmp_path: Path) -> None:
        path = tmp_path / "s.yaml"
        path.write_text("just text\n")
        with pytest.raises(ToolConfigError, match="mapping"):
            load_tool(path)


class TestToolDiscovery:
    def test_list_sorted(self, demo_project: Path) -> None:
        (demo_project / "tools" / "notes.txt").write_text("ignored")
        assert list(list_tools(demo_project)) == ["pricing", "profit"]

    def test_no_tools_dir(self, tmp_path: Path) -> None:
        assert list_tools(tmp_path) == {}

    def test_find(self, demo_project: Path) -> None:
        assert find_tool(demo_project, "profit").name == "profit.yaml"

    def test_find_missing_lists_available(self, demo_project: Path) -> None:
        with pytest.raises(ToolConfigError, match="pricing"):
            find_tool(demo_project, "nope")
