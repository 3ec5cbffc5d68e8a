"""Tests for the calcblocks CLI."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from calcblocks.cli_core import main


class TestEvalCommand:
    def test_plain(self) -> None:
        result = CliRunner().invoke(main, ["eval", "2 + 3 * 4"])
        assert result.exit_code == 0
        assert result.output == "14\n"

    def test_vars(self) -> None:
        result = CliRunner().invoke(main, ["eval", "price * qty", "--var", "price=9.5", "--var", "qty=3"])
        assert result.exit_code == 0
        assert result.output.strip() == "28.5"

    def test_garbage_formula(self) -> None:
        result = CliRunner().invoke(main, ["eval", "10 / 0"])
        assert result.output.strip() == "0"

    def test_bad_var(self) -> None:
        result = CliRunner().invoke(main, ["eval", "x", "--var", "x"])
        assert result.exit_code != 0
        assert "key=value" in result.output

    def test_non_numeric_var(self) -> None:
        result = CliRunner().invoke(main, ["eval", "x", "--var", "x=abc"])
        assert result.exit_code != 0


class TestNewCommand:
    def test_scaffold(self, tmp_path: Path) -> None:
        target = tmp_path / "proj"
        runner = CliRunner()
        result = runner.invoke(main, ["new", str(target)])
        assert result.exit_code == 0
        assert (target / "tools" / "profit.yaml").exists()

        again = runner.invoke(main, ["new", str(target)])
        assert again.exit_code != 0


class TestComputeCommand:
    def test_file_table(self, demo_project: Path) -> None:
        path = demo_project / "tools" / "profit.yaml"
        result = CliRunner().invoke(main, [
            "compute", str(path), "--set", "revenue=1000", "--set", "costs=400",
        ])
        assert result.exit_code == 0
        assert "Profit Calculator" in result.output
        assert "$600.00" in result.output
        assert "60.0%" in result.output
        assert " * Profit" in result.output

    def test_project_json(self, demo_project: Path) -> None:
        result = CliRunner().invoke(main, [
            "compute", "pricing", "--project", str(demo_project), "--json",
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [d["id"] for d in data] == ["price", "monthly_revenue", "monthly_profit"]
        assert data[0]["formatted"] == "$30.00"

    def test_unknown_tool(self, demo_project: Path) -> None:
        result = CliRunner().invoke(main, ["compute", "nope", "--project", str(demo_project)])
        assert result.exit_code != 0
        assert "not found" in result.output


class TestLintCommand:
    def test_project_passes(self, demo_project: Path) -> None:
        result = CliRunner().invoke(main, ["lint", str(demo_project)])
        assert result.exit_code == 0
        assert "profit: PASS" in result.output

    def test_file_with_errors(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("outputs:\n  - id: x\n    formula: \"1 +\"\n")
        result = CliRunner().invoke(main, ["lint", str(path)])
        assert result.exit_code == 1
        assert "syntax_error" in result.output

    def test_strict_flag(self, tmp_path: Path) -> None:
        path = tmp_path / "fwd.yaml"
        path.write_text("outputs:\n  - id: a\n    formula: b\n  - id: b\n    formula: \"1\"\n")
        assert CliRunner().invoke(main, ["lint", str(path)]).exit_code == 0
        assert CliRunner().invoke(main, ["lint", str(path), "--strict"]).exit_code == 1

    def test_json(self, demo_project: Path) -> None:
        result = CliRunner().invoke(main, ["lint", str(demo_project), "--json"])
        data = json.loads(result.output)
        assert set(data) == {"pricing", "profit"}

    def test_bad_project_config(self, demo_project: Path) -> None:
        (demo_project / "calcblocks.yaml").write_text("- a\n- b\n")
        result = CliRunner().invoke(main, ["lint", str(demo_project)])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "mapping" in result.output

    def test_empty_project(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["lint", str(tmp_path)])
        assert result.exit_code == 0
        assert "No tools found." in result.output


class TestBatchCommand:
    def test_to_file(self, demo_project: Path, tmp_path: Path) -> None:
        out = tmp_path / "out.csv"
        result = CliRunner().invoke(main, [
            "batch", "profit", "--project", str(demo_project),
            "--inputs", str(demo_project / "inputs" / "profit_sweep.csv"),
            "--out", str(out),
        ])
        assert result.exit_code == 0
        header = out.read_text().splitlines()[0]
        assert header == "row_index,revenue,costs,profit,margin"

    def test_to_stdout(self, demo_project: Path, tmp_path: Path) -> None:
        inputs = tmp_path / "in.csv"
        inputs.write_text("revenue,costs\n1000,400\n")
        result = CliRunner().invoke(main, [
            "batch", str(demo_project / "tools" / "profit.yaml"), "--inputs", str(inputs),
        ])
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[1] == "0,1000.0,400.0,600.0,60.0"

    def test_row_limit(self, demo_project: Path) -> None:
        (demo_project / "calcblocks.yaml").write_text("batch_max_rows: 1\n")
        result = CliRunner().invoke(main, [
            "batch", "profit", "--project", str(demo_project),
            "--inputs", str(demo_project / "inputs" / "profit_sweep.csv"),
        ])
        assert result.exit_code != 0
        assert "batch_max_rows" in result.output

    def test_bad_project_config(self, demo_project: Path) -> None:
        (demo_project / "calcblocks.yaml").write_text("- a\n")
        result = CliRunner().invoke(main, [
            "batch", "profit", "--project", str(demo_project),
            "--inputs", str(demo_project / "inputs" / "profit_sweep.csv"),
        ])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "mapping" in result.output


class TestEventsCommand:
    def test_after_lint(self, demo_project: Path) -> None:
        runner = CliRunner()
        runner.invoke(main, ["lint", str(demo_project)])
        result = runner.invoke(main, ["events", str(demo_project), "--type", "lint_passed"])
        assert result.exit_code == 0
        assert "lint_passed" in result.output

    def test_none(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["events", str(tmp_path)])
        assert "No events found." in result.output
