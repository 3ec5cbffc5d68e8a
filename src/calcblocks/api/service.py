"""Service layer shared by the HTTP API.

Stateless apart from the optional project directory; every request
re-reads tool files so edits show up without a restart.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from calcblocks.formulas.errors import FormulaParseError, FormulaRefError, ToolConfigError
from calcblocks.formulas.grammar import validate_formula
from calcblocks.lint import lint_tool, summarize
from calcblocks.logging.events import EventType, emit_info, emit_warning
from calcblocks.project import find_tool, list_tools, load_project_config, load_tool
from calcblocks.formatting import input_prefix, input_suffix
from calcblocks.tools import ToolConfig, compute_tool, tool_has_input


class ToolService:
    """Compute and lint tool configurations, optionally backed by a project."""

    def __init__(self, project_dir: Path | None = None) -> None:
        self.project_dir = project_dir

    # -- inline configs ------------------------------------------------------

    def compute(self, config: ToolConfig, values: Mapping[str, Any] | None = None) -> dict[str, Any]:
        computed = compute_tool(config, values)
        return {
            "has_input": tool_has_input(config, values),
            "outputs": [
                {
                    "id": c.output.id,
                    "label": c.output.label,
                    "value": c.value,
                    "formatted": c.formatted,
                    "format": c.output.format,
                    "highlight": c.output.highlight,
                    "negative": c.negative,
                }
                for c in computed
            ],
        }

    def lint(self, config: ToolConfig, strict: bool | None = None) -> dict[str, Any]:
        if strict is None:
            strict = self._config_value("lint_strict", False)
        report = summarize(lint_tool(config, strict=bool(strict)))
        report["ok"] = report["status"] != "fail"
        return report

    def validate_formula(self, text: str, available: list[str] | None = None) -> dict[str, Any]:
        """Strict parse validation of a single formula (no evaluation).

        Returns:
            Dict with ``valid`` bool, ``refs`` on success, and ``message``
            plus ``position`` or ``ref_name`` on failure.
        """
        try:
            refs = validate_formula(text, available)
        except FormulaParseError as exc:
            return {"valid": False, "message": str(exc), "position": exc.position}
        except FormulaRefError as exc:
            return {"valid": False, "message": str(exc), "ref_name": exc.ref_name}
        return {"valid": True, "refs": sorted(refs)}

    # -- project tools -------------------------------------------------------

    def list_tools(self) -> list[dict[str, Any]]:
        project_dir = self._require_project()
        listing: list[dict[str, Any]] = []
        for name, path in list_tools(project_dir).items():
            entry: dict[str, Any] = {"name": name, "file": path.name}
            try:
                cfg = load_tool(path)
                entry.update({"title": cfg.title, "tool_type": cfg.tool_type, "valid": True})
            except ToolConfigError as exc:
                entry.update({"valid": False, "error": str(exc)})
            listing.append(entry)
        return listing

    def get_tool(self, name: str) -> ToolConfig:
        """Load a project tool by name.

        Raises:
            FileNotFoundError: No project is configured.
            KeyError: The project has no tool called *name*.
            ToolConfigError: The tool file is invalid.
        """
        project_dir = self._require_project()
        try:
            path = find_tool(project_dir, name)
        except ToolConfigError as exc:
            raise KeyError(name) from exc
        try:
            config = load_tool(path)
        except ToolConfigError as exc:
            emit_warning(
                EventType.tool_load_failed,
                f"Failed to load tool {name}",
                {"tool": name, "error": str(exc)},
                error_code="invalid_config",
            )
            raise
        emit_info(EventType.tool_loaded, f"Loaded tool {name}", {"tool": name, "file": path.name})
        return config

    def tool_payload(self, config: ToolConfig) -> dict[str, Any]:
        """Serialize *config* with the display adornment of each input."""
        payload = config.model_dump()
        for item, inp in zip(payload["inputs"], config.inputs):
            item["prefix"] = input_prefix(inp.type)
            item["suffix"] = input_suffix(inp.type)
        return payload

    # -- internal ------------------------------------------------------------

    def _require_project(self) -> Path:
        if self.project_dir is None:
            raise FileNotFoundError("No project directory configured")
        return self.project_dir

    def _config_value(self, key: str, fallback: Any) -> Any:
        if self.project_dir is None:
            return fallback
        return load_project_config(self.project_dir).get(key, fallback)
