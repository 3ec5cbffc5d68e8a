"""Authoring-time checks for tool configurations.

Runs offline (CLI, API, before publishing a lesson) and never on the
render path: the runtime evaluator tolerates everything reported here.

Issue codes:

- ``duplicate_id``: an input or output id is declared more than once.
- ``empty_formula``: an output has a blank formula.
- ``syntax_error``: the formula does not parse under the strict grammar.
- ``forward_reference``: a formula names its own output or a later one;
  at runtime that name resolves to ``0``.
- ``unknown_reference``: a formula names something that is neither an
  input nor an output; at runtime it resolves to ``0``.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel

from calcblocks.formulas.errors import FormulaParseError, ToolConfigError
from calcblocks.formulas.grammar import extract_refs, parse_formula
from calcblocks.tools import ToolConfig

Severity = Literal["error", "warning"]


class LintIssue(BaseModel):
    severity: Severity
    code: str
    message: str
    output_id: str | None = None
    position: int | None = None


def lint_tool(config: ToolConfig, *, strict: bool = False) -> list[LintIssue]:
    """Check a tool configuration.

    Args:
        config: The tool to check.
        strict: Report reference problems as errors instead of warnings.

    Returns:
        Issues in declaration order (duplicate ids first).
    """
    issues: list[LintIssue] = []
    ref_severity: Severity = "error" if strict else "warning"

    all_ids = [i.id for i in config.inputs] + [o.id for o in config.outputs]
    for dup_id, count in Counter(all_ids).items():
        if count > 1:
            issues.append(LintIssue(
                severity="error",
                code="duplicate_id",
                message=f"Id {dup_id!r} is declared {count} times",
                output_id=dup_id,
            ))

    input_ids = {i.id for i in config.inputs}
    output_ids = [o.id for o in config.outputs]

    for idx, output in enumerate(config.outputs):
        if not output.formula.strip():
            issues.append(LintIssue(
                severity="error",
                code="empty_formula",
                message=f"Output {output.id!r} has an empty formula",
                output_id=output.id,
            ))
            continue

        try:
            refs = extract_refs(parse_formula(output.formula))
        except FormulaParseError as exc:
            issues.append(LintIssue(
                severity="error",
                code="syntax_error",
                message=f"Output {output.id!r}: {exc.detail}",
                output_id=output.id,
                position=exc.position,
            ))
            continue

        earlier = set(output_ids[:idx])
        later = set(output_ids[idx:])
        for name in sorted(refs):
            if name in input_ids or name in earlier:
                continue
            if name in later:
                issues.append(LintIssue(
                    severity=ref_severity,
                    code="forward_reference",
                    message=(
                        f"Output {output.id!r} references {name!r}, which is not "
                        f"computed yet at this point and evaluates to 0"
                    ),
                    output_id=output.id,
                ))
            else:
                issues.append(LintIssue(
                    severity=ref_severity,
                    code="unknown_reference",
                    message=(
                        f"Output {output.id!r} references unknown name {name!r}. "
                        f"Available: {sorted(input_ids | earlier)}"
                    ),
                    output_id=output.id,
                ))

    return issues


def has_errors(issues: list[LintIssue]) -> bool:
    return any(i.severity == "error" for i in issues)


def summarize(issues: list[LintIssue]) -> dict[str, Any]:
    """Collapse issues into a report with an overall status.

    Returns:
        Dict with ``status`` ("pass" | "warn" | "fail"), ``error_count``,
        ``warning_count`` and the serialized ``issues``.
    """
    error_count = sum(1 for i in issues if i.severity == "error")
    warning_count = len(issues) - error_count
    if error_count:
        status = "fail"
    elif warning_count:
        status = "warn"
    else:
        status = "pass"
    return {
        "status": status,
        "error_count": error_count,
        "warning_count": warning_count,
        "issues": [i.model_dump() for i in issues],
    }


def lint_project(project_dir: Path, *, strict: bool | None = None) -> dict[str, dict[str, Any]]:
    """Lint every tool in a project and record the outcome in the event log.

    Args:
        project_dir: Root of the calcblocks project.
        strict: Overrides the project's ``lint_strict`` setting when given.

    Returns:
        Mapping of tool name to its :func:`summarize` report.  Tools that
        fail to load are reported with a single ``invalid_config`` error.
    """
    from calcblocks.logging.events import EventType, emit_info, emit_warning, set_project_dir
    from calcblocks.project import list_tools, load_project_config, load_tool

    set_project_dir(project_dir)
    if strict is None:
        strict = bool(load_project_config(project_dir).get("lint_strict", False))

    reports: dict[str, dict[str, Any]] = {}
    for name, path in list_tools(project_dir).items():
        try:
            issues = lint_tool(load_tool(path), strict=strict)
        except ToolConfigError as exc:
            issues = [LintIssue(severity="error", code="invalid_config", message=str(exc))]
        report = summarize(issues)
        reports[name] = report

        context = {
            "tool": name,
            "errors": report["error_count"],
            "warnings": report["warning_count"],
        }
        if report["status"] == "fail":
            emit_warning(
                EventType.lint_failed,
                f"Lint failed for {name}: {report['error_count']} error(s)",
                context,
                error_code="lint_errors",
            )
        else:
            emit_info(EventType.lint_passed, f"Lint passed for {name}", context)

    return reports
