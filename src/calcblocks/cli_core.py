"""Command-line interface for calcblocks."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click

from calcblocks import __version__


@click.group()
@click.version_option(version=__version__, prog_name="calcblocks")
def main() -> None:
    """calcblocks -- safe formula engine for interactive lesson tools."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_pairs(items: tuple[str, ...], flag: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in items:
        if "=" not in item:
            raise click.ClickException(f"Invalid {flag} format: {item!r}. Use key=value.")
        k, v = item.split("=", 1)
        pairs[k.strip()] = v
    return pairs


def _format_plain(value: float) -> str:
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _load_tool_arg(tool: str, directory: str | None) -> tuple[str, Any]:
    """Resolve TOOL as a project tool name (with --project) or a file path."""
    from calcblocks.formulas.errors import ToolConfigError
    from calcblocks.project import find_tool, load_tool

    try:
        if directory is not None:
            path = find_tool(Path(directory), tool)
        else:
            path = Path(tool)
            if not path.is_file():
                raise click.ClickException(f"Tool file not found: {tool}")
        return path.stem, load_tool(path)
    except ToolConfigError as e:
        raise click.ClickException(str(e))


# ---------------------------------------------------------------------------
# New
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path())
def new(directory: str) -> None:
    """Scaffold a demo project at DIRECTORY."""
    from calcblocks.project import scaffold_project

    try:
        result = scaffold_project(Path(directory))
    except FileExistsError as e:
        raise click.ClickException(str(e))
    click.echo(f"Created project at {result}")


# ---------------------------------------------------------------------------
# Evaluate / compute
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
@click.option("--var", "variables", multiple=True, help="Variable as name=number.")
def eval_cmd(formula: str, variables: tuple[str, ...]) -> None:
    """Evaluate FORMULA and print the result."""
    from calcblocks.formulas import evaluate_formula

    env: dict[str, float] = {}
    for name, raw in _parse_pairs(variables, "--var").items():
        try:
            env[name] = float(raw)
        except ValueError:
            raise click.ClickException(f"Variable {name!r} is not a number: {raw!r}")

    click.echo(_format_plain(evaluate_formula(formula, env)))


@main.command()
@click.argument("tool")
@click.option("--project", "directory", default=None, type=click.Path(exists=True), help="Treat TOOL as a tool name in this project.")
@click.option("--set", "values", multiple=True, help="Input value as id=value.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def compute(tool: str, directory: str | None, values: tuple[str, ...], as_json: bool) -> None:
    """Compute the outputs of TOOL for the given inputs."""
    from calcblocks.tools import compute_tool

    _, config = _load_tool_arg(tool, directory)
    computed = compute_tool(config, _parse_pairs(values, "--set"))

    if as_json:
        out = [
            {"id": c.output.id, "value": c.value, "formatted": c.formatted}
            for c in computed
        ]
        click.echo(json.dumps(out, indent=2))
        return

    if config.title:
        click.echo(config.title)
    width = max((len(c.output.label or c.output.id) for c in computed), default=0)
    for c in computed:
        marker = "*" if c.output.highlight else " "
        click.echo(f" {marker} {(c.output.label or c.output.id):{width}s}  {c.formatted}")


# ---------------------------------------------------------------------------
# Lint
# ---------------------------------------------------------------------------


def _echo_report(name: str, report: dict[str, Any]) -> None:
    click.echo(f"{name}: {report['status'].upper()}")
    for issue in report["issues"]:
        where = f" [{issue['output_id']}]" if issue.get("output_id") else ""
        click.echo(f"  {issue['severity']:7s} {issue['code']}{where}: {issue['message']}")


@main.command()
@click.argument("target", type=click.Path(exists=True))
@click.option("--strict", is_flag=True, help="Report reference problems as errors (overrides lint_strict).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def lint(target: str, strict: bool, as_json: bool) -> None:
    """Check a tool file, or every tool in a project directory.

    Exits with status 1 if any error is found.
    """
    from calcblocks.formulas.errors import ToolConfigError
    from calcblocks.lint import lint_project, lint_tool, summarize

    path = Path(target)
    if path.is_dir():
        try:
            reports = lint_project(path, strict=True if strict else None)
        except ToolConfigError as e:
            raise click.ClickException(str(e))
        if not reports:
            click.echo("No tools found.")
            return
    else:
        name, config = _load_tool_arg(target, None)
        reports = {name: summarize(lint_tool(config, strict=strict))}

    if as_json:
        click.echo(json.dumps(reports, indent=2))
    else:
        for name, report in reports.items():
            _echo_report(name, report)

    if any(r["status"] == "fail" for r in reports.values()):
        sys.exit(1)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


@main.command()
@click.argument("tool")
@click.option("--inputs", "inputs_file", required=True, type=click.Path(exists=True), help="CSV file with one row of inputs per evaluation.")
@click.option("--project", "directory", default=None, type=click.Path(exists=True), help="Treat TOOL as a tool name in this project.")
@click.option("--out", "out_file", default=None, type=click.Path(), help="Write results to this CSV instead of stdout.")
@click.option("--max-workers", type=int, default=None, help="Number of parallel workers (1=sequential).")
def batch(tool: str, inputs_file: str, directory: str | None, out_file: str | None, max_workers: int | None) -> None:
    """Evaluate TOOL once per row of an inputs CSV."""
    from calcblocks.batch import load_inputs_csv, run_batch
    from calcblocks.formulas.errors import ToolConfigError
    from calcblocks.project import load_project_config

    name, config = _load_tool_arg(tool, directory)
    project_dir = Path(directory) if directory is not None else None

    rows = load_inputs_csv(Path(inputs_file))
    try:
        if max_workers is None:
            max_workers = 1
            if project_dir is not None:
                max_workers = int(load_project_config(project_dir)["batch_max_workers"])
        result = run_batch(config, rows, tool_name=name, project_dir=project_dir, max_workers=max_workers)
    except (ToolConfigError, ValueError) as e:
        raise click.ClickException(str(e))

    if out_file:
        result.write_csv(out_file)
        click.echo(f"Wrote {result.height} row(s) to {out_file}")
    else:
        click.echo(result.write_csv(), nl=False)


# ---------------------------------------------------------------------------
# Serve
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", required=False, type=click.Path(exists=True))
@click.option("--host", default="127.0.0.1", help="Bind host.")
@click.option("--port", type=int, default=8000, help="Bind port.")
def serve(directory: str | None, host: str, port: int) -> None:
    """Serve the HTTP API, optionally for the project in DIRECTORY."""
    import uvicorn

    from calcblocks.api.server import create_app
    from calcblocks.logging.events import EventType, emit_info

    project_dir = Path(directory) if directory else None
    app = create_app(project_dir)
    if project_dir is not None:
        emit_info(EventType.server_started, f"Serving on {host}:{port}", {"host": host, "port": port})

    click.echo(f"Serving API at http://{host}:{port}/api")
    click.echo("Press Ctrl+C to stop")
    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    except KeyboardInterrupt:
        click.echo("\nStopped.")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("directory", type=click.Path(exists=True))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--tool", default=None, help="Filter by tool name.")
@click.option("--batch-id", default=None, help="Filter by batch id.")
@click.option("--limit", type=int, default=50, help="Max events to show.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    tool: str | None,
    batch_id: str | None,
    limit: int,
) -> None:
    """Show structured event log for DIRECTORY."""
    from calcblocks.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read_global(
        level=level,
        event_type=event_type,
        tool=tool,
        batch_id=batch_id,
        limit=limit,
    )

    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)
