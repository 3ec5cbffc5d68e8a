"""Batch sweeps: evaluate one tool over many input rows.

Content editors use sweeps to sanity-check a calculator against a CSV of
typical (and atypical) inputs before publishing it.  Each row goes through
exactly the same coercion and resolution as a live render.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from pathlib import Path
from typing import Any
from uuid import uuid4

import polars as pl

from calcblocks.logging.events import EventLevel, EventType, emit, make_batch_event, set_project_dir
from calcblocks.project import DEFAULT_CONFIG, load_project_config
from calcblocks.tools import ToolConfig, coerce_inputs, resolve_outputs

ROW_INDEX_COL = "row_index"


def load_inputs_csv(path: Path) -> pl.DataFrame:
    """Load input rows from a CSV file.

    Every column is read as text so that values are coerced by the same
    rule as typed input (``"12abc"`` -> 12, blank -> 0).
    """
    return pl.read_csv(path, infer_schema_length=0)


def run_batch(
    config: ToolConfig,
    rows: pl.DataFrame | list[dict[str, Any]],
    *,
    tool_name: str | None = None,
    project_dir: Path | None = None,
    max_workers: int = 1,
) -> pl.DataFrame:
    """Evaluate *config* once per input row.

    Columns that are not declared inputs are ignored; declared inputs with
    no column take their default.  Blank cells count as empty input.

    Args:
        config: The tool to evaluate.
        rows: Input rows as a DataFrame or list of dicts.
        tool_name: Name recorded in batch events.
        project_dir: When given, row limits come from its config and
            ``batch_*`` events are written to its log.
        max_workers: Number of worker processes (1 = sequential).

    Returns:
        One row per input row: ``row_index``, the coerced inputs, then one
        column per output in declared order.

    Raises:
        ValueError: If the row count exceeds ``batch_max_rows``.
    """
    records = rows.to_dicts() if isinstance(rows, pl.DataFrame) else list(rows)

    cfg = load_project_config(project_dir) if project_dir is not None else DEFAULT_CONFIG
    max_rows = int(cfg["batch_max_rows"])
    if len(records) > max_rows:
        raise ValueError(
            f"Batch has {len(records)} rows, exceeding batch_max_rows={max_rows}"
        )

    batch_id = str(uuid4())
    if project_dir is not None:
        set_project_dir(project_dir)
    _emit_batch_event(
        EventType.batch_started, EventLevel.info,
        f"Batch started: {len(records)} row(s)",
        batch_id, tool_name, {"total": len(records), "max_workers": max_workers},
    )

    try:
        if max_workers <= 1 or len(records) <= 1:
            results = _evaluate_chunk(config, records, 0)
        else:
            results = _run_parallel(config, records, max_workers)
        frame = pl.DataFrame(results, schema=_result_schema(config), orient="row")
    except Exception as exc:
        _emit_batch_event(
            EventType.batch_failed, EventLevel.error,
            f"Batch failed: {exc}",
            batch_id, tool_name, None, error_code="batch_error",
        )
        raise

    _emit_batch_event(
        EventType.batch_completed, EventLevel.info,
        f"Batch completed: {frame.height} row(s)",
        batch_id, tool_name, {"total": frame.height},
    )
    return frame


def _result_schema(config: ToolConfig) -> dict[str, Any]:
    schema: dict[str, Any] = {ROW_INDEX_COL: pl.Int64}
    for inp in config.inputs:
        schema[inp.id] = pl.Float64
    for output in config.outputs:
        schema[output.id] = pl.Float64
    return schema


def _evaluate_chunk(
    config: ToolConfig,
    records: list[dict[str, Any]],
    start: int,
) -> list[list[Any]]:
    """Evaluate a contiguous slice of rows; *start* is the first row index."""
    columns = list(_result_schema(config))
    out: list[list[Any]] = []
    for offset, record in enumerate(records):
        raw = {k: ("" if v is None else v) for k, v in record.items()}
        env = coerce_inputs(config, raw)
        row: dict[str, Any] = {ROW_INDEX_COL: start + offset, **env}
        for output, value in resolve_outputs(config.outputs, env):
            row[output.id] = value
        out.append([row[c] for c in columns])
    return out


def _evaluate_chunk_args(args: tuple) -> list[list[Any]]:
    """Top-level picklable function for ProcessPoolExecutor."""
    config_data, records, start = args
    return _evaluate_chunk(ToolConfig.model_validate(config_data), records, start)


def _run_parallel(
    config: ToolConfig,
    records: list[dict[str, Any]],
    max_workers: int,
) -> list[list[Any]]:
    """Evaluate rows in parallel chunks, preserving row order."""
    chunk_size = max(1, -(-len(records) // max_workers))
    config_data = config.model_dump()
    args_list = [
        (config_data, records[i:i + chunk_size], i)
        for i in range(0, len(records), chunk_size)
    ]
    results: list[list[Any]] = []
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        for chunk in executor.map(_evaluate_chunk_args, args_list):
            results.extend(chunk)
    return results


def _emit_batch_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    batch_id: str,
    tool_name: str | None,
    extra: dict[str, Any] | None,
    *,
    error_code: str | None = None,
) -> None:
    emit(
        make_batch_event(
            event_type, level, message,
            batch_id=batch_id, tool=tool_name, error_code=error_code, extra=extra,
        ),
        batch_id=batch_id,
    )
