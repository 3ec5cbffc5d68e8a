"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr.

The formula evaluator itself never emits: it must stay free of side
effects.  Events come from the operational layers (lint, batch, server).
"""

from __future__ import annotations

import re
import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Authoring
    lint_passed = "lint_passed"
    lint_failed = "lint_failed"

    # Tool loading
    tool_loaded = "tool_loaded"
    tool_load_failed = "tool_load_failed"

    # Batch lifecycle
    batch_started = "batch_started"
    batch_completed = "batch_completed"
    batch_failed = "batch_failed"

    # Server
    server_started = "server_started"


# ---------------------------------------------------------------------------
# Secret redaction
# ---------------------------------------------------------------------------

_SENSITIVE_KEY_RE = re.compile(
    r"(password|passwd|secret|token|api_key|apikey|authorization|cookie"
    r"|session|bearer)",
    re.IGNORECASE,
)

_MAX_VALUE_LEN = 256


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with sensitive values redacted.

    Rules:
    - Keys matching sensitive patterns have their values replaced with
      ``"[REDACTED]"``.
    - String values longer than 256 chars are truncated.
    """
    return _redact_dict(context)


def _redact_dict(d: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in d.items():
        if _SENSITIVE_KEY_RE.search(str(k)):
            out[k] = "[REDACTED]"
        elif isinstance(v, dict):
            out[k] = _redact_dict(v)
        elif isinstance(v, list):
            out[k] = [_redact_value(item) for item in v]
        else:
            out[k] = _redact_value(v)
    return out


def _redact_value(v: Any) -> Any:
    if isinstance(v, dict):
        return _redact_dict(v)
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Helper constructors for consistent attribution
# ---------------------------------------------------------------------------


def make_batch_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    batch_id: str,
    tool: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> CalcEvent:
    """Build an event with guaranteed batch attribution context."""
    ctx: dict[str, Any] = {"batch_id": batch_id}
    if tool is not None:
        ctx["tool"] = tool
    if extra:
        ctx.update(extra)
    return CalcEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CalcEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Lazily initialised when ``set_project_dir`` is called.
_sink: Any = None  # EventSink | None


def set_project_dir(project_dir: Any) -> None:
    """Configure the module-level event sink for a project directory.

    This should be called early in a CLI command or server startup.  If
    it is never called, ``emit()`` silently discards events.

    Reads ``logging_fsync`` and ``logging_tail_bytes`` from the project
    config (``calcblocks.yaml``) to configure the sink.
    """
    global _sink
    from pathlib import Path

    from calcblocks.logging.sink import EventSink

    fsync = False
    tail_bytes = None
    try:
        from calcblocks.project import load_project_config

        cfg = load_project_config(Path(project_dir))
        fsync = bool(cfg.get("logging_fsync", False))
        tb = cfg.get("logging_tail_bytes")
        if tb is not None:
            tail_bytes = int(tb)
    except Exception:
        _stderr_warning(f"could not read logging config: {traceback.format_exc()}")

    _sink = EventSink(Path(project_dir), fsync=fsync, tail_bytes=tail_bytes)


def clear_project_dir() -> None:
    """Detach the module-level sink; subsequent events are discarded."""
    global _sink
    _sink = None


def _get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float | None = None
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if _last_stderr_ts is not None and now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[calcblocks] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: CalcEvent, *, batch_id: str | None = None) -> None:
    """Write an event to the global log and optionally to a per-batch log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.

    Applies secret redaction before writing.
    """
    try:
        sink = _get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": redact_context(event.context)})
        sink.write(event, batch_id=batch_id)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    batch_id: str | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        CalcEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        ),
        batch_id=batch_id,
    )


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    batch_id: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        CalcEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        batch_id=batch_id,
    )
