"""Structured event logging for calcblocks.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from calcblocks.logging.events import (
    CalcEvent,
    EventLevel,
    EventType,
    clear_project_dir,
    emit,
    emit_info,
    emit_warning,
    make_batch_event,
    redact_context,
    set_project_dir,
)
from calcblocks.logging.sink import EventSink

__all__ = [
    "CalcEvent",
    "EventLevel",
    "EventSink",
    "EventType",
    "clear_project_dir",
    "emit",
    "emit_info",
    "emit_warning",
    "make_batch_event",
    "redact_context",
    "set_project_dir",
]
