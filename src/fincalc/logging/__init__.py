"""Structured event logging for fincalc.

Provides an event schema, filesystem NDJSON sink, and safe emit helpers
that never raise uncaught exceptions.
"""

from fincalc.logging.events import (
    CalcEvent,
    EventLevel,
    EventType,
    clear_log_dir,
    clip_context,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    set_log_dir,
)
from fincalc.logging.sink import EventSink

__all__ = [
    "CalcEvent",
    "EventLevel",
    "EventSink",
    "EventType",
    "clear_log_dir",
    "clip_context",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "set_log_dir",
]
