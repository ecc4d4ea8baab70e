"""Event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr, and events are discarded until
``set_log_dir`` configures a sink.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
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
    # Function declarations
    function_declared = "function_declared"
    function_rejected = "function_rejected"

    # Parsing
    formula_parse_failed = "formula_parse_failed"

    # Evaluation
    evaluation_completed = "evaluation_completed"
    evaluation_failed = "evaluation_failed"

    # Symbolic transforms
    transform_unsupported = "transform_unsupported"


# ---------------------------------------------------------------------------
# Context clipping
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256


def clip_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long strings truncated.

    Formula text can be arbitrarily long; log lines stay bounded.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        if isinstance(v, dict):
            out[k] = clip_context(v)
        elif isinstance(v, list):
            out[k] = [_clip_value(item) for item in v]
        else:
            out[k] = _clip_value(v)
    return out


def _clip_value(v: Any) -> Any:
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


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

# Lazily initialised when ``set_log_dir`` is called.
_sink: Any = None  # EventSink | None


def set_log_dir(log_dir: Any) -> None:
    """Configure the module-level event sink under *log_dir*.

    This should be called early in a CLI command.  If it is never called,
    ``emit()`` silently discards events.

    Reads ``logging_fsync`` and ``logging_tail_bytes`` from the project
    config (``fincalc.yaml``) in *log_dir* to configure the sink.
    """
    global _sink
    from fincalc.logging.sink import EventSink
    from fincalc.project import load_project_config

    path = Path(log_dir)
    fsync = False
    tail_bytes = None
    try:
        cfg = load_project_config(path)
        fsync = bool(cfg.get("logging_fsync", False))
        tb = cfg.get("logging_tail_bytes")
        if tb is not None:
            tail_bytes = int(tb)
    except Exception:
        _stderr_warning(f"could not read logging options: {traceback.format_exc()}")

    _sink = EventSink(path, fsync=fsync, tail_bytes=tail_bytes)


def clear_log_dir() -> None:
    """Detach the module-level sink; later events are discarded."""
    global _sink
    _sink = None


def get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[fincalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: CalcEvent) -> None:
    """Write an event to the configured log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": clip_context(event.context)})
        sink.write(event)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        CalcEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        )
    )


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        CalcEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        CalcEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )
