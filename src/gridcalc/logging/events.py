"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
swallowed and printed to stderr.
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
    # Cell edits
    cell_edit = "cell_edit"
    edit_rejected = "edit_rejected"
    rule_set = "rule_set"
    note_set = "note_set"
    format_set = "format_set"
    lookup_rejected = "lookup_rejected"

    # Recalculation
    recalc_completed = "recalc_completed"
    recalc_cell_error = "recalc_cell_error"
    cycle_rejected = "cycle_rejected"

    # Structure
    structural_edit = "structural_edit"
    structural_rejected = "structural_rejected"

    # Viewport
    viewport_moved = "viewport_moved"
    cells_evicted = "cells_evicted"

    # Sheet collection
    sheet_added = "sheet_added"
    sheet_renamed = "sheet_renamed"
    sheet_deleted = "sheet_deleted"
    sheet_duplicated = "sheet_duplicated"
    sheet_moved = "sheet_moved"
    sheet_switched = "sheet_switched"
    sheet_rejected = "sheet_rejected"

    # Persistence
    snapshot_taken = "snapshot_taken"
    snapshot_restored = "snapshot_restored"
    snapshot_failed = "snapshot_failed"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

CYCLE_DETECTED = "cycle_detected"
VALIDATION_FAILED = "validation_failed"
INVALID_REFERENCE = "invalid_reference"
STRUCTURAL_INVALID = "structural_invalid"
SHEET_NAME_INVALID = "sheet_name_invalid"
SNAPSHOT_INVALID = "snapshot_invalid"
FORMULA_EVAL_ERROR = "formula_eval_error"


# ---------------------------------------------------------------------------
# Context truncation
# ---------------------------------------------------------------------------

_DEFAULT_MAX_VALUE_LEN = 200


def truncate_context(context: dict[str, Any], max_len: int = _DEFAULT_MAX_VALUE_LEN) -> dict[str, Any]:
    """Return a copy of *context* with long strings cut to *max_len* chars.

    Raw cell text can be arbitrarily long; events only need a prefix.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        out[k] = _truncate_value(v, max_len)
    return out


def _truncate_value(v: Any, max_len: int) -> Any:
    if isinstance(v, dict):
        return truncate_context(v, max_len)
    if isinstance(v, list):
        return [_truncate_value(item, max_len) for item in v]
    if isinstance(v, str) and len(v) > max_len:
        return v[:max_len] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Attribution invariants
# ---------------------------------------------------------------------------

_CELL_EVENT_REQUIRED = {"sheet", "addr"}
_SHEET_EVENT_REQUIRED = {"sheet"}

_EVENT_REQUIRED_KEYS: dict[str, set[str]] = {
    EventType.cell_edit.value: _CELL_EVENT_REQUIRED,
    EventType.edit_rejected.value: _CELL_EVENT_REQUIRED,
    EventType.rule_set.value: _CELL_EVENT_REQUIRED,
    EventType.note_set.value: _CELL_EVENT_REQUIRED,
    EventType.format_set.value: _CELL_EVENT_REQUIRED,
    EventType.cycle_rejected.value: _CELL_EVENT_REQUIRED,
    EventType.recalc_cell_error.value: _CELL_EVENT_REQUIRED,
    EventType.recalc_completed.value: _SHEET_EVENT_REQUIRED,
    EventType.structural_edit.value: _SHEET_EVENT_REQUIRED,
    EventType.cells_evicted.value: _SHEET_EVENT_REQUIRED,
    EventType.viewport_moved.value: _SHEET_EVENT_REQUIRED,
    EventType.sheet_added.value: _SHEET_EVENT_REQUIRED,
    EventType.sheet_renamed.value: _SHEET_EVENT_REQUIRED,
    EventType.sheet_deleted.value: _SHEET_EVENT_REQUIRED,
    EventType.sheet_duplicated.value: _SHEET_EVENT_REQUIRED,
}


def _validate_attribution(event: GridEvent) -> GridEvent:
    """Check required context keys; downgrade to warning if missing."""
    required = _EVENT_REQUIRED_KEYS.get(event.event_type.value, set())
    if not required:
        return event
    missing = required - set(event.context.keys())
    if missing:
        ctx = dict(event.context)
        ctx["_missing_attribution"] = sorted(missing)
        return event.model_copy(update={"level": EventLevel.warning, "context": ctx})
    return event


def make_cell_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    sheet: str,
    addr: str,
    raw: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> GridEvent:
    """Build an event with guaranteed cell attribution context."""
    ctx: dict[str, Any] = {"sheet": sheet, "addr": addr}
    if raw is not None:
        ctx["raw"] = raw
    if extra:
        ctx.update(extra)
    return GridEvent(
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


class GridEvent(BaseModel):
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
_max_value_len = _DEFAULT_MAX_VALUE_LEN


def set_log_dir(log_dir: Path | str | None, *, fsync: bool = False, max_value_chars: int | None = None) -> None:
    """Configure the module-level event sink.

    If it is never called (or called with None), ``emit()`` silently
    discards events.
    """
    global _sink, _max_value_len
    from gridcalc.logging.sink import EventSink

    if max_value_chars is not None:
        _max_value_len = max_value_chars
    _sink = EventSink(Path(log_dir), fsync=fsync) if log_dir is not None else None


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
        print(f"[gridcalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: GridEvent) -> None:
    """Write an event to the configured log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.

    Truncates long context strings and checks attribution before writing.
    """
    try:
        sink = get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": truncate_context(event.context, _max_value_len)})
        event = _validate_attribution(event)
        sink.write(event)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    """Convenience: emit an info-level event."""
    emit(
        GridEvent(
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
        GridEvent(
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
        GridEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )
