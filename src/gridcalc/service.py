"""Boundary facade for presentation and I/O layers.

``WorkbookService`` wraps one workbook.  Every operation returns a plain
dict with an ``ok`` flag; engine errors are caught here and reported as
``{"ok": False, "errors": [{"addr", "code", "message"}]}``.  Calls must be
serialized per workbook; the engine itself is single-threaded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from gridcalc.addressing import make_addr, parse_addr
from gridcalc.cell import StyleFlag
from gridcalc.config import load_config, log_dir_for
from gridcalc.errors import (
    CellReferenceError,
    CycleError,
    EngineError,
    SheetNameError,
    SnapshotError,
    StructuralError,
    ValidationError,
)
from gridcalc.logging.events import (
    CYCLE_DETECTED,
    FORMULA_EVAL_ERROR,
    INVALID_REFERENCE,
    SHEET_NAME_INVALID,
    SNAPSHOT_INVALID,
    STRUCTURAL_INVALID,
    VALIDATION_FAILED,
    EventLevel,
    EventType,
    emit,
    emit_info,
    emit_warning,
    make_cell_event,
    set_log_dir,
)
from gridcalc.recalc import RecalcResult
from gridcalc.sheet import Sheet
from gridcalc.snapshot import WorkbookSnapshot, restore_workbook, snapshot_workbook
from gridcalc.structure import delete_col, delete_row, insert_col, insert_row
from gridcalc.validation import build_rule, detect_preset
from gridcalc.workbook import Workbook

_ERROR_CODES: dict[type[EngineError], str] = {
    CycleError: CYCLE_DETECTED,
    ValidationError: VALIDATION_FAILED,
    CellReferenceError: INVALID_REFERENCE,
    StructuralError: STRUCTURAL_INVALID,
    SheetNameError: SHEET_NAME_INVALID,
    SnapshotError: SNAPSHOT_INVALID,
}

_STRUCTURE_OPS = {
    "insert_row": insert_row,
    "delete_row": delete_row,
    "insert_col": insert_col,
    "delete_col": delete_col,
}


def _error_entry(exc: Exception, addr: str | None = None) -> dict[str, Any]:
    code = exc.code if isinstance(exc, EngineError) else "invalid_argument"
    entry: dict[str, Any] = {"addr": addr, "code": code, "message": str(exc)}
    if isinstance(exc, CycleError):
        entry["cycle"] = [make_addr(r, c) for r, c in exc.cycle]
    if isinstance(exc, ValidationError) and exc.rule:
        entry["rule"] = exc.rule
    return entry


def _recalc_summary(result: RecalcResult) -> dict[str, Any]:
    return {
        "recalculated": [make_addr(*c) for c in result.order],
        "cell_errors": {make_addr(*c): tag for c, tag in sorted(result.errors.items())},
    }


class WorkbookService:
    """Workbook operations with structured results and event logging."""

    def __init__(
        self,
        workbook: Workbook | None = None,
        *,
        config: dict[str, Any] | None = None,
        project_dir: Path | None = None,
    ) -> None:
        if config is None:
            config = load_config(project_dir)
        self.config = config
        self.workbook = workbook or Workbook.new(config)
        if project_dir is not None and config.get("logging_enabled"):
            set_log_dir(
                log_dir_for(Path(project_dir), config),
                max_value_chars=config.get("logging_max_value_chars"),
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _sheet(self, sheet_name: str | None) -> Sheet:
        if sheet_name is None:
            return self.workbook.active
        return self.workbook.get_sheet(sheet_name)

    def _fail(
        self,
        exc: Exception,
        event_type: EventType,
        *,
        sheet: str | None = None,
        addr: str | None = None,
        raw: str | None = None,
    ) -> dict[str, Any]:
        code = _ERROR_CODES.get(type(exc), "invalid_argument")
        if addr is not None and sheet is not None:
            emit(
                make_cell_event(
                    event_type,
                    EventLevel.warning,
                    str(exc),
                    sheet=sheet,
                    addr=addr,
                    raw=raw,
                    error_code=code,
                )
            )
        else:
            ctx = {"sheet": sheet} if sheet is not None else {}
            emit_warning(event_type, str(exc), ctx, error_code=code)
        return {"ok": False, "dirty": self.workbook.modified, "errors": [_error_entry(exc, addr)]}

    def _log_recalc(self, sheet: Sheet, result: RecalcResult) -> None:
        for coord, tag in sorted(result.errors.items()):
            emit(
                make_cell_event(
                    EventType.recalc_cell_error,
                    EventLevel.warning,
                    f"{make_addr(*coord)} evaluated to {tag}",
                    sheet=sheet.name,
                    addr=make_addr(*coord),
                    error_code=FORMULA_EVAL_ERROR,
                    extra={"tag": tag},
                )
            )
        emit_info(
            EventType.recalc_completed,
            f"Recalculated {len(result.order)} cell(s)",
            {"sheet": sheet.name, "count": len(result.order), "errors": len(result.errors)},
        )

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    def set_cell_value(
        self, row: int, col: int, raw: str | None, sheet_name: str | None = None
    ) -> dict[str, Any]:
        """Write raw text to a cell and recalculate."""
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.edit_rejected)
        addr = make_addr(row, col) if row >= 1 and col >= 1 else f"R{row}C{col}"
        try:
            result = sheet.set_cell_value(row, col, raw)
        except CycleError as exc:
            return self._fail(exc, EventType.cycle_rejected, sheet=sheet.name, addr=addr, raw=raw)
        except EngineError as exc:
            return self._fail(exc, EventType.edit_rejected, sheet=sheet.name, addr=addr, raw=raw)

        self.workbook.mark_modified()
        emit(
            make_cell_event(
                EventType.cell_edit, EventLevel.info, f"Set {addr}", sheet=sheet.name, addr=addr, raw=raw
            )
        )
        self._log_recalc(sheet, result)
        return {"ok": True, "dirty": True, "errors": [], **_recalc_summary(result)}

    def update_cells(self, edits: list[dict[str, Any]], sheet_name: str | None = None) -> dict[str, Any]:
        """Apply a batch of ``{"addr", "value"}`` edits.

        Edits are applied in order; a rejected edit is reported and the
        rest still run.
        """
        errors: list[dict[str, Any]] = []
        recalculated: list[str] = []
        for edit in edits:
            addr = str(edit.get("addr", "")).upper()
            try:
                row, col = parse_addr(addr)
            except ValueError:
                errors.append({
                    "addr": addr,
                    "code": "invalid_address",
                    "message": f"Invalid cell address: {addr!r}",
                })
                continue
            result = self.set_cell_value(row, col, edit.get("value"), sheet_name)
            errors.extend(result["errors"])
            recalculated.extend(result.get("recalculated", []))
        return {
            "ok": not errors,
            "dirty": self.workbook.modified,
            "errors": errors,
            "recalculated": recalculated,
        }

    def get_cell(self, addr: str, sheet_name: str | None = None) -> dict[str, Any]:
        try:
            sheet = self._sheet(sheet_name)
            row, col = parse_addr(addr.upper())
        except (EngineError, ValueError) as exc:
            return self._fail(exc, EventType.lookup_rejected, addr=addr.upper())
        cell = sheet.get_cell(row, col)
        if cell is None:
            return {"addr": make_addr(row, col), "raw": None, "display": "", "kind": "text"}
        return {
            "addr": cell.addr,
            "raw": cell.raw,
            "display": cell.display,
            "kind": cell.kind.value,
            "error": cell.error,
            "rule": cell.rule,
            "note": cell.note,
            "depends_on": sorted(make_addr(*c) for c in sheet.depends_on(row, col)),
            "dependents": sorted(make_addr(*c) for c in sheet.dependents(row, col)),
        }

    def set_validation(
        self,
        addr: str,
        rule: str | None = None,
        message: str | None = None,
        *,
        preset: str | None = None,
        sheet_name: str | None = None,
        **params: Any,
    ) -> dict[str, Any]:
        """Attach a validation rule, given as text or as a preset name."""
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.edit_rejected, addr=addr.upper())
        try:
            row, col = parse_addr(addr.upper())
            if preset is not None:
                rule = build_rule(preset, **params)
            sheet.set_rule(row, col, rule, message)
        except (EngineError, ValueError) as exc:
            return self._fail(exc, EventType.edit_rejected, sheet=sheet.name, addr=addr.upper(), raw=rule)
        self.workbook.mark_modified()
        emit(
            make_cell_event(
                EventType.rule_set, EventLevel.info, f"Rule set on {addr.upper()}",
                sheet=sheet.name, addr=addr.upper(), extra={"rule": rule},
            )
        )
        detected = detect_preset(rule) if rule else None
        return {
            "ok": True,
            "dirty": True,
            "errors": [],
            "rule": rule,
            "preset": detected[0] if detected else None,
        }

    def set_note(self, addr: str, note: str | None, sheet_name: str | None = None) -> dict[str, Any]:
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.edit_rejected, addr=addr.upper())
        try:
            row, col = parse_addr(addr.upper())
            sheet.set_note(row, col, note)
        except (EngineError, ValueError) as exc:
            return self._fail(exc, EventType.edit_rejected, sheet=sheet.name, addr=addr.upper())
        self.workbook.mark_modified()
        emit(
            make_cell_event(
                EventType.note_set, EventLevel.info, f"Note set on {addr.upper()}",
                sheet=sheet.name, addr=addr.upper(),
            )
        )
        return {"ok": True, "dirty": True, "errors": []}

    def set_format(self, addr: str, sheet_name: str | None = None, **attrs: Any) -> dict[str, Any]:
        """Change formatting attributes; ``bold=True`` style keys toggle flags."""
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.edit_rejected, addr=addr.upper())
        flags = {
            name: attrs.pop(name)
            for name in ("bold", "italic", "underline", "strikethrough", "allcaps")
            if name in attrs
        }
        try:
            row, col = parse_addr(addr.upper())
            result = sheet.set_format(row, col, **attrs) if attrs else None
            for name, on in flags.items():
                result = sheet.set_style(row, col, StyleFlag[name.upper()], bool(on))
        except (EngineError, ValueError) as exc:
            return self._fail(exc, EventType.edit_rejected, sheet=sheet.name, addr=addr.upper())
        self.workbook.mark_modified()
        emit(
            make_cell_event(
                EventType.format_set, EventLevel.info, f"Format set on {addr.upper()}",
                sheet=sheet.name, addr=addr.upper(), extra={"attrs": sorted([*attrs, *flags])},
            )
        )
        summary = _recalc_summary(result) if result is not None else {}
        return {"ok": True, "dirty": True, "errors": [], **summary}

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------

    def get_visible_grid(self, sheet_name: str | None = None) -> dict[str, Any]:
        """Render the viewport (rows of cell dicts), then evict distant blanks."""
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.lookup_rejected)
        view = sheet.visible_grid()
        if view.evicted:
            emit_info(
                EventType.cells_evicted,
                f"Evicted {len(view.evicted)} blank cell(s)",
                {"sheet": sheet.name, "count": len(view.evicted)},
            )
        return {
            "sheet": sheet.name,
            "top_row": view.top_row,
            "left_col": view.left_col,
            "rows": [
                [
                    {
                        "vrow": cv.vrow,
                        "vcol": cv.vcol,
                        "addr": cv.addr,
                        "display": cv.display,
                        "kind": cv.kind.value,
                        "align": cv.align.value,
                        "flags": int(cv.flags),
                        "fg": list(cv.fg),
                        "bg": list(cv.bg),
                        "has_note": cv.has_note,
                    }
                    for cv in line
                ]
                for line in view.rows
            ],
            "evicted": len(view.evicted),
        }

    def pan(self, d_rows: int = 0, d_cols: int = 0, sheet_name: str | None = None) -> dict[str, Any]:
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.lookup_rejected)
        sheet.viewport.pan(d_rows, d_cols)
        return self._viewport_moved(sheet)

    def scroll_to(self, addr: str, sheet_name: str | None = None) -> dict[str, Any]:
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.lookup_rejected)
        try:
            row, col = parse_addr(addr.upper())
        except ValueError as exc:
            return self._fail(exc, EventType.viewport_moved, sheet=sheet.name)
        sheet.viewport.scroll_to(row, col)
        return self._viewport_moved(sheet)

    def _viewport_moved(self, sheet: Sheet) -> dict[str, Any]:
        vp = sheet.viewport
        emit_info(
            EventType.viewport_moved,
            f"Viewport at {make_addr(vp.top_row, vp.left_col)}",
            {"sheet": sheet.name, "top_row": vp.top_row, "left_col": vp.left_col},
        )
        return {"ok": True, "top_row": vp.top_row, "left_col": vp.left_col, "rows": vp.rows, "cols": vp.cols}

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _structural(self, op: str, index: int, count: int, sheet_name: str | None) -> dict[str, Any]:
        try:
            sheet = self._sheet(sheet_name)
        except SheetNameError as exc:
            return self._fail(exc, EventType.structural_rejected)
        try:
            result = _STRUCTURE_OPS[op](sheet, index, count)
        except StructuralError as exc:
            return self._fail(exc, EventType.structural_rejected, sheet=sheet.name)
        self.workbook.mark_modified()
        emit_info(
            EventType.structural_edit,
            f"{op} at {index} (x{count}) on {sheet.name}",
            {
                "sheet": sheet.name,
                "op": op,
                "index": index,
                "count": count,
                "removed": len(result.removed),
                "rewritten": len(result.rewritten),
            },
        )
        self._log_recalc(sheet, result.recalc)
        return {
            "ok": True,
            "dirty": True,
            "errors": [],
            "n_rows": sheet.n_rows,
            "n_cols": sheet.n_cols,
            "removed": [make_addr(*c) for c in result.removed],
            "rewritten": [make_addr(*c) for c in result.rewritten],
            **_recalc_summary(result.recalc),
        }

    def insert_row(self, index: int, count: int = 1, sheet_name: str | None = None) -> dict[str, Any]:
        return self._structural("insert_row", index, count, sheet_name)

    def delete_row(self, index: int, count: int = 1, sheet_name: str | None = None) -> dict[str, Any]:
        return self._structural("delete_row", index, count, sheet_name)

    def insert_col(self, index: int, count: int = 1, sheet_name: str | None = None) -> dict[str, Any]:
        return self._structural("insert_col", index, count, sheet_name)

    def delete_col(self, index: int, count: int = 1, sheet_name: str | None = None) -> dict[str, Any]:
        return self._structural("delete_col", index, count, sheet_name)

    # ------------------------------------------------------------------
    # Sheets
    # ------------------------------------------------------------------

    def _sheet_op(self, event_type: EventType, message: str, sheet: str, **extra: Any) -> dict[str, Any]:
        emit_info(event_type, message, {"sheet": sheet, **extra})
        return {
            "ok": True,
            "dirty": self.workbook.modified,
            "errors": [],
            "sheets": self.workbook.sheet_names(),
            "active": self.workbook.active_index,
        }

    def add_sheet(self, name: str | None = None) -> dict[str, Any]:
        try:
            sheet = self.workbook.add_sheet(name)
        except EngineError as exc:
            return self._fail(exc, EventType.sheet_rejected)
        return self._sheet_op(EventType.sheet_added, f"Added sheet {sheet.name}", sheet.name)

    def rename_sheet(self, index: int, new_name: str) -> dict[str, Any]:
        try:
            old = self.workbook.sheets[index].name if 0 <= index < len(self.workbook.sheets) else None
            self.workbook.rename_sheet(index, new_name)
        except EngineError as exc:
            return self._fail(exc, EventType.sheet_rejected)
        sheet = self.workbook.sheets[index].name
        return self._sheet_op(EventType.sheet_renamed, f"Renamed {old} to {sheet}", sheet, old_name=old)

    def delete_sheet(self, index: int) -> dict[str, Any]:
        try:
            removed = self.workbook.delete_sheet(index)
        except EngineError as exc:
            return self._fail(exc, EventType.sheet_rejected)
        return self._sheet_op(EventType.sheet_deleted, f"Deleted sheet {removed.name}", removed.name)

    def duplicate_sheet(self, index: int) -> dict[str, Any]:
        try:
            copy = self.workbook.duplicate_sheet(index)
        except EngineError as exc:
            return self._fail(exc, EventType.sheet_rejected)
        return self._sheet_op(EventType.sheet_duplicated, f"Duplicated sheet as {copy.name}", copy.name)

    def move_sheet(self, src: int, dst: int) -> dict[str, Any]:
        try:
            self.workbook.move_sheet(src, dst)
        except EngineError as exc:
            return self._fail(exc, EventType.sheet_rejected)
        moved = self.workbook.sheets[dst].name
        return self._sheet_op(EventType.sheet_moved, f"Moved {moved} to {dst}", moved, src=src, dst=dst)

    def switch_active(self, index: int) -> dict[str, Any]:
        try:
            sheet = self.workbook.switch_active(index)
        except EngineError as exc:
            return self._fail(exc, EventType.sheet_rejected)
        return self._sheet_op(EventType.sheet_switched, f"Switched to {sheet.name}", sheet.name)

    def get_workbook_info(self) -> dict[str, Any]:
        wb = self.workbook
        return {
            "title": wb.title,
            "current_file": wb.current_file,
            "dirty": wb.modified,
            "active": wb.active_index,
            "sheets": [
                {"name": s.name, "n_rows": s.n_rows, "n_cols": s.n_cols, "cells": len(s.cells)}
                for s in wb.sheets
            ],
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Workbook snapshot as a JSON-compatible dict."""
        data = snapshot_workbook(self.workbook).model_dump(mode="json")
        emit_info(
            EventType.snapshot_taken,
            "Snapshot taken",
            {"sheets": len(data["sheets"]), "cells": sum(len(s["cells"]) for s in data["sheets"])},
        )
        return data

    def restore(self, data: dict[str, Any], current_file: str | None = None) -> dict[str, Any]:
        """Replace the workbook with one restored from ``snapshot()`` output.

        The current workbook is kept if the data is invalid.
        """
        try:
            snap = WorkbookSnapshot.model_validate(data)
            workbook = restore_workbook(snap, self.config)
        except PydanticValidationError as exc:
            return self._fail(SnapshotError(f"Invalid workbook snapshot: {exc}"), EventType.snapshot_failed)
        except SnapshotError as exc:
            return self._fail(exc, EventType.snapshot_failed)
        workbook.mark_saved(current_file)
        self.workbook = workbook
        emit_info(
            EventType.snapshot_restored,
            "Workbook restored",
            {"sheets": workbook.sheet_names(), "current_file": current_file},
        )
        return {"ok": True, "dirty": False, "errors": [], "sheets": workbook.sheet_names()}

    def mark_saved(self, current_file: str | None = None) -> dict[str, Any]:
        self.workbook.mark_saved(current_file)
        return {"ok": True, "dirty": False, "title": self.workbook.title}
