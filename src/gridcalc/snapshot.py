"""Snapshot and restore of sheets and workbooks.

Snapshots hold only what the user entered: raw text, formatting, rules
and notes, keyed by A1 address in row-major order.  Computed values are
never persisted; restore rebuilds the dependency graph from raw text and
recalculates everything.  The JSON shape is::

    {"version": 1, "active_sheet": 0,
     "sheets": [{"name": "Sheet1", "rows": 200, "cols": 40,
                 "cells": {"B2": {"raw": "5", ...}}}]}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from gridcalc.addressing import Coord, make_addr, parse_addr
from gridcalc.cell import Align, Cell, CellFormat, StyleFlag
from gridcalc.config import DEFAULT_CONFIG
from gridcalc.errors import EngineError, SnapshotError
from gridcalc.recalc import RecalcResult, recalculate_all
from gridcalc.sheet import Sheet
from gridcalc.viewport import Viewport
from gridcalc.workbook import Workbook, new_sheet

SNAPSHOT_VERSION = 1


class CellRecord(BaseModel):
    raw: str | None = None
    cell_type: str = "string"
    align: Align = Align.left
    decimal_places: int = 2
    thousands_sep: str = ","
    decimal_sep: str = "."
    currency: str = "$"
    datetime_format: str = "%Y-%m-%d %H:%M:%S"
    fg: tuple[int, int, int] = (255, 255, 255)
    bg: tuple[int, int, int] = (0, 0, 0)
    flags: int = 0
    rule: str | None = None
    rule_message: str | None = None
    note: str | None = None


class ViewportRecord(BaseModel):
    top_row: int = 1
    left_col: int = 1
    rows: int = 30
    cols: int = 15


class SheetSnapshot(BaseModel):
    name: str
    rows: int = 200
    cols: int = 40
    viewport: ViewportRecord | None = None
    cells: dict[str, CellRecord] = Field(default_factory=dict)


class WorkbookSnapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    active_sheet: int = 0
    sheets: list[SheetSnapshot]


# ────────────────────────────────────────────────────────────────
# Sheet
# ────────────────────────────────────────────────────────────────


def _record(cell: Cell) -> CellRecord:
    fmt = cell.fmt
    return CellRecord(
        raw=cell.raw,
        cell_type=fmt.cell_type,
        align=fmt.align,
        decimal_places=fmt.decimal_places,
        thousands_sep=fmt.thousands_sep,
        decimal_sep=fmt.decimal_sep,
        currency=fmt.currency,
        datetime_format=fmt.datetime_format,
        fg=fmt.fg,
        bg=fmt.bg,
        flags=int(cell.flags & ~StyleFlag.FORMULA),
        rule=cell.rule,
        rule_message=cell.rule_message,
        note=cell.note,
    )


def _cell(addr: str, rec: CellRecord) -> Cell:
    try:
        row, col = parse_addr(addr)
        fmt = CellFormat(
            cell_type=rec.cell_type,
            align=rec.align,
            decimal_places=rec.decimal_places,
            thousands_sep=rec.thousands_sep,
            decimal_sep=rec.decimal_sep,
            currency=rec.currency,
            datetime_format=rec.datetime_format,
            fg=rec.fg,
            bg=rec.bg,
        )
        flags = StyleFlag(rec.flags) & ~StyleFlag.FORMULA
    except ValueError as exc:
        raise SnapshotError(f"Bad cell record {addr!r}: {exc}") from exc
    cell = Cell(
        row=row,
        col=col,
        fmt=fmt,
        flags=flags,
        rule=rec.rule,
        rule_message=rec.rule_message,
        note=rec.note,
    )
    cell.set_raw(rec.raw)
    return cell


def snapshot_sheet(sheet: Sheet) -> SheetSnapshot:
    """Capture a sheet's cells (row-major), extent and viewport."""
    vp = sheet.viewport
    return SheetSnapshot(
        name=sheet.name,
        rows=sheet.n_rows,
        cols=sheet.n_cols,
        viewport=ViewportRecord(top_row=vp.top_row, left_col=vp.left_col, rows=vp.rows, cols=vp.cols),
        cells={make_addr(*coord): _record(sheet.cells[coord]) for coord in sorted(sheet.cells)},
    )


def restore_sheet(sheet: Sheet, snap: SheetSnapshot) -> RecalcResult:
    """Replace a sheet's contents with a snapshot and recalculate.

    The sheet keeps its name.  Nothing changes if the snapshot is invalid.

    Raises:
        SnapshotError: For malformed addresses, formats or extents.
    """
    if snap.rows < 1 or snap.cols < 1:
        raise SnapshotError(f"Sheet {snap.name!r} has a non-positive extent")
    cells: dict[Coord, Cell] = {}
    for addr, rec in snap.cells.items():
        cell = _cell(addr, rec)
        cells[cell.coord] = cell
    viewport = sheet.viewport
    if snap.viewport is not None:
        try:
            viewport = Viewport(**snap.viewport.model_dump())
        except ValueError as exc:
            raise SnapshotError(f"Sheet {snap.name!r} has a bad viewport: {exc}") from exc

    sheet.cells = cells
    sheet.n_rows = snap.rows
    sheet.n_cols = snap.cols
    sheet.viewport = viewport
    sheet.rebuild_graph()
    return recalculate_all(sheet)


def dumps_sheet(sheet: Sheet) -> str:
    return snapshot_sheet(sheet).model_dump_json(indent=2)


def loads_sheet(text: str, sheet: Sheet) -> RecalcResult:
    try:
        snap = SheetSnapshot.model_validate_json(text)
    except PydanticValidationError as exc:
        raise SnapshotError(f"Invalid sheet snapshot: {exc}") from exc
    return restore_sheet(sheet, snap)


# ────────────────────────────────────────────────────────────────
# Workbook
# ────────────────────────────────────────────────────────────────


def snapshot_workbook(wb: Workbook) -> WorkbookSnapshot:
    return WorkbookSnapshot(
        version=SNAPSHOT_VERSION,
        active_sheet=wb.active_index,
        sheets=[snapshot_sheet(s) for s in wb.sheets],
    )


def restore_workbook(snap: WorkbookSnapshot, config: dict[str, Any] | None = None) -> Workbook:
    """Build a new workbook from a snapshot.

    Raises:
        SnapshotError: For an unsupported version, no sheets, a bad
            active index, duplicate names or any bad sheet.
    """
    if snap.version > SNAPSHOT_VERSION:
        raise SnapshotError(f"Unsupported snapshot version {snap.version}")
    if not snap.sheets:
        raise SnapshotError("Snapshot contains no sheets")
    if not 0 <= snap.active_sheet < len(snap.sheets):
        raise SnapshotError(f"Active sheet index {snap.active_sheet} out of range")

    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    try:
        sheets = []
        for sheet_snap in snap.sheets:
            sheet = new_sheet(sheet_snap.name, cfg)
            restore_sheet(sheet, sheet_snap)
            sheets.append(sheet)
        restored = Workbook(sheets, active_index=snap.active_sheet, config=cfg)
    except SnapshotError:
        raise
    except EngineError as exc:
        raise SnapshotError(f"Invalid workbook snapshot: {exc}") from exc
    return restored


def dumps_workbook(wb: Workbook) -> str:
    """Serialize a workbook snapshot to JSON text."""
    return snapshot_workbook(wb).model_dump_json(indent=2)


def loads_workbook(text: str, config: dict[str, Any] | None = None) -> Workbook:
    """Parse JSON text produced by ``dumps_workbook``.

    Raises:
        SnapshotError: If the text is not a valid snapshot.
    """
    try:
        snap = WorkbookSnapshot.model_validate_json(text)
    except PydanticValidationError as exc:
        raise SnapshotError(f"Invalid workbook snapshot: {exc}") from exc
    return restore_workbook(snap, config)
