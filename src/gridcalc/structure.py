"""Row and column insertion and deletion.

Every edit re-keys the cell store, rewrites the references inside every
formula on the sheet, rebuilds the dependency graph and recalculates.  The
new store is computed completely before it replaces the old one, so a
failure never leaves a half-shifted sheet behind.

References into a deleted span become ``#REF!`` in the formula text, so
their dependents evaluate to a ``#REF!`` error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gridcalc.addressing import Coord, is_formula, rewrite_formula_refs, shift_position
from gridcalc.cell import Cell
from gridcalc.errors import StructuralError
from gridcalc.recalc import RecalcResult, recalculate_all

if TYPE_CHECKING:
    from gridcalc.sheet import Sheet

ROW = "row"
COL = "col"


@dataclass
class StructureResult:
    """What a structural edit did.

    Attributes:
        axis: ``"row"`` or ``"col"``.
        index: First affected line (1-based).
        count: Lines inserted (positive) or deleted (negative).
        removed: Coordinates of cells dropped with deleted lines.
        rewritten: New coordinates of formulas whose text changed.
        recalc: The follow-up full recalculation.
    """

    axis: str
    index: int
    count: int
    removed: list[Coord] = field(default_factory=list)
    rewritten: list[Coord] = field(default_factory=list)
    recalc: RecalcResult = field(default_factory=RecalcResult)


def _check(sheet: Sheet, axis: str, index: int, count: int, deleting: bool) -> None:
    if index < 1:
        raise StructuralError(f"{axis} index must be >= 1, got {index}")
    if count < 1:
        raise StructuralError(f"{axis} count must be >= 1, got {count}")
    if deleting:
        extent = sheet.n_rows if axis == ROW else sheet.n_cols
        kept = extent - _overlap(extent, index, count)
        if kept < 1:
            raise StructuralError(f"Cannot delete the last remaining {axis} of sheet {sheet.name!r}")


def _overlap(extent: int, index: int, count: int) -> int:
    """Number of lines in ``[index, index + count)`` within ``1..extent``."""
    return max(0, min(extent, index + count - 1) - index + 1)


def _shift(sheet: Sheet, axis: str, index: int, delta: int) -> StructureResult:
    result = StructureResult(axis=axis, index=index, count=delta)
    new_cells: dict[Coord, Cell] = {}

    for (row, col), cell in sheet.cells.items():
        pos = row if axis == ROW else col
        new_pos = shift_position(pos, index, delta)
        if new_pos is None:
            result.removed.append((row, col))
            continue
        new_row, new_col = (new_pos, col) if axis == ROW else (row, new_pos)

        new_raw = cell.raw
        if is_formula(cell.raw):
            new_raw = rewrite_formula_refs(cell.raw, axis, index, delta)
            if new_raw != cell.raw:
                result.rewritten.append((new_row, new_col))

        if (new_row, new_col) == (row, col) and new_raw == cell.raw:
            new_cells[(row, col)] = cell
            continue
        moved = cell.clone(row=new_row, col=new_col)
        moved.set_raw(new_raw)
        new_cells[(new_row, new_col)] = moved

    # Swap in the complete new state.
    sheet.cells = new_cells
    if axis == ROW:
        sheet.n_rows = _resize(sheet.n_rows, index, delta)
    else:
        sheet.n_cols = _resize(sheet.n_cols, index, delta)
    sheet.rebuild_graph()
    result.removed.sort()
    result.rewritten.sort()
    result.recalc = recalculate_all(sheet)
    return result


def _resize(extent: int, index: int, delta: int) -> int:
    if delta > 0:
        return extent + delta
    return max(1, extent - _overlap(extent, index, -delta))


def insert_row(sheet: Sheet, index: int, count: int = 1) -> StructureResult:
    """Insert ``count`` empty rows before row ``index``."""
    _check(sheet, ROW, index, count, deleting=False)
    return _shift(sheet, ROW, index, count)


def delete_row(sheet: Sheet, index: int, count: int = 1) -> StructureResult:
    """Delete ``count`` rows starting at row ``index``."""
    _check(sheet, ROW, index, count, deleting=True)
    return _shift(sheet, ROW, index, -count)


def insert_col(sheet: Sheet, index: int, count: int = 1) -> StructureResult:
    """Insert ``count`` empty columns before column ``index``."""
    _check(sheet, COL, index, count, deleting=False)
    return _shift(sheet, COL, index, count)


def delete_col(sheet: Sheet, index: int, count: int = 1) -> StructureResult:
    """Delete ``count`` columns starting at column ``index``."""
    _check(sheet, COL, index, count, deleting=True)
    return _shift(sheet, COL, index, -count)
