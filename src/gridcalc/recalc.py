"""Incremental recalculation over a sheet's dependency graph.

Starting from the edited cells, the engine walks the dependents closure in
topological order and re-evaluates every formula cell with a resolver that
reads values already updated earlier in the same pass.  Evaluation errors
are contained in the failing cell as an error value; cells that cannot be
ordered because of a cycle are marked ``#CYCLE!``.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

from lark import Tree

from gridcalc.addressing import Coord, make_addr
from gridcalc.cell import Cell, ValueKind
from gridcalc.formatting import format_value, normalize_input
from gridcalc.formulas.errors import ENGINE_ERRORS, CellValueError, FormulaError
from gridcalc.formulas.evaluator import evaluate_formula
from gridcalc.formulas.parser import parse_formula
from gridcalc.formulas.values import kind_of, parse_literal

if TYPE_CHECKING:
    from gridcalc.sheet import Sheet

CYCLE_TAG = "#CYCLE!"
GENERIC_TAG = "#ERR!"


@dataclass
class RecalcResult:
    """Outcome of one recalculation pass.

    Attributes:
        order: Formula cells evaluated, in evaluation order.
        cyclic: Cells left unordered by a dependency cycle.
        errors: Error tag per cell that ended the pass in an error state.
    """

    order: list[Coord] = field(default_factory=list)
    cyclic: set[Coord] = field(default_factory=set)
    errors: dict[Coord, str] = field(default_factory=dict)


@functools.lru_cache(maxsize=2048)
def _parse_cached(text: str) -> Tree:
    return parse_formula(text)


class SheetResolver:
    """Resolves cell references against a sheet's current cell values."""

    def __init__(self, cells: dict[Coord, Cell]) -> None:
        self._cells = cells

    def resolve_cell(self, row: int, col: int) -> Any:
        cell = self._cells.get((row, col))
        if cell is None or cell.raw is None:
            return None
        if cell.kind == ValueKind.error:
            raise CellValueError(cell.addr, cell.display or GENERIC_TAG)
        return cell.value


def literal_value(cell: Cell) -> Any:
    """Typed value of a non-formula cell's raw text."""
    if cell.raw is None:
        return None
    return parse_literal(normalize_input(cell.raw, cell.fmt))


def compute_formula(raw: str, cells: dict[Coord, Cell]) -> Any:
    """Evaluate formula text against a cell store.

    Raises:
        FormulaError: On parse or evaluation failure.
    """
    return evaluate_formula(_parse_cached(raw.strip()), SheetResolver(cells))


def store_value(cell: Cell, value: Any) -> None:
    """Write a computed value and its display text onto a cell."""
    cell.value = value
    cell.kind = kind_of(value)
    cell.error = None
    cell.display = format_value(value, cell.fmt, cell.flags)


def store_error(cell: Cell, tag: str, message: str) -> None:
    """Put a cell into the error state."""
    cell.value = None
    cell.kind = ValueKind.error
    cell.error = message
    cell.display = tag


def refresh_literal(cell: Cell) -> None:
    """Recompute value and display of a non-formula cell from its raw text."""
    if cell.raw is None:
        cell.value = None
        cell.kind = ValueKind.text
        cell.error = None
        cell.display = ""
        return
    store_value(cell, literal_value(cell))


def evaluate_cell(cell: Cell, cells: dict[Coord, Cell]) -> str | None:
    """Re-evaluate one formula cell in place.

    Returns:
        The error tag when the cell ends in an error state, else None.
    """
    try:
        value = compute_formula(cell.raw, cells)
    except FormulaError as exc:
        store_error(cell, exc.tag, str(exc))
        return exc.tag
    except ENGINE_ERRORS as exc:
        store_error(cell, GENERIC_TAG, str(exc))
        return GENERIC_TAG
    store_value(cell, value)
    return None


def recalculate(sheet: Sheet, roots: Iterable[Coord]) -> RecalcResult:
    """Re-evaluate the dependents closure of ``roots`` in topological order."""
    cells = sheet.cells
    ordered, cyclic = sheet.graph.affected(roots)
    result = RecalcResult()

    for coord in ordered:
        cell = cells.get(coord)
        if cell is None:
            continue
        if not cell.is_formula:
            refresh_literal(cell)
            continue
        result.order.append(coord)
        tag = evaluate_cell(cell, cells)
        if tag is not None:
            result.errors[coord] = tag

    for coord in sorted(cyclic):
        cell = cells.get(coord)
        if cell is None or not cell.is_formula:
            continue
        store_error(cell, CYCLE_TAG, f"Circular reference involving {make_addr(*coord)}")
        result.cyclic.add(coord)
        result.errors[coord] = CYCLE_TAG
    return result


def recalculate_all(sheet: Sheet) -> RecalcResult:
    """Refresh every literal cell, then re-evaluate every formula cell."""
    for cell in sheet.cells.values():
        if not cell.is_formula:
            refresh_literal(cell)
    formulas = [coord for coord, cell in sheet.cells.items() if cell.is_formula]
    return recalculate(sheet, formulas)
