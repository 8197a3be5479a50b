"""Sheet: sparse cell store, dependency index and viewport.

All mutations are synchronous and all-or-nothing: a rejected edit leaves
the store and the graph exactly as they were.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from gridcalc.addressing import Coord, is_formula, make_addr
from gridcalc.cell import Align, Cell, CellFormat, StyleFlag, ValueKind
from gridcalc.errors import CellReferenceError, CycleError
from gridcalc.formulas.errors import ENGINE_ERRORS
from gridcalc.graph import DependencyGraph
from gridcalc.recalc import RecalcResult, compute_formula, recalculate, recalculate_all
from gridcalc.validation import check_rule_syntax, check_value
from gridcalc.viewport import DEFAULT_EVICTION_MARGIN, Viewport, evict_distant_cells


@dataclass(frozen=True)
class CellView:
    """Rendered state of one visible grid position."""

    vrow: int
    vcol: int
    addr: str
    display: str = ""
    kind: ValueKind = ValueKind.text
    align: Align = Align.left
    flags: StyleFlag = StyleFlag.NONE
    fg: tuple[int, int, int] = (255, 255, 255)
    bg: tuple[int, int, int] = (0, 0, 0)
    has_note: bool = False


@dataclass
class GridView:
    """One render pass: visible rows plus what eviction reclaimed afterwards."""

    top_row: int
    left_col: int
    rows: list[list[CellView]] = field(default_factory=list)
    evicted: list[Coord] = field(default_factory=list)


def _check_coord(row: int, col: int) -> None:
    if row < 1 or col < 1:
        raise CellReferenceError(row, col)


class Sheet:
    """A named grid of cells.

    Attributes:
        name: Display name, unique within a workbook.
        n_rows: Nominal row extent (a sizing hint; the store may exceed it).
        n_cols: Nominal column extent.
        cells: Sparse store keyed by ``(row, col)``.
        graph: Dependency index over ``cells``.
        viewport: Visible window.
        eviction_margin: Retention margin used after each render.
    """

    def __init__(
        self,
        name: str,
        n_rows: int = 200,
        n_cols: int = 40,
        viewport: Viewport | None = None,
        eviction_margin: int = DEFAULT_EVICTION_MARGIN,
    ) -> None:
        self.name = name
        self.n_rows = n_rows
        self.n_cols = n_cols
        self.cells: dict[Coord, Cell] = {}
        self.graph = DependencyGraph()
        self.viewport = viewport or Viewport()
        self.eviction_margin = eviction_margin

    def __repr__(self) -> str:
        return f"Sheet(name={self.name!r}, cells={len(self.cells)})"

    # ────────────────────────────────────────────────────────────────
    # Cell store
    # ────────────────────────────────────────────────────────────────

    def get_cell(self, row: int, col: int) -> Cell | None:
        return self.cells.get((row, col))

    def put_cell(self, cell: Cell) -> None:
        """Store a cell as-is and sync its dependency edges.

        No cycle check and no recalculation; used when loading state.
        """
        _check_coord(cell.row, cell.col)
        cell.set_raw(cell.raw)
        self.cells[cell.coord] = cell
        self.graph.set_formula(cell.coord, cell.raw)

    def remove_cell(self, row: int, col: int) -> RecalcResult:
        """Drop a cell entirely and re-evaluate its dependents."""
        coord = (row, col)
        self.cells.pop(coord, None)
        self.graph.remove(coord)
        return recalculate(self, [coord])

    def depends_on(self, row: int, col: int) -> set[Coord]:
        return self.graph.precedents_of((row, col))

    def dependents(self, row: int, col: int) -> set[Coord]:
        return self.graph.dependents_of((row, col))

    def rebuild_graph(self) -> None:
        self.graph = DependencyGraph.from_formulas(
            (coord, cell.raw) for coord, cell in self.cells.items()
        )

    def iter_cells(self) -> list[Cell]:
        """Cells in row-major order."""
        return [self.cells[coord] for coord in sorted(self.cells)]

    # ────────────────────────────────────────────────────────────────
    # Edits
    # ────────────────────────────────────────────────────────────────

    def set_cell_value(self, row: int, col: int, raw: str | None) -> RecalcResult:
        """Write raw text into a cell and recalculate its dependents.

        Raises:
            CellReferenceError: For row or column < 1.
            CycleError: If the write would create a dependency cycle.
            ValidationError: If the value fails the cell's rule.
        """
        _check_coord(row, col)
        coord = (row, col)
        raw = raw if raw else None
        existing = self.cells.get(coord)
        cell = existing.clone() if existing is not None else Cell(row=row, col=col)

        old_refs = self.graph.set_formula(coord, raw)
        try:
            if is_formula(raw):
                _, cyclic = self.graph.affected([coord])
                if coord in cyclic:
                    raise CycleError(make_addr(row, col), sorted(cyclic))
            check_value(cell, self._candidate(raw))
        except BaseException:
            self.graph.set_dependencies(coord, old_refs)
            raise

        cell.set_raw(raw)
        if cell.is_empty():
            self.cells.pop(coord, None)
        else:
            self.cells[coord] = cell
        return recalculate(self, [coord])

    def _candidate(self, raw: str | None) -> Any:
        """Value a write is validated with: computed value for formulas."""
        if not is_formula(raw):
            return raw
        try:
            return compute_formula(raw, self.cells)
        except ENGINE_ERRORS:
            # An erroring formula is stored as an error value, not rejected.
            return None

    def clear_cell(self, row: int, col: int) -> RecalcResult:
        return self.set_cell_value(row, col, None)

    def _ensure_cell(self, row: int, col: int) -> Cell:
        _check_coord(row, col)
        cell = self.cells.get((row, col))
        if cell is None:
            cell = Cell(row=row, col=col)
            self.cells[(row, col)] = cell
        return cell

    def _drop_if_empty(self, cell: Cell) -> None:
        if cell.is_empty():
            self.cells.pop(cell.coord, None)

    def set_rule(self, row: int, col: int, rule: str | None, message: str | None = None) -> None:
        """Attach (or with None, remove) a validation rule.

        Raises:
            ValidationError: If the rule references cells or does not parse.
        """
        rule = rule.strip() if rule and rule.strip() else None
        check_rule_syntax(rule)
        cell = self._ensure_cell(row, col)
        cell.rule = rule
        cell.rule_message = message if rule and message and message.strip() else None
        self._drop_if_empty(cell)

    def set_note(self, row: int, col: int, note: str | None) -> None:
        cell = self._ensure_cell(row, col)
        cell.note = note if note else None
        self._drop_if_empty(cell)

    def set_format(self, row: int, col: int, **attrs: Any) -> RecalcResult:
        """Change formatting attributes and re-render the cell and its dependents.

        Raises:
            ValueError: For unknown attributes or invalid values (nothing changes).
        """
        _check_coord(row, col)
        cell = self.cells.get((row, col))
        current = cell.fmt if cell is not None else CellFormat()
        try:
            new_fmt = dataclasses.replace(current, **attrs)
        except TypeError as exc:
            raise ValueError(f"Unknown format attribute: {exc}") from None
        cell = self._ensure_cell(row, col)
        cell.fmt = new_fmt
        return recalculate(self, [(row, col)])

    def set_style(self, row: int, col: int, flag: StyleFlag, on: bool = True) -> RecalcResult:
        """Turn a style flag on or off.  FORMULA is managed by the raw text."""
        if flag & StyleFlag.FORMULA:
            raise ValueError("The formula marker follows the cell's raw text")
        cell = self._ensure_cell(row, col)
        if on:
            cell.flags |= flag
        else:
            cell.flags &= ~flag
        self._drop_if_empty(cell)
        return recalculate(self, [(row, col)])

    def recalculate_all(self) -> RecalcResult:
        return recalculate_all(self)

    # ────────────────────────────────────────────────────────────────
    # Rendering
    # ────────────────────────────────────────────────────────────────

    def visible_grid(self) -> GridView:
        """Render the viewport, then evict distant blank cells."""
        vp = self.viewport
        view = GridView(top_row=vp.top_row, left_col=vp.left_col)
        for vrow in range(1, vp.rows + 1):
            line: list[CellView] = []
            for vcol in range(1, vp.cols + 1):
                row, col = vp.to_absolute(vrow, vcol)
                cell = self.cells.get((row, col))
                if cell is None:
                    line.append(CellView(vrow, vcol, make_addr(row, col)))
                    continue
                line.append(
                    CellView(
                        vrow,
                        vcol,
                        cell.addr,
                        display=cell.display,
                        kind=cell.kind,
                        align=cell.fmt.align,
                        flags=cell.flags,
                        fg=cell.fmt.fg,
                        bg=cell.fmt.bg,
                        has_note=bool(cell.note),
                    )
                )
            view.rows.append(line)
        view.evicted = evict_distant_cells(self.cells, vp, self.eviction_margin)
        return view
