"""Bounded visible window over the unbounded grid, plus eviction.

Visible positions are 1-based like absolute ones; visible position 0 is
the header row/column and maps to absolute 0.
"""

from __future__ import annotations

from dataclasses import dataclass

from gridcalc.addressing import Coord
from gridcalc.cell import Cell

DEFAULT_EVICTION_MARGIN = 100


@dataclass
class Viewport:
    """Top-left corner and size of the visible window."""

    top_row: int = 1
    left_col: int = 1
    rows: int = 30
    cols: int = 15

    def __post_init__(self) -> None:
        if self.top_row < 1 or self.left_col < 1:
            raise ValueError("Viewport top_row and left_col must be >= 1")
        if self.rows < 1 or self.cols < 1:
            raise ValueError("Viewport must show at least one row and one column")

    def to_absolute(self, vrow: int, vcol: int) -> Coord:
        row = 0 if vrow == 0 else self.top_row + vrow - 1
        col = 0 if vcol == 0 else self.left_col + vcol - 1
        return row, col

    def to_relative(self, row: int, col: int) -> Coord:
        vrow = 0 if row == 0 else row - self.top_row + 1
        vcol = 0 if col == 0 else col - self.left_col + 1
        return vrow, vcol

    def is_visible(self, row: int, col: int) -> bool:
        return (
            self.top_row <= row < self.top_row + self.rows
            and self.left_col <= col < self.left_col + self.cols
        )

    def pan(self, d_rows: int = 0, d_cols: int = 0) -> None:
        """Move the window, clamping the corner to row/col 1."""
        self.top_row = max(1, self.top_row + d_rows)
        self.left_col = max(1, self.left_col + d_cols)

    def scroll_to(self, row: int, col: int) -> None:
        """Pan as little as possible so that (row, col) is visible."""
        if row < self.top_row:
            self.top_row = max(1, row)
        elif row >= self.top_row + self.rows:
            self.top_row = row - self.rows + 1
        if col < self.left_col:
            self.left_col = max(1, col)
        elif col >= self.left_col + self.cols:
            self.left_col = col - self.cols + 1

    def resize(self, rows: int, cols: int) -> None:
        if rows < 1 or cols < 1:
            raise ValueError("Viewport must show at least one row and one column")
        self.rows = rows
        self.cols = cols

    def retention_bounds(self, margin: int) -> tuple[int, int, int, int]:
        """``(min_row, max_row, min_col, max_col)`` kept by eviction, inclusive."""
        return (
            max(1, self.top_row - margin),
            self.top_row + self.rows + margin,
            max(1, self.left_col - margin),
            self.left_col + self.cols + margin,
        )


def evict_distant_cells(
    cells: dict[Coord, Cell], viewport: Viewport, margin: int = DEFAULT_EVICTION_MARGIN
) -> list[Coord]:
    """Remove blank cells outside the viewport plus ``margin``.

    Cells that hold anything (see ``Cell.is_empty``) are never removed.

    Returns:
        The evicted coordinates.
    """
    min_row, max_row, min_col, max_col = viewport.retention_bounds(margin)
    evicted = [
        coord
        for coord, cell in cells.items()
        if not (min_row <= coord[0] <= max_row and min_col <= coord[1] <= max_col)
        and cell.is_empty()
    ]
    for coord in evicted:
        del cells[coord]
    return evicted
