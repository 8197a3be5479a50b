"""Tests for the viewport window and eviction of distant blank cells."""

from __future__ import annotations

import pytest

from gridcalc.cell import Cell, StyleFlag
from gridcalc.sheet import Sheet
from gridcalc.viewport import Viewport, evict_distant_cells


# ────────────────────────────────────────────────────────────────
# Viewport geometry
# ────────────────────────────────────────────────────────────────


class TestViewport:
    def test_to_absolute(self) -> None:
        vp = Viewport(top_row=10, left_col=3, rows=5, cols=4)
        assert vp.to_absolute(1, 1) == (10, 3)
        assert vp.to_absolute(5, 4) == (14, 6)

    def test_header_maps_to_zero(self) -> None:
        vp = Viewport(top_row=10, left_col=3, rows=5, cols=4)
        assert vp.to_absolute(0, 2) == (0, 4)
        assert vp.to_absolute(2, 0) == (11, 0)

    def test_to_relative(self) -> None:
        vp = Viewport(top_row=10, left_col=3, rows=5, cols=4)
        assert vp.to_relative(12, 5) == (3, 3)

    def test_is_visible(self) -> None:
        vp = Viewport(top_row=10, left_col=3, rows=5, cols=4)
        assert vp.is_visible(14, 6)
        assert not vp.is_visible(15, 3)
        assert not vp.is_visible(10, 2)

    def test_pan_clamps_to_origin(self) -> None:
        vp = Viewport(top_row=10, left_col=3)
        vp.pan(-20, 2)
        assert (vp.top_row, vp.left_col) == (1, 5)

    def test_scroll_to_below(self) -> None:
        vp = Viewport(rows=5, cols=4)
        vp.scroll_to(40, 3)
        assert (vp.top_row, vp.left_col) == (36, 1)

    def test_scroll_to_visible_is_noop(self) -> None:
        vp = Viewport(top_row=10, left_col=3, rows=5, cols=4)
        vp.scroll_to(12, 4)
        assert (vp.top_row, vp.left_col) == (10, 3)

    def test_scroll_to_above(self) -> None:
        vp = Viewport(top_row=10, left_col=10, rows=5, cols=4)
        vp.scroll_to(2, 7)
        assert (vp.top_row, vp.left_col) == (2, 7)

    def test_invalid_geometry(self) -> None:
        with pytest.raises(ValueError):
            Viewport(top_row=0)
        with pytest.raises(ValueError):
            Viewport(rows=0)
        vp = Viewport()
        with pytest.raises(ValueError):
            vp.resize(0, 5)

    def test_retention_bounds(self) -> None:
        vp = Viewport(top_row=10, left_col=3, rows=5, cols=4)
        assert vp.retention_bounds(100) == (1, 115, 1, 107)
        vp = Viewport(top_row=500, left_col=200, rows=5, cols=4)
        assert vp.retention_bounds(100) == (400, 605, 100, 304)


# ────────────────────────────────────────────────────────────────
# Eviction
# ────────────────────────────────────────────────────────────────


class TestEviction:
    def test_only_blank_distant_cells_go(self) -> None:
        vp = Viewport(rows=10, cols=5)
        cells = {
            (500, 1): Cell(row=500, col=1),
            (501, 1): Cell(row=501, col=1, raw="data"),
            (502, 1): Cell(row=502, col=1, note="memo"),
            (503, 1): Cell(row=503, col=1, flags=StyleFlag.BOLD),
            (50, 1): Cell(row=50, col=1),
        }
        evicted = evict_distant_cells(cells, vp, margin=100)
        assert evicted == [(500, 1)]
        assert set(cells) == {(501, 1), (502, 1), (503, 1), (50, 1)}

    def test_colored_cell_is_kept(self) -> None:
        vp = Viewport(rows=10, cols=5)
        cell = Cell(row=1, col=900)
        cell.fmt.bg = (10, 20, 30)
        cells = {(1, 900): cell}
        assert evict_distant_cells(cells, vp, margin=100) == []

    def test_margin_zero(self) -> None:
        vp = Viewport(rows=10, cols=5)
        cells = {(12, 1): Cell(row=12, col=1), (11, 1): Cell(row=11, col=1)}
        assert evict_distant_cells(cells, vp, margin=0) == [(12, 1)]


class TestVisibleGrid:
    def test_render_dimensions_and_content(self) -> None:
        sheet = Sheet("S", viewport=Viewport(rows=4, cols=3))
        sheet.set_cell_value(2, 2, "5")
        sheet.set_cell_value(2, 3, "=B2 * 2")
        sheet.set_note(1, 1, "n")
        view = sheet.visible_grid()
        assert len(view.rows) == 4
        assert all(len(line) == 3 for line in view.rows)
        assert view.rows[1][1].display == "5"
        assert view.rows[1][2].display == "10"
        assert view.rows[1][2].addr == "C2"
        assert view.rows[0][0].has_note
        assert view.rows[3][2].display == ""

    def test_render_after_pan(self) -> None:
        sheet = Sheet("S", viewport=Viewport(rows=2, cols=2))
        sheet.set_cell_value(11, 6, "far")
        sheet.viewport.pan(10, 5)
        view = sheet.visible_grid()
        assert view.rows[0][0].addr == "F11"
        assert view.rows[0][0].display == "far"

    def test_render_evicts_blank_formatted_cells(self) -> None:
        sheet = Sheet("S", viewport=Viewport(rows=5, cols=5), eviction_margin=10)
        sheet.set_format(200, 1, align="right")
        sheet.set_cell_value(300, 1, "kept")
        view = sheet.visible_grid()
        assert view.evicted == [(200, 1)]
        assert sheet.get_cell(200, 1) is None
        assert sheet.get_cell(300, 1).raw == "kept"

    def test_evicted_cell_reads_back_blank(self) -> None:
        sheet = Sheet("S", viewport=Viewport(rows=5, cols=5), eviction_margin=0)
        sheet.set_format(50, 1, align="right")
        sheet.set_cell_value(1, 1, "=A50 + 1")
        sheet.visible_grid()
        sheet.set_cell_value(2, 1, "x")
        assert sheet.get_cell(1, 1).value == 1.0
