"""Tests for row/column insertion, deletion, and formula reference rewriting."""

from __future__ import annotations

import pytest

from gridcalc.cell import ValueKind
from gridcalc.errors import StructuralError
from gridcalc.sheet import Sheet
from gridcalc.structure import delete_col, delete_row, insert_col, insert_row


@pytest.fixture
def sheet() -> Sheet:
    return Sheet("Sheet1", n_rows=20, n_cols=10)


def _raw(sheet: Sheet, row: int, col: int) -> str | None:
    cell = sheet.get_cell(row, col)
    return cell.raw if cell is not None else None


# ────────────────────────────────────────────────────────────────
# Columns
# ────────────────────────────────────────────────────────────────


class TestInsertCol:
    def test_cells_at_or_past_index_move_right(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "10")
        sheet.set_cell_value(1, 3, "x")
        sheet.set_cell_value(1, 5, "=A1")
        insert_col(sheet, 3)
        assert _raw(sheet, 1, 1) == "10"
        assert _raw(sheet, 1, 3) is None
        assert _raw(sheet, 1, 4) == "x"
        assert _raw(sheet, 1, 6) == "=A1"
        assert sheet.get_cell(1, 6).value == 10.0

    def test_refs_past_index_are_rewritten(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "10")
        sheet.set_cell_value(1, 5, "=A1 * 2")
        result = insert_col(sheet, 1)
        assert _raw(sheet, 1, 6) == "=B1 * 2"
        assert sheet.get_cell(1, 6).value == 20.0
        assert result.rewritten == [(1, 6)]

    def test_graph_follows_moved_cells(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "1")
        sheet.set_cell_value(1, 2, "=A1 + 1")
        insert_col(sheet, 2, count=2)
        assert sheet.dependents(1, 1) == {(1, 4)}
        sheet.set_cell_value(1, 1, "5")
        assert sheet.get_cell(1, 4).value == 6.0
        assert sheet.graph.is_consistent()

    def test_extent_grows(self, sheet: Sheet) -> None:
        insert_col(sheet, 4, count=3)
        assert sheet.n_cols == 13


class TestDeleteCol:
    def test_cells_shift_left(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "a")
        sheet.set_cell_value(1, 2, "b")
        sheet.set_cell_value(1, 3, "c")
        result = delete_col(sheet, 2)
        assert _raw(sheet, 1, 2) == "c"
        assert _raw(sheet, 1, 3) is None
        assert result.removed == [(1, 2)]
        assert sheet.n_cols == 9

    def test_reference_to_deleted_col_becomes_ref_error(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 2, "5")
        sheet.set_cell_value(2, 4, "=B1 + 1")
        delete_col(sheet, 2)
        cell = sheet.get_cell(2, 3)
        assert cell.raw == "=#REF! + 1"
        assert cell.kind == ValueKind.error
        assert cell.display == "#REF!"


# ────────────────────────────────────────────────────────────────
# Rows
# ────────────────────────────────────────────────────────────────


class TestInsertRow:
    def test_refs_shift_down(self, sheet: Sheet) -> None:
        sheet.set_cell_value(5, 1, "3")
        sheet.set_cell_value(10, 1, "=A5 * 2")
        insert_row(sheet, 4, count=2)
        assert _raw(sheet, 7, 1) == "3"
        assert _raw(sheet, 12, 1) == "=A7 * 2"
        assert sheet.get_cell(12, 1).value == 6.0
        assert sheet.n_rows == 22

    def test_refs_before_index_unchanged(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "3")
        sheet.set_cell_value(10, 1, "=A1")
        result = insert_row(sheet, 4)
        assert _raw(sheet, 11, 1) == "=A1"
        assert result.rewritten == []

    def test_cell_attributes_move(self, sheet: Sheet) -> None:
        sheet.set_note(2, 2, "memo")
        sheet.set_rule(2, 2, "THIS > 0")
        insert_row(sheet, 1)
        cell = sheet.get_cell(3, 2)
        assert cell.note == "memo"
        assert cell.rule == "THIS > 0"
        assert sheet.get_cell(2, 2) is None


class TestDeleteRow:
    def test_dependents_of_deleted_row_get_ref_error(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "1")
        sheet.set_cell_value(2, 1, "2")
        sheet.set_cell_value(3, 1, "=A1 + A2")
        result = delete_row(sheet, 2)
        cell = sheet.get_cell(2, 1)
        assert cell.raw == "=A1 + #REF!"
        assert cell.display == "#REF!"
        assert result.removed == [(2, 1)]
        assert result.recalc.errors == {(2, 1): "#REF!"}

    def test_delete_span(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "keep")
        sheet.set_cell_value(6, 1, "moved")
        sheet.set_cell_value(7, 1, "=A6")
        delete_row(sheet, 2, count=3)
        assert _raw(sheet, 3, 1) == "moved"
        assert _raw(sheet, 4, 1) == "=A3"
        assert sheet.get_cell(4, 1).value == "moved"
        assert sheet.n_rows == 17


# ────────────────────────────────────────────────────────────────
# Rejected edits
# ────────────────────────────────────────────────────────────────


class TestRejected:
    def test_index_below_one(self, sheet: Sheet) -> None:
        with pytest.raises(StructuralError):
            insert_row(sheet, 0)

    def test_count_below_one(self, sheet: Sheet) -> None:
        with pytest.raises(StructuralError):
            delete_col(sheet, 1, count=0)

    def test_cannot_delete_every_row(self, sheet: Sheet) -> None:
        sheet.set_cell_value(1, 1, "x")
        with pytest.raises(StructuralError):
            delete_row(sheet, 1, count=20)
        assert _raw(sheet, 1, 1) == "x"
        assert sheet.n_rows == 20
