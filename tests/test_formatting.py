"""Tests for display formatting and numeric input normalization."""

from __future__ import annotations

import datetime

from gridcalc.cell import CellFormat, StyleFlag
from gridcalc.formatting import format_value, group_thousands, normalize_input


class TestFormatValue:
    def test_string_cell_uses_plain_text(self) -> None:
        assert format_value(1234.5, CellFormat()) == "1234.5"
        assert format_value(5.0, CellFormat()) == "5"
        assert format_value(True, CellFormat()) == "TRUE"

    def test_number_cell(self) -> None:
        assert format_value(1234.5, CellFormat(cell_type="number")) == "1,234.50"

    def test_number_cell_custom_separators(self) -> None:
        fmt = CellFormat(cell_type="number", thousands_sep=".", decimal_sep=",", decimal_places=1)
        assert format_value(1234567.25, fmt) == "1.234.567,2"

    def test_financial_cell(self) -> None:
        fmt = CellFormat(cell_type="financial")
        assert format_value(1234.5, fmt) == "$1,234.50"
        assert format_value(-1234.5, fmt) == "-$1,234.50"

    def test_zero_decimals(self) -> None:
        fmt = CellFormat(cell_type="number", decimal_places=0)
        assert format_value(999.0, fmt) == "999"

    def test_no_negative_zero(self) -> None:
        fmt = CellFormat(cell_type="number", decimal_places=1)
        assert format_value(-0.01, fmt) == "0.0"

    def test_text_in_number_cell(self) -> None:
        assert format_value("n/a", CellFormat(cell_type="number")) == "n/a"

    def test_datetime_cell(self) -> None:
        fmt = CellFormat(cell_type="datetime", datetime_format="%d/%m/%Y")
        assert format_value(datetime.date(2024, 1, 5), fmt) == "05/01/2024"

    def test_allcaps(self) -> None:
        assert format_value("abc", CellFormat(), StyleFlag.ALLCAPS) == "ABC"


class TestGroupThousands:
    def test_groups(self) -> None:
        assert group_thousands("1234567", ",") == "1,234,567"
        assert group_thousands("123", ",") == "123"

    def test_no_separator(self) -> None:
        assert group_thousands("1234567", "") == "1234567"


class TestNormalizeInput:
    def test_financial(self) -> None:
        fmt = CellFormat(cell_type="financial")
        assert normalize_input("$1,250.5", fmt) == "1250.5"
        assert normalize_input("-$3", fmt) == "-3"

    def test_string_cell_untouched(self) -> None:
        assert normalize_input("$1,250", CellFormat()) == "$1,250"

    def test_non_numeric_returned_unchanged(self) -> None:
        assert normalize_input("abc", CellFormat(cell_type="number")) == "abc"
