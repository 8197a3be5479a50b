"""Tests for the formula language: operators, functions and error tags."""

from __future__ import annotations

import datetime
import math
from typing import Any

import pytest

from gridcalc.formulas import (
    ArityError,
    CellValueError,
    DivisionError,
    FormulaDomainError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    TypeCoercionError,
    evaluate_text,
    extract_functions,
    extract_names,
    extract_refs,
    function_names,
    parse_formula,
)
from gridcalc.formulas import evaluator


# ────────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────────


class _Grid:
    """Resolver over a plain ``{(row, col): value}`` dict."""

    def __init__(self, values: dict[tuple[int, int], Any]) -> None:
        self.values = values

    def resolve_cell(self, row: int, col: int) -> Any:
        return self.values.get((row, col))


def _eval(formula: str, values: dict[tuple[int, int], Any] | None = None) -> Any:
    """Parse and evaluate a formula string."""
    resolver = _Grid(values) if values is not None else None
    return evaluate_text(formula, resolver)


# ────────────────────────────────────────────────────────────────
# Parsing
# ────────────────────────────────────────────────────────────────


class TestParser:
    def test_requires_leading_equals(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_formula("1+2")

    def test_dangling_operator(self) -> None:
        with pytest.raises(FormulaParseError) as exc_info:
            parse_formula("=1+")
        assert exc_info.value.tag == "#PARSE!"

    def test_unknown_infix_word(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_formula("=B2*2 POW 2")

    def test_extract_refs(self) -> None:
        tree = parse_formula("=A1 + POW(B2, 2) + AA10")
        assert extract_refs(tree) == {"A1", "B2", "AA10"}

    def test_function_name_with_digits_is_not_a_ref(self) -> None:
        tree = parse_formula("=LOG10(C3)")
        assert extract_refs(tree) == {"C3"}

    def test_extract_names_and_functions(self) -> None:
        tree = parse_formula("=IF(A1 > LIMIT, log10(PI), ROUND(E))")
        assert extract_names(tree) == {"LIMIT", "PI", "E"}
        assert extract_functions(tree) == {"IF", "LOG10", "ROUND"}

    def test_function_names_sorted(self) -> None:
        names = function_names()
        assert names == sorted(names)
        assert "POW" in names and "IFERROR" in names


# ────────────────────────────────────────────────────────────────
# Operators
# ────────────────────────────────────────────────────────────────


class TestOperators:
    def test_precedence(self) -> None:
        assert _eval("=1 + 2 * 3") == 7.0

    def test_parentheses(self) -> None:
        assert _eval("=(1 + 2) * 3") == 9.0

    def test_power_right_associative(self) -> None:
        assert _eval("=2 ^ 3 ^ 2") == 512.0

    def test_unary_minus(self) -> None:
        assert _eval("=-(2 + 3)") == -5.0

    def test_percent(self) -> None:
        assert _eval("=50%") == 0.5

    def test_concat(self) -> None:
        assert _eval('="a" & "b" & 1') == "ab1"

    def test_division_by_zero(self) -> None:
        with pytest.raises(DivisionError) as exc_info:
            _eval("=1/0")
        assert exc_info.value.tag == "#DIV/0!"

    def test_text_in_arithmetic(self) -> None:
        with pytest.raises(TypeCoercionError) as exc_info:
            _eval('="abc" + 1')
        assert exc_info.value.tag == "#VALUE!"

    def test_numeric_text_in_arithmetic(self) -> None:
        assert _eval('="4" * 2') == 8.0

    def test_boolean_ops(self) -> None:
        assert _eval("=TRUE && FALSE || TRUE") is True
        assert _eval("=!TRUE") is False

    def test_compare_numbers(self) -> None:
        assert _eval("=1 < 2") is True
        assert _eval("=2 >= 3") is False
        assert _eval("=1 <> 2") is True
        assert _eval("=1 != 1") is False

    def test_compare_text_case_insensitive(self) -> None:
        assert _eval('="abc" = "ABC"') is True
        assert _eval('="abc" == "abd"') is False

    def test_compare_text_with_number(self) -> None:
        assert _eval('="a" = 1') is False
        assert _eval('="a" <> 1') is True


# ────────────────────────────────────────────────────────────────
# Cell references
# ────────────────────────────────────────────────────────────────


class TestReferences:
    def test_resolves_through_resolver(self) -> None:
        assert _eval("=A1 + B1", {(1, 1): 2.0, (1, 2): 3.0}) == 5.0

    def test_blank_is_zero_in_arithmetic(self) -> None:
        assert _eval("=A1 + 1", {}) == 1.0

    def test_blank_is_empty_in_concat(self) -> None:
        assert _eval('=A1 & "x"', {}) == "x"

    def test_no_resolver(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("=A1")

    def test_header_row(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("=A0", {})

    def test_deleted_reference(self) -> None:
        with pytest.raises(FormulaRefError) as exc_info:
            _eval("=1 + #REF!", {})
        assert exc_info.value.tag == "#REF!"

    def test_unknown_function(self) -> None:
        with pytest.raises(FormulaFunctionError) as exc_info:
            _eval("=NOPE(1)")
        assert exc_info.value.tag == "#NAME?"

    def test_unknown_bare_name(self) -> None:
        with pytest.raises(FormulaFunctionError):
            _eval("=foo + 1")


# ────────────────────────────────────────────────────────────────
# Math
# ────────────────────────────────────────────────────────────────


class TestMath:
    def test_pow(self) -> None:
        assert _eval("=POW(5, 2)") == 25.0

    def test_sqrt_domain(self) -> None:
        with pytest.raises(FormulaDomainError) as exc_info:
            _eval("=SQRT(-1)")
        assert exc_info.value.tag == "#NUM!"

    def test_arity(self) -> None:
        with pytest.raises(ArityError) as exc_info:
            _eval("=SIN()")
        assert str(exc_info.value) == "SIN requires exactly 1 argument(s), got 0"
        assert exc_info.value.tag == "#ARGS!"

    def test_log_default_natural(self) -> None:
        assert _eval("=LOG(E)") == pytest.approx(1.0)

    def test_log_base(self) -> None:
        assert _eval("=LOG(8, 2)") == pytest.approx(3.0)

    def test_log10(self) -> None:
        assert _eval("=LOG10(1000)") == pytest.approx(3.0)

    def test_log_non_positive(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=LOG(0)")

    def test_round_half_away_from_zero(self) -> None:
        assert _eval("=ROUND(2.5)") == 3.0
        assert _eval("=ROUND(-2.5)") == -3.0
        assert _eval("=ROUND(3.14159, 2)") == pytest.approx(3.14)

    def test_round_extreme_digits(self) -> None:
        assert _eval("=ROUND(1, -400)") == 0.0
        assert _eval("=ROUND(-1, -400)") == 0.0
        assert _eval("=ROUND(1.25, 400)") == 1.25
        assert _eval("=ROUNDTO(1e300, 20)") == 1e300
        assert _eval("=ROUNDTO(1234, -2)") == pytest.approx(1200.0)

    def test_bessel_first_kind(self) -> None:
        assert _eval("=J0(0)") == pytest.approx(1.0, abs=1e-7)
        assert _eval("=J0(1)") == pytest.approx(0.7651976865579666, abs=1e-7)
        assert _eval("=J0(10)") == pytest.approx(-0.2459357644513483, abs=1e-7)
        assert _eval("=J1(0)") == pytest.approx(0.0, abs=1e-7)
        assert _eval("=J1(1)") == pytest.approx(0.44005058574493355, abs=1e-7)
        assert _eval("=J1(-1)") == pytest.approx(-0.44005058574493355, abs=1e-7)

    def test_bessel_second_kind(self) -> None:
        assert _eval("=YN(0, 1)") == pytest.approx(0.08825696421567696, abs=1e-7)
        assert _eval("=YN(1, 1)") == pytest.approx(-0.7812128213002887, abs=1e-7)
        assert _eval("=YN(2, 1)") == pytest.approx(-1.650682606816254, abs=1e-6)
        assert _eval("=YN(-1, 1)") == pytest.approx(0.7812128213002887, abs=1e-7)
        assert _eval("=YN(0, 10)") == pytest.approx(0.05567116728359939, abs=1e-7)

    def test_bessel_second_kind_domain(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=YN(0, 0)")
        with pytest.raises(ArityError):
            _eval("=YN(1)")

    def test_stray_arithmetic_error_becomes_num(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(evaluator._FUNC_TABLE, "BOOM", lambda args: 1.0 / 0.0)
        with pytest.raises(FormulaDomainError) as exc_info:
            _eval("=BOOM(1)")
        assert exc_info.value.tag == "#NUM!"
        assert _eval("=IFERROR(BOOM(1), 7)") == 7.0

    def test_floor_ceil_trunc(self) -> None:
        assert _eval("=FLOOR(-1.5)") == -2.0
        assert _eval("=CEIL(1.2)") == 2.0
        assert _eval("=TRUNC(-1.7)") == -1.0

    def test_mod(self) -> None:
        assert _eval("=MOD(7, 3)") == 1.0

    def test_mod_by_zero(self) -> None:
        with pytest.raises(DivisionError):
            _eval("=MOD(1, 0)")

    def test_reciprocal_near_zero(self) -> None:
        with pytest.raises(DivisionError):
            _eval("=CSEC(0)")

    def test_clamp_and_lerp(self) -> None:
        assert _eval("=CLAMP(15, 0, 10)") == 10.0
        assert _eval("=LERP(0, 10, 0.25)") == 2.5

    def test_factorial(self) -> None:
        assert _eval("=FACTORIAL(5)") == 120.0
        with pytest.raises(FormulaDomainError):
            _eval("=FACTORIAL(-1)")

    def test_gcd_lcm(self) -> None:
        assert _eval("=GCD(12, 18)") == 6.0
        assert _eval("=LCM(4, 6)") == 12.0

    def test_bit_operations(self) -> None:
        assert _eval("=BITAND(12, 10)") == 8.0
        assert _eval("=BITOR(12, 10)") == 14.0
        assert _eval("=BITXOR(12, 10)") == 6.0
        assert _eval("=BITSHIFTLEFT(1, 4)") == 16.0
        assert _eval("=BITSHIFTRIGHT(16, 2)") == 4.0

    def test_constants(self) -> None:
        assert _eval("=PI") == pytest.approx(math.pi)
        assert _eval("=PI()") == pytest.approx(math.pi)
        assert _eval("=PHI") == pytest.approx((1 + math.sqrt(5)) / 2)

    def test_trig(self) -> None:
        assert _eval("=SIN(0)") == 0.0
        assert _eval("=DEG(PI)") == pytest.approx(180.0)
        assert _eval("=ATAN2(1, 1)") == pytest.approx(math.pi / 4)

    def test_sign(self) -> None:
        assert _eval("=SIGN(-3)") == -1.0
        assert _eval("=SIGN(0)") == 0.0


# ────────────────────────────────────────────────────────────────
# Aggregates
# ────────────────────────────────────────────────────────────────


class TestAggregates:
    def test_sum(self) -> None:
        assert _eval("=SUM(1, 2, 3)") == 6.0

    def test_sum_skips_blanks(self) -> None:
        assert _eval("=SUM(A1, 4)", {}) == 4.0

    def test_average(self) -> None:
        assert _eval("=AVERAGE(2, 4)") == 3.0

    def test_average_of_blanks(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=AVERAGE(A1)", {})

    def test_min_max(self) -> None:
        assert _eval("=MIN(3, 1, 2)") == 1.0
        assert _eval("=MAX(3, 1, 2)") == 3.0

    def test_count_numbers_only(self) -> None:
        assert _eval('=COUNT(1, "a", TRUE, 2)') == 2.0

    def test_count_requires_an_argument(self) -> None:
        with pytest.raises(ArityError) as exc_info:
            _eval("=COUNT()")
        assert exc_info.value.tag == "#ARGS!"

    def test_product(self) -> None:
        assert _eval("=PRODUCT(2, 3, 4)") == 24.0


# ────────────────────────────────────────────────────────────────
# Logical
# ────────────────────────────────────────────────────────────────


class TestLogical:
    def test_if_is_lazy(self) -> None:
        assert _eval("=IF(1 > 2, 1/0, 5)") == 5.0

    def test_if_without_else(self) -> None:
        assert _eval("=IF(FALSE, 1)") is False

    def test_ifs(self) -> None:
        assert _eval("=IFS(1 > 2, 1, 2 > 1, 2)") == 2.0

    def test_ifs_default(self) -> None:
        assert _eval('=IFS(FALSE, 1, "none")') == "none"

    def test_ifs_no_match(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=IFS(FALSE, 1)")

    def test_iferror(self) -> None:
        assert _eval("=IFERROR(1/0, -1)") == -1.0
        assert _eval("=IFERROR(2, -1)") == 2.0

    def test_and_or_not_xor(self) -> None:
        assert _eval("=AND(TRUE, FALSE)") is False
        assert _eval("=OR(FALSE, 1)") is True
        assert _eval("=NOT(0)") is True
        assert _eval("=XOR(TRUE, TRUE, TRUE)") is True

    def test_choose(self) -> None:
        assert _eval('=CHOOSE(2, "a", "b")') == "b"

    def test_choose_out_of_range(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval('=CHOOSE(3, "a", "b")')

    def test_if_text_condition(self) -> None:
        with pytest.raises(TypeCoercionError):
            _eval('=IF("maybe", 1, 2)')


# ────────────────────────────────────────────────────────────────
# Text
# ────────────────────────────────────────────────────────────────


class TestText:
    def test_left_right_mid(self) -> None:
        assert _eval('=LEFT("hello", 2)') == "he"
        assert _eval('=LEFT("hello")') == "h"
        assert _eval('=RIGHT("hello", 2)') == "lo"
        assert _eval('=MID("hello", 2, 3)') == "ell"

    def test_len_counts_code_points(self) -> None:
        assert _eval('=LEN("héllo")') == 5.0

    def test_case(self) -> None:
        assert _eval('=UPPER("abc")') == "ABC"
        assert _eval('=LOWER("ABC")') == "abc"
        assert _eval('=PROPER("hello world")') == "Hello World"

    def test_trim(self) -> None:
        assert _eval('=TRIM("  x  ")') == "x"

    def test_find(self) -> None:
        assert _eval('=FIND("l", "hello")') == 3.0
        assert _eval('=FIND("l", "hello", 4)') == 4.0
        assert _eval('=FIND("z", "hello")') == -1.0

    def test_substitute(self) -> None:
        assert _eval('=SUBSTITUTE("a-b-c", "-", "+")') == "a+b+c"
        assert _eval('=SUBSTITUTE("a-b-c", "-", "+", 2)') == "a-b+c"

    def test_concat_function(self) -> None:
        assert _eval('=CONCAT("a", 1, TRUE)') == "a1TRUE"

    def test_number_text_has_no_trailing_zero(self) -> None:
        assert _eval('=CONCAT(5)') == "5"


# ────────────────────────────────────────────────────────────────
# Dates
# ────────────────────────────────────────────────────────────────


class TestDates:
    def test_date(self) -> None:
        assert _eval("=DATE(2024, 1, 31)") == datetime.date(2024, 1, 31)

    def test_invalid_date(self) -> None:
        with pytest.raises(FormulaDomainError):
            _eval("=DATE(2024, 2, 30)")

    def test_fields(self) -> None:
        assert _eval("=YEAR(DATE(2024, 3, 5))") == 2024.0
        assert _eval("=MONTH(DATE(2024, 3, 5))") == 3.0
        assert _eval("=DAY(DATE(2024, 3, 5))") == 5.0

    def test_fields_from_text(self) -> None:
        assert _eval('=YEAR("2023-07-01")') == 2023.0

    def test_weekday_sunday_is_one(self) -> None:
        assert _eval("=WEEKDAY(DATE(2024, 1, 7))") == 1.0

    def test_datediff(self) -> None:
        assert _eval("=DATEDIFF(DATE(2024, 1, 1), DATE(2024, 3, 1))") == 60.0

    def test_dateadd(self) -> None:
        assert _eval("=DATEADD(DATE(2024, 1, 31), 1)") == datetime.date(2024, 2, 1)

    def test_eomonth(self) -> None:
        assert _eval("=EOMONTH(DATE(2024, 1, 15), 1)") == datetime.date(2024, 2, 29)

    def test_compare_dates(self) -> None:
        assert _eval("=DATE(2024, 1, 1) < DATE(2024, 1, 2)") is True

    def test_bad_date_text(self) -> None:
        with pytest.raises(TypeCoercionError):
            _eval('=YEAR("not a date")')


# ────────────────────────────────────────────────────────────────
# Type tests
# ────────────────────────────────────────────────────────────────


class TestInfo:
    def test_iserror(self) -> None:
        assert _eval("=ISERROR(1/0)") is True
        assert _eval("=ISERROR(1)") is False

    def test_isnumber_istext_isblank(self) -> None:
        assert _eval("=ISNUMBER(1)") is True
        assert _eval('=ISNUMBER("1")') is False
        assert _eval('=ISTEXT("a")') is True
        assert _eval("=ISBLANK(A1)", {}) is True

    def test_error_propagates_from_cell(self) -> None:
        class _Errored:
            def resolve_cell(self, row: int, col: int) -> Any:
                raise CellValueError("A1", "#DIV/0!")

        with pytest.raises(CellValueError) as exc_info:
            evaluate_text("=A1 + 1", _Errored())
        assert exc_info.value.tag == "#DIV/0!"
        assert evaluate_text("=IFERROR(A1, 0)", _Errored()) == 0.0
