"""Tests for validation rules, the THIS placeholder and rule presets."""

from __future__ import annotations

import pytest

from gridcalc.cell import Cell, CellFormat
from gridcalc.errors import ValidationError
from gridcalc.validation import (
    build_rule,
    check_rule_syntax,
    check_value,
    detect_preset,
    substitute,
)


def _cell(rule: str, cell_type: str = "string", message: str | None = None) -> Cell:
    return Cell(row=1, col=1, rule=rule, rule_message=message, fmt=CellFormat(cell_type=cell_type))


# ────────────────────────────────────────────────────────────────
# Placeholder substitution
# ────────────────────────────────────────────────────────────────


class TestSubstitute:
    def test_replaces_every_placeholder(self) -> None:
        assert substitute("THIS > 0 && THIS < 9", "(5.0)") == "(5.0) > 0 && (5.0) < 9"

    def test_case_insensitive(self) -> None:
        assert substitute("this > 0", "1") == "1 > 0"

    def test_skips_string_literals(self) -> None:
        assert substitute('THIS == "THIS"', '"x"') == '"x" == "THIS"'

    def test_leaves_longer_names(self) -> None:
        assert substitute("THISX > THIS", "1") == "THISX > 1"


# ────────────────────────────────────────────────────────────────
# Rule syntax
# ────────────────────────────────────────────────────────────────


class TestRuleSyntax:
    def test_valid_rule(self) -> None:
        check_rule_syntax("THIS >= 1 && THIS <= 10")

    def test_leading_equals_allowed(self) -> None:
        check_rule_syntax("=THIS > 0")

    def test_empty_rule_is_no_rule(self) -> None:
        check_rule_syntax(None)
        check_rule_syntax("   ")

    def test_cell_reference_rejected(self) -> None:
        with pytest.raises(ValidationError, match="THIS"):
            check_rule_syntax("THIS > A1")

    def test_parse_error_rejected(self) -> None:
        with pytest.raises(ValidationError):
            check_rule_syntax("THIS >")

    def test_unknown_function_rejected(self) -> None:
        with pytest.raises(ValidationError):
            check_rule_syntax("NOPE(THIS)")

    def test_domain_failure_at_sample_value_allowed(self) -> None:
        check_rule_syntax("SQRT(THIS - 10) > 0")

    def test_extreme_rounding_allowed(self) -> None:
        check_rule_syntax("ROUND(5, 0 - 400) >= 0")
        check_rule_syntax("ROUNDTO(THIS, 400) > 0")

    def test_constants_allowed(self) -> None:
        check_rule_syntax("THIS < PI && THIS > -INF")

    def test_unknown_function_in_untaken_branch_rejected(self) -> None:
        with pytest.raises(ValidationError, match="NOPE"):
            check_rule_syntax("IF(THIS > 0, TRUE, NOPE(THIS))")

    def test_unknown_bare_name_rejected(self) -> None:
        with pytest.raises(ValidationError, match="LIMIT"):
            check_rule_syntax("IF(THIS > 0, TRUE, THIS < LIMIT)")


# ────────────────────────────────────────────────────────────────
# Checking candidates
# ────────────────────────────────────────────────────────────────


class TestCheckValue:
    def test_no_rule(self) -> None:
        check_value(Cell(row=1, col=1), "anything")

    def test_blank_candidate_passes(self) -> None:
        check_value(_cell("THIS > 0"), "")
        check_value(_cell("THIS > 0"), None)

    def test_pass_and_fail(self) -> None:
        cell = _cell("THIS > 0")
        check_value(cell, "5")
        with pytest.raises(ValidationError) as exc_info:
            check_value(cell, "-5")
        assert str(exc_info.value) == "Value does not meet validation rule: THIS > 0"
        assert exc_info.value.addr == "A1"
        assert exc_info.value.value == "-5"

    def test_custom_message(self) -> None:
        with pytest.raises(ValidationError, match="^Too small$"):
            check_value(_cell("THIS > 10", message="Too small"), "3")

    def test_numeric_candidate(self) -> None:
        check_value(_cell("THIS == 2.5"), 2.5)

    def test_text_rule(self) -> None:
        cell = _cell('LEN(THIS) <= 3 && LEFT(THIS) == "a"')
        check_value(cell, "abc")
        with pytest.raises(ValidationError):
            check_value(cell, "abcd")

    def test_quotes_in_candidate(self) -> None:
        check_value(_cell("LEN(THIS) == 3"), 'a"b')

    def test_number_cell_strips_separators(self) -> None:
        check_value(_cell("THIS > 1000", cell_type="financial"), "$1,250.50")

    def test_number_cell_rejects_text(self) -> None:
        with pytest.raises(ValidationError, match="^Value must be a number$"):
            check_value(_cell("THIS > 0", cell_type="number"), "abc")

    def test_non_boolean_rule(self) -> None:
        with pytest.raises(ValidationError, match="must return true/false"):
            check_value(_cell("THIS + 1"), "5")

    def test_text_against_numeric_rule(self) -> None:
        with pytest.raises(ValidationError):
            check_value(_cell("THIS > 0"), "abc")


# ────────────────────────────────────────────────────────────────
# Presets
# ────────────────────────────────────────────────────────────────


class TestPresets:
    def test_whole_between_text(self) -> None:
        assert build_rule("whole_between", min=1, max=10) == (
            "THIS >= 1 && THIS <= 10 && THIS == FLOOR(THIS)"
        )

    def test_whole_between_behaviour(self) -> None:
        cell = _cell(build_rule("whole_between", min=1, max=10))
        check_value(cell, "7")
        for bad in ("0", "11", "3.5"):
            with pytest.raises(ValidationError):
                check_value(cell, bad)

    def test_decimal_preset_keeps_fraction(self) -> None:
        assert build_rule("decimal_greater", value=2.5) == "THIS > 2.5"

    def test_length_between(self) -> None:
        cell = _cell(build_rule("length_between", min=2, max=4))
        check_value(cell, "abc")
        with pytest.raises(ValidationError):
            check_value(cell, "a")

    def test_list(self) -> None:
        rule = build_rule("list", values="red, green")
        assert rule == 'THIS == "red" || THIS == "green"'
        cell = _cell(rule)
        check_value(cell, "green")
        check_value(cell, "RED")
        with pytest.raises(ValidationError):
            check_value(cell, "blue")

    def test_email(self) -> None:
        cell = _cell(build_rule("email"))
        check_value(cell, "a@b.com")
        for bad in ("ab.com", "@b.com", "a@bcom"):
            with pytest.raises(ValidationError):
                check_value(cell, bad)

    def test_percentage(self) -> None:
        cell = _cell(build_rule("percentage"))
        check_value(cell, "100")
        with pytest.raises(ValidationError):
            check_value(cell, "101")

    def test_unknown_preset(self) -> None:
        with pytest.raises(ValidationError):
            build_rule("zip_code")

    def test_missing_parameter(self) -> None:
        with pytest.raises(ValidationError):
            build_rule("whole_between", min=1)

    def test_preset_rules_pass_syntax_check(self) -> None:
        for rule in (
            build_rule("whole_between", min=1, max=5),
            build_rule("not_empty"),
            build_rule("email"),
            build_rule("list", values=["a", "b"]),
        ):
            check_rule_syntax(rule)


class TestDetectPreset:
    def test_whole_between(self) -> None:
        rule = build_rule("whole_between", min=1, max=10)
        assert detect_preset(rule) == ("whole_between", {"min": "1", "max": "10"})

    def test_percentage_wins_over_decimal_between(self) -> None:
        assert detect_preset("THIS >= 0 && THIS <= 100") == ("percentage", {})

    def test_positive(self) -> None:
        assert detect_preset("THIS > 0") == ("positive", {})

    def test_decimal_greater(self) -> None:
        assert detect_preset("THIS > 2.5") == ("decimal_greater", {"value": "2.5"})

    def test_email(self) -> None:
        assert detect_preset(build_rule("email")) == ("email", {})

    def test_list(self) -> None:
        rule = build_rule("list", values=["red", "green"])
        assert detect_preset(rule) == ("list", {"values": "red,green"})

    def test_custom(self) -> None:
        assert detect_preset("THIS * 2 > 3") is None
