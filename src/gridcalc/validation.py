"""Per-cell validation rules.

A rule is a boolean expression in the formula language that uses the
placeholder ``THIS`` wherever the candidate value goes::

    THIS >= 1 && THIS <= 10 && THIS == FLOOR(THIS)

Rules may not reference other cells.  Before evaluation the candidate is
substituted for ``THIS`` as a number literal or a quoted string.
"""

from __future__ import annotations

import datetime
import re
from typing import Any

from gridcalc.addressing import scan_refs
from gridcalc.cell import Cell
from gridcalc.errors import ValidationError
from gridcalc.formatting import normalize_input
from gridcalc.formulas.errors import FormulaError, FormulaParseError
from gridcalc.formulas.evaluator import evaluate_formula, evaluate_text, function_names
from gridcalc.formulas.fn_math import CONSTANTS
from gridcalc.formulas.parser import extract_functions, extract_names, parse_formula
from gridcalc.formulas.values import to_text

PLACEHOLDER = "THIS"

_PLACEHOLDER_RE = re.compile(r"(?<![A-Za-z0-9_])THIS(?![A-Za-z0-9_])", re.IGNORECASE)
_STRING_LIT_RE = re.compile(r'"(?:[^"\\]|\\.)*"')

# Value substituted for THIS when checking rule syntax.
_SYNTAX_SAMPLE = "5"


def substitute(rule: str, literal: str) -> str:
    """Replace every THIS outside string literals with ``literal``."""
    parts: list[str] = []
    last = 0
    for m in _STRING_LIT_RE.finditer(rule):
        parts.append(_PLACEHOLDER_RE.sub(lambda _: literal, rule[last:m.start()]))
        parts.append(m.group(0))
        last = m.end()
    parts.append(_PLACEHOLDER_RE.sub(lambda _: literal, rule[last:]))
    return "".join(parts)


def _as_formula(rule: str) -> str:
    text = rule.strip()
    return text if text.startswith("=") else "=" + text


def check_rule_syntax(rule: str | None) -> None:
    """Reject a rule that references cells, does not parse, or names
    something the formula language does not know.

    Raises:
        ValidationError: With a message suitable for the rule editor.
    """
    if rule is None or not rule.strip():
        return
    sample = _as_formula(substitute(rule, _SYNTAX_SAMPLE))
    if scan_refs(sample):
        raise ValidationError(
            "Invalid validation rule: use THIS instead of cell references", rule=rule
        )
    try:
        tree = parse_formula(sample)
    except FormulaParseError as exc:
        raise ValidationError(f"Invalid validation rule: {exc}", rule=rule) from exc

    unknown = sorted(extract_functions(tree) - set(function_names()))
    unknown += sorted(n for n in extract_names(tree) if n.upper() not in CONSTANTS)
    if unknown:
        raise ValidationError(
            f"Invalid validation rule: unknown name {unknown[0]!r}", rule=rule
        )
    try:
        evaluate_formula(tree)
    except FormulaError:
        # Runtime failures depend on the candidate, not the syntax.
        pass


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def candidate_literal(cell: Cell, candidate: Any) -> str:
    """Render a candidate value as formula source for substitution.

    Raises:
        ValidationError: When a number or financial cell gets a non-number.
    """
    if isinstance(candidate, bool):
        return "TRUE" if candidate else "FALSE"
    if isinstance(candidate, (int, float)):
        return f"({float(candidate)!r})"
    if isinstance(candidate, (datetime.date, datetime.time)):
        return _quote(to_text(candidate))

    text = str(candidate)
    if cell.fmt.cell_type in ("number", "financial"):
        normalized = normalize_input(text, cell.fmt)
        try:
            num = float(normalized)
        except ValueError:
            raise ValidationError(
                "Value must be a number", addr=cell.addr, rule=cell.rule, value=text
            ) from None
        return f"({num!r})"
    return _quote(text)


def check_value(cell: Cell, candidate: Any) -> None:
    """Check a candidate value against the cell's rule.

    Blank candidates and cells without a rule always pass.

    Raises:
        ValidationError: If the value fails the rule, or the rule is
            malformed or does not produce a boolean.
    """
    rule = cell.rule
    if rule is None or not rule.strip():
        return
    if candidate is None or (isinstance(candidate, str) and not candidate.strip()):
        return

    literal = candidate_literal(cell, candidate)
    shown = candidate if isinstance(candidate, str) else to_text(candidate)
    try:
        result = evaluate_text(_as_formula(substitute(rule, literal)))
    except FormulaParseError as exc:
        raise ValidationError(
            f"Invalid validation rule: {exc}", addr=cell.addr, rule=rule, value=shown
        ) from exc
    except FormulaError as exc:
        raise ValidationError(
            f"Validation error: {exc}", addr=cell.addr, rule=rule, value=shown
        ) from exc

    if not isinstance(result, bool):
        raise ValidationError(
            "Validation rule must return true/false", addr=cell.addr, rule=rule, value=shown
        )
    if not result:
        message = cell.rule_message
        if message is None or not message.strip():
            message = f"Value does not meet validation rule: {rule}"
        raise ValidationError(message, addr=cell.addr, rule=rule, value=shown)


# ────────────────────────────────────────────────────────────────
# Presets
# ────────────────────────────────────────────────────────────────


def _num(params: dict[str, Any], key: str) -> str:
    if key not in params:
        raise ValidationError(f"Missing preset parameter: {key}")
    value = params[key]
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Preset parameter {key} must be a number, got {value!r}") from None
    return str(int(num)) if num == int(num) else repr(num)


def _preset_list(params: dict[str, Any]) -> str:
    values = params.get("values")
    if isinstance(values, str):
        values = values.split(",")
    items = [str(v).strip() for v in values or () if str(v).strip()]
    if not items:
        raise ValidationError("List preset needs at least one allowed value")
    return " || ".join(f"THIS == {_quote(item)}" for item in items)


PRESETS: dict[str, Any] = {
    "whole_between": lambda p: (
        f"THIS >= {_num(p, 'min')} && THIS <= {_num(p, 'max')} && THIS == FLOOR(THIS)"
    ),
    "whole_greater": lambda p: f"THIS > {_num(p, 'value')} && THIS == FLOOR(THIS)",
    "whole_less": lambda p: f"THIS < {_num(p, 'value')} && THIS == FLOOR(THIS)",
    "decimal_between": lambda p: f"THIS >= {_num(p, 'min')} && THIS <= {_num(p, 'max')}",
    "decimal_greater": lambda p: f"THIS > {_num(p, 'value')}",
    "decimal_less": lambda p: f"THIS < {_num(p, 'value')}",
    "length_between": lambda p: (
        f"LEN(THIS) >= {_num(p, 'min')} && LEN(THIS) <= {_num(p, 'max')}"
    ),
    "length_max": lambda p: f"LEN(THIS) <= {_num(p, 'max')}",
    "not_empty": lambda p: "LEN(THIS) > 0",
    "list": _preset_list,
    "email": lambda p: 'FIND("@", THIS) > 1 && FIND(".", THIS, FIND("@", THIS)) > 0',
    "positive": lambda p: "THIS > 0",
    "percentage": lambda p: "THIS >= 0 && THIS <= 100",
}


def build_rule(preset: str, **params: Any) -> str:
    """Build rule text from a named preset.

    >>> build_rule("whole_between", min=1, max=10)
    'THIS >= 1 && THIS <= 10 && THIS == FLOOR(THIS)'
    """
    try:
        factory = PRESETS[preset]
    except KeyError:
        raise ValidationError(
            f"Unknown validation preset {preset!r}; expected one of {sorted(PRESETS)}"
        ) from None
    return factory(params)


_NUM = r"(-?[\d.]+)"

_DETECTORS: list[tuple[str, re.Pattern[str], tuple[str, ...]]] = [
    ("whole_between", re.compile(rf"^THIS >= {_NUM} && THIS <= {_NUM} && THIS == FLOOR\(THIS\)$"), ("min", "max")),
    ("whole_greater", re.compile(rf"^THIS > {_NUM} && THIS == FLOOR\(THIS\)$"), ("value",)),
    ("whole_less", re.compile(rf"^THIS < {_NUM} && THIS == FLOOR\(THIS\)$"), ("value",)),
    ("percentage", re.compile(r"^THIS >= 0 && THIS <= 100$"), ()),
    ("decimal_between", re.compile(rf"^THIS >= {_NUM} && THIS <= {_NUM}$"), ("min", "max")),
    ("positive", re.compile(r"^THIS > 0$"), ()),
    ("decimal_greater", re.compile(rf"^THIS > {_NUM}$"), ("value",)),
    ("decimal_less", re.compile(rf"^THIS < {_NUM}$"), ("value",)),
    ("length_between", re.compile(r"^LEN\(THIS\) >= (\d+) && LEN\(THIS\) <= (\d+)$"), ("min", "max")),
    ("length_max", re.compile(r"^LEN\(THIS\) <= (\d+)$"), ("max",)),
    ("not_empty", re.compile(r"^LEN\(THIS\) > 0$"), ()),
]

_LIST_ITEM_RE = re.compile(r'^THIS == "((?:[^"\\]|\\.)*)"$')


def detect_preset(rule: str) -> tuple[str, dict[str, str]] | None:
    """Recognize rule text produced by ``build_rule``.

    Returns:
        ``(preset, params)`` or None for a custom rule.
    """
    text = rule.strip()
    for name, pattern, keys in _DETECTORS:
        m = pattern.match(text)
        if m:
            return name, dict(zip(keys, m.groups()))
    if text == PRESETS["email"]({}):
        return "email", {}
    items = []
    for part in text.split(" || "):
        m = _LIST_ITEM_RE.match(part)
        if m is None:
            return None
        items.append(m.group(1).replace('\\"', '"').replace("\\\\", "\\"))
    return "list", {"values": ",".join(items)}
