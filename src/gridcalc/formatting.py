"""Render computed values as display text according to a cell's format."""

from __future__ import annotations

import datetime
import math
from typing import Any

from gridcalc.cell import CellFormat, StyleFlag
from gridcalc.formulas.values import to_text


def group_thousands(integer_digits: str, sep: str) -> str:
    """Insert ``sep`` every three digits from the right."""
    if not sep:
        return integer_digits
    groups: list[str] = []
    while len(integer_digits) > 3:
        groups.insert(0, integer_digits[-3:])
        integer_digits = integer_digits[:-3]
    groups.insert(0, integer_digits)
    return sep.join(groups)


def format_fixed(num: float, fmt: CellFormat, currency: bool = False) -> str:
    """Fixed-point rendering with separators, e.g. ``-$1,234.50``."""
    if math.isnan(num) or math.isinf(num):
        return to_text(num)
    text = f"{abs(num):.{fmt.decimal_places}f}"
    integer, _, fraction = text.partition(".")
    out = group_thousands(integer, fmt.thousands_sep)
    if fraction:
        out += fmt.decimal_sep + fraction
    if currency:
        out = fmt.currency + out
    if num < 0 and float(text) != 0:
        out = "-" + out
    return out


def format_value(value: Any, fmt: CellFormat, flags: StyleFlag = StyleFlag.NONE) -> str:
    """Display text for a value under a cell format."""
    is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
    if is_number and fmt.cell_type == "number":
        text = format_fixed(float(value), fmt)
    elif is_number and fmt.cell_type == "financial":
        text = format_fixed(float(value), fmt, currency=True)
    elif isinstance(value, (datetime.datetime, datetime.date)) and fmt.cell_type == "datetime":
        moment = value
        if not isinstance(moment, datetime.datetime):
            moment = datetime.datetime(value.year, value.month, value.day)
        text = moment.strftime(fmt.datetime_format)
    else:
        text = to_text(value)
    if flags & StyleFlag.ALLCAPS:
        text = text.upper()
    return text


def normalize_input(raw: str, fmt: CellFormat) -> str:
    """Strip currency sign and thousands separators from numeric input.

    Only number and financial cells are affected; ``"$1,250.5"`` becomes
    ``"1250.5"``.  Text that still is not numeric is returned unchanged.
    """
    if fmt.cell_type not in ("number", "financial"):
        return raw
    text = raw.strip()
    negative = text.startswith("-")
    if negative:
        text = text[1:]
    if fmt.currency and text.startswith(fmt.currency):
        text = text[len(fmt.currency):]
    if fmt.thousands_sep:
        text = text.replace(fmt.thousands_sep, "")
    if fmt.decimal_sep and fmt.decimal_sep != ".":
        text = text.replace(fmt.decimal_sep, ".")
    try:
        float(text)
    except ValueError:
        return raw
    return ("-" + text) if negative else text
