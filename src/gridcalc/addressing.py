"""A1-style address algebra, reference scanning and reference rewriting.

Coordinates are 1-based ``(row, col)`` tuples.  Row or column 0 is the
header position and never names a stored cell.
"""

from __future__ import annotations

import re

Coord = tuple[int, int]

_ADDR_RE = re.compile(r"^([A-Z]+)(\d+)$")

# Bare A1 refs.  The lookbehind keeps identifiers (e.g. ``XA1B``) out and
# the lookahead keeps function names such as ``LOG10(`` or ``ATAN2(`` out.
_REF_RE = re.compile(r"(?<![A-Za-z0-9_])([A-Z]+)(\d+)(?![A-Za-z0-9_]|\s*\()")

# String literal ranges to skip refs inside "..."
_STRING_LIT_RE = re.compile(r'"(?:[^"\\]|\\.)*"')

REF_ERROR = "#REF!"


def col_letter_to_index(letters: str) -> int:
    """Convert column letter(s) to a 1-based index.  A=1, Z=26, AA=27."""
    idx = 0
    for ch in letters.upper():
        if not "A" <= ch <= "Z":
            raise ValueError(f"Invalid column letters: {letters!r}")
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx


def index_to_col_letter(idx: int) -> str:
    """Convert a 1-based column index to letter(s).  1=A, 26=Z, 27=AA."""
    if idx < 1:
        raise ValueError(f"Column index must be >= 1, got {idx}")
    result = ""
    n = idx
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def parse_addr(addr: str) -> Coord:
    """Parse ``'B12'`` into ``(12, 2)``.

    Raises ValueError on a malformed address or a zero row.
    """
    m = _ADDR_RE.match(addr.strip().upper())
    if not m:
        raise ValueError(f"Invalid cell address: {addr!r}")
    row = int(m.group(2))
    if row < 1:
        raise ValueError(f"Invalid cell address: {addr!r}")
    return row, col_letter_to_index(m.group(1))


def make_addr(row: int, col: int) -> str:
    """Build a cell address from a 1-based row/col."""
    return f"{index_to_col_letter(col)}{row}"


def _find_string_ranges(text: str) -> list[tuple[int, int]]:
    return [(m.start(), m.end()) for m in _STRING_LIT_RE.finditer(text)]


def _in_string(pos: int, string_ranges: list[tuple[int, int]]) -> bool:
    for s, e in string_ranges:
        if s <= pos < e:
            return True
    return False


def is_formula(raw: str | None) -> bool:
    """True when raw cell text is a formula (leading ``=``)."""
    return bool(raw) and raw.lstrip().startswith("=")


def scan_refs(raw: str | None) -> set[Coord]:
    """Return the set of coordinates referenced by a formula's text.

    Non-formula text references nothing.  Row-0 tokens (``A0``) are not
    addresses and are skipped; the evaluator reports them.
    """
    if not is_formula(raw):
        return set()
    string_ranges = _find_string_ranges(raw)
    refs: set[Coord] = set()
    for m in _REF_RE.finditer(raw):
        if _in_string(m.start(), string_ranges):
            continue
        row = int(m.group(2))
        if row < 1:
            continue
        refs.add((row, col_letter_to_index(m.group(1))))
    return refs


def shift_position(pos: int, index: int, count: int) -> int | None:
    """Map a row/col position through an insert (count > 0) or delete (count < 0).

    Returns None when the position falls inside a deleted span.
    """
    if count > 0:
        return pos + count if pos >= index else pos
    span = -count
    if index <= pos < index + span:
        return None
    if pos >= index + span:
        return pos + count
    return pos


def rewrite_formula_refs(formula: str, axis: str, index: int, count: int) -> str:
    """Rewrite cell references in a formula after row/col insertion or deletion.

    Args:
        formula: The formula string (with leading '=').
        axis: "row" or "col".
        index: 1-based index where insertion/deletion starts.
        count: Positive for insert, negative for delete.

    Returns:
        Rewritten formula string.  References into a deleted span become
        ``#REF!``.
    """
    if not is_formula(formula):
        return formula

    string_ranges = _find_string_ranges(formula)
    result_parts: list[str] = []
    last_end = 0

    for m in _REF_RE.finditer(formula):
        if _in_string(m.start(), string_ranges):
            continue
        col_str, row_str = m.group(1), m.group(2)
        row = int(row_str)
        col = col_letter_to_index(col_str)
        if row < 1:
            continue

        if axis == "row":
            new_row = shift_position(row, index, count)
            new_ref = REF_ERROR if new_row is None else f"{col_str}{new_row}"
        else:
            new_col = shift_position(col, index, count)
            new_ref = REF_ERROR if new_col is None else f"{index_to_col_letter(new_col)}{row_str}"

        if new_ref == m.group(0):
            continue
        result_parts.append(formula[last_end:m.start()])
        result_parts.append(new_ref)
        last_end = m.end()

    result_parts.append(formula[last_end:])
    return "".join(result_parts)
