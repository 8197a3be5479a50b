"""Text formula functions.

Positions and lengths count Unicode code points (Python ``str`` indices),
with 1-based offsets as seen by the user.
"""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import FormulaDomainError, check_arity
from gridcalc.formulas.values import to_int, to_text


def _count_arg(name: str, value: Any) -> int:
    n = to_int(value, name)
    if n < 0:
        raise FormulaDomainError(name, f"{name}: length must be >= 0")
    return n


def _fn_left(args: list) -> str:
    """LEFT(text [, n=1])."""
    check_arity("LEFT", args, 1, 2)
    text = to_text(args[0])
    n = _count_arg("LEFT", args[1]) if len(args) == 2 else 1
    return text[:n]


def _fn_right(args: list) -> str:
    """RIGHT(text [, n=1])."""
    check_arity("RIGHT", args, 1, 2)
    text = to_text(args[0])
    n = _count_arg("RIGHT", args[1]) if len(args) == 2 else 1
    return text[len(text) - n:] if n else ""


def _fn_mid(args: list) -> str:
    """MID(text, start, n) -- start is 1-based."""
    check_arity("MID", args, 3, 3)
    text = to_text(args[0])
    start = to_int(args[1], "MID")
    if start < 1:
        raise FormulaDomainError("MID", "MID: start must be >= 1")
    n = _count_arg("MID", args[2])
    return text[start - 1:start - 1 + n]


def _fn_upper(args: list) -> str:
    check_arity("UPPER", args, 1, 1)
    return to_text(args[0]).upper()


def _fn_lower(args: list) -> str:
    check_arity("LOWER", args, 1, 1)
    return to_text(args[0]).lower()


def _fn_proper(args: list) -> str:
    check_arity("PROPER", args, 1, 1)
    return to_text(args[0]).lower().title()


def _fn_trim(args: list) -> str:
    check_arity("TRIM", args, 1, 1)
    return to_text(args[0]).strip()


def _fn_find(args: list) -> float:
    """FIND(needle, haystack [, start=1]) -- 1-based position, or -1 if absent."""
    check_arity("FIND", args, 2, 3)
    needle = to_text(args[0])
    haystack = to_text(args[1])
    start = to_int(args[2], "FIND") if len(args) == 3 else 1
    if start < 1:
        raise FormulaDomainError("FIND", "FIND: start position must be >= 1")
    if start > len(haystack):
        return -1.0
    pos = haystack.find(needle, start - 1)
    return float(pos + 1) if pos >= 0 else -1.0


def _fn_substitute(args: list) -> str:
    """SUBSTITUTE(text, old, new [, instance]) -- replace all or the n-th match."""
    check_arity("SUBSTITUTE", args, 3, 4)
    text = to_text(args[0])
    old = to_text(args[1])
    new = to_text(args[2])
    if not old:
        return text
    if len(args) == 3:
        return text.replace(old, new)
    instance = to_int(args[3], "SUBSTITUTE")
    if instance < 1:
        raise FormulaDomainError("SUBSTITUTE", "SUBSTITUTE: instance must be >= 1")
    pos = -1
    for _ in range(instance):
        pos = text.find(old, pos + 1)
        if pos < 0:
            return text
    return text[:pos] + new + text[pos + len(old):]


def _fn_len(args: list) -> float:
    check_arity("LEN", args, 1, 1)
    return float(len(to_text(args[0])))


def _fn_concat(args: list) -> str:
    check_arity("CONCAT", args, 1, None)
    return "".join(to_text(a) for a in args)


TEXT_FUNCTIONS: dict[str, Any] = {
    "LEFT": _fn_left,
    "RIGHT": _fn_right,
    "MID": _fn_mid,
    "UPPER": _fn_upper,
    "LOWER": _fn_lower,
    "PROPER": _fn_proper,
    "TRIM": _fn_trim,
    "FIND": _fn_find,
    "SUBSTITUTE": _fn_substitute,
    "LEN": _fn_len,
    "CONCAT": _fn_concat,
    "CONCATENATE": _fn_concat,
}
