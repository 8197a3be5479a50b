"""Logical formula functions: IF, IFS, IFERROR, AND, OR, NOT, XOR, CHOOSE."""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import (
    ENGINE_ERRORS,
    FormulaDomainError,
    check_arity,
)
from gridcalc.formulas.values import to_bool, to_int


def _fn_if(raw_args: list, resolver: Any) -> Any:
    """IF(condition, then_value [, else_value]) -- lazy evaluation."""
    from gridcalc.formulas.evaluator import _eval

    check_arity("IF", raw_args, 2, 3)
    condition = to_bool(_eval(raw_args[0], resolver), "IF")
    if condition:
        return _eval(raw_args[1], resolver)
    if len(raw_args) == 3:
        return _eval(raw_args[2], resolver)
    return False


def _fn_ifs(raw_args: list, resolver: Any) -> Any:
    """IFS(cond1, value1, cond2, value2, ... [, default]) -- first true wins."""
    from gridcalc.formulas.evaluator import _eval

    check_arity("IFS", raw_args, 2, None)
    pairs = len(raw_args) // 2
    for i in range(pairs):
        if to_bool(_eval(raw_args[2 * i], resolver), "IFS"):
            return _eval(raw_args[2 * i + 1], resolver)
    if len(raw_args) % 2 == 1:
        return _eval(raw_args[-1], resolver)
    raise FormulaDomainError("IFS", "IFS: no condition was true")


def _fn_iferror(raw_args: list, resolver: Any) -> Any:
    """IFERROR(value, fallback) -- catches errors in the first argument."""
    from gridcalc.formulas.evaluator import _eval

    check_arity("IFERROR", raw_args, 2, 2)
    try:
        return _eval(raw_args[0], resolver)
    except ENGINE_ERRORS:
        return _eval(raw_args[1], resolver)


def _fn_and(args: list) -> bool:
    """AND(val1, val2, ...) -- TRUE if all arguments are true."""
    check_arity("AND", args, 1, None)
    return all(to_bool(a, "AND") for a in args)


def _fn_or(args: list) -> bool:
    """OR(val1, val2, ...) -- TRUE if any argument is true."""
    check_arity("OR", args, 1, None)
    return any(to_bool(a, "OR") for a in args)


def _fn_not(args: list) -> bool:
    check_arity("NOT", args, 1, 1)
    return not to_bool(args[0], "NOT")


def _fn_xor(args: list) -> bool:
    """XOR(val1, ...) -- TRUE if an odd number of arguments are true."""
    check_arity("XOR", args, 1, None)
    return sum(1 for a in args if to_bool(a, "XOR")) % 2 == 1


def _fn_choose(args: list) -> Any:
    """CHOOSE(index, v1, v2, ...) -- 1-based pick."""
    check_arity("CHOOSE", args, 2, None)
    idx = to_int(args[0], "CHOOSE")
    if idx < 1 or idx >= len(args):
        raise FormulaDomainError("CHOOSE", f"CHOOSE: index {idx} out of range 1..{len(args) - 1}")
    return args[idx]


LOGICAL_FUNCTIONS: dict[str, Any] = {
    "IF": _fn_if,
    "IFS": _fn_ifs,
    "IFERROR": _fn_iferror,
    "AND": _fn_and,
    "OR": _fn_or,
    "NOT": _fn_not,
    "XOR": _fn_xor,
    "CHOOSE": _fn_choose,
}

LOGICAL_LAZY_FUNCTIONS: set[str] = {"IF", "IFS", "IFERROR"}
