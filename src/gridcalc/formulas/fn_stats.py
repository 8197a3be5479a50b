"""Aggregate formula functions: SUM, PRODUCT, MIN, MAX, AVERAGE, COUNT."""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import FormulaDomainError, check_arity
from gridcalc.formulas.values import to_number


def _numbers(name: str, args: list) -> list[float]:
    """Coerce every non-blank argument; blanks do not participate."""
    return [to_number(a, name) for a in args if a is not None and a != ""]


def _fn_sum(args: list) -> float:
    check_arity("SUM", args, 1, None)
    return float(sum(_numbers("SUM", args)))


def _fn_product(args: list) -> float:
    check_arity("PRODUCT", args, 1, None)
    result = 1.0
    for x in _numbers("PRODUCT", args):
        result *= x
    return result


def _fn_min(args: list) -> float:
    check_arity("MIN", args, 1, None)
    nums = _numbers("MIN", args)
    return min(nums) if nums else 0.0


def _fn_max(args: list) -> float:
    check_arity("MAX", args, 1, None)
    nums = _numbers("MAX", args)
    return max(nums) if nums else 0.0


def _fn_average(args: list) -> float:
    check_arity("AVERAGE", args, 1, None)
    nums = _numbers("AVERAGE", args)
    if not nums:
        raise FormulaDomainError("AVERAGE", "AVERAGE: no numeric arguments")
    return sum(nums) / len(nums)


def _fn_count(args: list) -> float:
    """COUNT(v1, ...) -- how many arguments are numbers."""
    check_arity("COUNT", args, 1, None)
    return float(sum(1 for a in args if isinstance(a, (int, float)) and not isinstance(a, bool)))


STAT_FUNCTIONS: dict[str, Any] = {
    "SUM": _fn_sum,
    "PRODUCT": _fn_product,
    "MIN": _fn_min,
    "MAX": _fn_max,
    "AVERAGE": _fn_average,
    "AVG": _fn_average,
    "COUNT": _fn_count,
}
