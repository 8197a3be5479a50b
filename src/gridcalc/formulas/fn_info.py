"""Type-testing formula functions: ISERROR, ISNUMBER, ISTEXT, ISBLANK."""

from __future__ import annotations

from typing import Any

from gridcalc.formulas.errors import ENGINE_ERRORS, check_arity


def _fn_iserror(raw_args: list, resolver: Any) -> bool:
    """ISERROR(expr) -- TRUE if the expression raises an error.

    This is a lazy function: it receives unevaluated AST nodes.
    """
    check_arity("ISERROR", raw_args, 1, 1)
    # Local import to avoid circular dependency
    from gridcalc.formulas.evaluator import _eval

    try:
        _eval(raw_args[0], resolver)
        return False
    except ENGINE_ERRORS:
        return True


def _fn_isnumber(args: list) -> bool:
    check_arity("ISNUMBER", args, 1, 1)
    value = args[0]
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fn_istext(args: list) -> bool:
    check_arity("ISTEXT", args, 1, 1)
    return isinstance(args[0], str) and args[0] != ""


def _fn_isblank(args: list) -> bool:
    check_arity("ISBLANK", args, 1, 1)
    return args[0] is None or args[0] == ""


INFO_FUNCTIONS: dict[str, Any] = {
    "ISERROR": _fn_iserror,
    "ISNUMBER": _fn_isnumber,
    "ISTEXT": _fn_istext,
    "ISBLANK": _fn_isblank,
}

INFO_LAZY_FUNCTIONS: set[str] = {"ISERROR"}
