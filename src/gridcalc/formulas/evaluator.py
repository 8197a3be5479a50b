"""Tree-walking evaluator for parsed formula expressions.

The evaluator holds no state between calls.  Cell references are resolved
through a ``CellResolver`` supplied by the caller; without one, any cell
reference is a ``FormulaRefError``.
"""

from __future__ import annotations

import datetime
import math
from typing import Any, Protocol

from lark import Token, Tree

from gridcalc.formulas.errors import (
    DivisionError,
    FormulaDomainError,
    FormulaError,
    FormulaFunctionError,
    FormulaRefError,
    TypeCoercionError,
)
from gridcalc.formulas.fn_date import DATE_FUNCTIONS
from gridcalc.formulas.fn_info import INFO_FUNCTIONS, INFO_LAZY_FUNCTIONS
from gridcalc.formulas.fn_logical import LOGICAL_FUNCTIONS, LOGICAL_LAZY_FUNCTIONS
from gridcalc.formulas.fn_math import CONSTANTS, DIVISION_EPSILON, MATH_FUNCTIONS
from gridcalc.formulas.fn_stats import STAT_FUNCTIONS
from gridcalc.formulas.fn_text import TEXT_FUNCTIONS
from gridcalc.formulas.parser import parse_formula, split_cell_ref
from gridcalc.formulas.values import (
    normalize,
    to_bool,
    to_datetime,
    to_number,
    to_text,
)


class CellResolver(Protocol):
    """Protocol for resolving cell references to values."""

    def resolve_cell(self, row: int, col: int) -> Any:
        """Return the current value of the cell at (row, col), None if blank."""
        ...


def evaluate_formula(tree: Tree, resolver: CellResolver | None = None) -> Any:
    """Evaluate a parsed formula tree.

    Args:
        tree: Parse tree from ``parse_formula()``.
        resolver: Optional resolver for cell references.

    Returns:
        The computed value (float, str, bool, date/time, or None).

    Raises:
        FormulaError: On any evaluation failure.
    """
    return normalize(_eval(tree, resolver))


def evaluate_text(text: str, resolver: CellResolver | None = None) -> Any:
    """Parse and evaluate a formula string in one step."""
    return evaluate_formula(parse_formula(text), resolver)


def _eval(node: Tree | Token, resolver: CellResolver | None) -> Any:
    """Recursively evaluate a tree node."""
    if isinstance(node, Token):
        return _eval_token(node)

    rule = node.data

    # Start rule just wraps expr
    if rule == "start":
        return _eval(node.children[0], resolver)

    # Arithmetic
    if rule in _ARITH_OPS:
        left = to_number(_eval(node.children[0], resolver), _ARITH_OPS[rule])
        right = to_number(_eval(node.children[1], resolver), _ARITH_OPS[rule])
        return _arith(rule, left, right)
    if rule == "neg":
        return -to_number(_eval(node.children[0], resolver), "-")
    if rule == "pos":
        return to_number(_eval(node.children[0], resolver), "+")
    if rule == "percent":
        return to_number(_eval(node.children[0], resolver), "%") / 100
    if rule == "concat":
        return to_text(_eval(node.children[0], resolver)) + to_text(_eval(node.children[1], resolver))

    # Boolean
    if rule == "not_":
        return not to_bool(_eval(node.children[0], resolver), "!")
    if rule == "and_":
        return to_bool(_eval(node.children[0], resolver), "&&") and to_bool(
            _eval(node.children[1], resolver), "&&"
        )
    if rule == "or_":
        return to_bool(_eval(node.children[0], resolver), "||") or to_bool(
            _eval(node.children[1], resolver), "||"
        )

    # Comparison
    if rule in _COMPARE_OPS:
        left = _eval(node.children[0], resolver)
        right = _eval(node.children[1], resolver)
        return _compare(rule, left, right)

    # Literals
    if rule == "number":
        return float(node.children[0])
    if rule == "boolean":
        return str(node.children[0]) == "TRUE"
    if rule == "string":
        return _unquote(str(node.children[0]))

    if rule == "cell_ref":
        token = str(node.children[0])
        row, col = split_cell_ref(token)
        if row < 1:
            raise FormulaRefError(token, f"Invalid reference: {token!r} (row 0 is the header)")
        if resolver is None:
            raise FormulaRefError(token, f"Cannot resolve {token!r} without a cell resolver")
        return resolver.resolve_cell(row, col)

    if rule == "ref_error":
        raise FormulaRefError("#REF!", "Reference to a deleted cell")

    if rule == "ref_bare":
        name = str(node.children[0]).upper()
        if name in CONSTANTS:
            return CONSTANTS[name]
        raise FormulaFunctionError(name, f"Unknown name: {str(node.children[0])!r}")

    if rule == "func_call":
        return _eval_func(node, resolver)

    raise FormulaError(f"Unknown node type: {rule}")


def _eval_token(token: Token) -> Any:
    """Evaluate a bare token (shouldn't normally happen at top level)."""
    if token.type == "NUMBER":
        return float(token)
    if token.type == "BOOL":
        return str(token) == "TRUE"
    if token.type == "ESCAPED_STRING":
        return _unquote(str(token))
    return str(token)


def _unquote(raw: str) -> str:
    return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")


# ---------- Operators ----------

_ARITH_OPS = {"add": "+", "sub": "-", "mul": "*", "div": "/", "pow": "^"}

_COMPARE_OPS = {"gt", "lt", "gte", "lte", "eq", "neq"}


def _arith(rule: str, left: float, right: float) -> float:
    if rule == "add":
        return left + right
    if rule == "sub":
        return left - right
    if rule == "mul":
        return left * right
    if rule == "div":
        if abs(right) < DIVISION_EPSILON:
            raise DivisionError("/", math.copysign(math.inf, left) if left else math.nan)
        return left / right
    try:
        result = left ** right
    except ZeroDivisionError:
        raise DivisionError("^") from None
    except OverflowError:
        raise FormulaDomainError("^", "^: result out of range") from None
    if isinstance(result, complex):
        raise FormulaDomainError("^", "^: negative base with fractional exponent")
    return result


def _comparable(left: Any, right: Any) -> tuple[Any, Any]:
    """Bring two operands to a common kind for comparison."""
    dates = (datetime.date, datetime.time)
    if isinstance(left, dates) or isinstance(right, dates):
        return to_datetime(left), to_datetime(right)
    if isinstance(left, str) and isinstance(right, str):
        return left.lower(), right.lower()
    if left is None and isinstance(right, str):
        return "", right.lower()
    if right is None and isinstance(left, str):
        return left.lower(), ""
    return to_number(left), to_number(right)


def _compare(rule: str, left: Any, right: Any) -> bool:
    try:
        a, b = _comparable(left, right)
    except TypeCoercionError:
        # Text against number: never equal, not orderable.
        if rule == "eq":
            return False
        if rule == "neq":
            return True
        raise
    if rule == "eq":
        return a == b
    if rule == "neq":
        return a != b
    if rule == "gt":
        return a > b
    if rule == "lt":
        return a < b
    if rule == "gte":
        return a >= b
    return a <= b


# ---------- Function dispatch ----------

_FUNC_TABLE: dict[str, Any] = {
    **MATH_FUNCTIONS,
    **STAT_FUNCTIONS,
    **LOGICAL_FUNCTIONS,
    **TEXT_FUNCTIONS,
    **DATE_FUNCTIONS,
    **INFO_FUNCTIONS,
}

_LAZY_FUNCTIONS = LOGICAL_LAZY_FUNCTIONS | INFO_LAZY_FUNCTIONS


def function_names() -> list[str]:
    """Sorted names of every function the evaluator knows."""
    return sorted(_FUNC_TABLE)


def _eval_func(node: Tree, resolver: CellResolver | None) -> Any:
    """Evaluate a function call node."""
    func_name = str(node.children[0]).upper()
    args_node = node.children[1]
    raw_args = args_node.children if args_node.children else []

    if func_name not in _FUNC_TABLE:
        raise FormulaFunctionError(func_name)

    # Lazy functions receive unevaluated AST nodes
    if func_name in _LAZY_FUNCTIONS:
        return _call(func_name, raw_args, resolver)

    evaluated_args = [_eval(arg, resolver) for arg in raw_args]
    return _call(func_name, evaluated_args)


def _call(func_name: str, *call_args: Any) -> Any:
    """Invoke a library function; stray arithmetic failures become #NUM!."""
    try:
        return _FUNC_TABLE[func_name](*call_args)
    except (ArithmeticError, ValueError) as exc:
        raise FormulaDomainError(func_name, f"{func_name}: {exc}") from None
