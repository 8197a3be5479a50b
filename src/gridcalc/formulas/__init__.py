"""Spreadsheet formula parsing and evaluation.

Public API::

    from gridcalc.formulas import parse_formula, evaluate_formula, evaluate_text
"""

from gridcalc.formulas.errors import (
    ENGINE_ERRORS,
    ArityError,
    CellValueError,
    DivisionError,
    FormulaDomainError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    TypeCoercionError,
)
from gridcalc.formulas.evaluator import (
    CellResolver,
    evaluate_formula,
    evaluate_text,
    function_names,
)
from gridcalc.formulas.parser import extract_functions, extract_names, extract_refs, parse_formula

__all__ = [
    "ENGINE_ERRORS",
    "ArityError",
    "CellResolver",
    "CellValueError",
    "DivisionError",
    "FormulaDomainError",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "TypeCoercionError",
    "evaluate_formula",
    "evaluate_text",
    "extract_functions",
    "extract_names",
    "extract_refs",
    "function_names",
    "parse_formula",
]
