"""Lark-based parser for spreadsheet formulas.

Supports:
- Cell references: ``F2``, ``AA10`` (uppercase A1-style)
- The ``#REF!`` marker that structural deletes leave behind
- Function calls ``NAME(arg, ...)`` and bare constants (``PI``, ``E``)
- Arithmetic, text concatenation, comparisons, boolean operators,
  postfix percent (%)
"""

from __future__ import annotations

from lark import Lark, Token, Tree, Visitor
from lark.exceptions import LarkError

from gridcalc.addressing import col_letter_to_index
from gridcalc.formulas.errors import FormulaParseError

# LALR(1) grammar.  Operator precedence (lowest to highest):
#   1. Boolean or: ||
#   2. Boolean and: &&
#   3. Comparison: > < >= <= = == <> !=
#   4. Text concatenation: &
#   5. Addition/subtraction: + -
#   6. Multiplication/division: * /
#   7. Unary: - + !
#   8. Exponentiation: ^ (right-associative)
#   9. Postfix percent: %  (3% = 0.03)
#  10. Atoms
GRAMMAR = r"""
start: "=" expr

?expr: disjunction

?disjunction: conjunction
    | disjunction "||" conjunction  -> or_

?conjunction: comparison
    | conjunction "&&" comparison   -> and_

?comparison: concat
    | comparison ">" concat    -> gt
    | comparison "<" concat    -> lt
    | comparison ">=" concat   -> gte
    | comparison "<=" concat   -> lte
    | comparison "=" concat    -> eq
    | comparison "==" concat   -> eq
    | comparison "<>" concat   -> neq
    | comparison "!=" concat   -> neq

?concat: addition
    | concat "&" addition  -> concat

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos
    | "!" unary  -> not_

?exponentiation: postfix
    | postfix "^" unary  -> pow

?postfix: atom
    | postfix "%"  -> percent

?atom: NUMBER                   -> number
    | BOOL                      -> boolean
    | ESCAPED_STRING            -> string
    | NAME "(" args ")"         -> func_call
    | CELL_REF "(" args ")"     -> func_call
    | CELL_REF                  -> cell_ref
    | REF_ERROR                 -> ref_error
    | NAME                      -> ref_bare
    | "(" expr ")"

args: expr ("," expr)*
    |

BOOL.2: "TRUE" | "FALSE"

REF_ERROR.3: "#REF!"

// Cell ref: A1, F2, AA10 (uppercase only).  Function names such as LOG10
// also lex as CELL_REF and are disambiguated by the following "(".
CELL_REF.2: /[A-Z]+[0-9]+/

NAME.1: /[A-Za-z_][A-Za-z0-9_]*/

%import common.NUMBER
%import common.ESCAPED_STRING
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


def parse_formula(text: str) -> Tree:
    """Parse a formula string (must start with ``=``) into a Lark Tree.

    Args:
        text: The formula text, e.g. ``"=POW(B2, 2)"``.

    Returns:
        A Lark parse tree.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    text = text.strip()
    if not text.startswith("="):
        raise FormulaParseError("Formula must start with '='", position=0, text=text)
    try:
        return _parser.parse(text)
    except LarkError as exc:
        pos = getattr(exc, "column", None)
        raise FormulaParseError(str(exc).splitlines()[0], position=pos, text=text) from exc


def split_cell_ref(token: str) -> tuple[int, int]:
    """Split a CELL_REF token into a 1-based ``(row, col)``; row may be 0."""
    idx = 0
    while idx < len(token) and token[idx].isalpha():
        idx += 1
    return int(token[idx:]), col_letter_to_index(token[:idx])


class _RefCollector(Visitor):
    """Visitor that collects all references from a parse tree."""

    def __init__(self) -> None:
        self.names: set[str] = set()
        self.cell_refs: set[str] = set()
        self.functions: set[str] = set()

    def ref_bare(self, tree: Tree) -> None:
        token = tree.children[0]
        if isinstance(token, Token):
            self.names.add(str(token))

    def cell_ref(self, tree: Tree) -> None:
        self.cell_refs.add(str(tree.children[0]))

    def func_call(self, tree: Tree) -> None:
        self.functions.add(str(tree.children[0]).upper())


def extract_refs(tree: Tree) -> set[str]:
    """Extract cell reference tokens (e.g. ``{"A1", "B2"}``) from a parse tree."""
    collector = _RefCollector()
    collector.visit(tree)
    return collector.cell_refs


def extract_names(tree: Tree) -> set[str]:
    """Extract bare name references (constants, placeholders) from a parse tree."""
    collector = _RefCollector()
    collector.visit(tree)
    return collector.names


def extract_functions(tree: Tree) -> set[str]:
    """Extract upper-cased names of every function called in a parse tree."""
    collector = _RefCollector()
    collector.visit(tree)
    return collector.functions
