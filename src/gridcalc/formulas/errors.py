"""Error types for formula parsing and evaluation.

Every error carries a short ``tag`` that the recalculation engine writes
into the display text of the failing cell.
"""

from __future__ import annotations

import math


class FormulaError(Exception):
    """Base class for all formula-related errors."""

    tag = "#ERR!"


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        text: The offending formula text.
    """

    tag = "#PARSE!"

    def __init__(self, message: str, position: int | None = None, text: str | None = None) -> None:
        self.position = position
        self.text = text
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaRefError(FormulaError):
    """Reference that cannot be resolved (deleted, header row, no resolver).

    Attributes:
        ref_name: The unresolved reference.
    """

    tag = "#REF!"

    def __init__(self, ref_name: str, message: str | None = None) -> None:
        self.ref_name = ref_name
        super().__init__(message or f"Invalid reference: {ref_name!r}")


class FormulaFunctionError(FormulaError):
    """Unknown function or a function-specific domain failure.

    Attributes:
        func_name: The function that caused the error.
    """

    tag = "#NAME?"

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class ArityError(FormulaError):
    """Wrong number of arguments passed to a function.

    Attributes:
        func_name: Function name.
        min_args: Minimum accepted count.
        max_args: Maximum accepted count (None for unbounded).
        got: Count actually received.
    """

    tag = "#ARGS!"

    def __init__(self, func_name: str, min_args: int, max_args: int | None, got: int) -> None:
        self.func_name = func_name
        self.min_args = min_args
        self.max_args = max_args
        self.got = got
        if min_args == max_args:
            expected = f"exactly {min_args}"
        elif max_args is None:
            expected = f"at least {min_args}"
        elif got < min_args:
            expected = f"at least {min_args}"
        else:
            expected = f"at most {max_args}"
        super().__init__(f"{func_name} requires {expected} argument(s), got {got}")


class TypeCoercionError(FormulaError):
    """A value cannot be converted to the kind an operation needs.

    Attributes:
        value: The offending value.
        target: Name of the target kind ("number", "date", ...).
        func_name: Function or operator being evaluated, if known.
    """

    tag = "#VALUE!"

    def __init__(self, value: object, target: str, func_name: str | None = None) -> None:
        self.value = value
        self.target = target
        self.func_name = func_name
        prefix = f"{func_name}: " if func_name else ""
        super().__init__(f"{prefix}cannot convert {value!r} to {target}")


class DivisionError(FormulaError):
    """Division by a (near-)zero denominator.

    Attributes:
        func_name: Function or operator that divided.
        sentinel: The infinite value the operation would have produced.
    """

    tag = "#DIV/0!"

    def __init__(self, func_name: str, sentinel: float = math.inf) -> None:
        self.func_name = func_name
        self.sentinel = sentinel
        super().__init__(f"{func_name}: division by zero")


class CellValueError(FormulaError):
    """A referenced cell holds an error; the error propagates.

    Attributes:
        ref_name: Address of the errored cell.
        tag: The upstream cell's error tag.
    """

    def __init__(self, ref_name: str, tag: str) -> None:
        self.ref_name = ref_name
        self.tag = tag
        super().__init__(f"Referenced cell {ref_name} holds an error ({tag})")


class FormulaDomainError(FormulaFunctionError):
    """Argument outside a function's mathematical domain (e.g. SQRT(-1))."""

    tag = "#NUM!"

    def __init__(self, func_name: str, message: str | None = None) -> None:
        super().__init__(func_name, message or f"{func_name}: argument out of domain")


def check_arity(func_name: str, args: list, min_args: int, max_args: int | None) -> None:
    """Raise ArityError unless ``min_args <= len(args) <= max_args``.

    ``max_args`` of None means unbounded.
    """
    got = len(args)
    if got < min_args or (max_args is not None and got > max_args):
        raise ArityError(func_name, min_args, max_args, got)


# Exceptions that ISERROR / IFERROR treat as an error value.
ENGINE_ERRORS = (FormulaError, ArithmeticError, ValueError)
