"""Engine-level errors raised at the edit boundary.

These are rejected before any mutation happens.  Formula evaluation
errors live in ``gridcalc.formulas.errors`` and are contained per cell
by the recalculation engine.
"""

from __future__ import annotations

from gridcalc.addressing import Coord, make_addr


class EngineError(Exception):
    """Base class for errors that reject an operation.

    Attributes:
        code: Stable machine-readable code for the presentation layer.
    """

    code = "engine_error"


class CycleError(EngineError):
    """An edit would make the dependency graph cyclic.

    Attributes:
        cycle: Coordinates that could not be ordered.
        addr: The edited cell's address.
    """

    code = "cycle"

    def __init__(self, addr: str, cycle: list[Coord]) -> None:
        self.addr = addr
        self.cycle = cycle
        parts = ", ".join(make_addr(r, c) for r, c in cycle)
        super().__init__(f"Circular reference at {addr}: {parts}")


class CellReferenceError(EngineError):
    """An operation names a coordinate that cannot hold a cell (row/col < 1)."""

    code = "reference"

    def __init__(self, row: int, col: int) -> None:
        self.row = row
        self.col = col
        super().__init__(f"Invalid cell coordinate ({row}, {col}); rows and columns start at 1")


class ValidationError(EngineError):
    """A value fails its cell's validation rule, or the rule is malformed.

    Attributes:
        addr: Cell address.
        rule: The rule text.
        value: The rejected candidate (None for rule configuration errors).
    """

    code = "validation"

    def __init__(self, message: str, addr: str | None = None, rule: str | None = None, value: str | None = None) -> None:
        self.addr = addr
        self.rule = rule
        self.value = value
        super().__init__(message)


class StructuralError(EngineError):
    """A structural or container edit would violate an invariant."""

    code = "structural"


class SheetNameError(EngineError):
    """Unknown sheet, or a sheet name that is empty or already taken."""

    code = "sheet_name"


class SnapshotError(EngineError):
    """A snapshot cannot be read or restored."""

    code = "snapshot"
