"""gridcalc: a spreadsheet computation engine.

Sparse cell store, formula evaluation, incremental recalculation over a
dependency graph, a bounded viewport with eviction, structural row/column
edits and a multi-sheet workbook.
"""

__version__ = "0.3.0"

from gridcalc.cell import Cell, CellFormat, StyleFlag, ValueKind
from gridcalc.errors import (
    CellReferenceError,
    CycleError,
    EngineError,
    SheetNameError,
    SnapshotError,
    StructuralError,
    ValidationError,
)
from gridcalc.service import WorkbookService
from gridcalc.sheet import Sheet
from gridcalc.viewport import Viewport
from gridcalc.workbook import Workbook

__all__ = [
    "Cell",
    "CellFormat",
    "CellReferenceError",
    "CycleError",
    "EngineError",
    "Sheet",
    "SheetNameError",
    "SnapshotError",
    "StructuralError",
    "StyleFlag",
    "ValidationError",
    "ValueKind",
    "Viewport",
    "Workbook",
    "WorkbookService",
    "__version__",
]
