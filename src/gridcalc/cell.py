"""The Cell entity and its formatting attributes."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Any

from gridcalc.addressing import is_formula, make_addr

DEFAULT_FG = (255, 255, 255)
DEFAULT_BG = (0, 0, 0)


class ValueKind(str, Enum):
    text = "text"
    number = "number"
    boolean = "boolean"
    datetime = "datetime"
    error = "error"


class Align(str, Enum):
    left = "left"
    center = "center"
    right = "right"


class StyleFlag(IntFlag):
    NONE = 0
    BOLD = 1
    ITALIC = 2
    UNDERLINE = 4
    STRIKETHROUGH = 8
    ALLCAPS = 16
    FORMULA = 32


# Cell types drive literal parsing and display formatting.
CELL_TYPES = ("string", "number", "financial", "datetime")


@dataclass
class CellFormat:
    """Formatting attributes of a cell."""

    cell_type: str = "string"
    align: Align = Align.left
    decimal_places: int = 2
    thousands_sep: str = ","
    decimal_sep: str = "."
    currency: str = "$"
    datetime_format: str = "%Y-%m-%d %H:%M:%S"
    fg: tuple[int, int, int] = DEFAULT_FG
    bg: tuple[int, int, int] = DEFAULT_BG

    def __post_init__(self) -> None:
        if self.cell_type not in CELL_TYPES:
            raise ValueError(
                f"Unknown cell type {self.cell_type!r}; expected one of {list(CELL_TYPES)}"
            )
        if self.decimal_places < 0:
            raise ValueError("decimal_places must be >= 0")
        self.align = Align(self.align)
        self.fg = tuple(self.fg)
        self.bg = tuple(self.bg)

    def has_default_colors(self) -> bool:
        return self.fg == DEFAULT_FG and self.bg == DEFAULT_BG


@dataclass
class Cell:
    """One addressable cell of a sheet.

    ``raw`` is the literal text the user entered (None when empty).
    ``value``/``kind``/``display`` hold the last computed result; for a
    formula they are written by the recalculation engine.  Dependency
    edges are not stored here; see ``gridcalc.graph.DependencyGraph``.
    """

    row: int
    col: int
    raw: str | None = None
    display: str = ""
    value: Any = None
    kind: ValueKind = ValueKind.text
    error: str | None = None
    fmt: CellFormat = field(default_factory=CellFormat)
    flags: StyleFlag = StyleFlag.NONE
    rule: str | None = None
    rule_message: str | None = None
    note: str | None = None

    @property
    def addr(self) -> str:
        return make_addr(self.row, self.col)

    @property
    def coord(self) -> tuple[int, int]:
        return self.row, self.col

    @property
    def is_formula(self) -> bool:
        return bool(self.flags & StyleFlag.FORMULA)

    def has_flag(self, flag: StyleFlag) -> bool:
        return bool(self.flags & flag)

    def set_raw(self, raw: str | None) -> None:
        """Store new raw text and keep the formula marker in sync."""
        self.raw = raw if raw else None
        if is_formula(self.raw):
            self.flags |= StyleFlag.FORMULA
        else:
            self.flags &= ~StyleFlag.FORMULA

    def is_empty(self) -> bool:
        """True when the cell carries nothing worth keeping in memory.

        Used by the eviction policy: no raw text, no formula, no note, no
        validation rule, no style flags and default colors.
        """
        if self.raw:
            return False
        if self.is_formula:
            return False
        if self.note:
            return False
        if self.rule:
            return False
        if self.flags != StyleFlag.NONE:
            return False
        return self.fmt.has_default_colors()

    def clone(self, **changes: Any) -> Cell:
        """Deep copy, optionally overriding attributes."""
        new = copy.deepcopy(self)
        for key, val in changes.items():
            setattr(new, key, val)
        return new
