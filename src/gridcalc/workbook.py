"""Workbook: an ordered collection of uniquely named sheets."""

from __future__ import annotations

import os
from typing import Any

from gridcalc.config import DEFAULT_CONFIG
from gridcalc.errors import SheetNameError, StructuralError
from gridcalc.sheet import Sheet
from gridcalc.viewport import Viewport


def new_sheet(name: str, config: dict[str, Any]) -> Sheet:
    """An empty sheet sized by the extent and viewport settings in ``config``."""
    return Sheet(
        name,
        n_rows=config["sheet_rows"],
        n_cols=config["sheet_cols"],
        viewport=Viewport(rows=config["viewport_rows"], cols=config["viewport_cols"]),
        eviction_margin=config["eviction_margin"],
    )


class Workbook:
    """Ordered sheets with one active sheet and a modified flag.

    There is always at least one sheet and ``active_index`` always points
    at one of them.  Every mutation sets ``modified``; ``mark_saved()``
    clears it.
    """

    def __init__(
        self,
        sheets: list[Sheet],
        active_index: int = 0,
        current_file: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        if not sheets:
            raise StructuralError("A workbook needs at least one sheet")
        names = [s.name.lower() for s in sheets]
        if len(set(names)) != len(names):
            raise SheetNameError("Sheet names must be unique")
        if not 0 <= active_index < len(sheets):
            raise StructuralError(f"Active sheet index {active_index} out of range")
        self.sheets = list(sheets)
        self.active_index = active_index
        self.current_file = current_file
        self.modified = False
        self.config = dict(DEFAULT_CONFIG, **(config or {}))

    @classmethod
    def new(cls, config: dict[str, Any] | None = None) -> Workbook:
        """A fresh workbook with a single empty sheet named ``Sheet1``."""
        cfg = dict(DEFAULT_CONFIG, **(config or {}))
        return cls([new_sheet(f"{cfg['default_sheet_prefix']}1", cfg)], config=cfg)

    def _make_sheet(self, name: str) -> Sheet:
        return new_sheet(name, self.config)

    @property
    def active(self) -> Sheet:
        return self.sheets[self.active_index]

    def sheet_names(self) -> list[str]:
        return [s.name for s in self.sheets]

    def index_of(self, name: str) -> int:
        for i, sheet in enumerate(self.sheets):
            if sheet.name.lower() == name.lower():
                return i
        raise SheetNameError(f"No sheet named {name!r}")

    def get_sheet(self, name: str) -> Sheet:
        return self.sheets[self.index_of(name)]

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.sheets):
            raise StructuralError(f"Sheet index {index} out of range (0..{len(self.sheets) - 1})")

    def _check_name(self, name: str, ignore: int | None = None) -> str:
        name = (name or "").strip()
        if not name:
            raise SheetNameError("Sheet name cannot be empty")
        for i, sheet in enumerate(self.sheets):
            if i != ignore and sheet.name.lower() == name.lower():
                raise SheetNameError(f"A sheet named {name!r} already exists")
        return name

    def _next_default_name(self) -> str:
        prefix = self.config["default_sheet_prefix"]
        taken = {s.name.lower() for s in self.sheets}
        n = len(self.sheets) + 1
        while f"{prefix}{n}".lower() in taken:
            n += 1
        return f"{prefix}{n}"

    # ────────────────────────────────────────────────────────────────
    # Sheet operations
    # ────────────────────────────────────────────────────────────────

    def add_sheet(self, name: str | None = None) -> Sheet:
        """Append a new empty sheet and make it active."""
        name = self._check_name(name) if name is not None else self._next_default_name()
        sheet = self._make_sheet(name)
        self.sheets.append(sheet)
        self.active_index = len(self.sheets) - 1
        self.modified = True
        return sheet

    def rename_sheet(self, index: int, new_name: str) -> None:
        self._check_index(index)
        self.sheets[index].name = self._check_name(new_name, ignore=index)
        self.modified = True

    def delete_sheet(self, index: int) -> Sheet:
        """Remove a sheet; the last remaining sheet cannot be deleted."""
        self._check_index(index)
        if len(self.sheets) == 1:
            raise StructuralError("Cannot delete the last remaining sheet")
        removed = self.sheets.pop(index)
        if index < self.active_index or self.active_index >= len(self.sheets):
            self.active_index -= 1
        self.modified = True
        return removed

    def duplicate_sheet(self, index: int) -> Sheet:
        """Deep-copy a sheet (via a snapshot) and append it as ``"<name> (copy)"``."""
        from gridcalc.snapshot import restore_sheet, snapshot_sheet

        self._check_index(index)
        source = self.sheets[index]
        base = f"{source.name} (copy)"
        name, n = base, 2
        while any(s.name.lower() == name.lower() for s in self.sheets):
            name = f"{source.name} (copy {n})"
            n += 1
        copy = Sheet(
            name,
            n_rows=source.n_rows,
            n_cols=source.n_cols,
            viewport=Viewport(
                source.viewport.top_row,
                source.viewport.left_col,
                source.viewport.rows,
                source.viewport.cols,
            ),
            eviction_margin=source.eviction_margin,
        )
        restore_sheet(copy, snapshot_sheet(source))
        copy.name = name
        self.sheets.append(copy)
        self.modified = True
        return copy

    def move_sheet(self, src: int, dst: int) -> None:
        """Move a sheet to a new position; the active sheet stays active."""
        self._check_index(src)
        self._check_index(dst)
        if src == dst:
            return
        active = self.active
        sheet = self.sheets.pop(src)
        self.sheets.insert(dst, sheet)
        self.active_index = self.sheets.index(active)
        self.modified = True

    def switch_active(self, index: int) -> Sheet:
        self._check_index(index)
        self.active_index = index
        return self.active

    # ────────────────────────────────────────────────────────────────
    # Persistence state
    # ────────────────────────────────────────────────────────────────

    def mark_modified(self) -> None:
        self.modified = True

    def mark_saved(self, current_file: str | None = None) -> None:
        if current_file is not None:
            self.current_file = current_file
        self.modified = False

    @property
    def title(self) -> str:
        """Window title, e.g. ``" Untitled - Sheet1 ● "``."""
        filename = os.path.basename(self.current_file) if self.current_file else "Untitled"
        title = f" {filename} - {self.active.name} "
        if self.modified:
            title += "● "
        return title
