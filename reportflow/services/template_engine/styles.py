"""Row style snapshots and formatting probes for template rows."""

from __future__ import annotations

from copy import copy
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from openpyxl.cell.cell import Cell
from openpyxl.styles import Alignment, Border, Font, Protection
from openpyxl.styles.fills import Fill, GradientFill
from openpyxl.worksheet.worksheet import Worksheet


@dataclass(frozen=True)
class CellStyleSnapshot:
    """Copy of one cell's presentation, applied as fresh objects per target cell."""

    font: Font
    fill: Fill
    border: Border
    alignment: Alignment
    protection: Protection
    number_format: str

    @classmethod
    def from_cell(cls, cell: Cell) -> "CellStyleSnapshot":
        return cls(
            font=copy(cell.font),
            fill=copy(cell.fill),
            border=copy(cell.border),
            alignment=copy(cell.alignment),
            protection=copy(cell.protection),
            number_format=cell.number_format,
        )

    def apply(self, cell: Cell) -> None:
        cell.font = copy(self.font)
        cell.fill = copy(self.fill)
        cell.border = copy(self.border)
        cell.alignment = copy(self.alignment)
        cell.protection = copy(self.protection)
        cell.number_format = self.number_format


@dataclass(frozen=True)
class RowStyle:
    """Per-column styles of a template row, captured once."""

    columns: Tuple[Tuple[int, CellStyleSnapshot], ...]
    height: Optional[float] = None

    def apply(self, worksheet: Worksheet, row: int) -> None:
        for column, snapshot in self.columns:
            snapshot.apply(worksheet.cell(row=row, column=column))
        if self.height is not None:
            worksheet.row_dimensions[row].height = self.height


def capture_row_style(worksheet: Worksheet, row: int, columns: Iterable[int] = ()) -> RowStyle:
    """Snapshot the styled cells of ``row`` plus any explicitly requested columns."""

    wanted = set(columns)
    for cells in worksheet.iter_rows(min_row=row, max_row=row):
        wanted.update(cell.column for cell in cells if cell.has_style)
    snapshots = tuple(
        (column, CellStyleSnapshot.from_cell(worksheet.cell(row=row, column=column)))
        for column in sorted(wanted)
    )
    dimension = worksheet.row_dimensions.get(row)
    height = dimension.height if dimension is not None else None
    return RowStyle(columns=snapshots, height=height)


def has_border(cell: Cell) -> bool:
    border = cell.border
    if border is None:
        return False
    sides = (border.left, border.right, border.top, border.bottom, border.diagonal)
    return any(side is not None and side.style is not None for side in sides)


def has_fill(cell: Cell) -> bool:
    fill = cell.fill
    if fill is None:
        return False
    if isinstance(fill, GradientFill):
        return True
    return getattr(fill, "fill_type", None) is not None


def has_value(cell: Cell) -> bool:
    value = cell.value
    if value is None:
        return False
    return str(value).strip() != ""


def is_formatted(cell: Cell) -> bool:
    return has_border(cell) or has_fill(cell) or has_value(cell)


__all__ = [
    "CellStyleSnapshot",
    "RowStyle",
    "capture_row_style",
    "has_border",
    "has_fill",
    "has_value",
    "is_formatted",
]
