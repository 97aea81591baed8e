"""Spreadsheet limits and the transient template analysis schema."""

# Module responsibilities:
# - Hold the spreadsheet format ceilings and cell-address helpers shared by analyzer and engine.
# - Define the immutable analysis records produced by the template analyzer.

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from openpyxl.utils.cell import column_index_from_string

MAX_ROWS = 1_048_576
MAX_COLUMNS = 16_384
XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_ADDRESS_RE = re.compile(r"^([A-Z]+)(\d+)$")


def is_valid_row(row: object) -> bool:
    return isinstance(row, int) and not isinstance(row, bool) and 1 <= row <= MAX_ROWS


def is_valid_column(column: object) -> bool:
    return isinstance(column, int) and not isinstance(column, bool) and 1 <= column <= MAX_COLUMNS


def split_address(address: str) -> Optional[Tuple[int, int]]:
    """Return ``(row, column)`` for an address such as ``B3``, or None when invalid."""

    match = _ADDRESS_RE.match(address) if isinstance(address, str) else None
    if match is None:
        return None
    letters, row = match.group(1), int(match.group(2))
    try:
        column = column_index_from_string(letters)
    except ValueError:
        return None
    if not (is_valid_row(row) and is_valid_column(column)):
        return None
    return row, column


def is_valid_cell_address(address: str) -> bool:
    """Check an A1-style address against the 16384 x 1048576 grid."""

    return split_address(address) is not None


def sanitize_file_name(filename: str) -> str:
    collapsed = re.sub(r"\s+", "_", filename)
    return re.sub(r"[^a-zA-Z0-9._-]", "", collapsed).lower()


@dataclass(frozen=True)
class HeaderCell:
    """A non-empty cell of the detected table header row."""

    column: int
    value: str
    suggested_field: Optional[str] = None


@dataclass(frozen=True)
class StaticCell:
    """A value cell bound to the ``Label:`` cell on its left."""

    address: str
    row: int
    column: int
    label: str
    value: str
    suggested_field: Optional[str] = None


@dataclass(frozen=True)
class TemplateAnalysis:
    """Structure inferred from a template worksheet."""

    headers: Tuple[HeaderCell, ...]
    static_cells: Tuple[StaticCell, ...]
    data_start_row: int
    sheet_name: str
    total_columns: int
    available_sheets: Tuple[str, ...] = ()
    version: int = 1
    table_header_row: int = 0
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the persisted camelCase shape."""

        return {
            "headers": [_header_dict(h) for h in self.headers],
            "staticCells": [_static_dict(c) for c in self.static_cells],
            "dataStartRow": self.data_start_row,
            "sheetName": self.sheet_name,
            "totalColumns": self.total_columns,
            "availableSheets": list(self.available_sheets),
            "version": self.version,
        }


def _header_dict(header: HeaderCell) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"column": header.column, "value": header.value}
    if header.suggested_field:
        payload["suggestedField"] = header.suggested_field
    return payload


def _static_dict(cell: StaticCell) -> Dict[str, Any]:
    payload = asdict(cell)
    suggested = payload.pop("suggested_field")
    if suggested:
        payload["suggestedField"] = suggested
    return payload


__all__: List[str] = [
    "MAX_ROWS",
    "MAX_COLUMNS",
    "XLSX_MIME_TYPE",
    "HeaderCell",
    "StaticCell",
    "TemplateAnalysis",
    "is_valid_row",
    "is_valid_column",
    "is_valid_cell_address",
    "split_address",
    "sanitize_file_name",
]
