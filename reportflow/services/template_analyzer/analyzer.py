"""Template structure inference.

Locates the table header row and the standalone ``Label:`` cells above it,
and attaches a field suggestion to each of them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from reportflow_io.schema import MAX_COLUMNS, HeaderCell, StaticCell, TemplateAnalysis
from reportflow_io.workbook import load_workbook_bytes, resolve_worksheet

from .suggestions import suggest_field

LOGGER = logging.getLogger(__name__)

MAX_SCAN_ROWS = 50
MIN_HEADER_CELLS = 5
LABEL_SUFFIX = ":"
DEFAULT_DATA_START_ROW = 2
ANALYSIS_VERSION = 1

RowValues = Tuple[object, ...]


@dataclass(frozen=True)
class RowSummary:
    """Per-row facts used by the header scan."""

    row: int
    filled: int
    is_label_row: bool


def cell_text(value: object) -> str:
    return "" if value is None else str(value).strip()


def is_label(text: str) -> bool:
    return text.endswith(LABEL_SUFFIX)


def summarize_row(row: int, values: Sequence[object]) -> RowSummary:
    texts = [cell_text(v) for v in values]
    return RowSummary(
        row=row,
        filled=sum(1 for t in texts if t),
        is_label_row=any(is_label(t) for t in texts),
    )


def _keep_best(best: Optional[RowSummary], candidate: RowSummary) -> Optional[RowSummary]:
    if candidate.is_label_row or candidate.filled < MIN_HEADER_CELLS:
        return best
    # strict comparison: ties keep the earliest row
    if best is None or candidate.filled > best.filled:
        return candidate
    return best


def find_table_header_row(summaries: Iterable[RowSummary]) -> int:
    """Return the densest non-label row with enough cells, or 0."""

    best = reduce(_keep_best, summaries, None)
    return best.row if best else 0


def extract_static_cells(rows: Sequence[RowValues], header_row: int) -> List[StaticCell]:
    """Bind every ``Label:`` cell above ``header_row`` to the cell on its right."""

    cells: List[StaticCell] = []
    for row_number, values in enumerate(rows[: max(header_row - 1, 0)], start=1):
        for index, value in enumerate(values):
            text = cell_text(value)
            if not is_label(text):
                continue
            column = index + 2
            if column > MAX_COLUMNS:
                continue
            label = text[: -len(LABEL_SUFFIX)].strip()
            neighbour = values[index + 1] if index + 1 < len(values) else None
            cells.append(
                StaticCell(
                    address=f"{get_column_letter(column)}{row_number}",
                    row=row_number,
                    column=column,
                    label=label,
                    value=cell_text(neighbour),
                    suggested_field=suggest_field(label),
                )
            )
    return cells


def extract_headers(values: Sequence[object]) -> List[HeaderCell]:
    headers: List[HeaderCell] = []
    for column, value in enumerate(values, start=1):
        text = cell_text(value)
        if text:
            headers.append(HeaderCell(column=column, value=text, suggested_field=suggest_field(text)))
    return headers


def _scan_rows(worksheet: Worksheet) -> List[RowValues]:
    limit = min(MAX_SCAN_ROWS, worksheet.max_row or 0)
    if limit < 1:
        return []
    return [tuple(values) for values in worksheet.iter_rows(min_row=1, max_row=limit, values_only=True)]


def analyze_worksheet(
    worksheet: Worksheet,
    *,
    available_sheets: Sequence[str] = (),
    warnings: Sequence[str] = (),
) -> TemplateAnalysis:
    """Infer headers, static cells and the first data row of ``worksheet``."""

    rows = _scan_rows(worksheet)
    header_row = find_table_header_row(summarize_row(n, values) for n, values in enumerate(rows, start=1))
    static_cells = extract_static_cells(rows, header_row)

    if header_row > 0:
        headers = extract_headers(rows[header_row - 1])
        data_start_row = header_row + 1
    else:
        headers = []
        data_start_row = DEFAULT_DATA_START_ROW

    LOGGER.info(
        "Analyzed sheet %s: header_row=%s headers=%s static_cells=%s",
        worksheet.title,
        header_row,
        len(headers),
        len(static_cells),
    )
    return TemplateAnalysis(
        headers=tuple(headers),
        static_cells=tuple(static_cells),
        data_start_row=data_start_row,
        sheet_name=worksheet.title,
        total_columns=max((h.column for h in headers), default=0),
        available_sheets=tuple(available_sheets),
        version=ANALYSIS_VERSION,
        table_header_row=header_row,
        warnings=tuple(warnings),
    )


def analyze_workbook(workbook: Workbook, sheet_name: Optional[str] = None) -> TemplateAnalysis:
    worksheet, warning = resolve_worksheet(workbook, sheet_name)
    return analyze_worksheet(
        worksheet,
        available_sheets=[ws.title for ws in workbook.worksheets],
        warnings=[warning] if warning else [],
    )


def analyze_template(document: bytes, sheet_name: Optional[str] = None) -> TemplateAnalysis:
    """Analyze raw template bytes.

    Raises:
        LoadError: When the bytes are unreadable or the workbook has no worksheet.
    """

    workbook = load_workbook_bytes(document)
    try:
        return analyze_workbook(workbook, sheet_name)
    finally:
        workbook.close()


__all__ = [
    "ANALYSIS_VERSION",
    "DEFAULT_DATA_START_ROW",
    "LABEL_SUFFIX",
    "MAX_SCAN_ROWS",
    "MIN_HEADER_CELLS",
    "RowSummary",
    "analyze_template",
    "analyze_workbook",
    "analyze_worksheet",
    "extract_headers",
    "extract_static_cells",
    "find_table_header_row",
    "summarize_row",
]
