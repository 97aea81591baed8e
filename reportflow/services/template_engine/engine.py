"""Mapping-driven template fill engine.

PROCESS OVERVIEW
1. load() fetches the template bytes from the blob store and parses them.
2. fill() merges persisted and caller mappings, resolves the worksheet, then
   writes scalar mappings followed by array (table) mappings.
3. fill_array_data() removes pre-formatted phantom rows, captures the style of
   the first table row once and writes one styled row per data item.
4. generate() serializes the workbook; inspect() lists every non-empty cell.

Data-shape problems are recorded as FillWarning and never stop the fill;
structural problems raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from openpyxl import Workbook
from openpyxl.cell.cell import Cell, MergedCell
from openpyxl.worksheet.worksheet import Worksheet

from reportflow.core.errors import LoadError, MappingShapeError, RangeError
from reportflow_io.dotpath import Missing, resolve_path
from reportflow_io.mapping import (
    ArrayMapping,
    MappingValue,
    TemplateMetadata,
    coerce_mappings,
    merge_mappings,
    split_mappings,
)
from reportflow_io.schema import MAX_ROWS, is_valid_column, is_valid_row, split_address
from reportflow_io.workbook import load_workbook_bytes, resolve_worksheet, workbook_to_bytes

from .styles import capture_row_style, is_formatted

LOGGER = logging.getLogger(__name__)

PHANTOM_SCAN_LIMIT = 100
DEFAULT_DATE_FORMAT = "dd/mm/yyyy"
DEFAULT_NUMBER_FORMAT = "0.00"
_GENERAL_FORMATS = {None, "", "General"}


class BlobReader(Protocol):
    def download(self, bucket: str, path: str) -> bytes:  # pragma: no cover - interface definition
        ...


class TemplateSource(Protocol):
    storage_bucket: str
    storage_path: str
    metadata: Optional[TemplateMetadata]


@dataclass(slots=True)
class ExcelTemplate:
    """Minimal template descriptor for templates that are not registered in a store."""

    name: str
    storage_bucket: str
    storage_path: str
    metadata: Optional[TemplateMetadata] = None
    category: str = ""
    id: Optional[str] = None


@dataclass(frozen=True)
class FillWarning:
    """Non-fatal condition recorded while filling."""

    code: str
    message: str
    key: Optional[str] = None

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class InspectedCell:
    address: str
    value: Any
    type: str


@dataclass(slots=True)
class WorkbookInspection:
    sheets: List[str] = field(default_factory=list)
    cells: Dict[str, List[InspectedCell]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sheets": list(self.sheets),
            "cells": {
                sheet: [{"address": c.address, "value": c.value, "type": c.type} for c in cells]
                for sheet, cells in self.cells.items()
            },
        }


def naive_datetime(value: Any) -> Any:
    """Return ``value`` without tzinfo; aware datetimes are converted to UTC first."""

    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, time) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def _plain_value(value: Any) -> Any:
    value = naive_datetime(value)
    if value is None or isinstance(value, (str, bool, int, float, Decimal, date, time)):
        return value
    return str(value)


def write_typed_value(cell: Cell, value: Any) -> None:
    """Write a table value natively, giving dates and numbers a default format."""

    unformatted = cell.number_format in _GENERAL_FORMATS
    if isinstance(value, bool) or value is None or isinstance(value, str):
        cell.value = value
    elif isinstance(value, (datetime, date)):
        cell.value = naive_datetime(value)
        if unformatted:
            cell.number_format = DEFAULT_DATE_FORMAT
    elif isinstance(value, (int, float, Decimal)):
        cell.value = value
        if unformatted:
            cell.number_format = DEFAULT_NUMBER_FORMAT
    else:
        cell.value = _plain_value(value)


def value_type(cell: Cell) -> str:
    if cell.data_type == "f":
        return "formula"
    value = cell.value
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, (datetime, date, time)):
        return "date"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def table_items(data: Mapping[str, Any], source: str) -> Sequence[Any]:
    """Return the non-empty list found at ``source``.

    Raises:
        MappingShapeError: When the path is missing, not a list, or empty.
    """

    resolved = resolve_path(data, source)
    if isinstance(resolved, Missing):
        raise MappingShapeError(f"No data at '{source}'")
    items = resolved.value
    if not isinstance(items, (list, tuple)):
        raise MappingShapeError(f"Data at '{source}' is not a list")
    if not items:
        raise MappingShapeError(f"Data at '{source}' is empty")
    return items


def count_formatted_run(worksheet: Worksheet, start_row: int, columns: Sequence[int]) -> int:
    """Length of the run of consecutive already-formatted rows from ``start_row``."""

    if not columns:
        return 0
    last_row = min(worksheet.max_row, start_row + PHANTOM_SCAN_LIMIT - 1)
    run = 0
    for row in range(start_row, last_row + 1):
        if not any(is_formatted(worksheet.cell(row=row, column=column)) for column in columns):
            break
        run += 1
    return run


def _surviving_rows(min_row: int, max_row: int, first: int, last: int) -> Optional[Tuple[int, int]]:
    amount = last - first + 1
    top = min_row if min_row < first else (first if min_row <= last else min_row - amount)
    bottom = max_row if max_row < first else (first - 1 if max_row <= last else max_row - amount)
    if bottom < top:
        return None
    return top, bottom


def delete_row_block(worksheet: Worksheet, first: int, amount: int) -> None:
    """Delete rows ``[first, first + amount)`` in one operation.

    Merged ranges touching or below the block keep their surviving rows and
    move up with them; ranges left with a single cell are dropped. Row
    dimensions (height, hidden, outline level) below the block follow their rows.
    """

    if amount <= 0:
        return
    last = first + amount - 1
    remerge: List[Tuple[int, int, int, int]] = []
    for merged in list(worksheet.merged_cells.ranges):
        if merged.max_row < first:
            continue
        worksheet.unmerge_cells(merged.coord)
        rows = _surviving_rows(merged.min_row, merged.max_row, first, last)
        if rows is None:
            continue
        top, bottom = rows
        if top == bottom and merged.min_col == merged.max_col:
            continue
        remerge.append((top, merged.min_col, bottom, merged.max_col))

    dimensions = sorted(
        ((index, dimension) for index, dimension in worksheet.row_dimensions.items() if index >= first),
        key=lambda item: item[0],
    )
    for index, _ in dimensions:
        del worksheet.row_dimensions[index]

    worksheet.delete_rows(first, amount)

    for index, dimension in dimensions:
        if index > last:
            dimension.index = index - amount
            worksheet.row_dimensions[index - amount] = dimension
    for min_row, min_col, max_row, max_col in remerge:
        worksheet.merge_cells(start_row=min_row, start_column=min_col, end_row=max_row, end_column=max_col)


class TemplateFillEngine:
    """Fill one template with runtime data, preserving its formatting.

    One engine instance holds one independent in-memory copy of the template;
    nothing is shared between instances.
    """

    def __init__(self, template: TemplateSource, blob_store: Optional[BlobReader] = None) -> None:
        self.template = template
        self.blob_store = blob_store
        self.metadata = TemplateMetadata.parse(template.metadata)
        self.workbook: Optional[Workbook] = None
        self.warnings: List[FillWarning] = []

    # Lifecycle ---------------------------------------------------------------------

    def load(self, data: Optional[bytes] = None) -> None:
        """Parse ``data`` or, when omitted, fetch the template bytes from the blob store.

        Raises:
            LoadError: When bytes are missing, unreadable or hold no worksheet.
        """

        if data is None:
            data = self._fetch()
        workbook = load_workbook_bytes(data)
        if not workbook.worksheets:
            raise LoadError("No worksheet found in template")
        self.workbook = workbook
        LOGGER.info("Template loaded: %s", self.template.storage_path)

    def _fetch(self) -> bytes:
        if self.blob_store is None:
            raise LoadError("No blob store configured to fetch the template")
        bucket, path = self.template.storage_bucket, self.template.storage_path
        try:
            return self.blob_store.download(bucket, path)
        except OSError as exc:
            LOGGER.error("Template bytes unavailable at %s/%s: %s", bucket, path, exc)
            raise LoadError(f"Template not found in storage: {bucket}/{path}") from exc

    def generate(self) -> bytes:
        """Serialize the filled workbook.

        Raises:
            SerializationError: When the workbook cannot be written.
        """

        return workbook_to_bytes(self._require_workbook())

    # Fill --------------------------------------------------------------------------

    def fill(
        self,
        data: Mapping[str, Any],
        custom_mappings: Optional[Mapping[str, Any]] = None,
    ) -> List[FillWarning]:
        """Write ``data`` into the template following the merged mappings.

        Returns:
            Warnings recorded during this call.
        """

        workbook = self._require_workbook()
        self.warnings = []
        mappings: Dict[str, MappingValue] = merge_mappings(
            self.metadata.mappings, coerce_mappings(custom_mappings)
        )

        worksheet, fallback = resolve_worksheet(workbook, self.metadata.sheet_name)
        if fallback:
            self._warn("sheet_fallback", fallback, self.metadata.sheet_name)

        static, arrays = split_mappings(mappings)
        for address, path in static.items():
            self._fill_scalar(worksheet, address, path, data)
        for mapping in arrays.values():
            self.fill_array_data(worksheet, mapping, data)

        LOGGER.info(
            "Template filled: %s scalar mapping(s), %s table mapping(s), %s warning(s)",
            len(static),
            len(arrays),
            len(self.warnings),
        )
        return list(self.warnings)

    def _fill_scalar(self, worksheet: Worksheet, address: str, path: str, data: Mapping[str, Any]) -> None:
        if split_address(address) is None:
            self._warn("invalid_address", f"Invalid cell address '{address}'", address)
            return
        resolved = resolve_path(data, path)
        if isinstance(resolved, Missing):
            self._warn("missing_path", f"No data at '{path}' for cell {address}", address)
            return
        cell = worksheet[address]
        if isinstance(cell, MergedCell):
            self._warn("invalid_address", f"Cell {address} is inside a merged range", address)
            return
        cell.value = _plain_value(resolved.value)

    def fill_array_data(self, worksheet: Worksheet, mapping: ArrayMapping, data: Mapping[str, Any]) -> int:
        """Write one row per item of ``mapping.source``; return the number of rows written.

        Raises:
            RangeError: When ``startRow`` (or the last data row) is outside the sheet.
        """

        try:
            items = table_items(data, mapping.source)
        except MappingShapeError as exc:
            self._warn("mapping_shape", str(exc), mapping.source)
            return 0

        start_row = mapping.start_row
        if not is_valid_row(start_row):
            raise RangeError(f"startRow {start_row} of '{mapping.source}' is outside 1..{MAX_ROWS}")
        if start_row + len(items) - 1 > MAX_ROWS:
            raise RangeError(f"{len(items)} rows from row {start_row} exceed the sheet limit of {MAX_ROWS}")

        fields: List[Tuple[str, int]] = []
        for field_name, column in mapping.fields.items():
            if is_valid_column(column):
                fields.append((field_name, column))
            else:
                self._warn("column_range", f"Column {column} for '{field_name}' is out of range", field_name)
        columns = [column for _, column in fields]

        run = count_formatted_run(worksheet, start_row, columns)
        if run > 1:
            delete_row_block(worksheet, start_row + 1, run - 1)
            LOGGER.info("Removed %s phantom row(s) below row %s", run - 1, start_row)

        row_style = capture_row_style(worksheet, start_row, columns)
        missing: Dict[str, int] = {}
        merged_hits: Set[str] = set()
        row = start_row
        for item in items:
            row_style.apply(worksheet, row)
            for field_name, column in fields:
                cell = worksheet.cell(row=row, column=column)
                if isinstance(cell, MergedCell):
                    merged_hits.add(field_name)
                    continue
                value = resolve_path(item, field_name)
                if isinstance(value, Missing):
                    missing[field_name] = missing.get(field_name, 0) + 1
                    continue
                write_typed_value(cell, value.value)
            row += 1

        for field_name, count in missing.items():
            self._warn(
                "missing_path",
                f"Field '{field_name}' missing in {count} item(s) of '{mapping.source}'",
                field_name,
            )
        for field_name in sorted(merged_hits):
            self._warn("invalid_address", f"Column for '{field_name}' hits a merged range", field_name)
        return len(items)

    # Diagnostics ------------------------------------------------------------------

    def inspect(self) -> WorkbookInspection:
        """Enumerate every non-empty cell of every worksheet."""

        workbook = self._require_workbook()
        result = WorkbookInspection()
        for worksheet in workbook.worksheets:
            result.sheets.append(worksheet.title)
            cells: List[InspectedCell] = []
            for row in worksheet.iter_rows():
                for cell in row:
                    if cell.value is None or cell.value == "":
                        continue
                    cells.append(InspectedCell(address=cell.coordinate, value=cell.value, type=value_type(cell)))
            result.cells[worksheet.title] = cells
        return result

    # Helpers -----------------------------------------------------------------------

    def _require_workbook(self) -> Workbook:
        if self.workbook is None:
            raise LoadError("Template has not been loaded")
        return self.workbook

    def _warn(self, code: str, message: str, key: Optional[str] = None) -> None:
        LOGGER.warning(message)
        self.warnings.append(FillWarning(code=code, message=message, key=key))


__all__ = [
    "BlobReader",
    "DEFAULT_DATE_FORMAT",
    "DEFAULT_NUMBER_FORMAT",
    "ExcelTemplate",
    "FillWarning",
    "InspectedCell",
    "PHANTOM_SCAN_LIMIT",
    "TemplateFillEngine",
    "TemplateSource",
    "WorkbookInspection",
    "count_formatted_run",
    "delete_row_block",
    "naive_datetime",
    "table_items",
    "write_typed_value",
]
