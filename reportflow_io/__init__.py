"""`reportflow_io` top-level package exports the spreadsheet format helpers."""

# Module responsibilities:
# - Re-export workbook I/O, dot-path resolution and mapping models so consumers have a stable API surface.

from __future__ import annotations

from .dotpath import Found, Missing, resolve_path
from .mapping import (
    ArrayMapping,
    MappingError,
    TemplateMetadata,
    build_metadata,
    detect_mapping_conflicts,
    merge_mappings,
    split_mappings,
    validate_template_metadata,
)
from .schema import (
    MAX_COLUMNS,
    MAX_ROWS,
    XLSX_MIME_TYPE,
    HeaderCell,
    StaticCell,
    TemplateAnalysis,
    is_valid_cell_address,
)
from .workbook import load_workbook_bytes, resolve_worksheet, workbook_to_bytes

__all__ = [
    "ArrayMapping",
    "Found",
    "HeaderCell",
    "MAX_COLUMNS",
    "MAX_ROWS",
    "MappingError",
    "Missing",
    "StaticCell",
    "TemplateAnalysis",
    "TemplateMetadata",
    "XLSX_MIME_TYPE",
    "build_metadata",
    "detect_mapping_conflicts",
    "is_valid_cell_address",
    "load_workbook_bytes",
    "merge_mappings",
    "resolve_path",
    "resolve_worksheet",
    "split_mappings",
    "validate_template_metadata",
    "workbook_to_bytes",
]

__version__ = "0.1.0"
