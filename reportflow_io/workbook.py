"""Workbook input/output helpers."""

# Module responsibilities:
# - Parse raw OOXML bytes into an openpyxl workbook, failing with LoadError on bad payloads.
# - Serialize a mutated workbook back to bytes, failing with SerializationError.
# - Resolve the target worksheet by name with a first-sheet fallback.

from __future__ import annotations

from io import BytesIO
from typing import Optional, Tuple
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from reportflow.core.errors import LoadError, SerializationError

from .utils.log import get_logger

logger = get_logger("workbook")


def load_workbook_bytes(data: Optional[bytes]) -> Workbook:
    """Load a workbook from raw bytes.

    Args:
        data: OOXML spreadsheet payload.

    Returns:
        Workbook with styles, merges and formulas intact (formulas are not evaluated).

    Raises:
        LoadError: When the payload is empty or cannot be parsed.
    """

    if not data:
        raise LoadError("Template payload is empty")
    try:
        workbook = load_workbook(BytesIO(data))
    except (BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as exc:
        logger.error("Failed to parse workbook: %s", exc)
        raise LoadError(f"Template is not a readable spreadsheet: {exc}") from exc
    logger.debug("Workbook loaded with sheets %s", workbook.sheetnames)
    return workbook


def workbook_to_bytes(workbook: Workbook) -> bytes:
    """Serialize a workbook to bytes.

    Raises:
        SerializationError: When openpyxl fails to write the archive.
    """

    buffer = BytesIO()
    try:
        workbook.save(buffer)
    except (OSError, ValueError, TypeError, KeyError, AttributeError) as exc:
        logger.error("Failed to serialize workbook: %s", exc)
        raise SerializationError(f"Could not write workbook: {exc}") from exc
    return buffer.getvalue()


def resolve_worksheet(
    workbook: Workbook, sheet_name: Optional[str] = None
) -> Tuple[Worksheet, Optional[str]]:
    """Return the named worksheet or the first one.

    Returns:
        ``(worksheet, warning)`` where ``warning`` is set when a requested sheet
        was absent and the first worksheet was used instead.

    Raises:
        LoadError: When the workbook has no worksheet at all.
    """

    worksheets = workbook.worksheets
    if not worksheets:
        raise LoadError("No worksheet found in template")
    if sheet_name:
        for worksheet in worksheets:
            if worksheet.title == sheet_name:
                return worksheet, None
        warning = f"Sheet '{sheet_name}' not found; using '{worksheets[0].title}'"
        logger.warning(warning)
        return worksheets[0], warning
    return worksheets[0], None


__all__ = ["load_workbook_bytes", "workbook_to_bytes", "resolve_worksheet"]
