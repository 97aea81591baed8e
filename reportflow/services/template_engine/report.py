"""One-shot report generation on top of the fill engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Protocol

from reportflow_io.schema import XLSX_MIME_TYPE, sanitize_file_name

from .engine import BlobReader, FillWarning, TemplateFillEngine, TemplateSource

LOGGER = logging.getLogger(__name__)


class TemplateLookup(Protocol):
    def get(self, template_id: str) -> Optional[TemplateSource]: ...

    def active_for_category(self, category: str) -> Optional[TemplateSource]: ...


@dataclass(slots=True)
class ReportOutput:
    """Filled workbook bytes plus the warnings collected while filling."""

    content: bytes
    warnings: List[FillWarning] = field(default_factory=list)
    mime_type: str = XLSX_MIME_TYPE
    file_name: str = "report.xlsx"


def generate_from_template(
    template: TemplateSource,
    data: Mapping[str, Any],
    blob_store: Optional[BlobReader] = None,
    custom_mappings: Optional[Mapping[str, Any]] = None,
    *,
    document: Optional[bytes] = None,
) -> ReportOutput:
    """Load, fill and serialize ``template`` in a single call.

    ``document`` bypasses the blob store when the template bytes are already at hand.

    Raises:
        LoadError: When the template cannot be fetched or parsed.
        RangeError: When a table mapping starts outside the sheet.
        SerializationError: When the result cannot be written.
    """

    engine = TemplateFillEngine(template, blob_store)
    engine.load(document)
    warnings = engine.fill(data, custom_mappings)
    stem = sanitize_file_name(getattr(template, "name", "") or "") or "report"
    return ReportOutput(
        content=engine.generate(),
        warnings=warnings,
        file_name=f"{stem}.xlsx",
    )


def generate_report_with_template(
    category: str,
    data: Mapping[str, Any],
    blob_store: BlobReader,
    template_store: TemplateLookup,
    template_id: Optional[str] = None,
    custom_mappings: Optional[Mapping[str, Any]] = None,
) -> Optional[ReportOutput]:
    """Fill the explicit template, or the newest active one of ``category``.

    Returns ``None`` when no template is registered.
    """

    if template_id:
        template = template_store.get(template_id)
    else:
        template = template_store.active_for_category(category)
    if template is None:
        LOGGER.info("No template found for category %s", category)
        return None
    return generate_from_template(template, data, blob_store, custom_mappings)


__all__ = ["ReportOutput", "TemplateLookup", "generate_from_template", "generate_report_with_template"]
