"""Suggested mapping construction and category validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from reportflow.config import get_category_source, get_fields_for_category
from reportflow_io.mapping import ArrayMapping, TemplateMetadata, build_metadata
from reportflow_io.schema import TemplateAnalysis

NO_FIELDS_WARNING = "No field was mapped automatically; the table mapping must be configured manually."


@dataclass(slots=True)
class MappingValidation:
    """Completeness report for a table mapping against a category."""

    valid: bool
    missing_fields: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def build_suggested_mapping(analysis: TemplateAnalysis, category: str) -> ArrayMapping:
    """Create a table mapping from the analyzed headers.

    Headers without a suggestion are left unmapped.
    """

    fields: Dict[str, int] = {}
    for header in analysis.headers:
        if header.suggested_field:
            fields[header.suggested_field] = header.column
    return ArrayMapping(
        type="array",
        source=get_category_source(category),
        start_row=analysis.data_start_row,
        fields=fields,
    )


def suggest_static_mappings(analysis: TemplateAnalysis) -> Dict[str, str]:
    """Map each detected value cell to its suggested field path."""

    return {cell.address: cell.suggested_field for cell in analysis.static_cells if cell.suggested_field}


def build_suggested_metadata(analysis: TemplateAnalysis, category: str) -> TemplateMetadata:
    array_mapping = build_suggested_mapping(analysis, category) if analysis.headers else None
    return build_metadata(analysis, array_mapping, suggest_static_mappings(analysis))


def validate_mapping(mapping: ArrayMapping, category: str) -> MappingValidation:
    """Report required table fields of ``category`` absent from ``mapping``."""

    required = [
        definition.key
        for definition in get_fields_for_category(category)
        if definition.required and definition.type != "static"
    ]
    missing = [key for key in required if key not in mapping.fields]
    warnings: List[str] = []
    if not mapping.fields:
        warnings.append(NO_FIELDS_WARNING)
    return MappingValidation(valid=not missing, missing_fields=missing, warnings=warnings)


__all__ = [
    "MappingValidation",
    "NO_FIELDS_WARNING",
    "build_suggested_mapping",
    "build_suggested_metadata",
    "suggest_static_mappings",
    "validate_mapping",
]
