"""Template analyzer service package."""

from .analyzer import analyze_template, analyze_workbook, analyze_worksheet
from .builder import (
    MappingValidation,
    build_suggested_mapping,
    build_suggested_metadata,
    suggest_static_mappings,
    validate_mapping,
)
from .suggestions import FIELD_SYNONYMS, suggest_field

__all__ = [
    "FIELD_SYNONYMS",
    "MappingValidation",
    "analyze_template",
    "analyze_workbook",
    "analyze_worksheet",
    "build_suggested_mapping",
    "build_suggested_metadata",
    "suggest_field",
    "suggest_static_mappings",
    "validate_mapping",
]
