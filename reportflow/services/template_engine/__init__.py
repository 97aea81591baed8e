"""Template fill engine service package."""

from .engine import (
    ExcelTemplate,
    FillWarning,
    InspectedCell,
    TemplateFillEngine,
    WorkbookInspection,
)
from .report import ReportOutput, generate_from_template, generate_report_with_template

__all__ = [
    "ExcelTemplate",
    "FillWarning",
    "InspectedCell",
    "ReportOutput",
    "TemplateFillEngine",
    "WorkbookInspection",
    "generate_from_template",
    "generate_report_with_template",
]
