"""Custom exceptions used across ReportFlow."""


class ReportFlowError(Exception):
    """Base error for the application."""


class ConfigError(ReportFlowError):
    """Configuration related error."""


class LoadError(ReportFlowError):
    """Raised when template bytes are missing, corrupt, or hold no worksheet."""


class SerializationError(ReportFlowError):
    """Raised when the filled workbook cannot be written back to bytes."""


class MappingShapeError(ReportFlowError):
    """Raised when an array mapping source does not resolve to a non-empty list."""


class RangeError(ReportFlowError, ValueError):
    """Raised when a row or column falls outside spreadsheet limits."""
