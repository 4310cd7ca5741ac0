"""Pydantic schemas for Stockroom."""

from stockroom.schemas.csv_import import (
    TERMINAL_STATUSES,
    ColumnMapping,
    ColumnProfile,
    ColumnSuggestions,
    ErrorRow,
    FailedItem,
    FileValidationResult,
    ImportFile,
    ImportPreview,
    ImportProgress,
    ImportResult,
    ImportSession,
    ImportStatistics,
    ImportStatus,
    MappingStatistics,
    MappingSuggestion,
    MappingValidation,
    RowIssue,
    RuleKind,
    Severity,
    TableData,
    TransformKind,
    ValidationRule,
    ValidRow,
)
from stockroom.schemas.export import (
    ExportFormat,
    ResultsExport,
    ResultSummary,
    SessionExportInfo,
)

__all__ = [
    # Enums
    "ImportStatus",
    "TERMINAL_STATUSES",
    "TransformKind",
    "RuleKind",
    "Severity",
    "ExportFormat",
    # Input and parsing
    "ImportFile",
    "FileValidationResult",
    "ColumnProfile",
    "TableData",
    # Mapping
    "ColumnMapping",
    "MappingValidation",
    "MappingSuggestion",
    "ColumnSuggestions",
    "MappingStatistics",
    # Validation
    "ValidationRule",
    "RowIssue",
    "ValidRow",
    "ErrorRow",
    "ImportStatistics",
    "ImportPreview",
    # Results
    "FailedItem",
    "ImportResult",
    "ImportProgress",
    "ImportSession",
    # Export
    "ResultsExport",
    "ResultSummary",
    "SessionExportInfo",
]
