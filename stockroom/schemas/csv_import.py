"""Pydantic schemas for the CSV import pipeline."""

import mimetypes
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportStatus(str, Enum):
    """Lifecycle state of an import session."""

    IDLE = "idle"
    UPLOADING = "uploading"
    MAPPING = "mapping"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {ImportStatus.COMPLETED, ImportStatus.ERROR, ImportStatus.CANCELLED}
)


class TransformKind(str, Enum):
    """Conversion applied to a raw cell before validation."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ENUM = "enum"
    LIST = "list"


class RuleKind(str, Enum):
    """Kind of check performed by a validation rule."""

    REQUIRED = "required"
    TYPE = "type"
    RANGE = "range"
    LENGTH = "length"
    PATTERN = "pattern"
    ENUM = "enum"


class Severity(str, Enum):
    """Whether a rule violation rejects the row or only annotates it."""

    ERROR = "error"
    WARNING = "warning"


# =============================================================================
# Input
# =============================================================================


class ImportFile(BaseModel):
    """An uploaded blob with its name, size and declared MIME type."""

    name: str
    size: int = Field(ge=0)
    content_type: str = ""
    content: bytes = Field(default=b"", repr=False)

    async def read(self) -> bytes:
        """Return the raw file content."""
        return self.content

    @property
    def extension(self) -> str:
        """Lower-cased extension including the dot, or an empty string."""
        return Path(self.name).suffix.lower()

    @classmethod
    def from_bytes(
        cls, name: str, content: bytes, content_type: str | None = None
    ) -> "ImportFile":
        return cls(
            name=name,
            size=len(content),
            content_type=content_type or "",
            content=content,
        )

    @classmethod
    def from_path(cls, path: Path | str) -> "ImportFile":
        """Build an ImportFile from a file on disk, guessing its MIME type."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls.from_bytes(path.name, path.read_bytes(), content_type)


class FileValidationResult(BaseModel):
    """Outcome of checking a file before parsing."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)


# =============================================================================
# Parsed table
# =============================================================================


class ColumnProfile(BaseModel):
    """Inferred shape of a single column."""

    index: int
    header: str
    sample_values: list[str] = Field(default_factory=list)
    data_type: str = "unknown"  # string, number, boolean, date or unknown
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class TableData(BaseModel):
    """Tabular content extracted from an import file."""

    columns: list[str]
    rows: list[dict[str, str]] = Field(default_factory=list)
    total_rows: int = 0
    preview: list[dict[str, str]] = Field(default_factory=list)
    delimiter: str = ","
    encoding: str = "utf-8"
    profiles: list[ColumnProfile] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# Mapping
# =============================================================================


class ColumnMapping(BaseModel):
    """Association between a source column and a target field."""

    source_column: str
    target_field: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_required: bool = False
    transform: TransformKind | None = None

    @property
    def is_mapped(self) -> bool:
        return self.target_field is not None


class MappingValidation(BaseModel):
    """Result of checking a full set of column mappings."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class MappingSuggestion(BaseModel):
    """A candidate target field for an unmapped column."""

    field: str
    confidence: float
    reason: str


class ColumnSuggestions(BaseModel):
    """Ranked suggestions for one unmapped column."""

    column: str
    suggestions: list[MappingSuggestion] = Field(default_factory=list)


class MappingStatistics(BaseModel):
    """Summary counts for a set of mappings."""

    total_columns: int = 0
    mapped_columns: int = 0
    unmapped_columns: int = 0
    required_fields_mapped: int = 0
    total_required_fields: int = 0
    average_confidence: float = 0.0


# =============================================================================
# Validation
# =============================================================================


class ValidationRule(BaseModel):
    """A declarative check applied to one target field."""

    field: str
    kind: RuleKind
    severity: Severity = Severity.ERROR
    message: str
    suggestion: str | None = None
    data_type: TransformKind | None = None
    min_value: float | None = None
    max_value: float | None = None
    pattern: str | None = None
    choices: list[str] | None = None


class RowIssue(BaseModel):
    """An error or warning attached to a data row."""

    row: int  # 1-based data row number
    field: str | None = None
    value: str = ""
    message: str
    severity: Severity = Severity.ERROR
    suggestion: str | None = None


class ValidRow(BaseModel):
    row_index: int
    original_data: dict[str, str]
    mapped_data: dict[str, Any]
    warnings: list[RowIssue] = Field(default_factory=list)


class ErrorRow(BaseModel):
    row_index: int
    original_data: dict[str, str]
    reasons: list[RowIssue]
    warnings: list[RowIssue] = Field(default_factory=list)


class ImportStatistics(BaseModel):
    """Counts describing a validated table."""

    total_rows: int = 0
    valid_rows: int = 0
    error_rows: int = 0
    warning_rows: int = 0
    mapped_fields: int = 0
    unmapped_fields: int = 0
    estimated_import_time: int = 0  # seconds


class ImportPreview(BaseModel):
    """Rows partitioned into importable and rejected sets."""

    valid_rows: list[ValidRow] = Field(default_factory=list)
    error_rows: list[ErrorRow] = Field(default_factory=list)
    statistics: ImportStatistics = Field(default_factory=ImportStatistics)


# =============================================================================
# Import outcome
# =============================================================================


class FailedItem(BaseModel):
    """A validated row that the record store did not accept."""

    row: int
    data: dict[str, Any]
    error: str


class ImportResult(BaseModel):
    """Outcome of committing a preview to the record store."""

    success: bool
    imported_count: int = 0
    error_count: int = 0
    warning_count: int = 0
    duration_ms: int = 0
    batch_count: int = 0
    cancelled: bool = False
    errors: list[RowIssue] = Field(default_factory=list)
    warnings: list[RowIssue] = Field(default_factory=list)
    failed_items: list[FailedItem] = Field(default_factory=list)


class ImportRunStatistics(BaseModel):
    """Rates derived from an ImportResult, as percentages of rows attempted."""

    success_rate: float = 0.0
    average_time_per_item_ms: float = 0.0
    error_rate: float = 0.0
    warning_rate: float = 0.0


class ImportProgress(BaseModel):
    """Point-in-time progress snapshot."""

    current_row: int = 0
    total_rows: int = 0
    percentage: int = Field(default=0, ge=0, le=100)
    current_operation: str = ""
    errors: list[RowIssue] = Field(default_factory=list)
    warnings: list[RowIssue] = Field(default_factory=list)
    is_complete: bool = False
    is_error: bool = False


class ImportSession(BaseModel):
    """State of one file moving through the import pipeline."""

    id: str
    file_name: str
    file_size: int
    status: ImportStatus = ImportStatus.UPLOADING
    progress: ImportProgress = Field(default_factory=ImportProgress)
    data: TableData | None = None
    mappings: list[ColumnMapping] | None = None
    preview: ImportPreview | None = None
    result: ImportResult | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
