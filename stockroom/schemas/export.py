"""Pydantic schemas for exporting import results."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from stockroom.schemas.csv_import import FailedItem, ImportStatus, RowIssue


class ExportFormat(str, Enum):
    """Supported export formats."""

    CSV = "csv"
    XLSX = "xlsx"
    JSON = "json"


class SessionExportInfo(BaseModel):
    """Session details included in a JSON results export."""

    id: str
    file_name: str
    file_size: int
    status: ImportStatus
    created_at: datetime
    completed_at: datetime | None = None
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ResultSummary(BaseModel):
    """Headline numbers of an import result."""

    success: bool
    cancelled: bool = False
    imported_count: int
    error_count: int
    warning_count: int
    duration_ms: int


class ResultsExport(BaseModel):
    """Full JSON results export document."""

    session: SessionExportInfo
    summary: ResultSummary
    errors: list[RowIssue] = Field(default_factory=list)
    warnings: list[RowIssue] = Field(default_factory=list)
    failed_items: list[FailedItem] = Field(default_factory=list)
