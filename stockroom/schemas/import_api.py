"""Request and response schemas for the import HTTP endpoints."""

from pydantic import BaseModel, Field

from stockroom.schemas.csv_import import (
    ColumnMapping,
    ColumnProfile,
    ImportSession,
    ImportStatus,
    TableData,
)


class SessionSummary(BaseModel):
    """Session snapshot without the full row data."""

    id: str
    file_name: str
    file_size: int
    status: ImportStatus
    current_operation: str = ""
    percentage: int = 0
    total_rows: int = 0
    columns: list[str] = Field(default_factory=list)
    has_mappings: bool = False
    has_preview: bool = False
    has_result: bool = False

    @classmethod
    def from_session(cls, session: ImportSession) -> "SessionSummary":
        return cls(
            id=session.id,
            file_name=session.file_name,
            file_size=session.file_size,
            status=session.status,
            current_operation=session.progress.current_operation,
            percentage=session.progress.percentage,
            total_rows=session.data.total_rows if session.data else 0,
            columns=session.data.columns if session.data else [],
            has_mappings=session.mappings is not None,
            has_preview=session.preview is not None,
            has_result=session.result is not None,
        )


class ParseResponse(BaseModel):
    """Parsed table metadata with preview rows."""

    columns: list[str]
    total_rows: int
    preview: list[dict[str, str]]
    delimiter: str
    encoding: str
    profiles: list[ColumnProfile] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_table(cls, table: TableData) -> "ParseResponse":
        return cls(
            columns=table.columns,
            total_rows=table.total_rows,
            preview=table.preview,
            delimiter=table.delimiter,
            encoding=table.encoding,
            profiles=table.profiles,
            warnings=table.warnings,
        )


class MappingsUpdateRequest(BaseModel):
    """Replacement set of column mappings."""

    mappings: list[ColumnMapping]
