"""Import endpoints driving the CSV import session."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response, StreamingResponse

from stockroom.config.schema import ImportConfig
from stockroom.schemas.csv_import import (
    ColumnMapping,
    ColumnSuggestions,
    ImportFile,
    ImportPreview,
    ImportResult,
    ImportRunStatistics,
)
from stockroom.schemas.export import ExportFormat
from stockroom.schemas.import_api import MappingsUpdateRequest, ParseResponse, SessionSummary
from stockroom.services import export_service
from stockroom.services.csv_import import (
    CSVImportError,
    ConfigurationError,
    FileValidationError,
    ImportService,
    MappingError,
    ParseError,
    SessionStateError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB


def get_import_service(request: Request) -> ImportService:
    """Return the application's import service."""
    return request.app.state.import_service


ImportServiceDep = Annotated[ImportService, Depends(get_import_service)]


def _http_error(exc: CSVImportError) -> HTTPException:
    """Translate an import pipeline error into an HTTP error."""
    if isinstance(exc, SessionStateError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (MappingError, ConfigurationError)):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, (FileValidationError, ParseError)):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        logger.error("Import pipeline failure: %s", exc)
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=str(exc))


def _summary(service: ImportService) -> SessionSummary:
    session = service.get_session()
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active import session")
    return SessionSummary.from_session(session)


@router.get("/formats")
async def get_supported_formats(service: ImportServiceDep) -> dict[str, Any]:
    """List accepted file types, delimiters, encodings and target fields."""
    return service.get_supported_formats()


@router.get("/config", response_model=ImportConfig)
async def get_configuration(service: ImportServiceDep) -> ImportConfig:
    """Get the active import configuration."""
    return service.get_configuration()


@router.put("/config", response_model=ImportConfig)
async def update_configuration(
    service: ImportServiceDep,
    changes: dict[str, Any] = Body(..., description="Options to change"),
) -> ImportConfig:
    """Change import options; omitted options keep their values."""
    try:
        return service.update_configuration(changes)
    except CSVImportError as e:
        raise _http_error(e)


@router.post("/session", response_model=SessionSummary, status_code=status.HTTP_201_CREATED)
async def start_session(
    service: ImportServiceDep,
    file: UploadFile = File(..., description="CSV, TSV or TXT file"),
) -> SessionSummary:
    """Upload a file and open a new import session."""
    max_size = service.config.max_file_size

    # Read in chunks to avoid unbounded memory for oversized files
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_size:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds maximum size of {service.config.max_file_size_mb:g} MB",
            )
        chunks.append(chunk)

    import_file = ImportFile.from_bytes(
        file.filename or "upload.csv",
        b"".join(chunks),
        file.content_type,
    )
    try:
        service.start_import_session(import_file)
    except CSVImportError as e:
        raise _http_error(e)
    return _summary(service)


@router.get("/session", response_model=SessionSummary)
async def get_session(service: ImportServiceDep) -> SessionSummary:
    """Get the current session state."""
    return _summary(service)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def reset_session(service: ImportServiceDep) -> None:
    """Discard the current session."""
    service.reset_session()


@router.post("/session/parse", response_model=ParseResponse)
async def parse_session_file(service: ImportServiceDep) -> ParseResponse:
    """Parse the uploaded file into columns and rows."""
    try:
        table = await service.parse_file()
    except CSVImportError as e:
        raise _http_error(e)
    return ParseResponse.from_table(table)


@router.post("/session/auto-map", response_model=list[ColumnMapping])
async def auto_map_columns(service: ImportServiceDep) -> list[ColumnMapping]:
    """Map source columns to inventory fields automatically."""
    try:
        return service.auto_map_columns()
    except CSVImportError as e:
        raise _http_error(e)


@router.put("/session/mappings", response_model=SessionSummary)
async def update_mappings(
    request: MappingsUpdateRequest,
    service: ImportServiceDep,
) -> SessionSummary:
    """Replace the column mappings."""
    try:
        service.update_mappings(request.mappings)
    except CSVImportError as e:
        raise _http_error(e)
    return _summary(service)


@router.get("/session/suggestions", response_model=list[ColumnSuggestions])
async def get_mapping_suggestions(service: ImportServiceDep) -> list[ColumnSuggestions]:
    """Suggest target fields for unmapped columns."""
    try:
        return service.get_mapping_suggestions()
    except CSVImportError as e:
        raise _http_error(e)


@router.get("/session/statistics")
async def get_session_statistics(service: ImportServiceDep) -> dict[str, Any]:
    """Get counts for the current session."""
    stats = service.get_session_statistics()
    if stats is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active import session")
    return stats


@router.get("/session/import-statistics", response_model=ImportRunStatistics)
async def get_import_statistics(service: ImportServiceDep) -> ImportRunStatistics:
    """Get success, error and warning rates for the finished import."""
    try:
        return service.get_import_statistics()
    except CSVImportError as e:
        raise _http_error(e)


@router.post("/session/preview", response_model=ImportPreview)
async def generate_preview(service: ImportServiceDep) -> ImportPreview:
    """Validate all rows and return the valid/rejected split."""
    try:
        return service.generate_preview()
    except CSVImportError as e:
        raise _http_error(e)


@router.post("/session/import", response_model=ImportResult)
async def start_import(service: ImportServiceDep) -> ImportResult:
    """Commit the valid rows to the inventory."""
    try:
        return await service.start_import()
    except CSVImportError as e:
        raise _http_error(e)


@router.post("/session/cancel", response_model=SessionSummary)
async def cancel_import(service: ImportServiceDep) -> SessionSummary:
    """Cancel the current session or running import."""
    try:
        service.cancel_import()
    except CSVImportError as e:
        raise _http_error(e)
    return _summary(service)


@router.get("/session/progress")
async def stream_progress(service: ImportServiceDep) -> StreamingResponse:
    """Stream progress snapshots as newline-delimited JSON until the import ends."""

    async def snapshots():
        async for progress in service.progress.stream():
            yield progress.model_dump_json() + "\n"

    return StreamingResponse(snapshots(), media_type="application/x-ndjson")


@router.get("/session/export")
async def export_results(
    service: ImportServiceDep,
    format: ExportFormat = Query(default=ExportFormat.JSON, description="Export format"),
) -> Response:
    """Download the import results."""
    try:
        content = service.export_results(format)
    except CSVImportError as e:
        raise _http_error(e)

    session = service.get_session()
    filename = export_service.generate_filename(session.id, format)
    return Response(
        content=content,
        media_type=export_service.get_content_type(format),
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
