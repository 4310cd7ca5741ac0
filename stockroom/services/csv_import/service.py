"""Import session orchestration.

ImportService drives one ImportSession through the pipeline:

    uploading -> mapping -> preview -> importing -> completed | error | cancelled

Every operation checks the current state and raises SessionStateError when
it is called out of order. Pipeline operations are serialized by a lock; a
second call while one is in flight is rejected rather than queued.
"""

import asyncio
import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from stockroom.config.schema import ImportConfig
from stockroom.schemas.csv_import import (
    TERMINAL_STATUSES,
    ColumnMapping,
    ColumnSuggestions,
    ImportFile,
    ImportPreview,
    ImportProgress,
    ImportResult,
    ImportRunStatistics,
    ImportSession,
    ImportStatus,
    TableData,
)
from stockroom.schemas.export import ExportFormat
from stockroom.services import export_service
from stockroom.services.csv_import import mapping, parsers, validator
from stockroom.services.csv_import.constants import (
    SUPPORTED_EXTENSIONS,
    SUPPORTED_MIME_TYPES,
    TARGET_FIELDS,
    TargetField,
)
from stockroom.services.csv_import.engine import CancellationToken, ImportEngine
from stockroom.services.csv_import.errors import (
    CSVImportError,
    ConfigurationError,
    FileValidationError,
    MappingError,
    ParseError,
    SessionStateError,
    describe_error,
)
from stockroom.services.csv_import.progress import ProgressBroadcaster

if TYPE_CHECKING:
    from stockroom.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportService:
    """Facade over the import pipeline, owning a single session."""

    def __init__(
        self,
        store: "RecordStore",
        config: ImportConfig | None = None,
        fields: dict[str, TargetField] | None = None,
    ):
        self.config = config or ImportConfig()
        self.fields = fields or TARGET_FIELDS
        self.store = store
        self.progress = ProgressBroadcaster()
        self.progress.subscribe(self._on_progress)
        self.engine = self._build_engine()
        self._session: ImportSession | None = None
        self._file: ImportFile | None = None
        self._token: CancellationToken | None = None
        self._lock = asyncio.Lock()

    # =========================================================================
    # Session access
    # =========================================================================

    @property
    def status(self) -> ImportStatus:
        return self._session.status if self._session else ImportStatus.IDLE

    def get_session(self) -> ImportSession | None:
        """Return a copy of the current session, or None."""
        return self._session.model_copy(deep=True) if self._session else None

    def get_supported_formats(self) -> dict[str, Any]:
        return {
            "extensions": list(SUPPORTED_EXTENSIONS),
            "mime_types": list(SUPPORTED_MIME_TYPES),
            "delimiters": list(self.config.allowed_delimiters),
            "encodings": list(self.config.allowed_encodings),
            "max_file_size": self.config.max_file_size,
            "max_rows": self.config.max_rows,
            "target_fields": [
                {
                    "name": field.name,
                    "description": field.description,
                    "required": field.required,
                    "transform": field.transform.value,
                }
                for field in self.fields.values()
            ],
        }

    def get_session_statistics(self) -> dict[str, Any] | None:
        """Summarize the session's data, mappings, preview and result."""
        session = self._session
        if session is None:
            return None

        stats: dict[str, Any] = {
            "session_id": session.id,
            "status": session.status.value,
            "file_name": session.file_name,
            "file_size": session.file_size,
            "total_rows": session.data.total_rows if session.data else 0,
            "total_columns": len(session.data.columns) if session.data else 0,
        }
        if session.mappings is not None:
            stats["mapping"] = mapping.get_mapping_statistics(
                session.mappings, self.fields
            ).model_dump()
        if session.preview is not None:
            stats["preview"] = session.preview.statistics.model_dump()
        if session.result is not None:
            stats["result"] = {
                "success": session.result.success,
                "imported_count": session.result.imported_count,
                "error_count": session.result.error_count,
                "warning_count": session.result.warning_count,
                "duration_ms": session.result.duration_ms,
            }
        return stats

    def get_import_statistics(self) -> ImportRunStatistics:
        """Rates for the session's finished import.

        Raises:
            SessionStateError: If the session has no import result yet
        """
        session = self._require_session()
        if session.result is None:
            raise SessionStateError("No import results to summarize")
        return self.engine.get_import_statistics(session.result)

    def get_mapping_suggestions(self) -> list[ColumnSuggestions]:
        session = self._require_session()
        if session.data is None:
            raise SessionStateError("No parsed data to suggest mappings for")
        return mapping.suggest_mappings(
            session.data.columns,
            session.mappings or [],
            self.fields,
            profiles=session.data.profiles,
            threshold=self.config.suggestion_threshold,
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_configuration(self) -> ImportConfig:
        """Return a copy of the active import configuration."""
        return self.config.model_copy(deep=True)

    def update_configuration(self, changes: Mapping[str, Any]) -> ImportConfig:
        """Merge ``changes`` into the configuration and rebuild the engine.

        The merged configuration is validated as a whole; on failure the
        current one is kept. Takes effect from the next pipeline operation.

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid
            SessionStateError: If another operation is in progress
        """
        self._ensure_idle_lock()
        unknown = sorted(set(changes) - set(ImportConfig.model_fields))
        if unknown:
            raise ConfigurationError([f"Unknown option '{key}'" for key in unknown])

        try:
            config = ImportConfig.model_validate({**self.config.model_dump(), **changes})
        except ValidationError as e:
            raise ConfigurationError(
                [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            ) from e

        self.config = config
        self.engine = self._build_engine()
        logger.info("Import configuration updated: %s", ", ".join(sorted(changes)) or "no changes")
        return self.get_configuration()

    # =========================================================================
    # Pipeline operations
    # =========================================================================

    def start_import_session(self, file: ImportFile) -> ImportSession:
        """Validate ``file`` and open a new session for it.

        On failure no session is created and any existing session is kept.

        Raises:
            FileValidationError: If the file fails validation
            SessionStateError: If another operation is in progress
        """
        self._ensure_idle_lock()
        result = parsers.validate_file(file, self.config)
        if not result.is_valid:
            logger.warning("Rejected import file %s: %s", file.name, "; ".join(result.errors))
            raise FileValidationError(result.errors)

        self._session = ImportSession(
            id=f"import_{uuid.uuid4().hex}",
            file_name=file.name,
            file_size=file.size,
            status=ImportStatus.UPLOADING,
            progress=ImportProgress(current_operation="Loading file"),
        )
        self._file = file
        logger.info("Started import session %s for %s (%d bytes)", self._session.id, file.name, file.size)
        return self._session.model_copy(deep=True)

    async def parse_file(self, file: ImportFile | None = None) -> TableData:
        """Parse the session's file (or ``file``) into table data.

        Raises:
            ParseError: If the file cannot be parsed; the session moves to error
            SessionStateError: If the session is not awaiting a file
        """
        session = self._require_status("parse_file", ImportStatus.UPLOADING)
        file = file or self._file
        if file is None:
            raise SessionStateError("No file to parse")

        self._ensure_idle_lock()
        async with self._lock:
            self._set_progress(session, "Parsing file", 0)
            try:
                data = await parsers.parse_file(file, self.config)
            except Exception as e:
                message = f"Parse error: {describe_error(e)}"
                logger.warning("Session %s: %s", session.id, message)
                self._fail(session, message)
                raise ParseError(message) from e

            session.data = data
            session.status = ImportStatus.MAPPING
            self._set_progress(session, "File parsed", 25, total_rows=data.total_rows)
            return data.model_copy(deep=True)

    def auto_map_columns(self) -> list[ColumnMapping]:
        """Propose mappings for the parsed columns and move to preview."""
        session = self._require_status("auto_map_columns", ImportStatus.MAPPING)
        if session.data is None:
            raise SessionStateError("No parsed data to map")
        self._ensure_idle_lock()

        self._set_progress(session, "Mapping columns", 30)
        mappings = mapping.auto_map_columns(
            session.data.columns, self.fields, threshold=self.config.mapping_threshold
        )
        session.mappings = mappings
        session.status = ImportStatus.PREVIEW
        self._set_progress(session, "Columns mapped", 50)
        logger.info(
            "Session %s: mapped %d of %d columns",
            session.id,
            sum(1 for m in mappings if m.is_mapped),
            len(mappings),
        )
        return [m.model_copy() for m in mappings]

    def update_mappings(self, mappings: Sequence[ColumnMapping]) -> None:
        """Replace the session's mappings after validating them.

        Every source column must be one of the parsed columns.

        Raises:
            MappingError: If the mappings are invalid; the session is unchanged
        """
        session = self._require_status(
            "update_mappings", ImportStatus.MAPPING, ImportStatus.PREVIEW
        )
        self._ensure_idle_lock()

        columns = set(session.data.columns) if session.data else set()
        unknown = [m.source_column for m in mappings if m.source_column not in columns]
        if unknown:
            raise MappingError([f"Unknown source column '{column}'" for column in unknown])

        validation = mapping.validate_mappings(mappings, self.fields)
        if not validation.is_valid:
            raise MappingError(validation.errors)

        session.mappings = [m.model_copy() for m in mappings]
        session.preview = None
        session.status = ImportStatus.PREVIEW
        self._touch(session)

    def generate_preview(self) -> ImportPreview:
        """Validate every row against the current mappings."""
        session = self._require_status("generate_preview", ImportStatus.PREVIEW)
        if session.data is None or session.mappings is None:
            raise SessionStateError("Missing data or mappings to generate preview")
        self._ensure_idle_lock()

        self._set_progress(session, "Generating preview", 60)
        preview = validator.validate_data(
            session.data,
            session.mappings,
            default_values=self.config.default_values,
            rules=self.config.validation_rules,
            fields=self.fields,
        )
        session.preview = preview
        self._set_progress(
            session,
            "Preview ready",
            70,
            total_rows=preview.statistics.total_rows,
            errors=[issue for row in preview.error_rows for issue in row.reasons],
            warnings=[
                *(w for row in preview.valid_rows for w in row.warnings),
                *(w for row in preview.error_rows for w in row.warnings),
            ],
        )
        return preview.model_copy(deep=True)

    async def start_import(self) -> ImportResult:
        """Commit the preview's valid rows to the record store.

        Raises:
            SessionStateError: If there is no preview to import
            CSVImportError: If the engine fails unexpectedly
        """
        session = self._require_status("start_import", ImportStatus.PREVIEW)
        if session.preview is None:
            raise SessionStateError("No preview to import; call generate_preview first")
        self._ensure_idle_lock()

        async with self._lock:
            token = CancellationToken()
            self._token = token
            session.status = ImportStatus.IMPORTING
            self._touch(session)
            try:
                result = await self.engine.import_data(
                    session.preview,
                    batch_size=self.config.batch_size,
                    token=token,
                    import_session_id=session.id,
                )
            except Exception as e:
                message = f"Import error: {describe_error(e)}"
                logger.error("Session %s: %s", session.id, message)
                self._fail(session, message)
                raise CSVImportError(message) from e
            finally:
                self._token = None

            session.result = result
            if result.cancelled:
                session.status = ImportStatus.CANCELLED
            elif result.success:
                session.status = ImportStatus.COMPLETED
            else:
                session.status = ImportStatus.ERROR
            self._touch(session)
            logger.info(
                "Session %s finished as %s: %d imported, %d errors",
                session.id,
                session.status.value,
                result.imported_count,
                result.error_count,
            )
            return result.model_copy(deep=True)

    def cancel_import(self) -> None:
        """Cancel the session.

        During an import the running batch completes and the session ends
        as cancelled once the engine stops. Otherwise the session is
        cancelled immediately.

        Raises:
            SessionStateError: If there is no session or it has already finished
        """
        session = self._require_session()
        if session.status in TERMINAL_STATUSES:
            raise SessionStateError(
                f"Cannot cancel a session that is already {session.status.value}"
            )

        if session.status == ImportStatus.IMPORTING:
            if self._token is not None:
                self._token.cancel()
            self._set_progress(session, "Cancelling import", session.progress.percentage)
            logger.info("Session %s: cancellation requested", session.id)
            return

        session.status = ImportStatus.CANCELLED
        self._set_progress(session, "Import cancelled", session.progress.percentage, is_error=True)
        logger.info("Session %s cancelled", session.id)

    def reset_session(self) -> None:
        """Discard the current session and return to idle."""
        if self._token is not None:
            self._token.cancel()
        if self._session is not None:
            logger.info("Session %s reset", self._session.id)
        self._session = None
        self._file = None
        self.progress.close()

    def export_results(self, export_format: ExportFormat = ExportFormat.JSON) -> bytes:
        """Serialize the session's import result.

        Raises:
            SessionStateError: If the session has no result yet
        """
        session = self._require_session()
        if session.result is None:
            raise SessionStateError("No import results to export")

        if export_format == ExportFormat.CSV:
            return export_service.export_results_to_csv(session.result)
        if export_format == ExportFormat.XLSX:
            return export_service.export_results_to_xlsx(session.result)
        return export_service.export_results_to_json(session)

    # =========================================================================
    # Internals
    # =========================================================================

    def _build_engine(self) -> ImportEngine:
        return ImportEngine(
            self.store,
            progress=self.progress,
            batch_size=self.config.batch_size,
            batch_delay=self.config.batch_delay,
        )

    def _require_session(self) -> ImportSession:
        if self._session is None:
            raise SessionStateError("No active import session")
        return self._session

    def _require_status(self, operation: str, *allowed: ImportStatus) -> ImportSession:
        session = self._require_session()
        if session.status not in allowed:
            raise SessionStateError(
                f"Cannot {operation.replace('_', ' ')} while session is {session.status.value}"
            )
        return session

    def _ensure_idle_lock(self) -> None:
        if self._lock.locked():
            raise SessionStateError("Another import operation is already in progress")

    def _touch(self, session: ImportSession) -> None:
        session.updated_at = _utcnow()

    def _set_progress(
        self,
        session: ImportSession,
        operation: str,
        percentage: int,
        **fields: Any,
    ) -> None:
        progress = ImportProgress(
            current_operation=operation,
            percentage=percentage,
            **fields,
        )
        session.progress = progress
        self._touch(session)
        self.progress.publish(progress)

    def _fail(self, session: ImportSession, message: str) -> None:
        session.status = ImportStatus.ERROR
        self._set_progress(session, message, session.progress.percentage, is_error=True)

    def _on_progress(self, progress: ImportProgress) -> None:
        session = self._session
        if session is not None and session.status == ImportStatus.IMPORTING:
            session.progress = progress
            self._touch(session)
