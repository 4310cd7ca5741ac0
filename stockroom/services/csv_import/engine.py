"""Batched commit of validated rows to a record store."""

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from stockroom.schemas.csv_import import (
    FailedItem,
    ImportPreview,
    ImportProgress,
    ImportResult,
    ImportRunStatistics,
    RowIssue,
    Severity,
    ValidRow,
)
from stockroom.services.csv_import.errors import describe_error
from stockroom.services.csv_import.progress import ProgressBroadcaster

if TYPE_CHECKING:
    from stockroom.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked between batches."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ImportEngine:
    """Commits the valid rows of a preview in sequential batches.

    A batch the store rejects is recorded row by row in ``failed_items``
    and the run continues with the next batch. Cancellation is honoured
    before each batch; a batch already sent to the store always completes.
    """

    def __init__(
        self,
        store: "RecordStore",
        progress: ProgressBroadcaster | None = None,
        batch_size: int = 100,
        batch_delay: float = 0.0,
    ):
        self.store = store
        self.progress = progress
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._active_token: CancellationToken | None = None

    def cancel(self) -> None:
        """Request cancellation of the run in progress, if any."""
        if self._active_token is not None:
            self._active_token.cancel()

    def _publish(self, **kwargs) -> None:
        if self.progress is not None:
            self.progress.publish(ImportProgress(**kwargs))

    async def import_data(
        self,
        preview: ImportPreview,
        batch_size: int | None = None,
        token: CancellationToken | None = None,
        import_session_id: str | None = None,
    ) -> ImportResult:
        """Commit ``preview.valid_rows`` to the store.

        Args:
            preview: Validated rows; rejected rows count towards errors
            batch_size: Rows per store call (defaults to the engine's)
            token: Cancellation token; a fresh one is created if omitted
            import_session_id: Session id stamped on every stored record

        Returns:
            ImportResult for the run
        """
        if batch_size is None:
            batch_size = self.batch_size
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        token = token or CancellationToken()
        self._active_token = token
        started = time.perf_counter()

        rows = preview.valid_rows
        total = len(rows)
        errors: list[RowIssue] = [issue for row in preview.error_rows for issue in row.reasons]
        warnings: list[RowIssue] = [w for row in preview.valid_rows for w in row.warnings]
        warnings.extend(w for row in preview.error_rows for w in row.warnings)
        error_count = len(preview.error_rows)
        failed_items: list[FailedItem] = []
        imported = 0
        processed = 0
        batch_count = 0
        cancelled = False

        batches = [rows[i : i + batch_size] for i in range(0, total, batch_size)]
        logger.info("Starting import of %d rows in %d batches", total, len(batches))
        self._publish(
            total_rows=total,
            current_operation="Starting import",
            errors=list(errors),
            warnings=list(warnings),
        )

        try:
            for number, batch in enumerate(batches, 1):
                if token.cancelled:
                    cancelled = True
                    logger.info("Import cancelled after %d of %d rows", processed, total)
                    break

                batch_count += 1
                try:
                    await self.store.create_many(
                        [row.mapped_data for row in batch],
                        import_session_id=import_session_id,
                    )
                except Exception as e:
                    message = f"Store error: {describe_error(e)}"
                    logger.warning("Batch %d of %d failed: %s", number, len(batches), message)
                    self._record_failed_batch(batch, message, failed_items, errors)
                    error_count += len(batch)
                else:
                    imported += len(batch)

                processed += len(batch)
                self._publish(
                    current_row=processed,
                    total_rows=total,
                    percentage=round(processed / total * 100),
                    current_operation=f"Processed batch {number} of {len(batches)}",
                    errors=list(errors),
                    warnings=list(warnings),
                )

                if self.batch_delay and number < len(batches):
                    await asyncio.sleep(self.batch_delay)

            # A request that arrived while the last batch was in flight still counts
            if not cancelled and token.cancelled:
                cancelled = True
                logger.info("Import cancelled during the final batch (%d of %d rows)", processed, total)
        finally:
            self._active_token = None

        duration_ms = int((time.perf_counter() - started) * 1000)
        result = ImportResult(
            success=error_count == 0 and not cancelled,
            imported_count=imported,
            error_count=error_count,
            warning_count=len(warnings),
            duration_ms=duration_ms,
            batch_count=batch_count,
            cancelled=cancelled,
            errors=errors,
            warnings=warnings,
            failed_items=failed_items,
        )

        self._publish(
            current_row=processed,
            total_rows=total,
            percentage=round(processed / total * 100) if total else 100,
            current_operation="Import cancelled" if cancelled else "Import completed",
            errors=list(errors),
            warnings=list(warnings),
            is_complete=not cancelled,
            is_error=cancelled,
        )
        logger.info(
            "Import finished: %d imported, %d errors, %d warnings in %d ms%s",
            imported,
            error_count,
            len(warnings),
            duration_ms,
            " (cancelled)" if cancelled else "",
        )
        return result

    @staticmethod
    def get_import_statistics(result: ImportResult) -> ImportRunStatistics:
        """Success, error and warning rates plus mean time per row for ``result``.

        Rows attempted are imported rows plus error rows; an empty run has
        all rates at zero.
        """
        attempted = result.imported_count + result.error_count
        if attempted == 0:
            return ImportRunStatistics()
        return ImportRunStatistics(
            success_rate=result.imported_count / attempted * 100,
            average_time_per_item_ms=result.duration_ms / attempted,
            error_rate=result.error_count / attempted * 100,
            warning_rate=result.warning_count / attempted * 100,
        )

    @staticmethod
    def _record_failed_batch(
        batch: list[ValidRow],
        message: str,
        failed_items: list[FailedItem],
        errors: list[RowIssue],
    ) -> None:
        for row in batch:
            row_number = row.row_index + 1
            failed_items.append(FailedItem(row=row_number, data=row.mapped_data, error=message))
            errors.append(
                RowIssue(
                    row=row_number,
                    field=None,
                    value=str(row.mapped_data.get("sku", "")),
                    message=message,
                    severity=Severity.ERROR,
                )
            )
