"""Export service for writing import results in various formats."""

import csv
import io
from datetime import datetime, timezone
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from stockroom.schemas.csv_import import ImportResult, ImportSession, RowIssue
from stockroom.schemas.export import (
    ExportFormat,
    ResultsExport,
    ResultSummary,
    SessionExportInfo,
)

# Issue report headers (type, row, field, value, message, suggestion)
RESULT_HEADERS = ["Tipo", "Fila", "Campo", "Valor", "Mensaje", "Sugerencia"]

ERROR_LABEL = "Error"
WARNING_LABEL = "Advertencia"


def generate_filename(session_id: str, export_format: ExportFormat) -> str:
    """Generate a standardized filename for a results export.

    Args:
        session_id: Import session identifier
        export_format: Export format

    Returns:
        Filename string
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"stockroom_{session_id}_results_{timestamp}.{export_format.value}"


def _issue_to_row(label: str, issue: RowIssue) -> list[Any]:
    """Convert an issue to a row for CSV/Excel."""
    return [
        label,
        issue.row,
        issue.field or "",
        issue.value,
        issue.message,
        issue.suggestion or "",
    ]


def _result_rows(result: ImportResult) -> list[list[Any]]:
    rows = [_issue_to_row(ERROR_LABEL, issue) for issue in result.errors]
    rows.extend(_issue_to_row(WARNING_LABEL, issue) for issue in result.warnings)
    return rows


def export_results_to_json(session: ImportSession) -> bytes:
    """Export a session's result as a JSON document.

    Args:
        session: Import session holding a result

    Returns:
        UTF-8 encoded JSON content
    """
    result = session.result
    if result is None:
        raise ValueError("Session has no import result")

    document = ResultsExport(
        session=SessionExportInfo(
            id=session.id,
            file_name=session.file_name,
            file_size=session.file_size,
            status=session.status,
            created_at=session.created_at,
            completed_at=session.updated_at,
        ),
        summary=ResultSummary(
            success=result.success,
            cancelled=result.cancelled,
            imported_count=result.imported_count,
            error_count=result.error_count,
            warning_count=result.warning_count,
            duration_ms=result.duration_ms,
        ),
        errors=result.errors,
        warnings=result.warnings,
        failed_items=result.failed_items,
    )
    return document.model_dump_json(indent=2).encode("utf-8")


def export_results_to_csv(result: ImportResult) -> bytes:
    """Export result errors and warnings to CSV format.

    Args:
        result: Import result

    Returns:
        CSV content as bytes
    """
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(RESULT_HEADERS)
    for row in _result_rows(result):
        writer.writerow(row)

    return output.getvalue().encode("utf-8")


def export_results_to_xlsx(result: ImportResult) -> bytes:
    """Export result errors and warnings to Excel (XLSX) format.

    Args:
        result: Import result

    Returns:
        XLSX content as bytes
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Import Results"

    # Header styling
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="2F5597", end_color="2F5597", fill_type="solid")
    header_alignment = Alignment(horizontal="center")

    for col_idx, header in enumerate(RESULT_HEADERS, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment

    rows = _result_rows(result)
    for row_idx, values in enumerate(rows, 2):
        for col_idx, value in enumerate(values, 1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    # Auto-adjust column widths
    for col_idx, header in enumerate(RESULT_HEADERS, 1):
        max_length = len(header)
        for values in rows:
            if values[col_idx - 1] not in ("", None):
                max_length = max(max_length, len(str(values[col_idx - 1])))
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 2, 50)

    # Freeze header row
    ws.freeze_panes = "A2"

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def get_content_type(export_format: ExportFormat) -> str:
    """Get the MIME type for an export format."""
    content_types = {
        ExportFormat.CSV: "text/csv",
        ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        ExportFormat.JSON: "application/json",
    }
    return content_types[export_format]
