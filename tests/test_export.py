"""Tests for import result export."""

import csv
import io
import json
import re

from openpyxl import load_workbook

from stockroom.schemas.csv_import import (
    FailedItem,
    ImportResult,
    ImportSession,
    ImportStatus,
    RowIssue,
    Severity,
)
from stockroom.schemas.export import ExportFormat
from stockroom.services.export_service import (
    RESULT_HEADERS,
    export_results_to_csv,
    export_results_to_json,
    export_results_to_xlsx,
    generate_filename,
    get_content_type,
)


def _result() -> ImportResult:
    return ImportResult(
        success=False,
        imported_count=8,
        error_count=2,
        warning_count=1,
        duration_ms=42,
        batch_count=1,
        errors=[
            RowIssue(
                row=3,
                field="sku",
                value="",
                message="SKU is required",
                suggestion="Provide a unique SKU code for each item",
            ),
            RowIssue(row=7, field=None, value="A-7", message="Store error: duplicate key"),
        ],
        warnings=[
            RowIssue(
                row=5,
                field="price",
                value="2000000",
                message="Price is unusually high",
                severity=Severity.WARNING,
            )
        ],
        failed_items=[FailedItem(row=7, data={"sku": "A-7"}, error="Store error: duplicate key")],
    )


def _session() -> ImportSession:
    return ImportSession(
        id="import_abc",
        file_name="stock.csv",
        file_size=120,
        status=ImportStatus.ERROR,
        result=_result(),
    )


# =============================================================================
# Filenames and content types
# =============================================================================


def test_generate_filename() -> None:
    """Test filenames carry the session id, a timestamp and the extension."""
    filename = generate_filename("import_abc", ExportFormat.XLSX)
    assert re.fullmatch(r"stockroom_import_abc_results_\d{8}_\d{6}\.xlsx", filename)


def test_get_content_type() -> None:
    """Test MIME types for each format."""
    assert get_content_type(ExportFormat.CSV) == "text/csv"
    assert get_content_type(ExportFormat.JSON) == "application/json"
    assert "spreadsheetml" in get_content_type(ExportFormat.XLSX)


# =============================================================================
# CSV
# =============================================================================


def test_export_csv() -> None:
    """Test errors come before warnings, one row per issue."""
    content = export_results_to_csv(_result()).decode("utf-8")
    rows = list(csv.reader(io.StringIO(content)))

    assert rows[0] == RESULT_HEADERS
    assert rows[1] == [
        "Error",
        "3",
        "sku",
        "",
        "SKU is required",
        "Provide a unique SKU code for each item",
    ]
    assert rows[2] == ["Error", "7", "", "A-7", "Store error: duplicate key", ""]
    assert rows[3][0] == "Advertencia"
    assert len(rows) == 4


def test_export_csv_empty_result() -> None:
    """Test a clean result exports only the header."""
    content = export_results_to_csv(ImportResult(success=True)).decode("utf-8")
    assert list(csv.reader(io.StringIO(content))) == [RESULT_HEADERS]


# =============================================================================
# Excel
# =============================================================================


def test_export_xlsx() -> None:
    """Test the workbook layout."""
    content = export_results_to_xlsx(_result())
    ws = load_workbook(io.BytesIO(content)).active

    assert ws.title == "Import Results"
    assert [cell.value for cell in ws[1]] == RESULT_HEADERS
    assert ws["A2"].value == "Error"
    assert ws["B2"].value == 3
    assert ws["A4"].value == "Advertencia"
    assert ws.max_row == 4
    assert ws.freeze_panes == "A2"
    assert ws["A1"].font.bold is True


# =============================================================================
# JSON
# =============================================================================


def test_export_json() -> None:
    """Test the JSON document holds session info, summary and issues."""
    document = json.loads(export_results_to_json(_session()))

    assert document["session"]["id"] == "import_abc"
    assert document["session"]["status"] == "error"
    assert "exported_at" in document["session"]
    assert document["summary"] == {
        "success": False,
        "cancelled": False,
        "imported_count": 8,
        "error_count": 2,
        "warning_count": 1,
        "duration_ms": 42,
    }
    assert len(document["errors"]) == 2
    assert document["warnings"][0]["severity"] == "warning"
    assert document["failed_items"] == [
        {"row": 7, "data": {"sku": "A-7"}, "error": "Store error: duplicate key"}
    ]
