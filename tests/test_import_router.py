"""Tests for the import HTTP endpoints."""

import csv
import io

import pytest
from httpx import AsyncClient

from stockroom.config.schema import ImportConfig
from stockroom.services.csv_import import ImportService
from tests.conftest import InMemoryStore, inventory_csv

API = "/api/import"


@pytest.fixture
def import_config() -> ImportConfig:
    """Small upload limit so the size check can be exercised."""
    return ImportConfig(max_file_size=64 * 1024)


async def _upload(client: AsyncClient, text: str, name: str = "items.csv", content_type: str = "text/csv"):
    return await client.post(
        f"{API}/session",
        files={"file": (name, text.encode("utf-8"), content_type)},
    )


# =============================================================================
# Health and formats
# =============================================================================


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test the health endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_get_formats(client: AsyncClient) -> None:
    """Test the supported formats endpoint."""
    response = await client.get(f"{API}/formats")
    assert response.status_code == 200
    data = response.json()
    assert ".tsv" in data["extensions"]
    assert data["max_file_size"] == 64 * 1024
    assert any(f["name"] == "sku" and f["required"] for f in data["target_fields"])


# =============================================================================
# Full flow
# =============================================================================


@pytest.mark.asyncio
async def test_full_import_flow(client: AsyncClient, memory_store: InMemoryStore) -> None:
    """Test upload, parse, map, preview, import and export over HTTP."""
    response = await _upload(client, inventory_csv(12))
    assert response.status_code == 201
    session = response.json()
    assert session["status"] == "uploading"
    assert session["file_name"] == "items.csv"

    response = await client.post(f"{API}/session/parse")
    assert response.status_code == 200
    parsed = response.json()
    assert parsed["columns"] == ["sku", "name", "quantity", "price"]
    assert parsed["total_rows"] == 12
    assert len(parsed["preview"]) == 5
    assert parsed["delimiter"] == ","

    response = await client.post(f"{API}/session/auto-map")
    assert response.status_code == 200
    assert [m["target_field"] for m in response.json()] == ["sku", "name", "quantity", "price"]

    response = await client.post(f"{API}/session/preview")
    assert response.status_code == 200
    assert response.json()["statistics"]["valid_rows"] == 12

    response = await client.post(f"{API}/session/import")
    assert response.status_code == 200
    result = response.json()
    assert result["success"] is True
    assert result["imported_count"] == 12
    assert len(memory_store.records) == 12

    response = await client.get(f"{API}/session")
    assert response.json()["status"] == "completed"
    assert response.json()["has_result"] is True

    response = await client.get(f"{API}/session/statistics")
    assert response.status_code == 200
    assert response.json()["result"]["imported_count"] == 12

    response = await client.get(f"{API}/session/export", params={"format": "csv"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=stockroom_import_" in response.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows == [["Tipo", "Fila", "Campo", "Valor", "Mensaje", "Sugerencia"]]


@pytest.mark.asyncio
async def test_update_mappings_and_suggestions(client: AsyncClient) -> None:
    """Test manual mapping through the API."""
    await _upload(client, "Code,Label,Unit Cost Price\nA-1,Widget,5\n")
    await client.post(f"{API}/session/parse")

    response = await client.put(
        f"{API}/session/mappings",
        json={
            "mappings": [
                {"source_column": "Code", "target_field": "sku"},
                {"source_column": "Label", "target_field": "name"},
                {"source_column": "Unit Cost Price"},
            ]
        },
    )
    assert response.status_code == 200
    assert response.json()["status"] == "preview"
    assert response.json()["has_mappings"] is True

    response = await client.get(f"{API}/session/suggestions")
    assert response.status_code == 200
    suggestions = response.json()
    assert suggestions[0]["column"] == "Unit Cost Price"
    assert suggestions[0]["suggestions"][0]["field"] == "price"


# =============================================================================
# Error mapping
# =============================================================================


@pytest.mark.asyncio
async def test_get_session_without_session(client: AsyncClient) -> None:
    """Test 404 when there is no session."""
    response = await client.get(f"{API}/session")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_upload_invalid_file_type(client: AsyncClient) -> None:
    """Test unsupported files are rejected with 400."""
    response = await _upload(client, "%PDF", name="items.pdf", content_type="application/pdf")
    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["detail"]


@pytest.mark.asyncio
async def test_upload_too_large(client: AsyncClient) -> None:
    """Test uploads over the size limit are rejected with 413."""
    response = await _upload(client, "x" * (64 * 1024 + 1))
    assert response.status_code == 413


@pytest.mark.asyncio
async def test_parse_binary_file(client: AsyncClient) -> None:
    """Test a parse failure returns 400 and the session reports error."""
    await _upload(client, "sku\x00name\n")

    response = await client.post(f"{API}/session/parse")

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Parse error:")
    assert (await client.get(f"{API}/session")).json()["status"] == "error"


@pytest.mark.asyncio
async def test_out_of_order_operation(client: AsyncClient) -> None:
    """Test calling a step out of order returns 409."""
    await _upload(client, "sku,name\nA-1,Widget\n")

    response = await client.post(f"{API}/session/preview")

    assert response.status_code == 409
    assert "while session is uploading" in response.json()["detail"]


@pytest.mark.asyncio
async def test_operation_without_session(client: AsyncClient) -> None:
    """Test pipeline operations without a session return 409."""
    response = await client.post(f"{API}/session/parse")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_invalid_mappings(client: AsyncClient) -> None:
    """Test invalid mappings return 422 with the reasons."""
    await _upload(client, "sku,name\nA-1,Widget\n")
    await client.post(f"{API}/session/parse")

    response = await client.put(
        f"{API}/session/mappings",
        json={"mappings": [{"source_column": "sku", "target_field": "sku"}]},
    )

    assert response.status_code == 422
    assert "Required field 'name' is not mapped" in response.json()["detail"]


@pytest.mark.asyncio
async def test_mapping_unknown_source_column(client: AsyncClient) -> None:
    """Test mapping a column the file does not have returns 422."""
    await _upload(client, "sku,name\nA-1,Widget\n")
    await client.post(f"{API}/session/parse")

    response = await client.put(
        f"{API}/session/mappings",
        json={
            "mappings": [
                {"source_column": "sku", "target_field": "sku"},
                {"source_column": "name", "target_field": "name"},
                {"source_column": "Nonexistent", "target_field": "price"},
            ]
        },
    )

    assert response.status_code == 422
    assert "Unknown source column 'Nonexistent'" in response.json()["detail"]


@pytest.mark.asyncio
async def test_export_before_import(client: AsyncClient) -> None:
    """Test exporting without a result returns 409."""
    await _upload(client, "sku,name\nA-1,Widget\n")
    response = await client.get(f"{API}/session/export")
    assert response.status_code == 409


# =============================================================================
# Cancel and reset
# =============================================================================


@pytest.mark.asyncio
async def test_cancel_session(client: AsyncClient) -> None:
    """Test cancelling before import, then cancelling again."""
    await _upload(client, "sku,name\nA-1,Widget\n")

    response = await client.post(f"{API}/session/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = await client.post(f"{API}/session/cancel")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_reset_session(client: AsyncClient, import_service: ImportService) -> None:
    """Test DELETE discards the session."""
    await _upload(client, "sku,name\nA-1,Widget\n")

    response = await client.delete(f"{API}/session")

    assert response.status_code == 204
    assert import_service.get_session() is None
    assert (await client.get(f"{API}/session")).status_code == 404


# =============================================================================
# Configuration and run statistics
# =============================================================================


@pytest.mark.asyncio
async def test_get_configuration(client: AsyncClient) -> None:
    """Test the active configuration is returned."""
    response = await client.get(f"{API}/config")
    assert response.status_code == 200
    data = response.json()
    assert data["max_file_size"] == 64 * 1024
    assert data["batch_size"] == 100


@pytest.mark.asyncio
async def test_update_configuration(client: AsyncClient, import_service: ImportService) -> None:
    """Test options can be changed over HTTP."""
    response = await client.put(f"{API}/config", json={"batch_size": 20, "mapping_threshold": 0.8})

    assert response.status_code == 200
    assert response.json()["batch_size"] == 20
    assert import_service.engine.batch_size == 20
    assert import_service.config.mapping_threshold == 0.8


@pytest.mark.asyncio
async def test_update_configuration_invalid(client: AsyncClient) -> None:
    """Test an invalid option value returns 422."""
    response = await client.put(f"{API}/config", json={"batch_size": -5})

    assert response.status_code == 422
    assert "batch_size" in response.json()["detail"]


@pytest.mark.asyncio
async def test_import_statistics_endpoint(client: AsyncClient) -> None:
    """Test run rates are served once the import has finished."""
    response = await client.get(f"{API}/session/import-statistics")
    assert response.status_code == 409

    await _upload(client, inventory_csv(4))
    await client.post(f"{API}/session/parse")
    await client.post(f"{API}/session/auto-map")
    await client.post(f"{API}/session/preview")
    await client.post(f"{API}/session/import")

    response = await client.get(f"{API}/session/import-statistics")
    assert response.status_code == 200
    assert response.json()["success_rate"] == 100.0
    assert response.json()["error_rate"] == 0.0
