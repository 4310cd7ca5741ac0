"""Pytest configuration and fixtures for Stockroom tests.

No test needs MongoDB: the import service runs against an in-memory
record store and the HTTP tests use an app without the database lifespan.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from stockroom.config.schema import ImportConfig
from stockroom.schemas.csv_import import ImportFile
from stockroom.services.csv_import import ImportService


class InMemoryStore:
    """Record store keeping records in a list.

    ``fail_on`` holds 1-based call numbers of create_many that raise.
    ``before_commit`` is called with the call number before each batch is stored.
    ``session_ids`` records the import session id passed with each call.
    """

    def __init__(
        self,
        fail_on: set[int] | None = None,
        before_commit: Callable[[int], None] | None = None,
    ):
        self.records: list[dict[str, Any]] = []
        self.calls: list[list[dict[str, Any]]] = []
        self.session_ids: list[str | None] = []
        self.fail_on = fail_on or set()
        self.before_commit = before_commit

    async def create(
        self, record: dict[str, Any], import_session_id: str | None = None
    ) -> dict[str, Any]:
        self.session_ids.append(import_session_id)
        self.records.append(record)
        return record

    async def create_many(
        self, records: list[dict[str, Any]], import_session_id: str | None = None
    ) -> list[dict[str, Any]]:
        self.calls.append(records)
        self.session_ids.append(import_session_id)
        call_number = len(self.calls)
        if self.before_commit is not None:
            self.before_commit(call_number)
        if call_number in self.fail_on:
            raise RuntimeError(f"database unavailable on call {call_number}")
        self.records.extend(records)
        return records


def make_csv_file(
    text: str,
    name: str = "items.csv",
    encoding: str = "utf-8",
    content_type: str | None = "text/csv",
) -> ImportFile:
    """Build an ImportFile from CSV text."""
    return ImportFile.from_bytes(name, text.encode(encoding), content_type)


def inventory_csv(rows: int, start: int = 1) -> str:
    """CSV text with ``rows`` valid inventory rows."""
    lines = ["sku,name,quantity,price"]
    for i in range(start, start + rows):
        lines.append(f"SKU-{i:04d},Item {i},{i},{i}.50")
    return "\n".join(lines) + "\n"


# Create a test-specific app to avoid lifespan conflicts
def create_test_app():
    """Create a FastAPI app configured for testing (no database lifespan)."""
    from fastapi import FastAPI

    from stockroom import __version__

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        yield

    test_app = FastAPI(
        title="Stockroom Test",
        version=__version__,
        lifespan=test_lifespan,
    )

    from stockroom.main import app as main_app

    # Copy all routes
    for route in main_app.routes:
        test_app.routes.append(route)

    return test_app


_test_app = None


def get_test_app():
    """Get the test app singleton."""
    global _test_app
    if _test_app is None:
        _test_app = create_test_app()
    return _test_app


@pytest.fixture
def import_config() -> ImportConfig:
    """Default import configuration."""
    return ImportConfig()


@pytest.fixture
def memory_store() -> InMemoryStore:
    """Empty in-memory record store."""
    return InMemoryStore()


@pytest.fixture
def import_service(memory_store: InMemoryStore, import_config: ImportConfig) -> ImportService:
    """Import service backed by the in-memory store."""
    return ImportService(store=memory_store, config=import_config)


@pytest_asyncio.fixture(scope="function")
async def client(import_service: ImportService) -> AsyncGenerator[AsyncClient, None]:
    """Async test client whose app uses the in-memory import service."""
    app = get_test_app()
    app.state.import_service = import_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
