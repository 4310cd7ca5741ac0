"""Tests for the batch import engine and progress broadcasting."""

import asyncio

import pytest

from stockroom.schemas.csv_import import (
    ErrorRow,
    ImportPreview,
    ImportProgress,
    ImportResult,
    RowIssue,
    Severity,
    ValidRow,
)
from stockroom.services.csv_import import (
    CancellationToken,
    ImportEngine,
    ProgressBroadcaster,
)
from tests.conftest import InMemoryStore


def _preview(valid: int, rejected: int = 0) -> ImportPreview:
    valid_rows = [
        ValidRow(
            row_index=i,
            original_data={"sku": f"SKU-{i}"},
            mapped_data={"sku": f"SKU-{i}", "name": f"Item {i}"},
        )
        for i in range(valid)
    ]
    error_rows = [
        ErrorRow(
            row_index=valid + i,
            original_data={"sku": ""},
            reasons=[RowIssue(row=valid + i + 1, field="sku", message="SKU is required")],
        )
        for i in range(rejected)
    ]
    return ImportPreview(valid_rows=valid_rows, error_rows=error_rows)


def _recorder(broadcaster: ProgressBroadcaster) -> list[ImportProgress]:
    snapshots: list[ImportProgress] = []
    broadcaster.subscribe(snapshots.append)
    return snapshots


# =============================================================================
# Import runs
# =============================================================================


@pytest.mark.asyncio
async def test_import_in_batches() -> None:
    """Test rows are committed in ceil(n / batch_size) store calls."""
    store = InMemoryStore()
    engine = ImportEngine(store, batch_size=100)

    result = await engine.import_data(_preview(250))

    assert result.success is True
    assert result.imported_count == 250
    assert result.error_count == 0
    assert result.batch_count == 3
    assert [len(call) for call in store.calls] == [100, 100, 50]
    assert store.records[0] == {"sku": "SKU-0", "name": "Item 0"}
    assert store.records[-1]["sku"] == "SKU-249"


@pytest.mark.asyncio
async def test_batch_size_override() -> None:
    """Test the per-call batch size overrides the engine default."""
    store = InMemoryStore()
    engine = ImportEngine(store, batch_size=100)

    result = await engine.import_data(_preview(5), batch_size=2)

    assert result.batch_count == 3
    assert [len(call) for call in store.calls] == [2, 2, 1]


@pytest.mark.asyncio
@pytest.mark.parametrize("batch_size", [0, -1])
async def test_non_positive_batch_size_rejected(batch_size: int) -> None:
    """Test a batch size below one is refused before any store call."""
    store = InMemoryStore()
    engine = ImportEngine(store)

    with pytest.raises(ValueError, match="batch_size"):
        await engine.import_data(_preview(3), batch_size=batch_size)
    assert store.calls == []


@pytest.mark.asyncio
async def test_empty_preview() -> None:
    """Test importing nothing succeeds without touching the store."""
    store = InMemoryStore()
    broadcaster = ProgressBroadcaster()
    snapshots = _recorder(broadcaster)
    engine = ImportEngine(store, progress=broadcaster)

    result = await engine.import_data(_preview(0))

    assert result.success is True
    assert result.imported_count == 0
    assert result.batch_count == 0
    assert store.calls == []
    assert snapshots[-1].is_complete is True
    assert snapshots[-1].percentage == 100


@pytest.mark.asyncio
async def test_rejected_rows_count_as_errors() -> None:
    """Test rows rejected during validation appear in the result."""
    engine = ImportEngine(InMemoryStore())

    result = await engine.import_data(_preview(3, rejected=2))

    assert result.success is False
    assert result.imported_count == 3
    assert result.error_count == 2
    assert [e.row for e in result.errors] == [4, 5]


@pytest.mark.asyncio
async def test_warnings_are_collected() -> None:
    """Test row warnings are carried into the result."""
    preview = _preview(2)
    preview.valid_rows[1].warnings.append(
        RowIssue(row=2, field="name", message="Name is very short", severity=Severity.WARNING)
    )
    result = await ImportEngine(InMemoryStore()).import_data(preview)

    assert result.success is True
    assert result.warning_count == 1
    assert result.warnings[0].message == "Name is very short"


@pytest.mark.asyncio
async def test_failed_batch_does_not_stop_run() -> None:
    """Test a store failure marks that batch failed and the run continues."""
    store = InMemoryStore(fail_on={2})
    engine = ImportEngine(store, batch_size=10)

    result = await engine.import_data(_preview(25))

    assert result.success is False
    assert result.imported_count == 15
    assert result.error_count == 10
    assert result.batch_count == 3
    assert [item.row for item in result.failed_items] == list(range(11, 21))
    failed = result.failed_items[0]
    assert failed.data["sku"] == "SKU-10"
    assert failed.error == "Store error: database unavailable on call 2"
    assert result.errors[0].value == "SKU-10"
    assert result.imported_count + result.error_count == 25


@pytest.mark.asyncio
async def test_import_session_id_reaches_store() -> None:
    """Test the session id is passed with every batch."""
    store = InMemoryStore()
    engine = ImportEngine(store, batch_size=2)

    await engine.import_data(_preview(5), import_session_id="import_abc")

    assert store.session_ids == ["import_abc", "import_abc", "import_abc"]


@pytest.mark.asyncio
async def test_import_without_session_id() -> None:
    """Test omitting the session id passes None to the store."""
    store = InMemoryStore()

    await ImportEngine(store).import_data(_preview(1))

    assert store.session_ids == [None]


# =============================================================================
# Cancellation
# =============================================================================


@pytest.mark.asyncio
async def test_cancel_between_batches() -> None:
    """Test cancellation stops before the next batch, keeping committed rows."""
    token = CancellationToken()

    def cancel_after_first(call_number: int) -> None:
        if call_number == 1:
            token.cancel()

    store = InMemoryStore(before_commit=cancel_after_first)
    broadcaster = ProgressBroadcaster()
    snapshots = _recorder(broadcaster)
    engine = ImportEngine(store, progress=broadcaster, batch_size=10)

    result = await engine.import_data(_preview(30), token=token)

    assert result.cancelled is True
    assert result.success is False
    assert result.imported_count == 10
    assert result.batch_count == 1
    assert len(store.records) == 10
    final = snapshots[-1]
    assert final.current_operation == "Import cancelled"
    assert final.is_error is True
    assert final.is_complete is False


@pytest.mark.asyncio
async def test_engine_cancel_sets_active_token() -> None:
    """Test ImportEngine.cancel reaches the running import."""
    engine: ImportEngine

    def cancel_via_engine(call_number: int) -> None:
        engine.cancel()

    store = InMemoryStore(before_commit=cancel_via_engine)
    engine = ImportEngine(store, batch_size=1)

    result = await engine.import_data(_preview(3))

    assert result.cancelled is True
    assert result.imported_count == 1


@pytest.mark.asyncio
async def test_cancel_during_final_batch() -> None:
    """Test a cancel that arrives while the last batch is stored is honoured."""
    token = CancellationToken()

    def cancel_now(call_number: int) -> None:
        token.cancel()

    store = InMemoryStore(before_commit=cancel_now)
    broadcaster = ProgressBroadcaster()
    snapshots = _recorder(broadcaster)
    engine = ImportEngine(store, progress=broadcaster, batch_size=100)

    result = await engine.import_data(_preview(5), token=token)

    assert result.cancelled is True
    assert result.success is False
    assert result.imported_count == 5
    assert result.batch_count == 1
    assert len(store.records) == 5
    final = snapshots[-1]
    assert final.current_operation == "Import cancelled"
    assert final.is_error is True
    assert final.is_complete is False


def test_engine_cancel_when_idle_is_noop() -> None:
    """Test cancelling with no run in progress does nothing."""
    ImportEngine(InMemoryStore()).cancel()


@pytest.mark.asyncio
async def test_cancel_before_start_imports_nothing() -> None:
    """Test an already-cancelled token commits nothing."""
    token = CancellationToken()
    token.cancel()
    store = InMemoryStore()

    result = await ImportEngine(store).import_data(_preview(5), token=token)

    assert result.cancelled is True
    assert result.imported_count == 0
    assert store.calls == []


# =============================================================================
# Progress
# =============================================================================


@pytest.mark.asyncio
async def test_progress_snapshots() -> None:
    """Test progress is published per batch and percentages never decrease."""
    broadcaster = ProgressBroadcaster()
    snapshots = _recorder(broadcaster)
    engine = ImportEngine(InMemoryStore(), progress=broadcaster, batch_size=2)

    await engine.import_data(_preview(5))

    operations = [s.current_operation for s in snapshots]
    assert operations == [
        "Starting import",
        "Processed batch 1 of 3",
        "Processed batch 2 of 3",
        "Processed batch 3 of 3",
        "Import completed",
    ]
    percentages = [s.percentage for s in snapshots]
    assert percentages == sorted(percentages)
    assert percentages[-1] == 100
    assert snapshots[2].current_row == 4
    assert all(s.total_rows == 5 for s in snapshots)
    assert snapshots[-1].is_complete is True
    assert broadcaster.latest == snapshots[-1]


@pytest.mark.asyncio
async def test_progress_carries_issues() -> None:
    """Test snapshots carry the row issues themselves, including batch failures."""
    preview = _preview(2, rejected=1)
    preview.valid_rows[0].warnings.append(
        RowIssue(row=1, field="name", message="Name is very short", severity=Severity.WARNING)
    )
    broadcaster = ProgressBroadcaster()
    snapshots = _recorder(broadcaster)
    engine = ImportEngine(InMemoryStore(fail_on={2}), progress=broadcaster, batch_size=1)

    await engine.import_data(preview)

    start = snapshots[0]
    assert [e.message for e in start.errors] == ["SKU is required"]
    assert [w.message for w in start.warnings] == ["Name is very short"]
    assert len(snapshots[1].errors) == 1
    assert [e.message for e in snapshots[2].errors] == [
        "SKU is required",
        "Store error: database unavailable on call 2",
    ]
    assert snapshots[-1].errors == snapshots[2].errors
    assert all(isinstance(e, RowIssue) for e in snapshots[-1].errors)


# =============================================================================
# Run statistics
# =============================================================================


def test_import_statistics_rates() -> None:
    """Test rates are percentages of imported plus errored rows."""
    result = ImportResult(
        success=False, imported_count=8, error_count=2, warning_count=5, duration_ms=500
    )

    stats = ImportEngine.get_import_statistics(result)

    assert stats.success_rate == 80.0
    assert stats.error_rate == 20.0
    assert stats.warning_rate == 50.0
    assert stats.average_time_per_item_ms == 50.0


def test_import_statistics_empty_run() -> None:
    """Test a run with no rows has zero rates."""
    stats = ImportEngine.get_import_statistics(ImportResult(success=True, duration_ms=12))

    assert stats.success_rate == 0.0
    assert stats.error_rate == 0.0
    assert stats.average_time_per_item_ms == 0.0


def test_unsubscribe() -> None:
    """Test an unsubscribed callback receives nothing further."""
    broadcaster = ProgressBroadcaster()
    received: list[ImportProgress] = []
    unsubscribe = broadcaster.subscribe(received.append)

    broadcaster.publish(ImportProgress(percentage=10))
    unsubscribe()
    broadcaster.publish(ImportProgress(percentage=20))

    assert [p.percentage for p in received] == [10]


def test_failing_callback_does_not_break_others() -> None:
    """Test one raising callback does not stop delivery to the rest."""
    broadcaster = ProgressBroadcaster()

    def broken(progress: ImportProgress) -> None:
        raise RuntimeError("boom")

    received: list[ImportProgress] = []
    broadcaster.subscribe(broken)
    broadcaster.subscribe(received.append)

    broadcaster.publish(ImportProgress(percentage=50))

    assert len(received) == 1


@pytest.mark.asyncio
async def test_stream_ends_on_terminal_snapshot() -> None:
    """Test a stream yields snapshots until one is complete."""
    broadcaster = ProgressBroadcaster()
    received: list[ImportProgress] = []

    async def consume() -> None:
        async for progress in broadcaster.stream():
            received.append(progress)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)

    broadcaster.publish(ImportProgress(percentage=10))
    broadcaster.publish(ImportProgress(percentage=100, is_complete=True))
    broadcaster.publish(ImportProgress(percentage=0))
    await asyncio.wait_for(task, timeout=1)

    assert [p.percentage for p in received] == [10, 100]


@pytest.mark.asyncio
async def test_stream_ends_on_close() -> None:
    """Test close() ends open streams."""
    broadcaster = ProgressBroadcaster()
    received: list[ImportProgress] = []

    async def consume() -> None:
        async for progress in broadcaster.stream():
            received.append(progress)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)

    broadcaster.publish(ImportProgress(percentage=30))
    broadcaster.close()
    await asyncio.wait_for(task, timeout=1)

    assert [p.percentage for p in received] == [30]
