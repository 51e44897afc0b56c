"""Task orchestrator tests."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List

import pytest

from tifflocator.errors import BusyError, StorageError
from tifflocator.ingestion import ImportReport, ScanReport
from tifflocator.search import SearchEngine, SearchOutcome
from tifflocator.store import IndexStore
from tifflocator.tasks import (
    ClearReport,
    TaskCompleted,
    TaskFailed,
    TaskKind,
    TaskMessage,
    TaskOrchestrator,
    TaskProgress,
    TaskStatus,
    is_terminal,
)


@pytest.fixture()
def store(tmp_path: Path):
    instance = IndexStore(tmp_path / "index.db")
    yield instance
    instance.close()


def _collect(
    orchestrator: TaskOrchestrator,
    done: Callable[[List[TaskMessage]], bool],
    timeout: float = 10.0,
) -> List[TaskMessage]:
    """Poll until ``done`` accepts the collected messages.

    Args:
        orchestrator: Orchestrator under test.
        done: Predicate over everything collected so far.
        timeout: Seconds to wait before failing.

    Returns:
        List[TaskMessage]: Messages in delivery order.
    """
    collected: List[TaskMessage] = []
    deadline = time.monotonic() + timeout
    while not done(collected):
        if time.monotonic() > deadline:
            pytest.fail(f"timed out waiting for task messages: {collected!r}")
        collected.extend(orchestrator.poll())
        time.sleep(0.01)
    return collected


def _terminals(messages: List[TaskMessage]) -> List[TaskMessage]:
    return [message for message in messages if is_terminal(message)]


class BlockingEngine(SearchEngine):
    """Search engine that waits on an event before searching."""

    def __init__(self, store: IndexStore) -> None:
        super().__init__(store)
        self.started = threading.Event()
        self.release = threading.Event()

    def search(self, query: str, threshold: float | None = None) -> SearchOutcome:
        self.started.set()
        self.release.wait(timeout=10)
        return super().search(query, threshold)


class ExplodingEngine(SearchEngine):
    def search(self, query: str, threshold: float | None = None) -> SearchOutcome:
        raise RuntimeError("scoring exploded")


def test_scan_delivers_progress_then_one_completion(tmp_path: Path, store: IndexStore) -> None:
    """Ensure a scan reports progress and finishes with its report.

    Args:
        tmp_path: Temporary directory provided by pytest.
        store: Temporary index store.
    """
    root = tmp_path / "images"
    root.mkdir()
    (root / "HH001_document.tif").write_bytes(b"II*\x00")
    (root / "readme.txt").write_text("x", encoding="utf-8")

    with TaskOrchestrator(store) as orchestrator:
        ticket = orchestrator.scan(root)
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    assert ticket.kind is TaskKind.SCAN
    assert all(message.task_id == ticket.task_id for message in messages)
    assert isinstance(messages[0], TaskProgress)
    terminal = messages[-1]
    assert isinstance(terminal, TaskCompleted)
    assert isinstance(terminal.payload, ScanReport)
    assert terminal.payload.indexed == 1
    assert orchestrator.status(ticket.task_id) is TaskStatus.COMPLETED


def test_second_request_of_same_kind_is_rejected(store: IndexStore) -> None:
    """Ensure a running search blocks another search but not other kinds.

    Args:
        store: Temporary index store.
    """
    engine = BlockingEngine(store)
    orchestrator = TaskOrchestrator(store, engine=engine)
    try:
        first = orchestrator.search("HH001")
        assert engine.started.wait(timeout=10)
        assert orchestrator.is_running(TaskKind.SEARCH)
        assert orchestrator.status(first.task_id) is TaskStatus.RUNNING

        with pytest.raises(BusyError):
            orchestrator.search("HH002")

        other = orchestrator.import_identifiers(["HH001"])
        engine.release.set()
        messages = _collect(orchestrator, lambda got: len(_terminals(got)) == 2)
    finally:
        engine.release.set()
        orchestrator.shutdown()

    terminals = {message.task_id: message for message in _terminals(messages)}
    assert set(terminals) == {first.task_id, other.task_id}
    assert isinstance(terminals[first.task_id], TaskCompleted)
    assert isinstance(terminals[other.task_id].payload, ImportReport)
    assert not orchestrator.is_running(TaskKind.SEARCH)


def test_slot_is_free_once_terminal_message_is_seen(store: IndexStore) -> None:
    with TaskOrchestrator(store) as orchestrator:
        orchestrator.search("HH001")
        _collect(orchestrator, lambda got: bool(_terminals(got)))

        again = orchestrator.search("HH001")
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    assert messages[-1].task_id == again.task_id


def test_validation_failure_is_delivered_as_message(store: IndexStore) -> None:
    """Ensure a rejected query surfaces as a single failure message.

    Args:
        store: Temporary index store.
    """
    with TaskOrchestrator(store) as orchestrator:
        ticket = orchestrator.search("   ")
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    assert len(_terminals(messages)) == 1
    failure = messages[-1]
    assert isinstance(failure, TaskFailed)
    assert failure.error_type == "ValidationError"
    assert "non-empty" in failure.message
    assert orchestrator.status(ticket.task_id) is TaskStatus.FAILED


def test_unexpected_exception_is_delivered(store: IndexStore) -> None:
    with TaskOrchestrator(store, engine=ExplodingEngine(store)) as orchestrator:
        orchestrator.search("HH001")
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    failure = messages[-1]
    assert isinstance(failure, TaskFailed)
    assert failure.error_type == "RuntimeError"
    assert failure.message == "scoring exploded"


def test_scan_of_missing_root_fails(tmp_path: Path, store: IndexStore) -> None:
    with TaskOrchestrator(store) as orchestrator:
        orchestrator.scan(tmp_path / "absent")
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    failure = messages[-1]
    assert isinstance(failure, TaskFailed)
    assert failure.error_type == "ScanError"
    assert "does not exist" in failure.message


def test_storage_failure_is_delivered(store: IndexStore) -> None:
    """Ensure store errors raised inside a task reach the consumer.

    Args:
        store: Temporary index store.
    """

    class BrokenStore(IndexStore):
        def clear_all(self):  # type: ignore[override]
            raise StorageError("database is locked")

    broken = BrokenStore(store.path)
    try:
        with TaskOrchestrator(broken) as orchestrator:
            orchestrator.clear_cache()
            messages = _collect(orchestrator, lambda got: bool(_terminals(got)))
    finally:
        broken.close()

    failure = messages[-1]
    assert isinstance(failure, TaskFailed)
    assert failure.error_type == "StorageError"
    assert failure.message == "database is locked"


def test_clear_cache_reports_removed_counts(store: IndexStore) -> None:
    store.upsert_files([("/d/a.tif", "a.tif"), ("/d/b.tif", "b.tif")])
    store.upsert_reference_ids(["HH001"])

    with TaskOrchestrator(store) as orchestrator:
        orchestrator.clear_cache()
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    assert messages[-1].payload == ClearReport(files_removed=2, references_removed=1)
    assert store.count_files() == 0


def test_import_records_uses_field(store: IndexStore) -> None:
    with TaskOrchestrator(store) as orchestrator:
        orchestrator.import_records([{"code": "A1"}, {"code": "a1"}], field="code")
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    report = messages[-1].payload
    assert isinstance(report, ImportReport)
    assert (report.imported, report.skipped) == (1, 1)


def test_poll_never_blocks_when_idle(store: IndexStore) -> None:
    with TaskOrchestrator(store) as orchestrator:
        started = time.monotonic()
        assert orchestrator.poll() == []
        assert time.monotonic() - started < 1.0


def test_shutdown_rejects_new_work(store: IndexStore) -> None:
    orchestrator = TaskOrchestrator(store)
    orchestrator.shutdown()

    with pytest.raises(RuntimeError):
        orchestrator.search("HH001")


def test_import_csv_in_legacy_encoding_fails_validation(tmp_path: Path, store: IndexStore) -> None:
    """Ensure an undecodable CSV is delivered as a validation failure.

    Args:
        tmp_path: Temporary directory provided by pytest.
        store: Temporary index store.
    """
    csv_path = tmp_path / "legacy.csv"
    csv_path.write_bytes("hh_id\nHH\xe9001\n".encode("latin-1"))

    with TaskOrchestrator(store) as orchestrator:
        orchestrator.import_csv(csv_path)
        messages = _collect(orchestrator, lambda got: bool(_terminals(got)))

    failure = messages[-1]
    assert isinstance(failure, TaskFailed)
    assert failure.error_type == "ValidationError"
    assert "legacy.csv" in failure.message
    assert store.count_reference_ids() == 0


def test_rejected_submission_does_not_hold_the_slot(store: IndexStore) -> None:
    orchestrator = TaskOrchestrator(store)
    # Executor closed underneath the orchestrator, as during interpreter exit.
    orchestrator._executor.shutdown(wait=True)

    with pytest.raises(RuntimeError):
        orchestrator.clear_cache()

    assert not orchestrator.is_running(TaskKind.CLEAR)
    orchestrator.shutdown()


def test_status_history_is_bounded(store: IndexStore, monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure only the most recent finished tickets keep a status.

    Args:
        store: Temporary index store.
        monkeypatch: Pytest fixture for patching module attributes.
    """
    monkeypatch.setattr("tifflocator.tasks.service.STATUS_HISTORY", 2)

    tickets = []
    with TaskOrchestrator(store) as orchestrator:
        for _ in range(3):
            tickets.append(orchestrator.clear_cache())
            _collect(orchestrator, lambda got: bool(_terminals(got)))

        assert orchestrator.status(tickets[0].task_id) is None
        assert orchestrator.status(tickets[1].task_id) is TaskStatus.COMPLETED
        assert orchestrator.status(tickets[2].task_id) is TaskStatus.COMPLETED
