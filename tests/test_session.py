"""Interactive session state tests."""

from __future__ import annotations

import time
from pathlib import Path

from tifflocator.ingestion import ImportReport, ScanReport
from tifflocator.search import MatchResult, SearchOutcome
from tifflocator.session import Loaded, NoSearchYet, SearchSession
from tifflocator.store import IndexedFile, IndexStore
from tifflocator.tasks import (
    ClearReport,
    TaskCompleted,
    TaskFailed,
    TaskKind,
    TaskOrchestrator,
    TaskProgress,
)


def _outcome(query: str, count: int) -> SearchOutcome:
    results = [
        MatchResult(
            file=IndexedFile(path=f"/a/{query}_{index}.tif", name=f"{query}_{index}.tif"),
            score=1.0,
            normalized_name=f"{query.lower()}{index}",
        )
        for index in range(count)
    ]
    return SearchOutcome(query=query, threshold=0.7, results=results, candidates=count)


def test_session_starts_without_results() -> None:
    session = SearchSession()

    assert isinstance(session.state, NoSearchYet)
    assert session.paginator is None
    assert session.error_line is None


def test_search_completion_replaces_state_wholesale() -> None:
    """Ensure each completed search installs a fresh result list and cursor."""
    session = SearchSession(page_size=2)

    session.apply(TaskCompleted(1, TaskKind.SEARCH, _outcome("HH001", 5)))
    first = session.state
    assert isinstance(first, Loaded)
    first.paginator.next_page()
    assert first.paginator.current_page == 1

    session.apply(TaskCompleted(2, TaskKind.SEARCH, _outcome("HH002", 3)))

    second = session.state
    assert isinstance(second, Loaded)
    assert second is not first
    assert second.query == "HH002"
    assert second.paginator.current_page == 0
    assert second.paginator.page_count() == 2
    assert "Found 3 matches" in session.status_line


def test_failure_sets_error_line_and_keeps_results() -> None:
    session = SearchSession()
    session.apply(TaskCompleted(1, TaskKind.SEARCH, _outcome("HH001", 1)))

    session.apply(TaskFailed(2, TaskKind.SCAN, "ScanError", "Directory does not exist: /x"))

    assert session.error_line == "scan error: Directory does not exist: /x"
    assert isinstance(session.state, Loaded)


def test_scan_import_and_clear_update_counters() -> None:
    """Ensure non-search completions update counters and the status line."""
    session = SearchSession()
    session.apply(TaskProgress(1, TaskKind.SCAN, 3, 10))
    assert session.progress[TaskKind.SCAN] == (3, 10)

    scan_report = ScanReport(root="/x", discovered=4, indexed=4, total_files=4)
    session.apply(TaskCompleted(1, TaskKind.SCAN, scan_report))
    session.apply(TaskCompleted(2, TaskKind.IMPORT, ImportReport(processed=2, imported=2, total=2)))

    assert TaskKind.SCAN not in session.progress
    assert session.file_count == 4
    assert session.reference_count == 2
    assert session.status_line.startswith("Imported 2 identifiers")

    session.apply(TaskCompleted(3, TaskKind.SEARCH, _outcome("HH001", 1)))
    session.apply(TaskCompleted(4, TaskKind.CLEAR, ClearReport(4, 2)))

    assert session.file_count == 0
    assert session.reference_count == 0
    assert isinstance(session.state, NoSearchYet)
    assert session.status_line == "Cache cleared successfully"


def test_pump_drains_orchestrator(tmp_path: Path) -> None:
    """Ensure pumping applies delivered messages without blocking.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    store = IndexStore(tmp_path / "index.db")
    store.upsert_files([("/a/HH001_document.tif", "HH001_document.tif")])
    session = SearchSession()
    try:
        with TaskOrchestrator(store) as orchestrator:
            orchestrator.search("HH001")
            deadline = time.monotonic() + 10
            while not isinstance(session.state, Loaded) and time.monotonic() < deadline:
                session.pump(orchestrator)
                time.sleep(0.01)
    finally:
        store.close()

    assert isinstance(session.state, Loaded)
    assert [result.name for result in session.state.results] == ["HH001_document.tif"]
