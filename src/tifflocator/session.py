"""Interactive result state fed by orchestrator messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

from tifflocator.search import DEFAULT_PAGE_SIZE, MatchResult, ResultPaginator, SearchOutcome
from tifflocator.tasks import (
    ClearReport,
    TaskCompleted,
    TaskFailed,
    TaskKind,
    TaskMessage,
    TaskProgress,
)

if TYPE_CHECKING:
    from tifflocator.ingestion import ImportReport, ScanReport
    from tifflocator.tasks import TaskOrchestrator

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NoSearchYet:
    """No search has completed since startup or the last cache clear."""


@dataclass(slots=True)
class Loaded:
    """Results of the most recent completed search and their cursor."""

    query: str
    threshold: float
    results: List[MatchResult]
    paginator: ResultPaginator[MatchResult]


SessionState = Union[NoSearchYet, Loaded]


@dataclass(slots=True)
class SearchSession:
    """Owns the current result list and reacts to delivered task messages.

    Attributes:
        page_size: Page size used for new paginators.
        state: ``NoSearchYet`` or ``Loaded``.
        file_count: Indexed file total after the latest scan.
        reference_count: Identifier total after the latest import.
        status_line: Summary of the latest successful task.
        error_line: ``"<kind> error: <message>"`` for the latest failure.
        progress: Latest ``(completed, total)`` per running task kind.
    """

    page_size: int = DEFAULT_PAGE_SIZE
    state: SessionState = field(default_factory=NoSearchYet)
    file_count: int = 0
    reference_count: int = 0
    status_line: str = ""
    error_line: Optional[str] = None
    progress: Dict[TaskKind, Tuple[int, int]] = field(default_factory=dict)

    def pump(self, orchestrator: "TaskOrchestrator") -> List[TaskMessage]:
        """Drain pending messages without blocking and apply each in order.

        Returns:
            list[TaskMessage]: Messages that were applied.
        """

        messages = orchestrator.poll()
        for message in messages:
            self.apply(message)
        return messages

    def apply(self, message: TaskMessage) -> None:
        """Update the session for one delivered message."""

        if isinstance(message, TaskProgress):
            self.progress[message.kind] = (message.completed, message.total)
            return
        self.progress.pop(message.kind, None)
        if isinstance(message, TaskFailed):
            self.status_line = ""
            self.error_line = f"{message.kind.value} error: {message.message}"
            return
        if isinstance(message, TaskCompleted):
            self.error_line = None
            if message.kind is TaskKind.SEARCH:
                self._search_completed(message.payload)
            elif message.kind is TaskKind.SCAN:
                self._scan_completed(message.payload)
            elif message.kind is TaskKind.IMPORT:
                self._import_completed(message.payload)
            elif message.kind is TaskKind.CLEAR:
                self._clear_completed(message.payload)

    @property
    def paginator(self) -> Optional[ResultPaginator[MatchResult]]:
        return self.state.paginator if isinstance(self.state, Loaded) else None

    def _search_completed(self, outcome: SearchOutcome) -> None:
        results = list(outcome.results)
        self.state = Loaded(
            query=outcome.query,
            threshold=outcome.threshold,
            results=results,
            paginator=ResultPaginator(results, page_size=self.page_size),
        )
        self.status_line = (
            f"Found {len(results)} matches for '{outcome.query}' "
            f"in {outcome.elapsed_seconds:.2f}s"
        )

    def _scan_completed(self, report: "ScanReport") -> None:
        self.file_count = report.total_files
        self.status_line = (
            f"Scanned {report.discovered} files, {report.indexed} new "
            f"({report.total_files} indexed)"
        )

    def _import_completed(self, report: "ImportReport") -> None:
        self.reference_count = report.total
        self.status_line = (
            f"Imported {report.imported} identifiers, {report.skipped} duplicates, "
            f"{report.rejected} rejected"
        )

    def _clear_completed(self, report: ClearReport) -> None:
        LOGGER.debug(
            "Cache cleared: %d files, %d identifiers",
            report.files_removed,
            report.references_removed,
        )
        self.file_count = 0
        self.reference_count = 0
        self.state = NoSearchYet()
        self.status_line = "Cache cleared successfully"


__all__ = ["SearchSession", "SessionState", "NoSearchYet", "Loaded"]
