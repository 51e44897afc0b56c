"""Background execution of scan, import, search, and cache-clear tasks."""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Sequence

from tifflocator.config import TiffLocatorConfig
from tifflocator.errors import BusyError, TiffLocatorError
from tifflocator.ingestion import DirectoryScanner, IdentifierImporter, read_identifier_csv
from tifflocator.ingestion.references import DEFAULT_ID_FIELD
from tifflocator.search import SearchEngine
from tifflocator.store import IndexStore

from .messages import (
    ClearReport,
    TaskCompleted,
    TaskFailed,
    TaskKind,
    TaskMessage,
    TaskProgress,
    TaskStatus,
    TaskTicket,
)

LOGGER = logging.getLogger(__name__)

ProgressReporter = Callable[[int, int], None]
TaskWork = Callable[[ProgressReporter], Any]

# Finished tickets whose status stays queryable; older ones are forgotten.
STATUS_HISTORY = 256


class TaskOrchestrator:
    """Run index and search operations on worker threads.

    Callers receive a ticket immediately and later collect exactly one
    terminal message per ticket via :meth:`poll`, which never blocks. A second
    request of a kind that is still running is rejected with ``BusyError``
    rather than queued or cancelled.
    """

    def __init__(
        self,
        store: IndexStore,
        *,
        scanner: Optional[DirectoryScanner] = None,
        importer: Optional[IdentifierImporter] = None,
        engine: Optional[SearchEngine] = None,
        max_workers: int = len(TaskKind),
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Shared index store.
            scanner: Directory scanner bound to ``store``.
            importer: Identifier importer bound to ``store``.
            engine: Search engine bound to ``store``.
            max_workers: Size of the task thread pool.
        """
        self._store = store
        self._scanner = scanner or DirectoryScanner(store)
        self._importer = importer or IdentifierImporter(store)
        self._engine = engine or SearchEngine(store)
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="tifflocator-task"
        )
        self._messages: queue.Queue[TaskMessage] = queue.Queue()
        self._lock = threading.Lock()
        self._running: Dict[TaskKind, int] = {}
        self._statuses: Dict[int, TaskStatus] = {}
        self._finished: Deque[int] = deque()
        self._ids = itertools.count(1)
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: TiffLocatorConfig,
        store: Optional[IndexStore] = None,
    ) -> "TaskOrchestrator":
        """Build a store (unless given) and collaborators from configuration.

        Raises:
            StorageError: If the configured database cannot be opened.
        """
        store = store or IndexStore(Path(config.cache.database_path).expanduser())
        scanner = DirectoryScanner(
            store,
            extensions=config.scan.extensions,
            follow_symlinks=config.scan.follow_symlinks,
            workers=config.scan.workers,
        )
        engine = SearchEngine(
            store,
            extensions=config.scan.extensions,
            default_threshold=config.search.default_threshold,
            workers=config.search.workers,
        )
        return cls(store, scanner=scanner, importer=IdentifierImporter(store), engine=engine)

    @property
    def store(self) -> IndexStore:
        return self._store

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def scan(self, root: Path | str) -> TaskTicket:
        """Index image files beneath ``root``; completes with a ``ScanReport``."""
        return self._submit(
            TaskKind.SCAN, lambda progress: self._scanner.scan(root, progress=progress)
        )

    def import_identifiers(self, values: Sequence[str]) -> TaskTicket:
        """Import raw identifier values; completes with an ``ImportReport``."""
        snapshot = list(values)
        return self._submit(TaskKind.IMPORT, lambda _: self._importer.import_identifiers(snapshot))

    def import_records(
        self,
        records: Sequence[Mapping[str, str]],
        field: str = DEFAULT_ID_FIELD,
    ) -> TaskTicket:
        """Import the ``field`` value of each record; completes with an ``ImportReport``."""
        snapshot = [dict(record) for record in records]
        return self._submit(
            TaskKind.IMPORT, lambda _: self._importer.import_records(snapshot, field)
        )

    def import_csv(self, path: Path | str, field: str = DEFAULT_ID_FIELD) -> TaskTicket:
        """Read ``field`` from a CSV file and import it; completes with an ``ImportReport``."""
        return self._submit(
            TaskKind.IMPORT,
            lambda _: self._importer.import_identifiers(read_identifier_csv(path, field)),
        )

    def search(self, query: str, threshold: float | None = None) -> TaskTicket:
        """Search for ``query``; completes with a ``SearchOutcome``."""
        return self._submit(TaskKind.SEARCH, lambda _: self._engine.search(query, threshold))

    def clear_cache(self) -> TaskTicket:
        """Delete all indexed files and identifiers; completes with a ``ClearReport``."""

        def _clear(_: ProgressReporter) -> ClearReport:
            files, references = self._store.clear_all()
            self._engine.clear_cache()
            return ClearReport(files_removed=files, references_removed=references)

        return self._submit(TaskKind.CLEAR, _clear)

    def poll(self) -> List[TaskMessage]:
        """Drain every message delivered so far without blocking."""
        drained: List[TaskMessage] = []
        while True:
            try:
                drained.append(self._messages.get_nowait())
            except queue.Empty:
                return drained

    def is_running(self, kind: TaskKind) -> bool:
        with self._lock:
            return kind in self._running

    def status(self, task_id: int) -> Optional[TaskStatus]:
        """Return the lifecycle state of a ticket, or None if unknown."""
        with self._lock:
            return self._statuses.get(task_id)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; optionally wait for running tasks to finish."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "TaskOrchestrator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown(wait=True)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _submit(self, kind: TaskKind, work: TaskWork) -> TaskTicket:
        with self._lock:
            if self._closed:
                raise RuntimeError("TaskOrchestrator has been shut down.")
            if kind in self._running:
                raise BusyError(f"A {kind.value} task is already running")
            ticket = TaskTicket(task_id=next(self._ids), kind=kind)
            try:
                self._executor.submit(self._run, ticket, work)
            except RuntimeError:
                self._closed = True
                raise
            self._running[kind] = ticket.task_id
            self._statuses[ticket.task_id] = TaskStatus.REQUESTED
        LOGGER.debug("Accepted %s task %d", kind.value, ticket.task_id)
        return ticket

    def _run(self, ticket: TaskTicket, work: TaskWork) -> None:
        with self._lock:
            self._statuses[ticket.task_id] = TaskStatus.RUNNING

        def _report(completed: int, total: int) -> None:
            self._messages.put(TaskProgress(ticket.task_id, ticket.kind, completed, total))

        try:
            payload = work(_report)
        except (TiffLocatorError, OSError) as exc:
            LOGGER.info("%s task %d failed: %s", ticket.kind.value, ticket.task_id, exc)
            failure = TaskFailed(ticket.task_id, ticket.kind, type(exc).__name__, str(exc))
            self._finish(ticket, failure)
        except Exception as exc:
            LOGGER.exception("Unexpected failure in %s task %d", ticket.kind.value, ticket.task_id)
            message = str(exc) or type(exc).__name__
            failure = TaskFailed(ticket.task_id, ticket.kind, type(exc).__name__, message)
            self._finish(ticket, failure)
        else:
            self._finish(ticket, TaskCompleted(ticket.task_id, ticket.kind, payload))

    def _finish(self, ticket: TaskTicket, message: TaskCompleted | TaskFailed) -> None:
        # Release the slot first so a consumer reacting to the message can resubmit.
        with self._lock:
            self._running.pop(ticket.kind, None)
            self._statuses[ticket.task_id] = (
                TaskStatus.COMPLETED if isinstance(message, TaskCompleted) else TaskStatus.FAILED
            )
            self._finished.append(ticket.task_id)
            while len(self._finished) > STATUS_HISTORY:
                self._statuses.pop(self._finished.popleft(), None)
        self._messages.put(message)


__all__ = ["TaskOrchestrator"]
