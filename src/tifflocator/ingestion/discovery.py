"""File discovery utilities."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from tifflocator.errors import ScanError
from tifflocator.store import IndexStore

from .models import ScanReport

LOGGER = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".tif", ".tiff")
ProgressCallback = Callable[[int, int], None]


def resolve_workers(requested: int) -> int:
    """Return a worker count, treating ``0`` as "one per CPU"."""
    if requested > 0:
        return requested
    return max(1, os.cpu_count() or 1)


def has_extension(name: str, extensions: Sequence[str]) -> bool:
    """Return True when ``name`` ends in one of ``extensions`` (case-insensitive)."""
    lowered = name.lower()
    return any(lowered.endswith(ext) for ext in extensions)


class DirectoryScanner:
    """Walk a directory tree and index files with a recognized image extension."""

    def __init__(
        self,
        store: IndexStore,
        *,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        follow_symlinks: bool = True,
        workers: int = 0,
        chunk_size: int = 512,
    ) -> None:
        self.store = store
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.follow_symlinks = follow_symlinks
        self.workers = resolve_workers(workers)
        self.chunk_size = max(1, chunk_size)

    def scan(self, root: Path | str, progress: Optional[ProgressCallback] = None) -> ScanReport:
        """Index every recognized file beneath ``root``.

        Re-scanning is idempotent: paths already in the index are skipped and
        not counted in ``ScanReport.indexed``.

        Args:
            root: Directory to walk.
            progress: Optional callback receiving ``(completed, total)`` file counts.

        Returns:
            ScanReport: Counts for the walk and the resulting index.

        Raises:
            ScanError: If ``root`` is missing, not a directory, or unreadable.
            StorageError: If the index cannot be updated.
        """
        root_path = self._validate_root(root)
        LOGGER.info("Starting filesystem walk at %s", root_path)

        candidates = list(self._iter_paths(root_path))
        matches = self._filter(candidates, progress)
        indexed = self.store.upsert_files((str(path), path.name) for path in matches)
        report = ScanReport(
            root=str(root_path),
            visited=len(candidates),
            discovered=len(matches),
            indexed=indexed,
            total_files=self.store.count_files(),
        )
        LOGGER.info(
            "Completed filesystem walk for %s: %d matching files (%d new, %d visited)",
            root_path,
            report.discovered,
            report.indexed,
            report.visited,
        )
        return report

    def _validate_root(self, root: Path | str) -> Path:
        path = Path(root).expanduser()
        if not path.exists():
            raise ScanError(f"Directory does not exist: {path}")
        if not path.is_dir():
            raise ScanError(f"Not a directory: {path}")
        if not os.access(path, os.R_OK | os.X_OK):
            raise ScanError(f"Directory is not readable: {path}")
        return path.resolve()

    def _iter_paths(self, root: Path) -> Iterator[Path]:
        """Yield every non-directory entry beneath ``root``."""
        seen: set[str] = set()
        for dirpath, dirnames, filenames in os.walk(
            root, followlinks=self.follow_symlinks, onerror=self._on_walk_error
        ):
            if self.follow_symlinks:
                real = os.path.realpath(dirpath)
                if real in seen:
                    LOGGER.warning("Skipping already visited directory %s (symlink loop)", dirpath)
                    dirnames[:] = []
                    continue
                seen.add(real)
            for filename in filenames:
                yield Path(dirpath) / filename

    def _filter(
        self, candidates: List[Path], progress: Optional[ProgressCallback]
    ) -> List[Path]:
        total = len(candidates)
        if progress is not None:
            progress(0, total)
        if not candidates:
            return []

        chunks = [
            candidates[start : start + self.chunk_size]
            for start in range(0, total, self.chunk_size)
        ]
        results: List[List[Path]] = [[] for _ in chunks]
        completed = 0
        with ThreadPoolExecutor(max_workers=min(self.workers, len(chunks))) as executor:
            futures = {
                executor.submit(self._filter_chunk, chunk): index
                for index, chunk in enumerate(chunks)
            }
            for future in as_completed(futures):
                index = futures[future]
                results[index] = future.result()
                completed += len(chunks[index])
                if progress is not None:
                    progress(completed, total)
        return [path for chunk in results for path in chunk]

    def _filter_chunk(self, chunk: Sequence[Path]) -> List[Path]:
        return [
            path
            for path in chunk
            if has_extension(path.name, self.extensions) and path.is_file()
        ]

    @staticmethod
    def _on_walk_error(error: OSError) -> None:
        LOGGER.warning("Walk error while scanning %s: %s", error.filename, error)


__all__ = [
    "DirectoryScanner",
    "DEFAULT_EXTENSIONS",
    "ProgressCallback",
    "has_extension",
    "resolve_workers",
]
