"""Fuzzy filename search over the indexed file snapshot."""

from __future__ import annotations

import heapq
import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Sequence

from pydantic import ValidationError as PydanticValidationError

from tifflocator.errors import ValidationError
from tifflocator.ingestion.discovery import DEFAULT_EXTENSIONS, resolve_workers
from tifflocator.store import IndexedFile, IndexStore

from .models import MAX_THRESHOLD, MIN_THRESHOLD, MatchResult, SearchOutcome, SearchQuery
from .scoring import similarity
from .text import NormalizedName, normalize_name

LOGGER = logging.getLogger(__name__)


class SearchEngine:
    """Score one identifier against every indexed filename and rank the matches.

    The engine only reads from the store. Each call takes a fresh snapshot,
    splits it across worker threads, and merges the sorted partial lists so
    the final order is independent of how the work was partitioned.
    """

    def __init__(
        self,
        store: IndexStore,
        *,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        default_threshold: float = 0.7,
        workers: int = 0,
        min_partition: int = 256,
    ) -> None:
        self.store = store
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.default_threshold = default_threshold
        self.workers = resolve_workers(workers)
        self.min_partition = max(1, min_partition)
        self._normalized: Dict[str, NormalizedName] = {}

    def search(self, query: str, threshold: float | None = None) -> SearchOutcome:
        """Return every indexed file scoring at least ``threshold`` against ``query``.

        Args:
            query: Identifier text; normalized the same way as filenames.
            threshold: Minimum similarity in ``[0.5, 1.0]``; defaults to the
                engine's configured threshold.

        Returns:
            SearchOutcome: Results sorted by score descending, then by
            normalized filename and path.

        Raises:
            ValidationError: If the query is empty or the threshold is out of range.
            StorageError: If the snapshot cannot be read.
        """
        request = self._validate(query, threshold)
        needle = normalize_name(request.text, self.extensions)
        if not needle.text:
            raise ValidationError("Search query must contain at least one letter or digit")

        started = time.perf_counter()
        snapshot = self.store.list_files()
        results = self.rank(needle, snapshot, request.threshold)
        elapsed = time.perf_counter() - started
        LOGGER.debug(
            "Search for %r scored %d files in %.3fs (%d matches at threshold %.2f)",
            request.text,
            len(snapshot),
            elapsed,
            len(results),
            request.threshold,
        )
        return SearchOutcome(
            query=request.text,
            threshold=request.threshold,
            results=results,
            candidates=len(snapshot),
            elapsed_seconds=elapsed,
        )

    def rank(
        self,
        needle: NormalizedName,
        files: Sequence[IndexedFile],
        threshold: float,
    ) -> List[MatchResult]:
        """Score ``files`` against ``needle`` in parallel and merge the ranked partitions."""
        if not files:
            return []
        partitions = self._partition(files)
        if len(partitions) == 1:
            return self._score_partition(needle, partitions[0], threshold)

        with ThreadPoolExecutor(max_workers=len(partitions)) as executor:
            partials = list(
                executor.map(
                    lambda partition: self._score_partition(needle, partition, threshold),
                    partitions,
                )
            )
        return list(heapq.merge(*partials, key=MatchResult.sort_key))

    def normalized(self, name: str) -> NormalizedName:
        """Return the memoized normalized form of a filename."""
        cached = self._normalized.get(name)
        if cached is None:
            cached = normalize_name(name, self.extensions)
            self._normalized[name] = cached
        return cached

    def clear_cache(self) -> None:
        """Forget memoized filename normalizations."""
        self._normalized.clear()

    def _score_partition(
        self,
        needle: NormalizedName,
        files: Sequence[IndexedFile],
        threshold: float,
    ) -> List[MatchResult]:
        matches: List[MatchResult] = []
        for record in files:
            candidate = self.normalized(record.name)
            score = similarity(needle, candidate, threshold)
            if score >= threshold:
                matches.append(
                    MatchResult(file=record, score=score, normalized_name=candidate.text)
                )
        matches.sort(key=MatchResult.sort_key)
        return matches

    def _partition(self, files: Sequence[IndexedFile]) -> List[Sequence[IndexedFile]]:
        size = max(self.min_partition, math.ceil(len(files) / self.workers))
        return [files[start : start + size] for start in range(0, len(files), size)]

    def _validate(self, query: str, threshold: float | None) -> SearchQuery:
        effective = self.default_threshold if threshold is None else threshold
        try:
            return SearchQuery(text=query, threshold=effective)
        except PydanticValidationError as exc:
            fields = {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
            if "text" in fields:
                raise ValidationError("Search query must be a non-empty string") from exc
            raise ValidationError(
                f"Similarity threshold must be between {MIN_THRESHOLD} and {MAX_THRESHOLD} "
                f"(got {effective!r})"
            ) from exc


__all__ = ["SearchEngine"]
