"""Search request and result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from pydantic import BaseModel, Field, field_validator

from tifflocator.store.models import IndexedFile

MIN_THRESHOLD = 0.5
MAX_THRESHOLD = 1.0


class SearchQuery(BaseModel):
    """A single-identifier lookup.

    Attributes:
        text: Identifier to look for (trimmed, non-empty).
        threshold: Minimum similarity a file must reach.
    """

    text: str = Field(min_length=1)
    threshold: float = Field(default=0.7, ge=MIN_THRESHOLD, le=MAX_THRESHOLD)

    @field_validator("text", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


@dataclass(frozen=True, slots=True)
class MatchResult:
    """An indexed file paired with its score for one query.

    Attributes:
        file: Snapshot of the indexed file record.
        score: Similarity in ``[0, 1]``.
        normalized_name: Normalized filename used for tie-breaking.
    """

    file: IndexedFile
    score: float
    normalized_name: str

    @property
    def name(self) -> str:
        return self.file.name

    @property
    def path(self) -> str:
        return self.file.path

    def sort_key(self) -> tuple[float, str, str]:
        """Order by score descending, then normalized name, then path."""
        return (-self.score, self.normalized_name, self.file.path)


@dataclass(slots=True)
class SearchOutcome:
    """Ranked results of one search invocation.

    Attributes:
        query: Identifier text as searched.
        threshold: Threshold applied.
        results: Matches ordered by ``MatchResult.sort_key``.
        candidates: Number of indexed files scored.
        elapsed_seconds: Wall-clock duration of scoring and ranking.
    """

    query: str
    threshold: float
    results: List[MatchResult] = field(default_factory=list)
    candidates: int = 0
    elapsed_seconds: float = 0.0


__all__ = ["SearchQuery", "MatchResult", "SearchOutcome", "MIN_THRESHOLD", "MAX_THRESHOLD"]
