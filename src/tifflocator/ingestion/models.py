"""Result models for scanning and reference identifier imports."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ScanReport(BaseModel):
    """Outcome of scanning one root directory.

    Attributes:
        root: Resolved root that was walked.
        visited: Number of regular files encountered during the walk.
        discovered: Files whose extension matched the recognized set.
        indexed: Files newly added to the index (pre-existing paths excluded).
        total_files: Index size after the scan.
    """

    root: str
    visited: int = 0
    discovered: int = 0
    indexed: int = 0
    total_files: int = 0


class ImportReport(BaseModel):
    """Outcome of importing reference identifiers.

    Attributes:
        processed: Records examined.
        imported: Identifiers newly stored.
        skipped: Identifiers already present (case-insensitive duplicates).
        rejected: Records with an empty identifier value.
        errors: Human-readable descriptions of rejected records.
        total: Stored identifier count after the import.
    """

    processed: int = 0
    imported: int = 0
    skipped: int = 0
    rejected: int = 0
    errors: List[str] = Field(default_factory=list)
    total: int = 0


__all__ = ["ScanReport", "ImportReport"]
