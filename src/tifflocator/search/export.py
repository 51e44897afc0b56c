"""Tabular views and CSV export of match results."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .models import MatchResult

CSV_HEADER = ("file_name", "file_path", "similarity")


def result_rows(results: Iterable[MatchResult]) -> List[Dict[str, Any]]:
    """Return ``{name, score, path}`` rows for display or JSON output."""
    return [
        {"name": result.name, "score": round(result.score, 4), "path": result.path}
        for result in results
    ]


def format_similarity(score: float) -> str:
    """Render a score as a percentage with two decimals (``0.9375`` -> ``93.75%``)."""
    return f"{score * 100:.2f}%"


def write_results_csv(results: Iterable[MatchResult], path: Path | str) -> int:
    """Write results to ``path`` as CSV.

    Returns:
        int: Number of data rows written.
    """
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with target.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_HEADER)
        for result in results:
            writer.writerow([result.name, result.path, format_similarity(result.score)])
            written += 1
    return written


__all__ = ["result_rows", "write_results_csv", "format_similarity", "CSV_HEADER"]
