"""Result export tests."""

from __future__ import annotations

import csv
from pathlib import Path

from tifflocator.search import MatchResult, result_rows, write_results_csv
from tifflocator.search.export import CSV_HEADER, format_similarity
from tifflocator.store import IndexedFile


def _result(name: str, score: float) -> MatchResult:
    record = IndexedFile(path=f"/archive/{name}", name=name)
    return MatchResult(file=record, score=score, normalized_name=name.lower())


def test_format_similarity_uses_two_decimals() -> None:
    assert format_similarity(0.9375) == "93.75%"
    assert format_similarity(1.0) == "100.00%"


def test_result_rows_expose_name_score_and_path() -> None:
    rows = result_rows([_result("HH001.tif", 0.912345)])

    assert rows == [{"name": "HH001.tif", "score": 0.9123, "path": "/archive/HH001.tif"}]


def test_write_results_csv(tmp_path: Path) -> None:
    """Ensure exported rows keep result order and use the percentage format.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    target = tmp_path / "exports" / "matches.csv"

    written = write_results_csv([_result("HH001.tif", 1.0), _result("HH01x.tif", 0.75)], target)

    assert written == 2
    with target.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == list(CSV_HEADER)
    assert rows[1] == ["HH001.tif", "/archive/HH001.tif", "100.00%"]
    assert rows[2] == ["HH01x.tif", "/archive/HH01x.tif", "75.00%"]
