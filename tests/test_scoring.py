"""Normalization and similarity scoring tests."""

from __future__ import annotations

import pytest

from tifflocator.search import normalize_name, normalize_text, similarity
from tifflocator.search.scoring import align, is_subsequence, max_score
from tifflocator.search.text import strip_extension

EXTENSIONS = (".tif", ".tiff")


def _score(query: str, filename: str) -> float:
    return similarity(normalize_name(query), normalize_name(filename, EXTENSIONS))


def test_normalize_strips_extension_separators_and_case() -> None:
    assert normalize_text("HH001_Document.TIFF", EXTENSIONS) == "hh001document"
    assert normalize_text("ABC123-file.tif", EXTENSIONS) == "abc123file"
    assert normalize_text("scan 01.final.tif", EXTENSIONS) == "scan01final"


def test_strip_extension_prefers_longest_match() -> None:
    assert strip_extension("photo.TIFF", EXTENSIONS) == "photo"
    assert strip_extension("photo.tif", EXTENSIONS) == "photo"
    assert strip_extension("photo.png", EXTENSIONS) == "photo.png"


def test_boundaries_mark_token_starts() -> None:
    normalized = normalize_name("HH001_scanFile")

    assert normalized.text == "hh001scanfile"
    starts = [char for char, flag in zip(normalized.text, normalized.boundaries) if flag]
    # h (first), 0 (letter to digit), s (after separator), f (camel hump)
    assert starts == ["h", "0", "s", "f"]


@pytest.mark.parametrize(
    ("query", "filename"),
    [
        ("HH001", "HH001_document.tif"),
        ("ABC123", "document_ABC123.tiff"),
        ("hh-001", "HH001.tif"),
    ],
)
def test_literal_occurrence_scores_one(query: str, filename: str) -> None:
    assert _score(query, filename) == 1.0


def test_non_subsequence_scores_zero() -> None:
    assert _score("NOTFOUND999", "HH001_document.tif") == 0.0
    assert not is_subsequence("xyz", "hh001document")


def test_scores_stay_within_bounds() -> None:
    names = [
        "HH001_document.tif",
        "hxxhxx0xx1.tif",
        "HH0001.tif",
        "zz_hh_01.tiff",
        "a.tif",
    ]
    for name in names:
        score = _score("hh01", name)
        assert 0.0 <= score <= 1.0


def test_gapped_match_scores_below_contiguous_match() -> None:
    tight = _score("hh01", "HH001_doc.tif")
    scattered = _score("hh01", "hxxhxx0xx1.tif")

    assert 0.0 < scattered < tight < 1.0


def test_anchored_alignment_never_scores_lower() -> None:
    candidate = normalize_name("xxhh001", EXTENSIONS)

    assert align("hh01", candidate, anchored=True) >= align("hh01", candidate)
    assert align("hh01", candidate, anchored=True) <= max_score(4)


def test_empty_inputs_score_zero() -> None:
    assert _score("", "HH001.tif") == 0.0
    assert _score("HH001", ".tif") == 0.0


def test_minimum_prunes_only_candidates_below_it() -> None:
    query = normalize_name("hh01")
    candidate = normalize_name("hxxhxx0xx1.tif", EXTENSIONS)
    full = similarity(query, candidate)

    assert similarity(query, candidate, minimum=0.5) == full
    assert similarity(query, candidate, minimum=full) == full
    assert similarity(query, candidate, minimum=0.95) == 0.0


def test_anchored_score_matches_hand_computed_value() -> None:
    # h(16+8) h(16+8) gap of 1: 0(16-3+8) gap of 2: 1(16-4+8)
    candidate = normalize_name("hhx0xx1", EXTENSIONS)

    assert align("hh01", candidate, anchored=True) == 24 + 24 + 21 + 20
