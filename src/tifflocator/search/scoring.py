"""Subsequence similarity scoring between a normalized query and a filename.

The score aligns every query character, in order, onto the candidate. Each
matched character earns ``SCORE_MATCH`` plus at most ``BONUS_MAX``: the
consecutive bonus when it directly follows the previous match, or the
boundary bonus when it starts a token. Gaps between matched characters cost
``GAP_START`` plus ``GAP_EXTENSION`` per further skipped character; text
before the first and after the last match is free.

Two alignments are considered and the better one wins:

* the whole candidate, with boundaries as they occur in the filename;
* the best contiguous substring of the candidate. Scored on its own, a
  substring's first character is always a token start, and the best
  substring begins at the first matched character, so this is the same
  alignment with the first match anchored on a boundary.

Anchoring only ever adds the boundary bonus to the first match, so the
anchored alignment is never worse and is the only one computed.

Raw scores are divided by ``len(query) * (SCORE_MATCH + BONUS_MAX)``, the
value of a fully contiguous match that starts a token, and clamped to
``[0, 1]``.
"""

from __future__ import annotations

from typing import List

from .text import NormalizedName

SCORE_MATCH = 16
BONUS_BOUNDARY = 8
BONUS_CONSECUTIVE = 8
BONUS_MAX = max(BONUS_BOUNDARY, BONUS_CONSECUTIVE)
GAP_START = 3
GAP_EXTENSION = 1

_UNREACHABLE = -(1 << 30)
# Absorbs float rounding when converting a threshold into a raw-score floor.
_FLOOR_SLACK = 1e-9


def max_score(length: int) -> int:
    """Return the best achievable raw score for a query of ``length`` characters."""
    return length * (SCORE_MATCH + BONUS_MAX)


def is_subsequence(query: str, candidate: str) -> bool:
    """Return True when every character of ``query`` appears in order in ``candidate``."""
    remaining = iter(candidate)
    return all(char in remaining for char in query)


def _positions(text: str, char: str, start: int, stop: int) -> List[int]:
    found: List[int] = []
    index = text.find(char, start, stop)
    while index != -1:
        found.append(index)
        index = text.find(char, index + 1, stop)
    return found


def align(
    query: str,
    candidate: NormalizedName,
    *,
    anchored: bool = False,
    floor: float = 0.0,
) -> int:
    """Return the best raw alignment score of ``query`` within ``candidate``.

    Only candidate positions holding the query character are visited, so the
    work grows with the number of matching characters rather than with the
    filename length.

    Args:
        query: Normalized query text.
        candidate: Normalized candidate with token boundaries.
        anchored: Treat the first matched character as a token start.
        floor: Raw score the caller needs; alignments that provably cannot
            reach it stop early and report ``0``.

    Returns:
        int: Raw score, or ``0`` when no alignment (reaching ``floor``) exists.
    """
    text = candidate.text
    boundaries = candidate.boundaries
    n, m = len(query), len(text)
    if n == 0 or n > m:
        return 0

    per_char = SCORE_MATCH + BONUS_MAX
    gap_offset = GAP_START - 2 * GAP_EXTENSION
    # Sparse rows: positions holding query[i] in ascending order, with the best
    # score of an alignment whose i-th character lands there.
    positions = _positions(text, query[0], 0, m - n + 1)
    scores = [SCORE_MATCH + (BONUS_BOUNDARY if anchored or boundaries[j] else 0) for j in positions]

    for i in range(1, n):
        if not scores or max(scores) + (n - i) * per_char < floor:
            return 0
        next_positions: List[int] = []
        next_scores: List[int] = []
        # max over k <= j - 2 of score[k] + GAP_EXTENSION * k
        best_gap = _UNREACHABLE
        cursor = 0
        count = len(positions)
        for j in _positions(text, query[i], i, m - (n - 1 - i)):
            while cursor < count and positions[cursor] <= j - 2:
                carried = scores[cursor] + GAP_EXTENSION * positions[cursor]
                if carried > best_gap:
                    best_gap = carried
                cursor += 1
            boundary = BONUS_BOUNDARY if boundaries[j] else 0
            best = _UNREACHABLE
            if cursor < count and positions[cursor] == j - 1:
                best = scores[cursor] + max(BONUS_CONSECUTIVE, boundary)
            if best_gap != _UNREACHABLE:
                gapped = best_gap - GAP_EXTENSION * j - gap_offset + boundary
                if gapped > best:
                    best = gapped
            if best != _UNREACHABLE:
                next_positions.append(j)
                next_scores.append(SCORE_MATCH + best)
        positions, scores = next_positions, next_scores

    if not scores:
        return 0
    raw = max(scores)
    return raw if raw > 0 and raw >= floor else 0


def similarity(query: NormalizedName, candidate: NormalizedName, minimum: float = 0.0) -> float:
    """Return the normalized similarity of ``candidate`` to ``query`` in ``[0, 1]``.

    Args:
        query: Normalized query.
        candidate: Normalized filename.
        minimum: Score of interest to the caller; candidates that cannot reach
            it are reported as ``0.0`` without finishing the alignment.

    Returns:
        float: Similarity in ``[0, 1]``.
    """
    needle = query.text
    if not needle or not candidate.text:
        return 0.0
    if needle in candidate.text:
        # A literal occurrence is a contiguous substring match: the maximum.
        return 1.0
    if not is_subsequence(needle, candidate.text):
        return 0.0

    total = max_score(len(needle))
    floor = max(0.0, minimum * total - _FLOOR_SLACK)
    best = align(needle, candidate, anchored=True, floor=floor)
    return min(1.0, max(0.0, best / total))


__all__ = [
    "SCORE_MATCH",
    "BONUS_BOUNDARY",
    "BONUS_CONSECUTIVE",
    "BONUS_MAX",
    "GAP_START",
    "GAP_EXTENSION",
    "align",
    "is_subsequence",
    "max_score",
    "similarity",
]
