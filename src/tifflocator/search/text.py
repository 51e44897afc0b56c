"""Filename and query normalization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

SEPARATORS = frozenset("_-. \t\r\n\f\v")


@dataclass(frozen=True, slots=True)
class NormalizedName:
    """Case-folded text with separators removed.

    Attributes:
        text: Normalized characters used for scoring and tie-breaks.
        boundaries: Per-character flags marking token starts in the original text.
    """

    text: str
    boundaries: Tuple[bool, ...]

    def __len__(self) -> int:
        return len(self.text)


def strip_extension(name: str, extensions: Sequence[str]) -> str:
    """Remove one trailing recognized extension, compared case-insensitively."""
    lowered = name.lower()
    for ext in sorted(extensions, key=len, reverse=True):
        if ext and lowered.endswith(ext.lower()):
            return name[: len(name) - len(ext)]
    return name


def normalize_name(name: str, extensions: Sequence[str] = ()) -> NormalizedName:
    """Normalize a filename or query for comparison.

    The extension is stripped, separators (underscore, hyphen, period,
    whitespace) are dropped, and the rest is case-folded. A character starts
    a token when it is first, follows a dropped separator, begins a camel-case
    hump, or switches between letters and digits.

    Args:
        name: Raw filename or query text.
        extensions: Recognized extensions to strip.

    Returns:
        NormalizedName: Normalized text with token-boundary flags.
    """
    stem = strip_extension(name, extensions) if extensions else name
    chars: list[str] = []
    boundaries: list[bool] = []
    previous: str | None = None
    after_separator = True
    for char in stem:
        if char in SEPARATORS or char.isspace():
            after_separator = True
            continue
        boundary = after_separator or _is_transition(previous, char)
        for folded in char.casefold():
            chars.append(folded)
            boundaries.append(boundary)
            boundary = False
        previous = char
        after_separator = False
    return NormalizedName("".join(chars), tuple(boundaries))


def normalize_text(name: str, extensions: Sequence[str] = ()) -> str:
    """Return only the normalized text of ``name``."""
    return normalize_name(name, extensions).text


def _is_transition(previous: str | None, current: str) -> bool:
    if previous is None:
        return True
    if previous.isdigit() != current.isdigit() and (previous.isalnum() and current.isalnum()):
        return True
    return previous.islower() and current.isupper()


__all__ = ["NormalizedName", "normalize_name", "normalize_text", "strip_extension", "SEPARATORS"]
