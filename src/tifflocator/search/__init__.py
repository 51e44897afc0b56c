"""Fuzzy identifier search over indexed filenames."""

from .engine import SearchEngine
from .export import result_rows, write_results_csv
from .models import MatchResult, SearchOutcome, SearchQuery
from .pagination import DEFAULT_PAGE_SIZE, PageView, ResultPaginator
from .scoring import similarity
from .text import NormalizedName, normalize_name, normalize_text

__all__ = [
    "SearchEngine",
    "SearchQuery",
    "SearchOutcome",
    "MatchResult",
    "ResultPaginator",
    "PageView",
    "DEFAULT_PAGE_SIZE",
    "NormalizedName",
    "normalize_name",
    "normalize_text",
    "similarity",
    "result_rows",
    "write_results_csv",
]
