"""Fixed-size paging over a completed result list."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Generic, Iterator, TypeVar, overload

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 500


class PageView(Sequence[T], Generic[T]):
    """Read-only window onto ``items[start:stop]`` that does not copy."""

    __slots__ = ("_items", "_start", "_stop")

    def __init__(self, items: Sequence[T], start: int, stop: int) -> None:
        self._items = items
        self._start = start
        self._stop = stop

    @property
    def start(self) -> int:
        """Index of the first item within the underlying list."""
        return self._start

    def __len__(self) -> int:
        return self._stop - self._start

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[T]: ...

    def __getitem__(self, index: int | slice) -> T | Sequence[T]:
        if isinstance(index, slice):
            start, stop, step = index.indices(len(self))
            return [self._items[self._start + i] for i in range(start, stop, step)]
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError("page index out of range")
        return self._items[self._start + index]

    def __iter__(self) -> Iterator[T]:
        for position in range(self._start, self._stop):
            yield self._items[position]

    def __repr__(self) -> str:
        return f"PageView(start={self._start}, stop={self._stop})"


class ResultPaginator(Generic[T]):
    """Split a result list into pages of ``page_size`` and track the current page."""

    def __init__(self, results: Sequence[T] = (), page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.page_size = page_size
        self._results: Sequence[T] = results
        self._current = 0

    @property
    def results(self) -> Sequence[T]:
        return self._results

    @property
    def current_page(self) -> int:
        return self._current

    def __len__(self) -> int:
        return len(self._results)

    def page_count(self) -> int:
        """Return ``ceil(len(results) / page_size)``."""
        return -(-len(self._results) // self.page_size)

    def page(self, number: int) -> PageView[T]:
        """Return page ``number`` (zero-based).

        Page 0 is always valid, even for an empty result list.

        Raises:
            IndexError: If ``number`` is outside ``[0, page_count())``.
        """
        if number < 0 or number >= max(1, self.page_count()):
            raise IndexError(f"page {number} out of range (page count {self.page_count()})")
        start = number * self.page_size
        stop = min(start + self.page_size, len(self._results))
        return PageView(self._results, start, stop)

    def current(self) -> PageView[T]:
        return self.page(self._current)

    def next_page(self) -> PageView[T]:
        """Advance the cursor when another page exists and return the current page."""
        if self._current + 1 < self.page_count():
            self._current += 1
        return self.current()

    def previous_page(self) -> PageView[T]:
        if self._current > 0:
            self._current -= 1
        return self.current()

    def goto(self, number: int) -> PageView[T]:
        view = self.page(number)
        self._current = number
        return view

    def replace(self, results: Sequence[T]) -> None:
        """Swap in a new result list and reset the cursor to page 0."""
        self._results = results
        self._current = 0


__all__ = ["PageView", "ResultPaginator", "DEFAULT_PAGE_SIZE"]
