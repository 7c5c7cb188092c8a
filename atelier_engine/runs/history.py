"""Size-bounded history of generated images."""

from __future__ import annotations

from typing import Iterable, Iterator

from .artifacts import Artifact

DEFAULT_HISTORY_CAP = 20


class HistoryStore:
    """Ordered results, oldest first, evicted from the front beyond ``cap``.

    Selection is a set of indices into the current history. Eviction shifts the
    surviving indices so a selection keeps pointing at the same artifacts.
    """

    def __init__(self, cap: int = DEFAULT_HISTORY_CAP) -> None:
        if cap < 1:
            raise ValueError("History cap must be at least 1.")
        self.cap = cap
        self._items: list[Artifact] = []
        self._selected: set[int] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Artifact]:
        return iter(list(self._items))

    def __getitem__(self, index: int) -> Artifact:
        return self._items[index]

    @property
    def items(self) -> list[Artifact]:
        return list(self._items)

    def append(self, artifacts: Iterable[Artifact]) -> int:
        """Push artifacts at the tail and return how many were evicted."""
        self._items.extend(artifacts)
        overflow = len(self._items) - self.cap
        if overflow <= 0:
            return 0
        del self._items[:overflow]
        self._selected = {index - overflow for index in self._selected if index >= overflow}
        return overflow

    def recent(self, limit: int = 10) -> list[tuple[int, Artifact]]:
        start = max(0, len(self._items) - limit)
        return [(index, self._items[index]) for index in range(len(self._items) - 1, start - 1, -1)]

    def select(self, index: int) -> None:
        self._check_index(index)
        self._selected.add(index)

    def deselect(self, index: int) -> None:
        self._selected.discard(index)

    def toggle(self, index: int) -> bool:
        if index in self._selected:
            self._selected.discard(index)
            return False
        self.select(index)
        return True

    def clear_selection(self) -> None:
        self._selected.clear()

    @property
    def selected_indices(self) -> list[int]:
        return sorted(self._selected)

    def selected(self) -> list[Artifact]:
        return [self._items[index] for index in self.selected_indices]

    def reset(self) -> None:
        self._items.clear()
        self._selected.clear()

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= len(self._items):
            raise IndexError(f"History index {index} out of range (size {len(self._items)}).")
