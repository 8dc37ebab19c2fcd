"""Row selection, independent of the page and filter currently displayed."""

from __future__ import annotations

from collections.abc import Collection, Iterable


class SelectionManager:
    """Tracks selected entity ids.

    An id may stay selected while its entity is filtered out of view. The
    select-all control is derived from the filtered set on every render and
    never used as a source of truth.
    """

    def __init__(self) -> None:
        self._selected: set[str] = set()
        self._select_all_checked = False

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._selected

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def select_all_checked(self) -> bool:
        """State of the visible select-all control."""
        return self._select_all_checked

    def is_selected(self, entity_id: str) -> bool:
        return entity_id in self._selected

    def toggle(self, entity_id: str) -> bool:
        """Flip one row. Returns the new state for that row."""
        if entity_id in self._selected:
            self._selected.discard(entity_id)
            self._select_all_checked = False
            return False
        self._selected.add(entity_id)
        return True

    def select_all(self, filtered_ids: Iterable[str]) -> None:
        """Select exactly the currently filtered ids; the rest of the store is untouched."""
        self._selected = set(filtered_ids)
        self._select_all_checked = bool(self._selected)

    def select_only(self, entity_id: str) -> None:
        self._selected = {entity_id}

    def clear(self) -> None:
        self._selected.clear()
        self._select_all_checked = False

    def discard(self, entity_id: str) -> None:
        self._selected.discard(entity_id)

    def retain(self, known_ids: Collection[str]) -> None:
        """Drop ids whose entity no longer exists."""
        self._selected.intersection_update(known_ids)

    def is_all_selected(self, filtered_ids: Iterable[str]) -> bool:
        ids = list(filtered_ids)
        return bool(ids) and all(i in self._selected for i in ids)

    def sync_control(self, filtered_ids: Iterable[str]) -> bool:
        self._select_all_checked = self.is_all_selected(filtered_ids)
        return self._select_all_checked

    def signature(self) -> str:
        return "|".join(sorted(self._selected))
