"""Incremental reconciliation of the fleet table.

Diffs the displayed page against the previous pass using per-entity content
signatures and an identity-keyed node cache, touching only rows whose
content changed. A snapshot key over the page, the selection and the
display state short-circuits the whole pass when nothing observable moved.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Sequence
from dataclasses import dataclass

from loguru import logger

from fleetview.models import Entity
from fleetview.pipeline import DisplayState, derive
from fleetview.selection import SelectionManager

from .dom import RowNode, TableBody
from .rows import build_row, entity_signature, page_signature, sync_row

EMPTY_STORE_MESSAGE = "No agents registered yet"
EMPTY_FILTER_MESSAGE = "No agents match the current filters"


@dataclass(slots=True)
class CacheEntry:
    node: RowNode
    signature: str


class RenderCache:
    """Entity id -> reusable row node and the signature it was built from.

    Entries are collected when their id leaves the store.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, entity_id: str) -> CacheEntry | None:
        return self._entries.get(entity_id)

    def put(self, entity_id: str, node: RowNode, signature: str) -> None:
        self._entries[entity_id] = CacheEntry(node, signature)

    def prune(self, known_ids: Collection[str]) -> list[str]:
        stale = [i for i in self._entries if i not in known_ids]
        for entity_id in stale:
            del self._entries[entity_id]
        return stale

    def clear(self) -> None:
        self._entries.clear()


@dataclass(frozen=True, slots=True)
class RenderSnapshot:
    key: str
    total_pages: int


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    total_pages: int
    current_page: int
    filtered_ids: tuple[str, ...]
    page_ids: tuple[str, ...]
    select_all: bool
    skipped: bool
    rebuilt: int = 0
    reused: int = 0


class Reconciler:
    """Owns the table body and its render cache."""

    def __init__(self, body: TableBody | None = None, cache: RenderCache | None = None) -> None:
        self.body = body if body is not None else TableBody()
        self.cache = cache if cache is not None else RenderCache()
        self._snapshot: RenderSnapshot | None = None
        self._placeholder: RowNode | None = None
        self._log = logger.bind(component="reconciler")

    def invalidate(self) -> None:
        """Force the next pass to walk the page even if its key is unchanged."""
        self._snapshot = None

    def _show_placeholder(self, message: str) -> None:
        if self._placeholder is None or self._placeholder.cells[0].plain != message:
            self._placeholder = self.body.placeholder(message)
        self.body.replace_children([self._placeholder])

    def reconcile(
        self,
        entities: Sequence[Entity],
        display: DisplayState,
        selection: SelectionManager,
    ) -> ReconcileResult:
        """Bring the body in line with the current page. Runs without suspending."""
        if not entities:
            self.cache.clear()
            self._snapshot = None
            selection.sync_control(())
            display.current_page = 1
            self._show_placeholder(EMPTY_STORE_MESSAGE)
            return ReconcileResult(1, 1, (), (), False, skipped=False)

        known = {e.id for e in entities}
        stale = self.cache.prune(known)
        if stale:
            self._log.debug("Pruned {n} stale rows", n=len(stale))

        derived = derive(entities, display)
        display.current_page = derived.current_page
        filtered_ids = tuple(e.id for e in derived.filtered)

        if not derived.filtered:
            self._snapshot = None
            selection.sync_control(())
            self._show_placeholder(EMPTY_FILTER_MESSAGE)
            return ReconcileResult(1, 1, (), (), False, skipped=False)

        select_all = selection.sync_control(filtered_ids)
        page_ids = tuple(e.id for e in derived.page)

        key = "#".join((page_signature(derived.page), selection.signature(), display.key()))
        if (
            self._snapshot is not None
            and self._snapshot.key == key
            and self._snapshot.total_pages == derived.total_pages
        ):
            return ReconcileResult(
                derived.total_pages, derived.current_page, filtered_ids, page_ids,
                select_all, skipped=True,
            )

        rows: list[RowNode] = []
        rebuilt = reused = 0
        for entity in derived.page:
            signature = entity_signature(entity)
            selected = selection.is_selected(entity.id)
            cached = self.cache.get(entity.id)
            if cached is None:
                node = build_row(self.body.create_row(entity.id), entity, selected)
                self.cache.put(entity.id, node, signature)
                rebuilt += 1
            elif cached.signature != signature:
                node = build_row(cached.node, entity, selected)
                cached.signature = signature
                rebuilt += 1
            else:
                node = cached.node
                sync_row(node, entity, selected)
                reused += 1
            rows.append(node)

        self.body.replace_children(rows)
        self._snapshot = RenderSnapshot(key, derived.total_pages)
        return ReconcileResult(
            derived.total_pages, derived.current_page, filtered_ids, page_ids,
            select_all, skipped=False, rebuilt=rebuilt, reused=reused,
        )
