"""Filter, sort and paginate.

Pure functions that derive the displayed page from the store's entities and
the user-controlled DisplayState. Nothing here mutates its inputs.
"""

from __future__ import annotations

import locale
import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, get_args

from .models import Entity

type StatusFilter = Literal["all", "online", "offline"]
type SortKey = Literal["name", "address", "status", "uptime", "total"]
type SortOrder = Literal["asc", "desc"]

SORT_KEYS: tuple[str, ...] = get_args(SortKey.__value__)
STATUS_FILTERS: tuple[str, ...] = get_args(StatusFilter.__value__)
DEFAULT_PAGE_SIZE = 50


@dataclass(slots=True)
class DisplayState:
    """User-owned view parameters. Mutated only by user actions and page clamping."""

    filter_status: StatusFilter = "all"
    filter_query: str = ""
    sort_key: SortKey = "name"
    sort_order: SortOrder = "asc"
    current_page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def toggle_sort(self, key: SortKey) -> None:
        """Re-selecting the active key flips the order; a new key starts ascending."""
        if key not in SORT_KEYS:
            raise ValueError(f"Unknown sort key '{key}'. Valid: {', '.join(SORT_KEYS)}")
        if self.sort_key == key:
            self.sort_order = "desc" if self.sort_order == "asc" else "asc"
        else:
            self.sort_key = key
            self.sort_order = "asc"

    def key(self) -> str:
        return "#".join(
            str(part)
            for part in (
                self.sort_key,
                self.sort_order,
                self.current_page,
                self.page_size,
                self.filter_status,
                self.filter_query,
            )
        )


@dataclass(frozen=True, slots=True)
class Derived:
    filtered: tuple[Entity, ...]
    page: tuple[Entity, ...]
    total_pages: int
    current_page: int


# =============================================================================
# Filtering
# =============================================================================


def normalize_query(query: str) -> str:
    return query.strip().lower()


def matches(entity: Entity, status: StatusFilter, query: str) -> bool:
    """Status is an exact match; the query is substring containment, not tokenized."""
    if status != "all" and entity.status != status:
        return False
    if not query:
        return True
    haystacks = (
        entity.machine_name.lower(),
        entity.ip_address.lower(),
        (entity.custom_name or "").lower(),
        " ".join(entity.loaded_models).lower(),
    )
    return any(query in h for h in haystacks)


def filter_entities(entities: Iterable[Entity], status: StatusFilter, query: str) -> list[Entity]:
    q = normalize_query(query)
    return [e for e in entities if matches(e, status, q)]


# =============================================================================
# Sorting
# =============================================================================


def _text(value: Any) -> str:
    return locale.strxfrm("" if value is None else str(value))


def _number(value: Any) -> float:
    return float(value or 0)


_SORT_FIELDS: dict[str, Callable[[Entity], Any]] = {
    "name": lambda e: _text(e.display_name),
    "address": lambda e: _text(e.ip_address),
    "status": lambda e: _text(e.status),
    "uptime": lambda e: _number(e.uptime_seconds),
    "total": lambda e: _number(e.total_requests),
}


def sort_entities(entities: Iterable[Entity], key: SortKey, order: SortOrder) -> list[Entity]:
    """Stable sort; equal elements keep their snapshot order in both directions."""
    field_of = _SORT_FIELDS.get(key)
    if field_of is None:
        return list(entities)
    return sorted(entities, key=field_of, reverse=order == "desc")


# =============================================================================
# Pagination
# =============================================================================


def total_pages(count: int, page_size: int) -> int:
    if count <= 0:
        return 1
    return math.ceil(count / max(page_size, 1))


def clamp_page(page: int, pages: int) -> int:
    return min(max(page, 1), max(pages, 1))


def paginate(items: Sequence[Entity], page: int, page_size: int) -> list[Entity]:
    start = (page - 1) * page_size
    return list(items[start : start + page_size])


def derive(entities: Iterable[Entity], display: DisplayState) -> Derived:
    filtered = filter_entities(entities, display.filter_status, display.filter_query)
    ordered = sort_entities(filtered, display.sort_key, display.sort_order)
    pages = total_pages(len(ordered), display.page_size)
    current = clamp_page(display.current_page, pages)
    return Derived(
        filtered=tuple(filtered),
        page=tuple(paginate(ordered, current, display.page_size)),
        total_pages=pages,
        current_page=current,
    )
