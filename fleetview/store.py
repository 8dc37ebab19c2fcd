"""Entity store.

Holds the latest known entities, aggregate stats and request history.
Pure data; rendering reads from it but never writes to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .models import Entity, FleetStats, HistoryPoint, RawPayload, Snapshot


@dataclass
class EntityStore:
    """Latest fleet view, replaced wholesale by each snapshot."""

    _entities: list[Entity] = field(default_factory=list)
    _index: dict[str, int] = field(default_factory=dict)
    stats: FleetStats | None = None
    history: tuple[HistoryPoint, ...] = ()
    generated_at: datetime | None = None

    def replace(self, snapshot: Snapshot) -> None:
        """Adopt a snapshot. Nothing from the previous one survives."""
        self._entities = list(snapshot.entities)
        self._reindex()
        self.stats = snapshot.stats
        self.history = snapshot.history
        self.generated_at = snapshot.generated_at

    def _reindex(self) -> None:
        self._index = {entity.id: i for i, entity in enumerate(self._entities)}

    @property
    def entities(self) -> tuple[Entity, ...]:
        return tuple(self._entities)

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(self._index)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._index

    def get(self, entity_id: str) -> Entity | None:
        index = self._index.get(entity_id)
        return self._entities[index] if index is not None else None

    def merge(self, entity_id: str, raw: RawPayload) -> Entity | None:
        """Merge a mutation response into the stored entity by id."""
        current = self.get(entity_id)
        if current is None:
            return None
        updated = current.merged(raw)
        self._entities[self._index[entity_id]] = updated
        return updated

    def mark_offline(self, entity_id: str) -> Entity | None:
        current = self.get(entity_id)
        if current is None:
            return None
        updated = current.with_status("offline")
        self._entities[self._index[entity_id]] = updated
        return updated

    def remove(self, entity_id: str) -> Entity | None:
        index = self._index.get(entity_id)
        if index is None:
            return None
        removed = self._entities.pop(index)
        self._reindex()
        return removed
