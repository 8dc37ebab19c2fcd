"""Entity detail view.

Shows one entity's recent utilization samples and its log tail. The metrics
request is cancellable: closing the view, or opening another entity, cancels
the one in flight, and its result is never applied.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Collection
from dataclasses import dataclass

from loguru import logger

from .errors import AbortError, FleetError
from .fetcher import SnapshotFetcher
from .logs import LogFeed, load_feed
from .models import Entity, MetricSample
from .view.format import format_clock, format_percentage

METRICS_LIMIT = 120
METRICS_CACHE_TTL = 10.0
MODAL_LOG_ENTRY_LIMIT = 100

SERIES_LABELS: dict[str, str] = {
    "cpu": "CPU",
    "memory": "Memory",
    "gpu": "GPU",
    "gpu-memory": "GPU memory",
}


@dataclass(frozen=True, slots=True)
class _CachedMetrics:
    samples: tuple[MetricSample, ...]
    fetched_at: float


def _rounded(value: float | None) -> float | None:
    return None if value is None else round(value, 2)


def metrics_signature(samples: tuple[MetricSample, ...]) -> str:
    def fmt(value: float | None) -> str:
        return "-" if value is None else f"{value:.2f}"

    return "|".join(
        f"{s.timestamp}:{fmt(s.cpu_usage)}:{fmt(s.memory_usage)}:"
        f"{fmt(s.gpu_usage)}:{fmt(s.gpu_memory_usage)}"
        for s in samples
    )


def metrics_summary(samples: tuple[MetricSample, ...]) -> str:
    latest = samples[-1]
    parts = (
        f"CPU {format_percentage(latest.cpu_usage)}",
        f"MEM {format_percentage(latest.memory_usage)}",
        f"GPU {format_percentage(latest.gpu_usage)}",
        f"GPU MEM {format_percentage(latest.gpu_memory_usage)}",
    )
    return f"points: {len(samples)} / latest {format_clock(latest.timestamp)} | {' / '.join(parts)}"


def build_series(samples: tuple[MetricSample, ...]) -> dict[str, tuple[float | None, ...]]:
    """Series keyed by metric; metrics without a single numeric value are dropped."""
    candidates = {
        "cpu": tuple(_rounded(s.cpu_usage) for s in samples),
        "memory": tuple(_rounded(s.memory_usage) for s in samples),
        "gpu": tuple(_rounded(s.gpu_usage) for s in samples),
        "gpu-memory": tuple(_rounded(s.gpu_memory_usage) for s in samples),
    }
    return {k: v for k, v in candidates.items() if any(x is not None for x in v)}


class DetailPanel:
    """State of the detail view for the entity currently opened."""

    def __init__(
        self,
        fetcher: SnapshotFetcher,
        *,
        metrics_limit: int = METRICS_LIMIT,
        cache_ttl: float = METRICS_CACHE_TTL,
        log_limit: int = MODAL_LOG_ENTRY_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._metrics_limit = metrics_limit
        self._cache_ttl = cache_ttl
        self._log_limit = log_limit
        self._clock = clock
        self._cache: dict[str, _CachedMetrics] = {}
        self._task: asyncio.Task[None] | None = None
        self._logs_task: asyncio.Task[None] | None = None
        self._signature = ""
        self._log = logger.bind(component="detail")

        self.entity: Entity | None = None
        self.samples: tuple[MetricSample, ...] = ()
        self.series: dict[str, tuple[float | None, ...]] = {}
        self.status = ""
        self.is_error = False
        self.error: str | None = None
        self.logs = LogFeed()

    @property
    def is_open(self) -> bool:
        return self.entity is not None

    @property
    def entity_id(self) -> str | None:
        return self.entity.id if self.entity else None

    @property
    def cached_ids(self) -> frozenset[str]:
        return frozenset(self._cache)

    def retain(self, known_ids: Collection[str]) -> None:
        """Drop cached metrics of entities no longer in the fleet."""
        for entity_id in [k for k in self._cache if k not in known_ids]:
            del self._cache[entity_id]

    def _evict_expired(self) -> None:
        now = self._clock()
        for entity_id in [k for k, v in self._cache.items() if now - v.fetched_at >= self._cache_ttl]:
            del self._cache[entity_id]

    def open(self, entity: Entity) -> None:
        """Show ``entity``, cancelling whatever the previous entity had in flight."""
        self._cancel()
        self._evict_expired()
        self.entity = entity
        self.error = None
        self._signature = ""
        self.samples = ()
        self.series = {}
        self._set_status("Loading metrics...")
        self.logs.reset()

        cached = self._cache.get(entity.id)
        if cached is not None:
            self._apply(cached.samples)
        else:
            self._task = asyncio.get_running_loop().create_task(self._load_metrics(entity.id))
        self._logs_task = asyncio.get_running_loop().create_task(self.reload_logs())

    def close(self) -> None:
        self._cancel()
        self.entity = None
        self.error = None
        self._signature = ""
        self.samples = ()
        self.series = {}
        self.logs.reset()

    def refresh_entity(self, entity: Entity) -> None:
        """Pick up a newer copy of the open entity without reloading anything."""
        if self.entity is not None and self.entity.id == entity.id:
            self.entity = entity

    async def wait_metrics(self) -> tuple[MetricSample, ...]:
        """Wait for the pending metrics request.

        Raises:
            AbortError: The request was cancelled by close() or open().
        """
        task = self._task
        if task is None:
            return self.samples
        entity_id = self.entity_id
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and not (current and current.cancelling()):
                raise AbortError(entity_id) from None
            raise
        return self.samples

    async def reload_logs(self) -> None:
        entity_id = self.entity_id
        if entity_id is None:
            return
        await load_feed(
            self.logs,
            lambda: self._fetcher.fetch_entity_logs(entity_id, self._log_limit),
            source_id=entity_id,
        )

    def _cancel(self) -> None:
        for task in (self._task, self._logs_task):
            if task is not None and not task.done():
                task.cancel()
        self._task = None
        self._logs_task = None

    def _set_status(self, message: str, *, is_error: bool = False) -> None:
        self.status = message
        self.is_error = is_error

    async def _load_metrics(self, entity_id: str) -> None:
        try:
            samples = await self._fetcher.fetch_metrics(entity_id)
        except FleetError as e:
            if self.entity_id != entity_id:
                return
            self._signature = ""
            self.series = {}
            self._set_status(f"Failed to load metrics: {e}", is_error=True)
            self._log.warning("Metrics fetch failed for {entity_id}: {error}", entity_id=entity_id, error=e)
            return
        if self.entity_id != entity_id:
            return
        self._cache[entity_id] = _CachedMetrics(samples, self._clock())
        self._apply(samples)

    def _apply(self, samples: tuple[MetricSample, ...]) -> bool:
        """Adopt a sample series. Returns False when it matches what is shown."""
        trimmed = samples[-self._metrics_limit :] if self._metrics_limit > 0 else samples
        if not trimmed:
            self._signature = ""
            self.samples = ()
            self.series = {}
            self._set_status("No metrics yet")
            return True

        signature = metrics_signature(trimmed)
        if signature == self._signature and self.series:
            self._set_status(metrics_summary(trimmed))
            return False

        self._signature = signature
        self.samples = trimmed
        self.series = build_series(trimmed)
        if not self.series:
            self._set_status("Metrics were recorded but contain no numeric values")
        else:
            self._set_status(metrics_summary(trimmed))
        return True
