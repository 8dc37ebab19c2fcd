"""Dashboard controller.

Owns every piece of dashboard state and runs the refresh cycle: fetch a
snapshot, replace the store, reconcile the selection, patch the view tree,
then record the cycle's timings. User actions mutate the display state or
the selection and trigger a render pass; mutations go to the coordinator and
are merged back into the store.

Everything between two awaits runs without suspending, so the store, the
selection and the render cache are never observed half-updated.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path

from loguru import logger

from .detail import METRICS_CACHE_TTL, METRICS_LIMIT, MODAL_LOG_ENTRY_LIMIT, DetailPanel
from .errors import FleetError
from .export import ExportFormat, write_export
from .fetcher import SnapshotFetcher
from .logs import LOG_ENTRY_LIMIT, LogViewer
from .models import Entity
from .performance import PerformanceMonitor, Thresholds
from .pipeline import DEFAULT_PAGE_SIZE, STATUS_FILTERS, SortKey, StatusFilter, derive
from .scheduler import PollScheduler
from .selection import SelectionManager
from .state import DashboardState
from .store import EntityStore
from .view.dom import MutationLog, TableBody
from .view.reconciler import ReconcileResult, Reconciler
from .view.stats import HistoryChart, StatsView


class DashboardController:
    """Single owner of the dashboard's state.

    Args:
        fetcher: Coordinator client.
        page_size: Rows per page.
        thresholds: Per-dimension budgets for the performance indicator.
        log_limit: Entries requested by the log viewer.
        modal_log_limit: Entries requested by the detail view.
        metrics_limit: Samples kept by the detail view.
        metrics_cache_ttl: Seconds a metrics series is reused by the detail view.
        timer: Monotonic clock used for cycle timings, in seconds.
    """

    def __init__(
        self,
        fetcher: SnapshotFetcher,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        thresholds: Thresholds | None = None,
        log_limit: int = LOG_ENTRY_LIMIT,
        modal_log_limit: int = MODAL_LOG_ENTRY_LIMIT,
        metrics_limit: int = METRICS_LIMIT,
        metrics_cache_ttl: float = METRICS_CACHE_TTL,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.fetcher = fetcher
        self.state = DashboardState()
        self.state.display.page_size = page_size
        self.store = EntityStore()
        self.selection = SelectionManager()
        self.mutations = MutationLog()
        self.reconciler = Reconciler(TableBody(self.mutations))
        self.stats_view = StatsView(self.mutations)
        self.history_chart = HistoryChart(self.mutations)
        self.monitor = PerformanceMonitor(thresholds)
        self.detail = DetailPanel(
            fetcher,
            metrics_limit=metrics_limit,
            cache_ttl=metrics_cache_ttl,
            log_limit=modal_log_limit,
        )
        self.log_viewer = LogViewer(fetcher, limit=log_limit)
        self.scheduler = PollScheduler(self.refresh)
        self._timer = timer
        self._listeners: list[Callable[[], None]] = []
        self._log = logger.bind(component="controller")

    # ─── Lifecycle ───────────────────────────────────────────────────

    def start(self, interval_ms: float) -> None:
        self.scheduler.start(interval_ms)

    async def aclose(self) -> None:
        await self.scheduler.aclose()
        self.detail.close()

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` after every state change worth redrawing."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()

    # ─── Refresh cycle ───────────────────────────────────────────────

    async def refresh(self, manual: bool = False) -> None:
        """Run one refresh cycle.

        A manual cycle shows ``loading`` while it runs, a timer tick shows
        ``updating``. Each cycle takes a sequence number. A cycle that
        completes after a newer one was applied is discarded, success or
        failure.
        """
        self.state.cycle += 1
        seq = self.state.cycle
        log = self._log.bind(cycle=seq)
        self.state.connection = "loading" if manual else "updating"
        self._notify()

        started = self._timer()
        try:
            snapshot = await self.fetcher.fetch_snapshot()
        except FleetError as e:
            if seq < self.state.applied_cycle:
                log.debug("Discarding failure of superseded cycle")
                return
            self.state.applied_cycle = seq
            self.state.error = f"Failed to refresh dashboard: {e}"
            self.state.connection = "offline"
            self.monitor.record(None, None)
            log.error("Refresh failed: {error}", error=e)
            self._notify()
            return
        fetch_ms = (self._timer() - started) * 1000

        if seq < self.state.applied_cycle:
            log.debug("Discarding snapshot of superseded cycle")
            return
        self.state.applied_cycle = seq

        render_started = self._timer()
        self.store.replace(snapshot)
        self.selection.retain(self.store.ids)
        self.render()
        render_ms = (self._timer() - render_started) * 1000

        self.state.error = None
        self.state.connection = "online"
        self.state.last_refreshed = datetime.now()
        self.state.server_generated_at = snapshot.generated_at
        self.monitor.record(
            fetch_ms,
            render_ms,
            snapshot.generation_time_ms,
            used_fallback=snapshot.used_fallback,
            generated_at=snapshot.generated_at,
        )
        log.debug(
            "Applied snapshot: {n} agents, {mutations} mutations",
            n=len(self.store),
            mutations=self.mutations.total,
        )
        self._notify()

        if self.state.logs_visible:
            await self.log_viewer.refresh(force=True)
            self._notify()

    def render(self) -> ReconcileResult:
        """Bring every view in line with the store. Never suspends."""
        result = self.reconciler.reconcile(
            self.store.entities, self.state.display, self.selection
        )
        self.state.total_pages = result.total_pages
        self.state.select_all = result.select_all
        self.stats_view.update(self.store.stats)
        self.history_chart.update(self.store.history)
        self.log_viewer.sync_options(self.store.entities)
        self.detail.retain(self.store.ids)
        if (entity_id := self.detail.entity_id) is not None:
            if (entity := self.store.get(entity_id)) is not None:
                self.detail.refresh_entity(entity)
        return result

    def filtered_entities(self) -> tuple[Entity, ...]:
        return derive(self.store.entities, self.state.display).filtered

    # ─── Display state ───────────────────────────────────────────────

    def _rerender(self) -> ReconcileResult:
        result = self.render()
        self._notify()
        return result

    def set_filter_status(self, status: StatusFilter) -> ReconcileResult:
        if status not in STATUS_FILTERS:
            raise ValueError(f"Unknown status filter '{status}'. Valid: {', '.join(STATUS_FILTERS)}")
        self.state.display.filter_status = status
        self.state.display.current_page = 1
        return self._rerender()

    def set_query(self, query: str) -> ReconcileResult:
        self.state.display.filter_query = query
        self.state.display.current_page = 1
        return self._rerender()

    def sort_by(self, key: SortKey) -> ReconcileResult:
        self.state.display.toggle_sort(key)
        return self._rerender()

    def set_page_size(self, page_size: int) -> ReconcileResult:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.state.display.page_size = page_size
        self.state.display.current_page = 1
        return self._rerender()

    def go_to_page(self, page: int) -> ReconcileResult:
        self.state.display.current_page = page
        return self._rerender()

    def next_page(self) -> ReconcileResult:
        display = self.state.display
        if display.current_page < self.state.total_pages:
            display.current_page += 1
        return self._rerender()

    def prev_page(self) -> ReconcileResult:
        display = self.state.display
        if display.current_page > 1:
            display.current_page -= 1
        return self._rerender()

    # ─── Selection ───────────────────────────────────────────────────

    def toggle_row(self, entity_id: str) -> bool:
        checked = self.selection.toggle(entity_id)
        self._rerender()
        return checked

    def set_select_all(self, checked: bool) -> ReconcileResult:
        if checked:
            self.selection.select_all(e.id for e in self.filtered_entities())
        else:
            self.selection.clear()
        return self._rerender()

    # ─── Detail view ─────────────────────────────────────────────────

    def open_detail(self, entity_id: str) -> Entity:
        """Open the detail view; the entity becomes the only selected row.

        Raises:
            KeyError: No such entity in the store.
        """
        entity = self.store.get(entity_id)
        if entity is None:
            raise KeyError(f"Agent '{entity_id}' not found")
        self.selection.select_only(entity_id)
        self.detail.open(entity)
        self._rerender()
        return entity

    def close_detail(self) -> None:
        self.detail.close()
        self._notify()

    async def save_settings(
        self,
        entity_id: str,
        *,
        custom_name: str | None = None,
        tags: Sequence[str] = (),
        notes: str | None = None,
    ) -> Entity | None:
        """Persist name, tags and notes. Failures land on the detail view."""
        log = self._log.bind(entity_id=entity_id)
        self.detail.error = None
        try:
            raw = await self.fetcher.update_settings(
                entity_id, custom_name=custom_name, tags=tags, notes=notes
            )
        except FleetError as e:
            self.detail.error = f"Failed to save settings: {e}"
            log.warning("Saving settings failed: {error}", error=e)
            self._notify()
            return None
        updated = self.store.merge(entity_id, raw)
        if updated is not None:
            self.detail.refresh_entity(updated)
        log.info("Settings saved")
        self._rerender()
        return updated

    async def delete_entity(self, entity_id: str) -> bool:
        log = self._log.bind(entity_id=entity_id)
        self.detail.error = None
        try:
            await self.fetcher.delete_entity(entity_id)
        except FleetError as e:
            self.detail.error = f"Failed to delete agent: {e}"
            log.warning("Delete failed: {error}", error=e)
            self._notify()
            return False
        self.store.remove(entity_id)
        self.selection.discard(entity_id)
        if self.detail.entity_id == entity_id:
            self.detail.close()
        log.info("Agent deleted")
        self._rerender()
        return True

    async def disconnect_entity(self, entity_id: str) -> bool:
        """Ask the coordinator to drop the agent. Its selection is kept."""
        log = self._log.bind(entity_id=entity_id)
        self.detail.error = None
        try:
            await self.fetcher.disconnect_entity(entity_id)
        except FleetError as e:
            self.detail.error = f"Failed to disconnect agent: {e}"
            log.warning("Disconnect failed: {error}", error=e)
            self._notify()
            return False
        if (updated := self.store.mark_offline(entity_id)) is not None:
            self.detail.refresh_entity(updated)
        log.info("Agent disconnected")
        self._rerender()
        return True

    # ─── Logs ────────────────────────────────────────────────────────

    async def show_logs(self, visible: bool = True) -> None:
        self.state.logs_visible = visible
        if visible:
            await self.log_viewer.refresh()
        self._notify()

    async def select_log_agent(self, entity_id: str | None) -> None:
        self.log_viewer.select(entity_id)
        await self.log_viewer.refresh_agent()
        self._notify()

    # ─── Export ──────────────────────────────────────────────────────

    def export(self, path: str | Path, fmt: ExportFormat | None = None) -> Path:
        """Write the currently filtered agents to ``path``."""
        return write_export(path, self.filtered_entities(), fmt)

    def export_json(self, path: str | Path) -> Path:
        return self.export(path, "json")

    def export_csv(self, path: str | Path) -> Path:
        return self.export(path, "csv")
